"""One-time mesh preparation: smoothed normals, centring and scaling."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from .engine import Mesh, Triangle, Vec3

# Vertices whose coordinates agree to this many decimal digits are shared.
KEY_PRECISION = 5
TARGET_SIZE = 1.5

VertexKey = Tuple[int, int, int]


def vertex_key(vertex: Vec3) -> VertexKey:
    factor = 10 ** KEY_PRECISION
    return (round(vertex.x * factor), round(vertex.y * factor), round(vertex.z * factor))


def smooth_vertex_normals(triangles: Sequence[Triangle]) -> List[Triangle]:
    """Give every vertex the average face normal of the triangles sharing its position."""

    sums: Dict[VertexKey, Vec3] = {}
    counts: Dict[VertexKey, int] = {}
    for triangle in triangles:
        for vertex in triangle.vertices:
            key = vertex_key(vertex)
            sums[key] = sums.get(key, Vec3(0.0, 0.0, 0.0)) + triangle.normal
            counts[key] = counts.get(key, 0) + 1

    def averaged(vertex: Vec3) -> Vec3:
        key = vertex_key(vertex)
        return (sums[key] / counts[key]).normalized()

    return [
        replace(triangle, vn1=averaged(triangle.v1), vn2=averaged(triangle.v2), vn3=averaged(triangle.v3))
        for triangle in triangles
    ]


def centroid(triangles: Sequence[Triangle]) -> Vec3:
    """Mean of all vertex occurrences (shared vertices are counted once per triangle)."""

    total = Vec3(0.0, 0.0, 0.0)
    count = 0
    for triangle in triangles:
        for vertex in triangle.vertices:
            total = total + vertex
            count += 1
    if count == 0:
        return total
    return total / count


def bounding_box(triangles: Sequence[Triangle]) -> Tuple[Vec3, Vec3]:
    xs = [v.x for t in triangles for v in t.vertices]
    ys = [v.y for t in triangles for v in t.vertices]
    zs = [v.z for t in triangles for v in t.vertices]
    if not xs:
        raise ValueError("Cannot compute the bounding box of an empty mesh")
    return Vec3(min(xs), min(ys), min(zs)), Vec3(max(xs), max(ys), max(zs))


def _map_vertices(triangles: Sequence[Triangle], offset: Vec3, factor: float) -> List[Triangle]:
    return [
        replace(
            triangle,
            v1=(triangle.v1 - offset) * factor,
            v2=(triangle.v2 - offset) * factor,
            v3=(triangle.v3 - offset) * factor,
        )
        for triangle in triangles
    ]


def center_mesh(triangles: Sequence[Triangle]) -> List[Triangle]:
    return _map_vertices(triangles, centroid(triangles), 1.0)


def scale_to_size(triangles: Sequence[Triangle], target_size: float = TARGET_SIZE) -> List[Triangle]:
    """Scale uniformly so the largest bounding-box extent equals ``target_size``.

    A mesh with no extent at all (every vertex in one place) is returned as is.
    """

    lower, upper = bounding_box(triangles)
    extent = max(upper.x - lower.x, upper.y - lower.y, upper.z - lower.z)
    if extent <= 0.0:
        return list(triangles)
    return _map_vertices(triangles, Vec3(0.0, 0.0, 0.0), target_size / extent)


def prepare_mesh(mesh: Mesh, target_size: float = TARGET_SIZE) -> Mesh:
    # Normals are keyed on the original positions; centring and scaling leave them untouched.
    triangles = smooth_vertex_normals(mesh.triangles)
    triangles = center_mesh(triangles)
    triangles = scale_to_size(triangles, target_size)
    return Mesh(triangles)
