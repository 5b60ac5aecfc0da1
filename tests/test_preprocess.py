import math
import unittest

from stl_ascii.renderer.engine import Mesh, Triangle, Vec3
from stl_ascii.renderer.preprocess import (
    bounding_box,
    center_mesh,
    centroid,
    prepare_mesh,
    scale_to_size,
    smooth_vertex_normals,
    vertex_key,
)


def _tetrahedron(offset: Vec3 = Vec3(0.0, 0.0, 0.0), size: float = 1.0):
    a = Vec3(0.0, 0.0, 0.0) * size + offset
    b = Vec3(1.0, 0.0, 0.0) * size + offset
    c = Vec3(0.0, 1.0, 0.0) * size + offset
    d = Vec3(0.0, 0.0, 1.0) * size + offset
    return [
        Triangle.from_vertices(a, c, b),
        Triangle.from_vertices(a, b, d),
        Triangle.from_vertices(a, d, c),
        Triangle.from_vertices(b, c, d),
    ]


class FaceNormalTests(unittest.TestCase):
    def test_computed_normal_is_unit_and_right_handed(self) -> None:
        triangle = Triangle.from_vertices(Vec3(-1.0, -1.0, 0.0), Vec3(1.0, -1.0, 0.0), Vec3(0.0, 1.0, 0.0))
        self.assertAlmostEqual(triangle.normal.length(), 1.0)
        self.assertAlmostEqual(triangle.normal.z, 1.0)

    def test_degenerate_triangle_has_zero_normal(self) -> None:
        collinear = Triangle.from_vertices(Vec3(0.0, 0.0, 0.0), Vec3(1.0, 1.0, 1.0), Vec3(2.0, 2.0, 2.0))
        coincident = Triangle.from_vertices(Vec3(1.0, 2.0, 3.0), Vec3(1.0, 2.0, 3.0), Vec3(1.0, 2.0, 3.0))
        self.assertEqual(collinear.normal, Vec3(0.0, 0.0, 0.0))
        self.assertEqual(coincident.normal, Vec3(0.0, 0.0, 0.0))

    def test_supplied_normal_is_kept(self) -> None:
        triangle = Triangle.from_vertices(
            Vec3(0.0, 0.0, 0.0), Vec3(1.0, 0.0, 0.0), Vec3(0.0, 1.0, 0.0), normal=Vec3(0.0, 1.0, 0.0)
        )
        self.assertEqual(triangle.normal, Vec3(0.0, 1.0, 0.0))


class SmoothNormalTests(unittest.TestCase):
    def test_shared_vertices_average_face_normals(self) -> None:
        up = Triangle(Vec3(0.0, 0.0, 0.0), Vec3(1.0, 0.0, 0.0), Vec3(0.0, 1.0, 0.0), Vec3(0.0, 0.0, 1.0))
        side = Triangle(Vec3(0.0, 0.0, 0.0), Vec3(0.0, 1.0, 0.0), Vec3(0.0, 0.0, -1.0), Vec3(1.0, 0.0, 0.0))
        smoothed_up, smoothed_side = smooth_vertex_normals([up, side])

        diagonal = Vec3(1.0, 0.0, 1.0).normalized()
        self.assertAlmostEqual(smoothed_up.vn1.x, diagonal.x)  # type: ignore[union-attr]
        self.assertAlmostEqual(smoothed_up.vn1.z, diagonal.z)  # type: ignore[union-attr]
        self.assertEqual(smoothed_up.vn3, smoothed_side.vn2)
        self.assertEqual(smoothed_up.vn2, Vec3(0.0, 0.0, 1.0))
        self.assertEqual(smoothed_side.vn3, Vec3(1.0, 0.0, 0.0))

    def test_vertices_within_tolerance_are_shared(self) -> None:
        self.assertEqual(vertex_key(Vec3(0.1, 0.2, 0.3)), vertex_key(Vec3(0.1000001, 0.2, 0.3)))
        self.assertNotEqual(vertex_key(Vec3(0.1, 0.2, 0.3)), vertex_key(Vec3(0.1001, 0.2, 0.3)))
        self.assertEqual(vertex_key(Vec3(-0.000001, 0.0, 0.0)), vertex_key(Vec3(0.0, 0.0, 0.0)))

    def test_touching_but_not_coincident_vertices_are_separate(self) -> None:
        up = Triangle(Vec3(0.0, 0.0, 0.0), Vec3(1.0, 0.0, 0.0), Vec3(0.0, 1.0, 0.0), Vec3(0.0, 0.0, 1.0))
        side = Triangle(Vec3(0.001, 0.0, 0.0), Vec3(0.0, 1.0, 5.0), Vec3(0.0, 0.0, -1.0), Vec3(1.0, 0.0, 0.0))
        smoothed_up, smoothed_side = smooth_vertex_normals([up, side])
        self.assertEqual(smoothed_up.vn1, Vec3(0.0, 0.0, 1.0))
        self.assertEqual(smoothed_side.vn1, Vec3(1.0, 0.0, 0.0))

    def test_smoothed_normals_are_unit_length(self) -> None:
        for triangle in smooth_vertex_normals(_tetrahedron()):
            for normal in triangle.vertex_normals():
                self.assertAlmostEqual(normal.length(), 1.0)


class CentreAndScaleTests(unittest.TestCase):
    def test_centring_moves_mean_to_origin(self) -> None:
        centred = center_mesh(_tetrahedron(offset=Vec3(10.0, -4.0, 2.5), size=3.0))
        mean = centroid(centred)
        self.assertAlmostEqual(mean.x, 0.0, places=9)
        self.assertAlmostEqual(mean.y, 0.0, places=9)
        self.assertAlmostEqual(mean.z, 0.0, places=9)

    def test_centroid_counts_every_occurrence(self) -> None:
        triangles = [
            Triangle.from_vertices(Vec3(0.0, 0.0, 0.0), Vec3(3.0, 0.0, 0.0), Vec3(0.0, 3.0, 0.0)),
            Triangle.from_vertices(Vec3(0.0, 0.0, 0.0), Vec3(0.0, 3.0, 0.0), Vec3(0.0, 0.0, 3.0)),
        ]
        mean = centroid(triangles)
        self.assertAlmostEqual(mean.x, 0.5)
        self.assertAlmostEqual(mean.y, 1.0)
        self.assertAlmostEqual(mean.z, 0.5)

    def test_scaling_sets_largest_extent(self) -> None:
        stretched = [
            Triangle.from_vertices(Vec3(-4.0, 0.0, 0.0), Vec3(4.0, 1.0, 0.0), Vec3(0.0, 0.0, 2.0)),
        ]
        scaled = scale_to_size(stretched, 1.5)
        lower, upper = bounding_box(scaled)
        extents = (upper.x - lower.x, upper.y - lower.y, upper.z - lower.z)
        self.assertAlmostEqual(max(extents), 1.5)
        self.assertAlmostEqual(extents[1], 1.5 / 8.0)

    def test_point_mesh_is_left_unscaled(self) -> None:
        point = Vec3(1.0, 1.0, 1.0)
        triangles = [Triangle.from_vertices(point, point, point)]
        self.assertEqual(scale_to_size(triangles), triangles)

    def test_prepare_mesh(self) -> None:
        source = _tetrahedron(offset=Vec3(100.0, 50.0, -20.0), size=40.0)
        prepared = prepare_mesh(Mesh(source))
        expected_normals = [t.vertex_normals() for t in smooth_vertex_normals(source)]

        self.assertEqual(len(prepared), len(source))
        self.assertEqual([t.vertex_normals() for t in prepared], expected_normals)
        self.assertEqual([t.normal for t in prepared], [t.normal for t in source])

        lower, upper = bounding_box(prepared.triangles)
        self.assertAlmostEqual(max(upper.x - lower.x, upper.y - lower.y, upper.z - lower.z), 1.5)
        mean = centroid(prepared.triangles)
        self.assertAlmostEqual(mean.length(), 0.0, places=9)
        for triangle in prepared:
            self.assertFalse(any(math.isnan(c) for v in triangle.vertices for c in (v.x, v.y, v.z)))


if __name__ == "__main__":
    unittest.main()
