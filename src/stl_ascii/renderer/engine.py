"""Core math utilities and rasterizing engine for terminal 3D graphics."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class Vec3:
    """Lightweight immutable 3D vector."""

    x: float
    y: float
    z: float

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vec3":
        if not isinstance(scalar, (int, float)):
            raise TypeError("Vec3 can only be multiplied by a scalar")
        return Vec3(self.x * scalar, self.y * scalar, self.z * scalar)

    def __rmul__(self, scalar: float) -> "Vec3":
        return self.__mul__(scalar)

    def __truediv__(self, scalar: float) -> "Vec3":
        if scalar == 0:
            raise ZeroDivisionError("Division by zero in Vec3")
        return Vec3(self.x / scalar, self.y / scalar, self.z / scalar)

    def __neg__(self) -> "Vec3":
        return Vec3(-self.x, -self.y, -self.z)

    def dot(self, other: "Vec3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vec3") -> "Vec3":
        return Vec3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        return math.sqrt(self.dot(self))

    def length_squared(self) -> float:
        return self.dot(self)

    def normalized(self) -> "Vec3":
        length = self.length()
        if length == 0.0:
            return Vec3(0.0, 0.0, 0.0)
        return self / length


ZERO = Vec3(0.0, 0.0, 0.0)


@dataclass(frozen=True, slots=True)
class Mat3:
    """Row-major 3x3 matrix."""

    rows: Tuple[Tuple[float, float, float], Tuple[float, float, float], Tuple[float, float, float]]

    def apply(self, vector: Vec3) -> Vec3:
        r0, r1, r2 = self.rows
        return Vec3(
            vector.x * r0[0] + vector.y * r0[1] + vector.z * r0[2],
            vector.x * r1[0] + vector.y * r1[1] + vector.z * r1[2],
            vector.x * r2[0] + vector.y * r2[1] + vector.z * r2[2],
        )


IDENTITY = Mat3(((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)))


def rotation_matrix(angle_x: float, angle_y: float, angle_z: float) -> Mat3:
    """Combined Z * Y * X rotation. Angles are reduced to a single turn first."""

    angle_x = math.fmod(angle_x, math.tau)
    angle_y = math.fmod(angle_y, math.tau)
    angle_z = math.fmod(angle_z, math.tau)

    cos_x, sin_x = math.cos(angle_x), math.sin(angle_x)
    cos_y, sin_y = math.cos(angle_y), math.sin(angle_y)
    cos_z, sin_z = math.cos(angle_z), math.sin(angle_z)

    return Mat3(
        (
            (cos_y * cos_z, -cos_y * sin_z, sin_y),
            (
                sin_x * sin_y * cos_z + cos_x * sin_z,
                -sin_x * sin_y * sin_z + cos_x * cos_z,
                -sin_x * cos_y,
            ),
            (
                -cos_x * sin_y * cos_z + sin_x * sin_z,
                cos_x * sin_y * sin_z + sin_x * cos_z,
                cos_x * cos_y,
            ),
        )
    )


def face_normal(v1: Vec3, v2: Vec3, v3: Vec3) -> Vec3:
    """Right-handed unit normal of a triangle; zero for degenerate triangles."""

    return (v2 - v1).cross(v3 - v1).normalized()


@dataclass(frozen=True, slots=True)
class Triangle:
    """A mesh facet with its face normal and optional smoothed vertex normals.

    ``attribute`` carries the 2-byte word of a binary record unchanged.
    """

    v1: Vec3
    v2: Vec3
    v3: Vec3
    normal: Vec3
    vn1: Optional[Vec3] = None
    vn2: Optional[Vec3] = None
    vn3: Optional[Vec3] = None
    attribute: int = 0

    @classmethod
    def from_vertices(cls, v1: Vec3, v2: Vec3, v3: Vec3, normal: Optional[Vec3] = None) -> "Triangle":
        if normal is None:
            normal = face_normal(v1, v2, v3)
        return cls(v1, v2, v3, normal)

    @property
    def vertices(self) -> Tuple[Vec3, Vec3, Vec3]:
        return (self.v1, self.v2, self.v3)

    def vertex_normals(self) -> Tuple[Vec3, Vec3, Vec3]:
        """Smoothed normals, falling back to the face normal where unset."""

        return (
            self.vn1 if self.vn1 is not None else self.normal,
            self.vn2 if self.vn2 is not None else self.normal,
            self.vn3 if self.vn3 is not None else self.normal,
        )


class Mesh:
    """Ordered collection of triangles."""

    def __init__(self, triangles: Iterable[Triangle]):
        self._triangles: Tuple[Triangle, ...] = tuple(triangles)
        if not self._triangles:
            raise ValueError("Mesh requires at least one triangle")

    @property
    def triangles(self) -> Tuple[Triangle, ...]:
        return self._triangles

    def __iter__(self):
        return iter(self._triangles)

    def __len__(self) -> int:
        return len(self._triangles)


@dataclass(frozen=True, slots=True)
class ScreenPoint:
    """A projected vertex: grid cell plus view depth (distance along the view axis)."""

    x: int
    y: int
    depth: float


class TriangleStatus(Enum):
    DRAWN = "drawn"
    BACK_FACING = "back-facing"
    OFF_SCREEN = "off-screen"
    DEGENERATE = "degenerate"


class Coverage(Enum):
    COVERED = "covered"
    NOT_COVERED = "not-covered"
    DEGENERATE = "degenerate"


Weights = Tuple[float, float, float]

EMPTY = -1

_BARYCENTRIC_EPSILON = 1e-3


def classify_weights(weights: Optional[Weights]) -> Coverage:
    if weights is None:
        return Coverage.DEGENERATE
    a, b, c = weights
    if a >= 0.0 and b >= 0.0 and c >= 0.0:
        return Coverage.COVERED
    return Coverage.NOT_COVERED


class FrameBuffer:
    """Current and previous brightness-index grids plus a depth grid."""

    def __init__(self, width: int, height: int) -> None:
        if width < 1 or height < 1:
            raise ValueError("FrameBuffer requires width and height >= 1")
        self.width = width
        self.height = height
        self.index: List[List[int]] = [[EMPTY] * width for _ in range(height)]
        self.depth: List[List[float]] = [[math.inf] * width for _ in range(height)]
        self.previous: List[List[int]] = [[EMPTY] * width for _ in range(height)]

    def clear(self) -> None:
        """Reset the current-frame grids; the previous frame is kept."""

        for row in self.index:
            row[:] = [EMPTY] * self.width
        for row in self.depth:
            row[:] = [math.inf] * self.width

    def commit(self) -> None:
        for current, previous in zip(self.index, self.previous):
            previous[:] = current

    def compose(self, ramp: str) -> str:
        lines: List[str] = []
        for row in self.index:
            lines.append("".join(ramp[idx] if idx >= 0 else " " for idx in row))
        return "\n".join(lines)

    def covered_cells(self) -> List[Tuple[int, int]]:
        return [
            (x, y)
            for y, row in enumerate(self.index)
            for x, idx in enumerate(row)
            if idx != EMPTY
        ]


class RenderEngine:
    """Software rasterizer producing character frames for terminal output.

    The camera sits on the +z axis at ``camera_distance`` and looks at the
    origin. Terminal cells are assumed to be ``char_aspect`` times taller than
    they are wide, so the vertical axis is stretched by that ratio.
    """

    _GRADIENT = " .:-+*=%@#"

    def __init__(
        self,
        width: int,
        height: int,
        *,
        fov_degrees: float = 45.0,
        camera_distance: float = 3.0,
        near_clip: float = 0.1,
        char_aspect: float = 2.0,
        screen_fill: float = 0.3,
        per_pixel_lighting: bool = True,
        ambient_strength: float = 0.35,
        diffuse_strength: float = 0.7,
        diffuse_exponent: float = 1.2,
        min_brightness: float = 0.25,
        depth_bias: float = 0.005,
        temporal_weight: float = 0.3,
    ) -> None:
        if width < 1 or height < 1:
            raise ValueError("RenderEngine requires width and height >= 1")
        self.width = width
        self.height = height
        self.set_fov(fov_degrees)
        self.camera_distance = camera_distance
        self.near_clip = near_clip
        self.char_aspect = char_aspect
        self.screen_fill = screen_fill
        self.per_pixel_lighting = per_pixel_lighting
        self._ambient_strength = max(0.0, ambient_strength)
        self._diffuse_strength = max(0.0, diffuse_strength)
        self._diffuse_exponent = max(0.0, diffuse_exponent)
        self._min_brightness = max(0.0, min(1.0, min_brightness))
        self.depth_bias = depth_bias
        self._temporal_weight = max(0.0, min(1.0, temporal_weight))
        self.buffer = FrameBuffer(width, height)

    @property
    def ramp(self) -> str:
        return self._GRADIENT

    @property
    def camera_position(self) -> Vec3:
        return Vec3(0.0, 0.0, self.camera_distance)

    def resize(self, width: int, height: int) -> None:
        if width < 1 or height < 1:
            return
        if (width, height) == (self.width, self.height):
            return
        self.width = width
        self.height = height
        self.buffer = FrameBuffer(width, height)

    def set_fov(self, fov_degrees: float) -> None:
        self._fov_degrees = fov_degrees
        self._tan_half_fov = math.tan(math.radians(fov_degrees) / 2.0)

    def project_point(self, vertex: Vec3) -> Optional[ScreenPoint]:
        """Project a view-space point to a grid cell, or ``None`` behind the near plane."""

        depth = self.camera_distance - vertex.z
        if depth <= self.near_clip:
            return None
        scale = self._tan_half_fov * depth
        screen_x = (vertex.x / scale) * (self.width * self.screen_fill) + self.width / 2.0
        screen_y = (
            (-vertex.y / scale) * (self.height * self.screen_fill) * self.char_aspect
            + self.height / 2.0
        )
        # Vertical jitter is more visible on tall cells, hence the smaller offset.
        return ScreenPoint(math.floor(screen_x + 0.5), math.floor(screen_y + 0.25), depth)

    def brightness(self, normal: Vec3, light_direction: Vec3) -> float:
        directional = max(0.0, normal.dot(light_direction))
        intensity = self._ambient_strength + self._diffuse_strength * directional ** self._diffuse_exponent
        return min(1.0, max(self._min_brightness, intensity))

    def char_index(self, brightness: float) -> int:
        top = len(self._GRADIENT) - 1
        return max(0, min(top, int(brightness * top)))

    def blend_index(self, previous: int, current: int) -> int:
        if previous == EMPTY:
            return current
        weight = self._temporal_weight
        return math.floor(previous * weight + current * (1.0 - weight) + 0.5)

    def render(self, mesh: Iterable[Triangle], rotation: Mat3, light_direction: Vec3) -> str:
        """Rasterize one frame, return it as text and keep it for the next blend."""

        buffer = self.buffer
        buffer.clear()
        light = light_direction.normalized()
        for triangle in mesh:
            self.draw_triangle(triangle, rotation, light)
        frame = buffer.compose(self._GRADIENT)
        buffer.commit()
        return frame

    def draw_triangle(self, triangle: Triangle, rotation: Mat3, light_direction: Vec3) -> TriangleStatus:
        v1 = rotation.apply(triangle.v1)
        v2 = rotation.apply(triangle.v2)
        v3 = rotation.apply(triangle.v3)
        normal = rotation.apply(triangle.normal)

        centroid = (v1 + v2 + v3) / 3.0
        view_vector = (self.camera_position - centroid).normalized()
        if normal.dot(view_vector) <= 0.0:
            return TriangleStatus.BACK_FACING

        p1 = self.project_point(v1)
        p2 = self.project_point(v2)
        p3 = self.project_point(v3)
        if p1 is None or p2 is None or p3 is None:
            return TriangleStatus.OFF_SCREEN

        vertex_normals = tuple(rotation.apply(n) for n in triangle.vertex_normals())
        return self._rasterize(p1, p2, p3, normal, vertex_normals, light_direction.normalized())

    # Internal helpers -------------------------------------------------

    def _rasterize(
        self,
        p1: ScreenPoint,
        p2: ScreenPoint,
        p3: ScreenPoint,
        normal: Vec3,
        vertex_normals: Sequence[Vec3],
        light: Vec3,
    ) -> TriangleStatus:
        min_x = max(0, min(p1.x, p2.x, p3.x))
        max_x = min(self.width - 1, max(p1.x, p2.x, p3.x))
        min_y = max(0, min(p1.y, p2.y, p3.y))
        max_y = min(self.height - 1, max(p1.y, p2.y, p3.y))
        if min_x >= max_x or min_y >= max_y:
            return TriangleStatus.DEGENERATE
        if abs(self._denominator(p1, p2, p3)) < _BARYCENTRIC_EPSILON:
            return TriangleStatus.DEGENERATE

        depth = (p1.depth + p2.depth + p3.depth) / 3.0
        flat_index = self.char_index(self.brightness(normal, light))
        n1, n2, n3 = vertex_normals
        buffer = self.buffer
        bias = self.depth_bias

        for y in range(min_y, max_y + 1):
            depth_row = buffer.depth[y]
            index_row = buffer.index[y]
            previous_row = buffer.previous[y]
            for x in range(min_x, max_x + 1):
                weights = self.barycentric(x, y, p1, p2, p3)
                if classify_weights(weights) is not Coverage.COVERED:
                    continue
                if not depth < depth_row[x] - bias:
                    continue

                index = flat_index
                if self.per_pixel_lighting:
                    a, b, c = weights  # type: ignore[misc]
                    smoothed = (n1 * a + n2 * b + n3 * c).normalized()
                    index = self.char_index(self.brightness(smoothed, light))

                index_row[x] = self.blend_index(previous_row[x], index)
                depth_row[x] = depth

        return TriangleStatus.DRAWN

    @staticmethod
    def _denominator(p1: ScreenPoint, p2: ScreenPoint, p3: ScreenPoint) -> float:
        return (p2.y - p3.y) * (p1.x - p3.x) + (p3.x - p2.x) * (p1.y - p3.y)

    @classmethod
    def barycentric(
        cls, px: float, py: float, p1: ScreenPoint, p2: ScreenPoint, p3: ScreenPoint
    ) -> Optional[Weights]:
        denom = cls._denominator(p1, p2, p3)
        if abs(denom) < _BARYCENTRIC_EPSILON:
            return None
        a = ((p2.y - p3.y) * (px - p3.x) + (p3.x - p2.x) * (py - p3.y)) / denom
        b = ((p3.y - p1.y) * (px - p3.x) + (p1.x - p3.x) * (py - p3.y)) / denom
        return (a, b, 1.0 - a - b)

    @classmethod
    def coverage(
        cls, px: float, py: float, p1: ScreenPoint, p2: ScreenPoint, p3: ScreenPoint
    ) -> Coverage:
        return classify_weights(cls.barycentric(px, py, p1, p2, p3))
