"""Terminal-based STL rendering toolkit."""

from .controls import LightState
from .engine import FrameBuffer, Mat3, Mesh, RenderEngine, Triangle, TriangleStatus, Vec3, rotation_matrix
from .preprocess import prepare_mesh
from .stl import StlLoadError, StlParseError, load_stl, parse_stl
from .terminal import TerminalController

__all__ = [
    "FrameBuffer",
    "LightState",
    "Mat3",
    "Mesh",
    "RenderEngine",
    "StlLoadError",
    "StlParseError",
    "Triangle",
    "TriangleStatus",
    "Vec3",
    "load_stl",
    "parse_stl",
    "prepare_mesh",
    "rotation_matrix",
    "TerminalController",
]
