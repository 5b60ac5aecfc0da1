"""Reading and writing STL meshes in their binary and text encodings.

Binary layout: an 80-byte header, a little-endian ``uint32`` triangle count,
then one 50-byte record per triangle (12 little-endian ``float32`` values for
the normal and three vertices, followed by a 2-byte attribute word).

The text encoding is accepted with this exact token grammar (lowercase
keywords, any whitespace or line ending between tokens)::

    facet normal F F F
      outer loop
        vertex F F F
        vertex F F F
        vertex F F F
      endloop
    endfacet

A facet starts at the token pair ``facet normal``. Everything between facets
(``solid name``, ``endsolid name``, even a solid named ``facet``) is skipped.
Comments and other keyword casings are not supported.
"""

from __future__ import annotations

import os
import struct
from typing import Iterable, List, Optional, Sequence, Union

from .engine import Mesh, Triangle, Vec3

HEADER_SIZE = 80
COUNT_SIZE = 4
RECORD = struct.Struct("<12fH")
_COUNT = struct.Struct("<I")


class StlLoadError(Exception):
    """Raised when an STL file cannot be read or decoded into triangles."""


class StlParseError(StlLoadError):
    """Raised when the text encoding deviates from the facet grammar."""


def is_binary(data: bytes) -> bool:
    if len(data) <= HEADER_SIZE + COUNT_SIZE:
        return False
    (count,) = _COUNT.unpack_from(data, HEADER_SIZE)
    return HEADER_SIZE + COUNT_SIZE + RECORD.size * count == len(data)


def load_stl(path: Union[str, os.PathLike]) -> Mesh:
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise StlLoadError(f"Cannot read '{os.fspath(path)}': {exc.strerror or exc}") from exc
    return parse_stl(data)


def parse_stl(data: bytes) -> Mesh:
    if is_binary(data):
        triangles = parse_binary(data)
    else:
        triangles = parse_text(data.decode("utf-8", errors="replace"))
    if not triangles:
        raise StlLoadError("No triangles found in STL data")
    return Mesh(triangles)


def parse_binary(data: bytes) -> List[Triangle]:
    (count,) = _COUNT.unpack_from(data, HEADER_SIZE)
    offset = HEADER_SIZE + COUNT_SIZE
    if len(data) - offset < count * RECORD.size:
        raise StlLoadError(f"Binary STL declares {count} triangles but is truncated")

    triangles: List[Triangle] = []
    for _ in range(count):
        values = RECORD.unpack_from(data, offset)
        offset += RECORD.size
        triangles.append(
            Triangle(
                Vec3(values[3], values[4], values[5]),
                Vec3(values[6], values[7], values[8]),
                Vec3(values[9], values[10], values[11]),
                Vec3(values[0], values[1], values[2]),
                attribute=values[12],
            )
        )
    return triangles


class _TokenStream:
    def __init__(self, text: str) -> None:
        self._tokens = text.split()
        self._pos = 0

    def __bool__(self) -> bool:
        return self._pos < len(self._tokens)

    def peek(self) -> Optional[str]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def next(self) -> str:
        if self._pos >= len(self._tokens):
            raise StlParseError(f"Unexpected end of STL text at token {self._pos}")
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def expect(self, *keywords: str) -> None:
        for keyword in keywords:
            position = self._pos
            token = self.next()
            if token != keyword:
                raise StlParseError(f"Expected '{keyword}' at token {position}, found '{token}'")

    def vector(self) -> Vec3:
        components = []
        for _ in range(3):
            position = self._pos
            token = self.next()
            try:
                components.append(float(token))
            except ValueError as exc:
                raise StlParseError(f"Expected a number at token {position}, found '{token}'") from exc
        return Vec3(*components)


def parse_text(text: str) -> List[Triangle]:
    stream = _TokenStream(text)
    triangles: List[Triangle] = []
    while stream:
        if stream.next() != "facet" or stream.peek() != "normal":
            continue
        stream.expect("normal")
        normal = stream.vector()
        stream.expect("outer", "loop")
        vertices = []
        for _ in range(3):
            stream.expect("vertex")
            vertices.append(stream.vector())
        stream.expect("endloop", "endfacet")
        triangles.append(Triangle(vertices[0], vertices[1], vertices[2], normal))
    return triangles


def encode_binary(triangles: Iterable[Triangle], header: bytes = b"") -> bytes:
    """Serialise triangles to the binary encoding, keeping each attribute word."""

    records: Sequence[Triangle] = tuple(triangles)
    parts = [header[:HEADER_SIZE].ljust(HEADER_SIZE, b"\0"), _COUNT.pack(len(records))]
    for triangle in records:
        n, v1, v2, v3 = triangle.normal, triangle.v1, triangle.v2, triangle.v3
        parts.append(
            RECORD.pack(
                n.x, n.y, n.z,
                v1.x, v1.y, v1.z,
                v2.x, v2.y, v2.z,
                v3.x, v3.y, v3.z,
                triangle.attribute,
            )
        )
    return b"".join(parts)
