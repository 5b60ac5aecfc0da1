"""Keyboard-driven light direction shared between the input listener and the frame ticker."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from .engine import Vec3

PRESET_KEYS = "12345678"
PRESET_COUNT = len(PRESET_KEYS)
RING_ROWS = ("qwertyuiop", "asdfghjkl;", "zxcvbnm,./")


def ring_direction(angle: float, tilt: float = 0.0) -> Vec3:
    """Unit light direction on the horizontal ring around the mesh."""

    return Vec3(math.cos(angle), tilt, math.sin(angle)).normalized()


def angle_for_key(key: str) -> Optional[float]:
    """Ring angle selected by ``key``, or ``None`` if the key is not mapped."""

    if len(key) != 1:
        return None
    if key in PRESET_KEYS:
        return PRESET_KEYS.index(key) / PRESET_COUNT * math.tau
    char = key.lower()
    for row in RING_ROWS:
        position = row.find(char)
        if position != -1:
            return position / len(row) * math.tau
    return None


@dataclass
class LightState:
    """Light state written by the input listener and read once per frame by the ticker.

    Every field has a single writer (the input listener) and is replaced by a
    single attribute assignment, so the ticker sees either the old or the new
    value and never a mix. The ticker may lag one frame behind a key press.
    """

    angle: float = 0.0
    auto_orbit: bool = False
    direction: Vec3 = field(init=False)

    def __post_init__(self) -> None:
        self.direction = ring_direction(self.angle)

    def apply_key(self, key: str) -> bool:
        """Handle one key press. Returns ``True`` if the light direction changed."""

        self.auto_orbit = False
        angle = angle_for_key(key)
        if angle is None:
            return False
        self.angle = angle
        self.direction = ring_direction(angle)
        return True

    def frame_direction(self, yaw: float) -> Vec3:
        """Light direction for a frame rendered at ``yaw``.

        While auto-orbit is on the light counter-rotates at half the mesh speed.
        """

        if self.auto_orbit:
            return ring_direction(math.pi / 4 - yaw * 0.5)
        return self.direction
