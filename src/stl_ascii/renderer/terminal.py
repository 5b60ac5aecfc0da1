"""Small helper for controlling ANSI terminal output and key input."""

from __future__ import annotations

import os
import select
import shutil
import sys
import termios
import tty
from typing import List, Optional, Tuple

TermiosAttr = List[int | List[bytes | int]]

_ARROWS = {
    "\x1b[A": "UP",
    "\x1b[B": "DOWN",
    "\x1b[C": "RIGHT",
    "\x1b[D": "LEFT",
}


class TerminalController:
    """Context manager owning the display state for the duration of the animation.

    On enter it switches to the alternate screen, hides the cursor and puts
    stdin in cbreak mode; on exit everything is restored.
    """

    def __init__(self, *, clear: bool = True) -> None:
        self._clear = clear
        self._active = False
        self._stdin_fd: Optional[int] = None
        self._termios_before: Optional[TermiosAttr] = None
        self._input_enabled = False

    def __enter__(self) -> "TerminalController":
        sys.stdout.write("\033[?1049h")
        if self._clear:
            sys.stdout.write("\033[2J")
        sys.stdout.write("\033[H")
        sys.stdout.write("\033[?25l")
        sys.stdout.flush()
        self._active = True

        if sys.stdin.isatty():
            fd = sys.stdin.fileno()
            try:
                self._termios_before = termios.tcgetattr(fd)
                tty.setcbreak(fd)
                self._stdin_fd = fd
                self._input_enabled = True
            except termios.error:
                self._termios_before = None
                self._stdin_fd = None
                self._input_enabled = False
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()

    @property
    def input_fd(self) -> Optional[int]:
        return self._stdin_fd if self._input_enabled else None

    def restore(self) -> None:
        if self._active:
            sys.stdout.write("\033[?25h")
            sys.stdout.write("\033[?1049l")
            sys.stdout.flush()
            self._active = False

        if self._input_enabled and self._stdin_fd is not None and self._termios_before is not None:
            try:
                termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, self._termios_before)
            except termios.error:
                pass
        self._input_enabled = False
        self._stdin_fd = None
        self._termios_before = None

    def draw(self, frame: str) -> None:
        sys.stdout.write("\033[H")
        sys.stdout.write(frame)
        sys.stdout.flush()

    def get_size(self) -> os.terminal_size:
        return shutil.get_terminal_size(fallback=(100, 40))

    def size_tuple(self) -> Tuple[int, int]:
        size = self.get_size()
        return size.columns, size.lines

    def poll_keys(self) -> List[str]:
        """Drain pending key presses without blocking."""

        if not self._input_enabled or self._stdin_fd is None:
            return []

        keys: List[str] = []
        try:
            while self._readable():
                char = self._read_char()
                if char is None:
                    break
                if not char:
                    continue

                if char == "\x03":
                    keys.append("CTRL_C")
                    continue

                if char == "\x1b":
                    keys.append(self._map_escape_sequence(self._read_escape_sequence()))
                    continue

                keys.append(char)
        except OSError:
            return keys

        return keys

    def _readable(self) -> bool:
        readable, _, _ = select.select([self._stdin_fd], [], [], 0)
        return bool(readable)

    def _read_char(self) -> Optional[str]:
        if self._stdin_fd is None:
            return None
        data = os.read(self._stdin_fd, 1)
        if not data:
            return None
        return data.decode("utf-8", errors="ignore")

    def _read_escape_sequence(self) -> str:
        sequence = "\x1b"
        while self._readable():
            char = self._read_char()
            if char is None:
                break
            if not char:
                continue
            sequence += char
            if char.isalpha() or char == "~":
                break
        return sequence

    @staticmethod
    def _map_escape_sequence(sequence: str) -> str:
        if sequence == "\x1b":
            return "ESCAPE"
        if sequence in _ARROWS:
            return _ARROWS[sequence]
        if sequence.startswith("\x1b[") and sequence[-1] in "ABCD":
            return _ARROWS["\x1b[" + sequence[-1]]
        return "UNKNOWN"
