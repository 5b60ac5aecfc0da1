"""Interactive entry point: render an STL file as rotating ASCII art."""

from __future__ import annotations

import argparse
import asyncio
import math
import os
import signal
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

from .renderer.controls import LightState
from .renderer.engine import Mesh, RenderEngine, rotation_matrix
from .renderer.preprocess import TARGET_SIZE, bounding_box, center_mesh, prepare_mesh
from .renderer.stl import StlLoadError, load_stl
from .renderer.terminal import TerminalController

QUIT_KEYS = frozenset({"ESCAPE", "CTRL_C"})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stl-ascii",
        description="Render an STL mesh as rotating ASCII art in your terminal",
    )
    parser.add_argument("path", help="Path to a binary or text STL file")
    parser.add_argument(
        "--interval",
        type=float,
        default=60.0,
        help="Delay between frames in milliseconds (default: 60)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=0.04,
        help="Rotation step per frame in radians (default: 0.04)",
    )
    parser.add_argument(
        "--flat",
        action="store_true",
        help="Shade each triangle with a single brightness instead of smooth per-cell lighting",
    )
    parser.add_argument(
        "--auto-orbit",
        action="store_true",
        help="Orbit the light around the mesh until the first key press",
    )
    parser.add_argument(
        "--frames",
        type=int,
        default=0,
        help="Run for a fixed number of frames (0 = infinite)",
    )
    return parser


@dataclass
class RuntimeConfig:
    mesh: Mesh
    frame_interval: float
    rotation_step: float
    per_pixel_lighting: bool
    auto_orbit: bool
    max_frames: int
    messages: List[str] = field(default_factory=list)


def _setup_runtime(args: argparse.Namespace) -> RuntimeConfig:
    messages: List[str] = []
    raw_mesh = load_stl(args.path)
    messages.append(f"Loaded {len(raw_mesh)} triangles from STL file")

    lower, upper = bounding_box(center_mesh(raw_mesh.triangles))
    messages.append(
        f"Bounding box: X({lower.x:.2f}, {upper.x:.2f}) "
        f"Y({lower.y:.2f}, {upper.y:.2f}) Z({lower.z:.2f}, {upper.z:.2f})"
    )
    mesh = prepare_mesh(raw_mesh, TARGET_SIZE)

    if args.interval <= 0:
        messages.append("Frame interval must be positive; using 60 ms")
        frame_interval = 0.06
    else:
        frame_interval = args.interval / 1000.0

    messages.append("Keys 1-8 or qwertyuiop / asdfghjkl; / zxcvbnm,./ move the light")
    messages.append("Rendering... Press Ctrl+C or Esc to stop")

    return RuntimeConfig(
        mesh=mesh,
        frame_interval=frame_interval,
        rotation_step=args.speed,
        per_pixel_lighting=not args.flat,
        auto_orbit=args.auto_orbit,
        max_frames=max(0, args.frames),
        messages=messages,
    )


def _emit_status(messages: Sequence[str]) -> None:
    if not messages:
        return
    for message in messages:
        sys.stderr.write(f"[stl-ascii] {message}\n")
    sys.stderr.flush()


class Display(Protocol):
    def size_tuple(self) -> Tuple[int, int]: ...

    def draw(self, frame: str) -> None: ...


def _on_input(terminal: TerminalController, state: LightState, stop: asyncio.Event) -> None:
    for key in terminal.poll_keys():
        if key in QUIT_KEYS:
            stop.set()
            return
        state.apply_key(key)


async def _frame_ticker(
    engine: RenderEngine,
    config: RuntimeConfig,
    state: LightState,
    display: Display,
    stop: asyncio.Event,
) -> int:
    """Render, draw, then wait a fixed delay; the only place frames are rasterized."""

    yaw = 0.0
    frames = 0
    while not stop.is_set():
        width, height = display.size_tuple()
        engine.resize(width, height)

        yaw = math.fmod(yaw + config.rotation_step, math.tau)
        rotation = rotation_matrix(0.0, yaw, 0.0)
        display.draw(engine.render(config.mesh, rotation, state.frame_direction(yaw)))

        frames += 1
        if config.max_frames and frames >= config.max_frames:
            break

        try:
            await asyncio.wait_for(stop.wait(), timeout=config.frame_interval)
        except asyncio.TimeoutError:
            pass
    return frames


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> List[int]:
    installed: List[int] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - platform specific
            continue
        installed.append(sig)
    return installed


async def _run_loop(config: RuntimeConfig) -> int:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    state = LightState(auto_orbit=config.auto_orbit)
    installed_signals = _install_signal_handlers(loop, stop)

    try:
        with TerminalController() as terminal:
            width, height = terminal.size_tuple()
            engine = RenderEngine(width, height, per_pixel_lighting=config.per_pixel_lighting)

            input_fd = terminal.input_fd
            if input_fd is not None:
                loop.add_reader(input_fd, _on_input, terminal, state, stop)
            try:
                return await _frame_ticker(engine, config, state, terminal, stop)
            finally:
                if input_fd is not None:
                    loop.remove_reader(input_fd)
    finally:
        for sig in installed_signals:
            loop.remove_signal_handler(sig)


def run(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not os.path.isfile(args.path):
        parser.print_usage(sys.stderr)
        sys.stderr.write(f"STL file not found: {args.path}\n")
        return 1

    _emit_status([f"Loading STL file: {args.path}"])
    try:
        config = _setup_runtime(args)
    except StlLoadError as exc:
        sys.stderr.write(f"Error processing STL file: {exc}\n")
        return 1
    _emit_status(config.messages)

    try:
        asyncio.run(_run_loop(config))
    except KeyboardInterrupt:  # pragma: no cover - interactive loop
        pass
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
