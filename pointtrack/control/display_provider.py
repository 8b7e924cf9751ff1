"""Display providers for rendering runtime tracking state."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass

import numpy as np

from .pose import Axis

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DisplayFrame:
    """Runtime frame data shared by all display providers."""

    mapped: np.ndarray
    raw: np.ndarray
    n_points: int
    ever_success: bool
    enabled: bool
    zero: bool
    camera_open: bool


class DisplayProvider:
    """Base display provider interface."""

    def update(self, frame: DisplayFrame) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


def _fmt_pose(p: np.ndarray) -> str:
    return (
        f"xyz=({p[Axis.TX]: 7.2f}, {p[Axis.TY]: 7.2f}, {p[Axis.TZ]: 7.2f}) cm  "
        f"ypr=({p[Axis.YAW]: 7.2f}, {p[Axis.PITCH]: 7.2f}, {p[Axis.ROLL]: 7.2f}) deg"
    )


def status_lines(frame: DisplayFrame) -> list[str]:
    if not frame.camera_open:
        state = "camera closed"
    elif not frame.ever_success:
        state = "waiting for points"
    else:
        state = "tracking"
    return [
        "pointtrack",
        f"state   = {state}  points={frame.n_points}",
        f"enabled = {frame.enabled}  zero={frame.zero}",
        f"raw     {_fmt_pose(frame.raw)}",
        f"mapped  {_fmt_pose(frame.mapped)}",
    ]


class _CliStatsSink:
    def __init__(self, mode: str):
        self.mode = "live" if mode == "live" else "scroll"
        self._is_tty = bool(getattr(sys.stderr, "isatty", lambda: False)())
        self._live_enabled = self.mode == "live" and self._is_tty
        self._line_count = 0

    def emit(self, lines: list[str], scroll_line: str) -> None:
        if not self._live_enabled:
            logger.info(scroll_line)
            return

        out = sys.stderr
        if self._line_count > 0:
            out.write(f"\x1b[{self._line_count}F")

        max_lines = max(self._line_count, len(lines))
        for i in range(max_lines):
            line = lines[i] if i < len(lines) else ""
            out.write("\x1b[2K")
            out.write(line)
            out.write("\n")
        out.flush()
        self._line_count = len(lines)


class TuiDisplayProvider(DisplayProvider):
    """Terminal status panel (live in-place on a tty, log lines otherwise)."""

    def __init__(self, cli_output: str = "live"):
        self.cli_sink = _CliStatsSink(cli_output)

    def update(self, frame: DisplayFrame) -> None:
        m = frame.mapped
        self.cli_sink.emit(
            lines=status_lines(frame),
            scroll_line=(
                "[POSE] points=%d tracking=%s mapped xyz=(%.2f, %.2f, %.2f) ypr=(%.2f, %.2f, %.2f)"
                % (
                    frame.n_points,
                    frame.ever_success,
                    m[Axis.TX],
                    m[Axis.TY],
                    m[Axis.TZ],
                    m[Axis.YAW],
                    m[Axis.PITCH],
                    m[Axis.ROLL],
                )
            ),
        )
