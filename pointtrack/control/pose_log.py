"""CSV log of raw and mapped poses, one row per pipeline cycle."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

import numpy as np

from .pose import AXIS_NAMES

logger = logging.getLogger(__name__)


def pose_log_header() -> list[str]:
    return (
        ["time_s"]
        + [f"raw_{name}" for name in AXIS_NAMES]
        + [f"mapped_{name}" for name in AXIS_NAMES]
    )


class PoseLogger:
    """Appends rows from the pipeline thread only; not shared across threads."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._f = self.path.open("w", newline="", encoding="utf-8")
        self._w = csv.writer(self._f)
        self._w.writerow(pose_log_header())
        self.rows = 0
        logger.info("[POSELOG] writing %s", self.path)

    def write(self, t: float, raw: np.ndarray, mapped: np.ndarray) -> None:
        if self._f.closed:
            return
        self._w.writerow(
            [f"{t:.6f}"]
            + [f"{float(v):.6f}" for v in raw]
            + [f"{float(v):.6f}" for v in mapped]
        )
        self.rows += 1

    def close(self) -> None:
        if self._f.closed:
            return
        self._f.close()
        logger.info("[POSELOG] closed %s (%d rows)", self.path, self.rows)
