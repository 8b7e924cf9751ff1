"""Per-axis response curves (raw tracked value -> output value)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

import numpy as np
import yaml

from .pose import AXIS_NAMES, N_AXES, Axis, axis_from_name

logger = logging.getLogger(__name__)

# Default input domain per axis: translations in cm, rotations in degrees.
DEFAULT_MAX_INPUT = (100.0, 100.0, 100.0, 180.0, 90.0, 180.0)


def _normalize_points(points: Sequence[Sequence[float]], name: str) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, 2), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name}: control points must be [x, y] pairs")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name}: control points must be finite")
    if (arr[:, 0] < 0.0).any():
        raise ValueError(f"{name}: control point x must be >= 0")
    arr = arr[np.argsort(arr[:, 0], kind="stable")]
    if (np.diff(arr[:, 0]) <= 0.0).any():
        raise ValueError(f"{name}: control point x values must be unique")
    return arr


class MappingAxis:
    """Odd-symmetric piecewise-linear curve through the origin.

    The curve is defined for |x| in [0, max_input]; inputs beyond max_input
    are clamped, and beyond the last control point the last y is held.
    Negative inputs use alt_points when given, otherwise the main curve
    mirrored through the origin.
    """

    def __init__(
        self,
        points: Sequence[Sequence[float]],
        max_input: float,
        alt_points: Sequence[Sequence[float]] | None = None,
        invert: bool = False,
        name: str = "axis",
    ):
        if not max_input > 0.0:
            raise ValueError(f"{name}: max_input must be > 0, got {max_input}")
        self.name = name
        self.max_input = float(max_input)
        self.invert = bool(invert)
        self._main = self._table(_normalize_points(points, name))
        self._alt = (
            None
            if alt_points is None
            else self._table(_normalize_points(alt_points, f"{name}.alt"))
        )

    @staticmethod
    def _table(points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        if points.shape[0] == 0 or points[0, 0] > 0.0:
            points = np.vstack([np.zeros((1, 2), dtype=np.float64), points])
        return points[:, 0].copy(), points[:, 1].copy()

    @classmethod
    def identity(cls, max_input: float, name: str = "axis") -> "MappingAxis":
        return cls([(0.0, 0.0), (max_input, max_input)], max_input=max_input, name=name)

    def map(self, value: float) -> float:
        x = float(value)
        if self.invert:
            x = -x
        sign = -1.0 if x < 0.0 else 1.0
        ax = min(abs(x), self.max_input)
        xs, ys = self._alt if (x < 0.0 and self._alt is not None) else self._main
        return sign * float(np.interp(ax, xs, ys))


class Mappings:
    """Six independent axis curves indexed by Axis."""

    def __init__(self, axes: Sequence[MappingAxis]):
        if len(axes) != N_AXES:
            raise ValueError(f"expected {N_AXES} mapping axes, got {len(axes)}")
        self._axes = tuple(axes)

    @classmethod
    def identity(cls) -> "Mappings":
        return cls(
            [
                MappingAxis.identity(DEFAULT_MAX_INPUT[i], name=AXIS_NAMES[i])
                for i in range(N_AXES)
            ]
        )

    def __getitem__(self, axis: int) -> MappingAxis:
        return self._axes[int(axis)]

    def __len__(self) -> int:
        return N_AXES

    def apply(self, values: np.ndarray) -> np.ndarray:
        return np.array(
            [self._axes[i].map(values[i]) for i in range(N_AXES)], dtype=np.float64
        )


def _axis_from_mapping(axis: Axis, entry: Any) -> MappingAxis:
    name = AXIS_NAMES[axis]
    max_default = DEFAULT_MAX_INPUT[axis]
    if entry is None:
        return MappingAxis.identity(max_default, name=name)
    if not isinstance(entry, dict):
        raise ValueError(f"mapping for axis '{name}' must be a mapping/object")
    unknown = set(entry) - {"points", "alt_points", "max_input", "invert"}
    if unknown:
        raise ValueError(f"unknown keys for axis '{name}': {sorted(unknown)}")
    try:
        max_input = float(entry.get("max_input", max_default))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid max_input for axis '{name}'") from exc
    points = entry.get("points")
    if points is None:
        points = [(0.0, 0.0), (max_input, max_input)]
    return MappingAxis(
        points,
        max_input=max_input,
        alt_points=entry.get("alt_points"),
        invert=bool(entry.get("invert", False)),
        name=name,
    )


def load_mappings(path: str) -> Mappings:
    """Load curves from YAML; axes missing from the file stay identity.

    Format::

        yaw:
          points: [[0, 0], [30, 60], [90, 180]]
          max_input: 90
        pitch:
          invert: true
    """
    if not path:
        return Mappings.identity()
    p = Path(path)
    if not p.is_file():
        raise ValueError(f"--mapping file not found: {p}")
    try:
        loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ValueError(f"failed to read mapping file {p}: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ValueError(f"mapping file root must be a mapping, got {type(loaded).__name__}")

    entries: dict[Axis, Any] = {}
    for raw_key, entry in loaded.items():
        axis = axis_from_name(str(raw_key))
        entries[axis] = entry

    mappings = Mappings([_axis_from_mapping(axis, entries.get(axis)) for axis in Axis])
    logger.info("[MAPPING] loaded %s (custom axes: %s)", p, [AXIS_NAMES[a] for a in entries])
    return mappings
