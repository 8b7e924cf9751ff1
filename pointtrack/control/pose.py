"""Pose data structures for 6DoF head tracking."""

from __future__ import annotations

from enum import IntEnum

import numpy as np


class Axis(IntEnum):
    """Fixed index order of the 6 pose components."""

    TX = 0
    TY = 1
    TZ = 2
    YAW = 3
    PITCH = 4
    ROLL = 5


AXIS_NAMES = ("x", "y", "z", "yaw", "pitch", "roll")
N_AXES = len(Axis)


def axis_from_name(name: str) -> Axis:
    key = name.strip().lower()
    aliases = {"tx": "x", "ty": "y", "tz": "z"}
    key = aliases.get(key, key)
    try:
        return Axis(AXIS_NAMES.index(key))
    except ValueError as exc:
        raise ValueError(f"unknown axis name {name!r}") from exc


def zero_pose() -> np.ndarray:
    """6-vector [X, Y, Z, Yaw, Pitch, Roll]; cm and degrees."""
    return np.zeros(N_AXES, dtype=np.float64)


def as_pose(values) -> np.ndarray:
    pose = np.array(values, dtype=np.float64).reshape(-1)
    if pose.size != N_AXES:
        raise ValueError(f"pose needs {N_AXES} values, got {pose.size}")
    return pose
