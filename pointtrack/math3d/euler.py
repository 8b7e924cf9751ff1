"""Yaw/pitch/roll <-> rotation matrix conversions.

Convention (single source of truth for the whole pipeline):
  R = Rz(yaw) @ Ry(pitch) @ Rx(roll), angles in radians.
"""

from __future__ import annotations

import math

import numpy as np


def euler_to_rmat(yaw: float, pitch: float, roll: float) -> np.ndarray:
    c1, s1 = math.cos(yaw), math.sin(yaw)
    c2, s2 = math.cos(pitch), math.sin(pitch)
    c3, s3 = math.cos(roll), math.sin(roll)
    return np.array(
        [
            [c1 * c2, c1 * s2 * s3 - c3 * s1, s1 * s3 + c1 * c3 * s2],
            [c2 * s1, c1 * c3 + s1 * s2 * s3, c3 * s1 * s2 - c1 * s3],
            [-s2, c2 * s3, c2 * c3],
        ],
        dtype=np.float64,
    )


def rmat_to_euler(R: np.ndarray) -> tuple[float, float, float]:
    """Return (yaw, pitch, roll) in radians.

    Pitch uses the hypotenuse of the last two row-2 terms, so it stays finite
    at gimbal lock.
    """
    R = np.asarray(R, dtype=np.float64)
    pitch = math.atan2(-R[2, 0], math.hypot(R[2, 1], R[2, 2]))
    yaw = math.atan2(R[1, 0], R[0, 0])
    roll = math.atan2(R[2, 1], R[2, 2])
    return yaw, pitch, roll


def euler_deg_to_rmat(yaw_deg: float, pitch_deg: float, roll_deg: float) -> np.ndarray:
    return euler_to_rmat(
        math.radians(yaw_deg), math.radians(pitch_deg), math.radians(roll_deg)
    )


def rmat_to_euler_deg(R: np.ndarray) -> tuple[float, float, float]:
    yaw, pitch, roll = rmat_to_euler(R)
    return math.degrees(yaw), math.degrees(pitch), math.degrees(roll)


def orthonormalize(R: np.ndarray) -> np.ndarray:
    """Closest rotation matrix to R (SVD projection)."""
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 rotation matrix, got {R.shape}")
    u, _, vt = np.linalg.svd(R)
    out = u @ vt
    if np.linalg.det(out) < 0.0:
        u[:, -1] = -u[:, -1]
        out = u @ vt
    return out
