"""Rigid transform (rotation + translation)."""

from __future__ import annotations

import numpy as np

from .euler import orthonormalize


class Affine:
    """Rotation matrix R (3x3) and translation t (3).

    Maps points from the right-hand frame into the left-hand frame:
    ``x_out = R @ x_in + t``.
    """

    __slots__ = ("R", "t")

    def __init__(self, R: np.ndarray | None = None, t: np.ndarray | None = None):
        self.R = (
            np.eye(3, dtype=np.float64)
            if R is None
            else np.array(R, dtype=np.float64).reshape(3, 3)
        )
        self.t = (
            np.zeros(3, dtype=np.float64)
            if t is None
            else np.array(t, dtype=np.float64).reshape(3)
        )

    def __mul__(self, other: "Affine") -> "Affine":
        return Affine(
            orthonormalize(self.R @ other.R),
            self.R @ other.t + self.t,
        )

    def apply(self, p: np.ndarray) -> np.ndarray:
        return self.R @ np.asarray(p, dtype=np.float64).reshape(3) + self.t

    def inv(self) -> "Affine":
        Rt = self.R.T
        return Affine(Rt, -(Rt @ self.t))

    def copy(self) -> "Affine":
        return Affine(self.R, self.t)

    def is_finite(self) -> bool:
        return bool(np.isfinite(self.R).all() and np.isfinite(self.t).all())

    def __repr__(self) -> str:
        return f"Affine(R={self.R.tolist()}, t={self.t.tolist()})"
