"""Known 3-point model geometry (millimeters, x right, y up, z forward)."""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

MODEL_TYPES = ("clip", "cap", "custom")


class PointModel:
    N_POINTS = 3

    def __init__(self, M01: np.ndarray, M02: np.ndarray):
        self.M01 = np.asarray(M01, dtype=np.float64).reshape(3)
        self.M02 = np.asarray(M02, dtype=np.float64).reshape(3)
        # Direction used to rank points for the initial correspondence.
        self.d = np.array(
            [self.M01[0] - self.M02[0], self.M01[1] - self.M02[1]], dtype=np.float64
        )

    @classmethod
    def from_config(cls, cfg) -> "PointModel":
        if cfg.model == "cap":
            M01 = (-cfg.cap_x, -cfg.cap_y, -cfg.cap_z)
            M02 = (cfg.cap_x, -cfg.cap_y, -cfg.cap_z)
        elif cfg.model == "custom":
            M01 = (cfg.m01_x, cfg.m01_y, cfg.m01_z)
            M02 = (cfg.m02_x, cfg.m02_y, cfg.m02_z)
        else:
            if cfg.model != "clip":
                logger.warning("[PT] unknown model type %r, using clip", cfg.model)
            M01 = (0.0, cfg.clip_ty, -cfg.clip_tz)
            M02 = (0.0, -cfg.clip_by, -cfg.clip_bz)
        return cls(np.array(M01, dtype=np.float64), np.array(M02, dtype=np.float64))

    def points(self) -> np.ndarray:
        return np.vstack([np.zeros(3, dtype=np.float64), self.M01, self.M02])

    def get_d_order(self, points_2d: np.ndarray) -> np.ndarray:
        """Indices of points sorted by their projection onto d."""
        pts = np.asarray(points_2d, dtype=np.float64).reshape(-1, 2)
        return np.argsort(pts @ self.d, kind="stable")

    def is_degenerate(self) -> bool:
        return float(np.linalg.norm(np.cross(self.M01, self.M02))) < 1e-9
