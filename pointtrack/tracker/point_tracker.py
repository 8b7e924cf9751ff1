"""Point correspondence and pose fitting for the 3-point model."""

from __future__ import annotations

import logging
import time
from typing import Callable

import cv2
import numpy as np

from ..math3d.affine import Affine
from ..math3d.euler import orthonormalize
from .api import CameraInfo
from .point_model import PointModel

logger = logging.getLogger(__name__)


class PointTracker:
    """Fits the camera-from-model transform X_CM to detected image points.

    Fitting happens in a frame with x right, y up, z forward (away from the
    camera); image rows are flipped about the principal point to match.

    Correspondences come from a freetrack-like ranking along the model's
    d direction during the init phase, or from reprojecting the model with
    the previous pose while the last success is recent enough.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._X_CM = Affine()
        self._init_phase = True
        self._last_success_t = 0.0

    def pose(self) -> Affine:
        return self._X_CM.copy()

    def reset_state(self) -> None:
        self._init_phase = True

    @staticmethod
    def _flip_y(points: np.ndarray, info: CameraInfo) -> np.ndarray:
        out = np.asarray(points, dtype=np.float64).reshape(-1, 2).copy()
        out[:, 1] = float(info.res_y) - out[:, 1]
        return out

    def find_correspondences(
        self, points: np.ndarray, model: PointModel, info: CameraInfo
    ) -> np.ndarray:
        n = PointModel.N_POINTS
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)[:n]
        centered = pts - np.array([info.res_x * 0.5, info.res_y * 0.5])
        centered[:, 1] = -centered[:, 1]
        point_order = model.get_d_order(centered)
        model_order = model.get_d_order(model.points()[:, :2])

        ordered = np.empty((n, 2), dtype=np.float64)
        for i in range(n):
            ordered[model_order[i]] = pts[point_order[i]]
        return ordered

    def find_correspondences_previous(
        self, points: np.ndarray, model: PointModel, info: CameraInfo
    ) -> np.ndarray:
        n = PointModel.N_POINTS
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        f = info.get_focal_length()
        cx, cy = info.res_x * 0.5, info.res_y * 0.5

        ordered = np.empty((n, 2), dtype=np.float64)
        used = np.zeros(len(pts), dtype=bool)
        for i, M in enumerate(model.points()):
            p = self._X_CM.apply(M)
            z = p[2] if abs(p[2]) > 1e-9 else 1e-9
            # Projection in pixel coordinates (rows grow downward).
            proj = np.array([f * p[0] / z + cx, cy - f * p[1] / z], dtype=np.float64)
            dist = np.sum((pts - proj) ** 2, axis=1)
            dist[used] = np.inf
            j = int(np.argmin(dist))
            used[j] = True
            ordered[i] = pts[j]
        return ordered

    def _fit(self, ordered: np.ndarray, model: PointModel, info: CameraInfo) -> Affine | None:
        K = info.camera_matrix()
        ok, rvec, tvec = cv2.solvePnP(
            model.points(),
            self._flip_y(ordered, info),
            K,
            None,
            flags=cv2.SOLVEPNP_SQPNP,
        )
        if not ok:
            return None
        R, _ = cv2.Rodrigues(rvec)
        X_CM = Affine(orthonormalize(R), np.asarray(tvec, dtype=np.float64).reshape(3))
        if not X_CM.is_finite() or X_CM.t[2] <= 0.0:
            return None
        return X_CM

    def track(
        self,
        points: np.ndarray,
        model: PointModel,
        info: CameraInfo,
        init_phase_timeout_ms: int,
    ) -> bool:
        """Fit a new pose; keep the previous one and return False on failure."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if len(pts) < PointModel.N_POINTS:
            return False
        if info.get_focal_length() <= 0.0 or model.is_degenerate():
            return False

        elapsed_ms = (self._clock() - self._last_success_t) * 1000.0
        if init_phase_timeout_ms <= 0 or elapsed_ms > init_phase_timeout_ms or self._init_phase:
            self._init_phase = True
            ordered = self.find_correspondences(pts, model, info)
        else:
            ordered = self.find_correspondences_previous(pts, model, info)

        X_CM = self._fit(ordered, model, info)
        if X_CM is None:
            return False

        self._X_CM = X_CM
        self._init_phase = False
        self._last_success_t = self._clock()
        return True
