"""Synthetic camera that renders the point model at a scripted pose.

Handy for trying the pipeline without LEDs, and for headless tests: the
rendered frames go through the real blob extractor and pose fit.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import time
from typing import Callable

import cv2
import numpy as np

from ..math3d.affine import Affine
from ..math3d.euler import euler_to_rmat
from ..tracker.api import (
    Camera,
    CameraInfo,
    CameraOpenStatus,
    Frame,
    PointExtractor,
    Preview,
    RuntimeTraits,
)
from ..tracker.point_model import PointModel
from .opencv_backend import BlobPointExtractor, OpenCvPreview

logger = logging.getLogger(__name__)

# Fixed-point bits for sub-pixel circle centers.
_DRAW_SHIFT = 4


def swaying_pose(distance_mm: float, yaw_deg: float, period_s: float) -> Callable[[float], Affine]:
    """Pose script: model in front of the camera, turning left/right."""

    def pose_at(t: float) -> Affine:
        angle = math.radians(yaw_deg) * math.sin(2.0 * math.pi * t / period_s) if period_s > 0 else 0.0
        # Turning about the model's vertical (y) axis.
        R = euler_to_rmat(0.0, angle, 0.0)
        return Affine(R, np.array([0.0, 0.0, distance_mm], dtype=np.float64))

    return pose_at


def render_points(
    info: CameraInfo,
    model: PointModel,
    X_CM: Affine,
    radius_px: int = 4,
) -> np.ndarray:
    """Draw the model points as white dots on a black BGR frame."""
    img = np.zeros((info.res_y, info.res_x, 3), dtype=np.uint8)
    f = info.get_focal_length()
    cx, cy = info.res_x * 0.5, info.res_y * 0.5
    scale = 1 << _DRAW_SHIFT
    for M in model.points():
        p = X_CM.apply(M)
        if p[2] <= 1e-6:
            continue
        u = f * p[0] / p[2] + cx
        v = cy - f * p[1] / p[2]
        center = (int(round(u * scale)), int(round(v * scale)))
        cv2.circle(img, center, radius_px * scale, (255, 255, 255), -1, cv2.LINE_AA, _DRAW_SHIFT)
    return img


class SyntheticCamera(Camera):
    def __init__(
        self,
        model: PointModel,
        pose_at: Callable[[float], Affine],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.model = model
        self.pose_at = pose_at
        self._clock = clock
        self._sleep = sleep
        self._open = False
        self._desired = CameraInfo()
        self._active = CameraInfo()
        self._fov = 0.0
        self._t0 = 0.0
        self._next_t = 0.0

    def start(self, idx: int, fps: int, res_x: int, res_y: int) -> CameraOpenStatus:
        desired = CameraInfo(fov=self._fov, fps=float(fps), res_x=int(res_x), res_y=int(res_y), idx=int(idx))
        if res_x <= 0 or res_y <= 0 or fps <= 0:
            self.stop()
            return CameraOpenStatus.ERROR
        if self._open and desired == self._desired:
            return CameraOpenStatus.OK_NO_CHANGE
        self._desired = desired
        self._active = dataclasses.replace(desired)
        self._open = True
        self._t0 = self._clock()
        self._next_t = self._t0
        logger.info("[CAMERA] synthetic %dx%d @ %d fps", res_x, res_y, fps)
        return CameraOpenStatus.OK_CHANGE

    def stop(self) -> None:
        self._open = False

    def get_frame(self, frame: Frame) -> tuple[bool, CameraInfo]:
        if not self._open:
            return False, dataclasses.replace(self._active)
        interval = 1.0 / self._active.fps
        now = self._clock()
        wait = self._next_t - now
        if wait > 0.0:
            self._sleep(min(wait, interval))
        self._next_t = max(self._next_t + interval, now)
        t = self._clock() - self._t0
        frame.mat = render_points(self._active, self.model, self.pose_at(t))
        return True, dataclasses.replace(self._active)

    def get_info(self) -> tuple[bool, CameraInfo]:
        return self._open, dataclasses.replace(self._active)

    def get_desired(self) -> CameraInfo:
        return dataclasses.replace(self._desired)

    def get_desired_name(self) -> str:
        return "synthetic"

    def get_active_name(self) -> str:
        return "synthetic" if self._open else ""

    def set_fov(self, value: float) -> None:
        self._fov = float(value)
        self._desired.fov = self._fov
        self._active.fov = self._fov

    def __bool__(self) -> bool:
        return self._open


class SyntheticRuntimeTraits(RuntimeTraits):
    def __init__(self, cfg):
        self.cfg = cfg

    def make_camera(self) -> Camera:
        cfg = self.cfg
        return SyntheticCamera(
            model=PointModel.from_config(cfg),
            pose_at=swaying_pose(
                cfg.synthetic_distance_mm, cfg.synthetic_yaw_deg, cfg.synthetic_period_s
            ),
        )

    def make_point_extractor(self) -> PointExtractor:
        return BlobPointExtractor(self.cfg)

    def make_preview(self, w: int, h: int) -> Preview:
        return OpenCvPreview(w, h)

    def get_module_name(self) -> str:
        return "synthetic"
