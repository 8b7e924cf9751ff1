"""Capture/tracking worker: camera -> points -> pose -> preview."""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

import cv2
import numpy as np

from ..control.guarded import Guarded
from ..control.pose import N_AXES, Axis
from ..control.worker import Worker
from ..math3d.affine import Affine
from .api import CameraInfo, CameraOpenStatus, RuntimeTraits
from .point_model import PointModel
from .point_tracker import PointTracker

logger = logging.getLogger(__name__)

PREVIEW_WIDTH = 320
PREVIEW_HEIGHT = 240

# Rotation from the tracking frame (G) to the yaw/pitch/roll frame (E):
# -z -> x, y -> z, x -> -y.
R_EG = np.array(
    [
        [0.0, 0.0, -1.0],
        [-1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
    ],
    dtype=np.float64,
)

# Model units (mm) per output unit (cm).
MM_PER_CM = 10.0


def affine_to_pose_values(X_GH: Affine) -> np.ndarray:
    """Convert a head pose into [X, Y, Z, Yaw, Pitch, Roll] (cm, degrees)."""
    R = R_EG @ X_GH.R @ R_EG.T
    t = X_GH.t

    beta = math.atan2(-R[2, 0], math.hypot(R[2, 1], R[2, 2]))
    alpha = math.atan2(R[1, 0], R[0, 0])
    gamma = math.atan2(R[2, 1], R[2, 2])

    out = np.zeros(N_AXES, dtype=np.float64)
    out[Axis.YAW] = math.degrees(alpha)
    out[Axis.PITCH] = -math.degrees(beta)
    out[Axis.ROLL] = math.degrees(gamma)
    out[Axis.TX] = t[0] / MM_PER_CM
    out[Axis.TY] = t[1] / MM_PER_CM
    out[Axis.TZ] = t[2] / MM_PER_CM
    return out


def model_to_head(cfg) -> Affine:
    return Affine(np.eye(3), np.array([cfg.t_mh_x, cfg.t_mh_y, cfg.t_mh_z], dtype=np.float64))


class Tracker(Worker):
    """Owns the camera and point extractor; publishes the last fitted pose."""

    thread_name = "pt-tracker"

    # Wait between polls when the camera has no new frame.
    idle_wait_s = 0.005

    def __init__(
        self,
        traits: RuntimeTraits,
        cfg,
        video_widget=None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.cfg = cfg
        self.traits = traits
        self.video_widget = video_widget

        self.camera = traits.make_camera()
        self.point_extractor = traits.make_point_extractor()
        self.frame = traits.make_frame()
        self.preview_frame = traits.make_preview(PREVIEW_WIDTH, PREVIEW_HEIGHT)
        self.point_tracker = PointTracker(clock=clock)

        self._camera_lock = threading.RLock()
        self._pose = Guarded(Affine())
        self._ever_success = False
        self._point_count = 0
        self._last_error_log_t = 0.0

        logger.info("[PT] backend=%s", traits.get_module_name())
        self.set_fov(cfg.fov)

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        self.maybe_reopen_camera()
        super().start()

    def close(self) -> None:
        self.request_interruption()
        self.wait()
        with self._camera_lock:
            self.camera.stop()

    def run(self) -> None:
        cv2.setNumThreads(1)
        while not self.is_interruption_requested():
            if not self.step():
                self.wait_interruptible(self.idle_wait_s)
        logger.info("[PT] thread stopped")

    # -- one cycle ---------------------------------------------------------

    def step(self) -> bool:
        """Run one capture cycle; return False when no new frame was available."""
        with self._camera_lock:
            new_frame, cam_info = self.camera.get_frame(self.frame)
        if not new_frame:
            return False

        cfg = self.cfg
        self.preview_frame.assign(self.frame)

        try:
            points = self.point_extractor.extract_points(self.frame, self.preview_frame)
        except cv2.error:
            self._log_cycle_error("point extraction failed")
            points = np.zeros((0, 2), dtype=np.float64)
        self._point_count = len(points)

        fx = cam_info.get_focal_length()

        if len(points) >= PointModel.N_POINTS:
            timeout = cfg.init_phase_timeout if cfg.dynamic_pose else 0
            try:
                success = self.point_tracker.track(
                    points, PointModel.from_config(cfg), cam_info, timeout
                )
            except cv2.error:
                self._log_cycle_error("pose fit failed")
                success = False
            if success:
                self._pose.set(self.point_tracker.pose())
                self._ever_success = True

        if self._ever_success:
            X_GH = self.pose() * model_to_head(cfg)
            p = X_GH.t
            if fx > 0.0 and p[2] > 1e-6:
                self.preview_frame.draw_head_center(p[0] * fx / p[2], p[1] * fx / p[2])

        if self.video_widget is not None:
            self.video_widget.update_image(self.preview_frame.get_bitmap())
        return True

    def _log_cycle_error(self, what: str) -> None:
        now = time.monotonic()
        if now - self._last_error_log_t > 2.0:
            logger.warning("[PT] %s", what, exc_info=True)
            self._last_error_log_t = now

    # -- settings ----------------------------------------------------------

    def maybe_reopen_camera(self) -> CameraOpenStatus:
        cfg = self.cfg
        with self._camera_lock:
            status = self.camera.start(cfg.camera_index, cfg.cam_fps, cfg.cam_res_x, cfg.cam_res_y)

        if status == CameraOpenStatus.ERROR:
            logger.warning(
                "[CAMERA] failed to open camera %s (%s) %dx%d@%d",
                cfg.camera_index,
                cfg.camera_name or "unnamed",
                cfg.cam_res_x,
                cfg.cam_res_y,
                cfg.cam_fps,
            )
        elif status == CameraOpenStatus.OK_CHANGE:
            logger.info("[CAMERA] opened %s", self.camera.get_active_name() or cfg.camera_index)
            if cfg.reset_success_on_reopen:
                self._ever_success = False
                self.point_tracker.reset_state()
        return status

    def set_fov(self, value: float) -> None:
        with self._camera_lock:
            self.camera.set_fov(value)

    def apply_settings(self, cfg) -> None:
        """Swap in new settings while the worker is live."""
        self.cfg = cfg
        self.point_extractor.apply_settings(cfg)
        self.set_fov(cfg.fov)
        self.maybe_reopen_camera()

    def show_camera_settings(self) -> None:
        with self._camera_lock:
            self.camera.show_camera_settings()

    # -- queries -----------------------------------------------------------

    @property
    def ever_success(self) -> bool:
        return self._ever_success

    def pose(self) -> Affine:
        return self._pose.get()

    def data(self) -> np.ndarray:
        """Per-axis output values; zeros until the first successful fit."""
        if not self._ever_success:
            return np.zeros(N_AXES, dtype=np.float64)
        return affine_to_pose_values(self.pose() * model_to_head(self.cfg))

    def center(self) -> bool:
        self.point_tracker.reset_state()
        return False

    def get_n_points(self) -> int:
        return int(self._point_count)

    def get_cam_info(self) -> tuple[bool, CameraInfo]:
        with self._camera_lock:
            return self.camera.get_info()
