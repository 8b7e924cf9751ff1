"""OpenCV webcam backend: VideoCapture camera and blob point extractor."""

from __future__ import annotations

import dataclasses
import logging
import math
import sys

import cv2
import numpy as np

from ..tracker.api import (
    COLOR_TYPE_NAMES,
    Camera,
    CameraInfo,
    CameraOpenStatus,
    ColorType,
    Frame,
    PointExtractor,
    Preview,
    RuntimeTraits,
    to_screen_pos,
)

logger = logging.getLogger(__name__)


class OpenCvPreview(Preview):
    def __init__(self, w: int, h: int):
        super().__init__()
        self.w = int(w)
        self.h = int(h)
        self.mat = np.zeros((self.h, self.w, 3), dtype=np.uint8)
        self._src_w = self.w
        self._src_h = self.h

    def assign(self, frame: Frame) -> "OpenCvPreview":
        if frame.mat is None:
            return self
        img = frame.mat
        if img.ndim == 2:
            img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
        self._src_h, self._src_w = img.shape[:2]
        self.mat = cv2.resize(img, (self.w, self.h), interpolation=cv2.INTER_AREA)
        return self

    def get_bitmap(self) -> np.ndarray:
        return self.mat.copy()

    def _to_preview(self, x: float, y: float) -> tuple[int, int]:
        sx = self.w / float(max(self._src_w, 1))
        sy = self.h / float(max(self._src_h, 1))
        return int(round(x * sx)), int(round(y * sy))

    def draw_head_center(self, x: float, y: float) -> None:
        px, py = to_screen_pos(x, y, self._src_w, self._src_h)
        if not (math.isfinite(px) and math.isfinite(py)):
            return
        cx, cy = self._to_preview(px, py)
        size = 6
        color = (0, 0, 255)
        cv2.line(self.mat, (cx - size, cy), (cx + size, cy), color, 1, cv2.LINE_AA)
        cv2.line(self.mat, (cx, cy - size), (cx, cy + size), color, 1, cv2.LINE_AA)

    def draw_blob(self, x: float, y: float, radius: float) -> None:
        """Mark a detected blob; x, y, radius in camera pixels."""
        cx, cy = self._to_preview(x, y)
        r = max(2, int(round(radius * self.w / float(max(self._src_w, 1)))) + 2)
        cv2.circle(self.mat, (cx, cy), r, (0, 255, 0), 1, cv2.LINE_AA)


class OpenCvCamera(Camera):
    """cv2.VideoCapture wrapper. ``get_frame`` blocks for at most one frame."""

    def __init__(self, name: str = ""):
        self._cap: cv2.VideoCapture | None = None
        self._desired = CameraInfo()
        self._active = CameraInfo()
        self._desired_name = str(name)
        self._fov = 0.0

    def _open_capture(self, idx: int) -> cv2.VideoCapture:
        if sys.platform == "win32":
            cap = cv2.VideoCapture(idx, cv2.CAP_DSHOW)
            if cap.isOpened():
                return cap
            cap.release()
        return cv2.VideoCapture(idx)

    def start(self, idx: int, fps: int, res_x: int, res_y: int) -> CameraOpenStatus:
        desired = CameraInfo(fov=self._fov, fps=float(fps), res_x=int(res_x), res_y=int(res_y), idx=int(idx))
        if self and desired == self._desired:
            return CameraOpenStatus.OK_NO_CHANGE

        self.stop()
        self._desired = desired
        cap = self._open_capture(idx)
        if not cap.isOpened():
            cap.release()
            return CameraOpenStatus.ERROR

        if res_x > 0:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, res_x)
        if res_y > 0:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, res_y)
        if fps > 0:
            cap.set(cv2.CAP_PROP_FPS, fps)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self._cap = cap
        self._active = CameraInfo(
            fov=self._fov,
            fps=float(cap.get(cv2.CAP_PROP_FPS) or fps),
            res_x=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or res_x),
            res_y=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or res_y),
            idx=int(idx),
        )
        logger.info(
            "[CAMERA] index=%s %dx%d @ %.1f fps",
            idx,
            self._active.res_x,
            self._active.res_y,
            self._active.fps,
        )
        return CameraOpenStatus.OK_CHANGE

    def stop(self) -> None:
        if self._cap is not None:
            try:
                self._cap.release()
            except cv2.error:
                logger.debug("[CAMERA] release failed", exc_info=True)
        self._cap = None
        self._active = CameraInfo()
        self._desired = CameraInfo()

    def get_frame(self, frame: Frame) -> tuple[bool, CameraInfo]:
        if self._cap is None:
            return False, dataclasses.replace(self._active)
        ok, img = self._cap.read()
        if not ok or img is None:
            return False, dataclasses.replace(self._active)
        frame.mat = img
        h, w = img.shape[:2]
        self._active.res_x = int(w)
        self._active.res_y = int(h)
        return True, dataclasses.replace(self._active)

    def get_info(self) -> tuple[bool, CameraInfo]:
        return bool(self), dataclasses.replace(self._active)

    def get_desired(self) -> CameraInfo:
        return dataclasses.replace(self._desired)

    def get_desired_name(self) -> str:
        return self._desired_name

    def get_active_name(self) -> str:
        if not self:
            return ""
        return self._desired_name or f"camera {self._active.idx}"

    def set_fov(self, value: float) -> None:
        self._fov = float(value)
        self._desired.fov = self._fov
        self._active.fov = self._fov

    def __bool__(self) -> bool:
        return self._cap is not None and bool(self._cap.isOpened())

    def show_camera_settings(self) -> None:
        if self._cap is not None:
            # Opens the driver dialog on DirectShow; ignored elsewhere.
            self._cap.set(cv2.CAP_PROP_SETTINGS, 1)


class BlobPointExtractor(PointExtractor):
    """Bright-blob detector: grayscale by color mode, threshold, label, centroid."""

    # Auto threshold never goes below this gray level.
    min_auto_threshold = 32

    def __init__(self, cfg):
        self.apply_settings(cfg)

    def apply_settings(self, cfg) -> None:
        self.color = COLOR_TYPE_NAMES.get(cfg.blob_color, ColorType.NATURAL)
        self.auto_threshold = bool(cfg.auto_threshold)
        self.threshold = int(cfg.threshold)
        self.min_point_size = float(cfg.min_point_size)
        self.max_point_size = float(cfg.max_point_size)

    def _to_gray(self, img: np.ndarray) -> np.ndarray:
        if img.ndim == 2:
            return img
        if self.color == ColorType.RED_ONLY:
            return np.ascontiguousarray(img[:, :, 2])
        if self.color == ColorType.BLUE_ONLY:
            return np.ascontiguousarray(img[:, :, 0])
        if self.color == ColorType.AVERAGE:
            return np.mean(img, axis=2).astype(np.uint8)
        return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)

    def _gray_threshold(self, gray: np.ndarray) -> int:
        if not self.auto_threshold:
            return self.threshold
        h, w = gray.shape[:2]
        radius = self.threshold_radius_value(w, h, self.threshold)
        area = int(round(3.0 * math.pi * radius * radius))
        hist = np.bincount(gray.ravel(), minlength=256)
        thres = self.min_auto_threshold
        cnt = 0
        for i in range(255, self.min_auto_threshold, -1):
            cnt += int(hist[i])
            if cnt >= area:
                break
            thres = i
        return thres

    def extract_points(self, frame: Frame, preview: Preview) -> np.ndarray:
        if frame.mat is None:
            return np.zeros((0, 2), dtype=np.float64)
        gray = self._to_gray(frame.mat)
        thres = self._gray_threshold(gray)
        _, mask = cv2.threshold(gray, thres, 255, cv2.THRESH_BINARY)
        n, labels, stats, _ = cv2.connectedComponentsWithStats(mask, connectivity=8)

        blobs = []
        for label in range(1, n):
            x, y, bw, bh, area = (int(v) for v in stats[label])
            radius = math.sqrt(area / math.pi)
            if radius < self.min_point_size or radius > self.max_point_size:
                continue
            sub = gray[y : y + bh, x : x + bw].astype(np.float64)
            weights = np.where(labels[y : y + bh, x : x + bw] == label, sub, 0.0)
            total = float(weights.sum())
            if total <= 0.0:
                continue
            ys, xs = np.mgrid[0:bh, 0:bw]
            cx = x + float((weights * xs).sum()) / total
            cy = y + float((weights * ys).sum()) / total
            blobs.append((area, cx, cy, radius))

        blobs.sort(key=lambda b: (-b[0], b[1], b[2]))

        for _, cx, cy, radius in blobs:
            preview.draw_blob(cx, cy, radius)

        if not blobs:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array([(cx, cy) for _, cx, cy, _ in blobs], dtype=np.float64)


class OpenCvRuntimeTraits(RuntimeTraits):
    def __init__(self, cfg):
        self.cfg = cfg

    def make_camera(self) -> Camera:
        return OpenCvCamera(name=self.cfg.camera_name)

    def make_point_extractor(self) -> PointExtractor:
        return BlobPointExtractor(self.cfg)

    def make_preview(self, w: int, h: int) -> Preview:
        return OpenCvPreview(w, h)

    def get_module_name(self) -> str:
        return "opencv"
