"""Backend interfaces for the point tracker.

A backend supplies a matched set of camera, point extractor, frame and
preview through a RuntimeTraits factory. The tracker worker only talks to
these interfaces.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass

import numpy as np


class CameraOpenStatus(enum.IntEnum):
    ERROR = 0
    OK_NO_CHANGE = 1
    OK_CHANGE = 2


class ColorType(enum.IntEnum):
    # Values match the persisted setting numbering.
    NATURAL = 2
    RED_ONLY = 3
    AVERAGE = 5
    BLUE_ONLY = 6


COLOR_TYPE_NAMES = {
    "natural": ColorType.NATURAL,
    "red-only": ColorType.RED_ONLY,
    "average": ColorType.AVERAGE,
    "blue-only": ColorType.BLUE_ONLY,
}


@dataclass(slots=True)
class CameraInfo:
    """Active (or desired) camera mode."""

    fov: float = 0.0
    fps: float = 0.0
    res_x: int = 0
    res_y: int = 0
    idx: int = -1

    def get_focal_length(self) -> float:
        """Horizontal focal length in pixels from diagonal FOV; 0 if unknown."""
        if self.res_x <= 0 or self.res_y <= 0 or not (0.0 < self.fov < 180.0):
            return 0.0
        diag_len = math.hypot(self.res_x, self.res_y)
        aspect_x = self.res_x / diag_len
        diag_fov = math.radians(self.fov)
        fov_x = 2.0 * math.atan(math.tan(diag_fov * 0.5) * aspect_x)
        return (self.res_x * 0.5) / math.tan(fov_x * 0.5)

    def camera_matrix(self) -> np.ndarray:
        f = self.get_focal_length()
        return np.array(
            [
                [f, 0.0, self.res_x * 0.5],
                [0.0, f, self.res_y * 0.5],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )


class Frame:
    """Opaque image carrier (BGR uint8 array, or None before the first frame)."""

    def __init__(self):
        self.mat: np.ndarray | None = None

    def size(self) -> tuple[int, int]:
        if self.mat is None:
            return 0, 0
        h, w = self.mat.shape[:2]
        return int(w), int(h)


def to_screen_pos(px: float, py: float, w: int, h: int) -> tuple[float, float]:
    """Center-relative offsets (y up) -> image pixel coordinates."""
    return px + w * 0.5, h * 0.5 - py


def to_centered_pos(x: float, y: float, w: int, h: int) -> tuple[float, float]:
    """Image pixel coordinates -> center-relative offsets (y up)."""
    return x - w * 0.5, h * 0.5 - y


class Preview(Frame):
    """Downscaled copy of the camera frame with tracking overlays."""

    def assign(self, frame: Frame) -> "Preview":
        raise NotImplementedError

    def get_bitmap(self) -> np.ndarray:
        raise NotImplementedError

    def draw_head_center(self, x: float, y: float) -> None:
        raise NotImplementedError

    def draw_blob(self, x: float, y: float, radius: float) -> None:
        """Mark a detected blob. Previews without overlays ignore it."""
        return None


class Camera:
    """Camera backend contract."""

    def start(self, idx: int, fps: int, res_x: int, res_y: int) -> CameraOpenStatus:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def get_frame(self, frame: Frame) -> tuple[bool, CameraInfo]:
        """Fill frame; return (new_frame, info). Blocks at most one frame interval."""
        raise NotImplementedError

    def get_info(self) -> tuple[bool, CameraInfo]:
        raise NotImplementedError

    def get_desired(self) -> CameraInfo:
        raise NotImplementedError

    def get_desired_name(self) -> str:
        return ""

    def get_active_name(self) -> str:
        return ""

    def set_fov(self, value: float) -> None:
        raise NotImplementedError

    def __bool__(self) -> bool:
        raise NotImplementedError

    def show_camera_settings(self) -> None:
        # Backend-specific; no-op by default.
        pass


class PointExtractor:
    """Locates fiducial points in a frame."""

    def extract_points(self, frame: Frame, preview: Preview) -> np.ndarray:
        """Return (K, 2) pixel coordinates, largest blobs first."""
        raise NotImplementedError

    def apply_settings(self, cfg) -> None:
        # Extractors without tunables ignore settings changes.
        pass

    @staticmethod
    def threshold_radius_value(w: int, h: int, threshold: int) -> float:
        cx = w / 640.0
        cy = h / 480.0
        min_radius = 1.75 * cx
        max_radius = 15.0 * cy
        return max(0.0, (max_radius - min_radius) * threshold / 255.0 + min_radius)


class RuntimeTraits:
    """Factory for one backend's matched set of tracker collaborators."""

    def make_camera(self) -> Camera:
        raise NotImplementedError

    def make_point_extractor(self) -> PointExtractor:
        raise NotImplementedError

    def make_frame(self) -> Frame:
        return Frame()

    def make_preview(self, w: int, h: int) -> Preview:
        raise NotImplementedError

    def get_module_name(self) -> str:
        raise NotImplementedError
