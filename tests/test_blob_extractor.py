import dataclasses
import math

import numpy as np

from pointtrack.backends.opencv_backend import BlobPointExtractor, OpenCvPreview
from pointtrack.backends.synthetic import render_points
from pointtrack.config import AppConfig
from pointtrack.math3d.affine import Affine
from pointtrack.math3d.euler import euler_to_rmat
from pointtrack.tracker.api import CameraInfo, Frame, PointExtractor, Preview
from pointtrack.tracker.point_model import PointModel

INFO = CameraInfo(fov=56.0, fps=30.0, res_x=640, res_y=480, idx=0)


def _cfg(**overrides) -> AppConfig:
    base = AppConfig(model="cap", auto_threshold=False, threshold=128)
    return dataclasses.replace(base, **overrides)


def _expected_pixels(model: PointModel, X_CM: Affine) -> np.ndarray:
    f = INFO.get_focal_length()
    out = []
    for M in model.points():
        p = X_CM.apply(M)
        out.append((f * p[0] / p[2] + 320.0, 240.0 - f * p[1] / p[2]))
    return np.array(out)


def _rendered_frame(cfg: AppConfig):
    model = PointModel.from_config(cfg)
    X_CM = Affine(euler_to_rmat(0.0, math.radians(10.0), 0.0), [0.0, 0.0, 600.0])
    frame = Frame()
    frame.mat = render_points(INFO, model, X_CM, radius_px=4)
    return frame, _expected_pixels(model, X_CM)


def _preview(frame: Frame) -> OpenCvPreview:
    return OpenCvPreview(320, 240).assign(frame)


def test_extracts_rendered_points_at_subpixel_accuracy():
    cfg = _cfg()
    frame, expected = _rendered_frame(cfg)
    extractor = BlobPointExtractor(cfg)

    points = extractor.extract_points(frame, _preview(frame))
    assert points.shape == (3, 2)
    for e in expected:
        d = np.min(np.linalg.norm(points - e, axis=1))
        assert d < 0.5


def test_auto_threshold_finds_points_on_dark_background():
    cfg = _cfg(auto_threshold=True)
    frame, _ = _rendered_frame(cfg)
    points = BlobPointExtractor(cfg).extract_points(frame, _preview(frame))
    assert points.shape == (3, 2)


def test_point_size_filter_rejects_small_blobs():
    cfg = _cfg(min_point_size=10.0)
    frame, _ = _rendered_frame(cfg)
    points = BlobPointExtractor(cfg).extract_points(frame, _preview(frame))
    assert points.shape == (0, 2)


def test_color_mode_selects_channel():
    frame = Frame()
    frame.mat = np.zeros((480, 640, 3), dtype=np.uint8)
    # Pure blue square (BGR).
    frame.mat[100:110, 200:210, 0] = 255

    red = BlobPointExtractor(_cfg(blob_color="red-only"))
    assert red.extract_points(frame, _preview(frame)).shape == (0, 2)

    blue = BlobPointExtractor(_cfg(blob_color="blue-only"))
    points = blue.extract_points(frame, _preview(frame))
    np.testing.assert_allclose(points, [[204.5, 104.5]])


def test_larger_blobs_come_first():
    frame = Frame()
    frame.mat = np.zeros((480, 640, 3), dtype=np.uint8)
    frame.mat[10:16, 10:16] = 255
    frame.mat[100:120, 300:320] = 255
    points = BlobPointExtractor(_cfg()).extract_points(frame, _preview(frame))
    np.testing.assert_allclose(points[0], [309.5, 109.5])
    np.testing.assert_allclose(points[1], [12.5, 12.5])


def test_apply_settings_updates_threshold():
    extractor = BlobPointExtractor(_cfg())
    extractor.apply_settings(_cfg(threshold=200, blob_color="average"))
    assert extractor.threshold == 200


def test_empty_frame_has_no_points():
    points = BlobPointExtractor(_cfg()).extract_points(Frame(), OpenCvPreview(320, 240))
    assert points.shape == (0, 2)


def test_threshold_radius_scales_with_resolution():
    small = PointExtractor.threshold_radius_value(640, 480, 0)
    assert abs(small - 1.75) < 1e-9
    big = PointExtractor.threshold_radius_value(640, 480, 255)
    assert abs(big - 15.0) < 1e-9


def test_any_preview_receives_blob_marks():
    class _RecordingPreview(Preview):
        def __init__(self):
            super().__init__()
            self.blobs = []

        def draw_blob(self, x, y, radius):
            self.blobs.append((x, y, radius))

    frame, _ = _rendered_frame(_cfg())
    preview = _RecordingPreview()
    points = BlobPointExtractor(_cfg()).extract_points(frame, preview)
    assert len(preview.blobs) == 3
    np.testing.assert_allclose([(x, y) for x, y, _ in preview.blobs], points)


def test_base_preview_ignores_blob_marks():
    assert Preview().draw_blob(10.0, 20.0, 3.0) is None
