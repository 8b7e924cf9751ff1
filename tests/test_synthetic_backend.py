import dataclasses
import math

import numpy as np
import pytest

from pointtrack.backends import BACKENDS, make_runtime_traits
from pointtrack.backends.synthetic import SyntheticCamera, SyntheticRuntimeTraits, swaying_pose
from pointtrack.config import AppConfig
from pointtrack.control.pipeline import Pipeline
from pointtrack.control.pose import Axis
from pointtrack.tracker.api import CameraOpenStatus, Frame
from pointtrack.tracker.point_model import PointModel
from pointtrack.tracker.tracker import Tracker


def _cfg(**overrides) -> AppConfig:
    base = AppConfig(
        backend="synthetic",
        model="cap",
        synthetic_period_s=0.0,
        synthetic_distance_mm=600.0,
        auto_threshold=False,
        threshold=128,
    )
    return dataclasses.replace(base, **overrides)


class _Clock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_make_runtime_traits_picks_backend():
    assert set(BACKENDS) == {"opencv", "synthetic"}
    traits = make_runtime_traits(_cfg())
    assert isinstance(traits, SyntheticRuntimeTraits)
    assert traits.get_module_name() == "synthetic"


def test_make_runtime_traits_rejects_unknown_backend():
    with pytest.raises(RuntimeError):
        make_runtime_traits(_cfg(backend="kinect"))


def test_swaying_pose_turns_about_vertical_axis():
    pose_at = swaying_pose(600.0, 20.0, 4.0)
    still = pose_at(0.0)
    np.testing.assert_allclose(still.R, np.eye(3), atol=1e-12)
    np.testing.assert_allclose(still.t, [0.0, 0.0, 600.0])

    peak = pose_at(1.0)
    # Quarter period: full turn, vertical axis unchanged.
    np.testing.assert_allclose(peak.R[:, 1], [0.0, 1.0, 0.0], atol=1e-12)
    assert math.degrees(math.atan2(peak.R[0, 2], peak.R[0, 0])) == pytest.approx(20.0)


def test_synthetic_camera_start_and_frames():
    clock = _Clock()
    camera = SyntheticCamera(
        PointModel.from_config(_cfg()),
        swaying_pose(600.0, 0.0, 0.0),
        clock=clock,
        sleep=lambda s: None,
    )
    assert not camera
    assert camera.start(0, 30, 0, 480) == CameraOpenStatus.ERROR

    camera.set_fov(56.0)
    assert camera.start(0, 30, 640, 480) == CameraOpenStatus.OK_CHANGE
    assert camera.start(0, 30, 640, 480) == CameraOpenStatus.OK_NO_CHANGE
    assert camera

    frame = Frame()
    ok, info = camera.get_frame(frame)
    assert ok
    assert frame.size() == (640, 480)
    assert info.res_x == 640 and info.fov == 56.0
    assert frame.mat.max() == 255

    camera.stop()
    ok, _ = camera.get_frame(frame)
    assert not ok


def test_tracker_end_to_end_on_rendered_points():
    cfg = _cfg()
    tracker = Tracker(SyntheticRuntimeTraits(cfg), cfg)
    assert tracker.maybe_reopen_camera() == CameraOpenStatus.OK_CHANGE
    assert tracker.step()

    assert tracker.get_n_points() == 3
    assert tracker.ever_success
    data = tracker.data()
    assert np.isfinite(data).all()
    assert data[Axis.TZ] > 0.0
    tracker.close()


def test_pipeline_on_synthetic_tracker_centers_to_zero():
    cfg = _cfg()
    tracker = Tracker(SyntheticRuntimeTraits(cfg), cfg)
    tracker.maybe_reopen_camera()
    tracker.step()

    clock = _Clock()
    pipeline = Pipeline(tracker, interp_time_s=0.5, clock=clock)
    pipeline.center()
    pipeline.tick()
    # Centering resets the fit; the next frame re-initializes it.
    tracker.step()
    clock.t += 1.0
    pipeline.tick()
    mapped, raw = pipeline.raw_and_mapped_pose()
    assert np.isfinite(raw).all()
    np.testing.assert_allclose(mapped, np.zeros(6), atol=1e-3)
    tracker.close()
