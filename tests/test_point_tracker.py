import math
from types import SimpleNamespace

import numpy as np

from pointtrack.math3d.affine import Affine
from pointtrack.math3d.euler import euler_to_rmat
from pointtrack.tracker.api import CameraInfo
from pointtrack.tracker.point_model import PointModel
from pointtrack.tracker.point_tracker import PointTracker

INFO = CameraInfo(fov=56.0, fps=30.0, res_x=640, res_y=480, idx=0)


class _Clock:
    def __init__(self):
        self.t = 100.0

    def __call__(self):
        return self.t


def _cap_model() -> PointModel:
    cfg = SimpleNamespace(model="cap", cap_x=40.0, cap_y=60.0, cap_z=100.0)
    return PointModel.from_config(cfg)


def _project(X_CM: Affine, model: PointModel, info: CameraInfo) -> np.ndarray:
    f = info.get_focal_length()
    out = []
    for M in model.points():
        p = X_CM.apply(M)
        out.append((f * p[0] / p[2] + info.res_x * 0.5, info.res_y * 0.5 - f * p[1] / p[2]))
    return np.array(out, dtype=np.float64)


def _true_pose() -> Affine:
    return Affine(euler_to_rmat(0.0, math.radians(10.0), 0.0), [20.0, -10.0, 600.0])


def test_focal_length_from_diagonal_fov():
    f = INFO.get_focal_length()
    diag = math.hypot(640, 480)
    expected = (diag * 0.5) / math.tan(math.radians(56.0) * 0.5)
    assert abs(f - expected) < 1e-6
    assert CameraInfo(fov=56.0, res_x=0, res_y=480).get_focal_length() == 0.0
    assert CameraInfo(fov=0.0, res_x=640, res_y=480).get_focal_length() == 0.0


def test_model_shapes_from_config():
    clip = PointModel.from_config(
        SimpleNamespace(model="clip", clip_ty=40.0, clip_tz=30.0, clip_by=70.0, clip_bz=80.0)
    )
    np.testing.assert_allclose(clip.M01, [0.0, 40.0, -30.0])
    np.testing.assert_allclose(clip.M02, [0.0, -70.0, -80.0])

    cap = _cap_model()
    np.testing.assert_allclose(cap.M01, [-40.0, -60.0, -100.0])
    np.testing.assert_allclose(cap.M02, [40.0, -60.0, -100.0])
    np.testing.assert_allclose(cap.points()[0], np.zeros(3))


def test_track_fits_pose_that_reprojects_points():
    model = _cap_model()
    points = _project(_true_pose(), model, INFO)

    pt = PointTracker(clock=_Clock())
    assert pt.track(points, model, INFO, init_phase_timeout_ms=250)

    fitted = pt.pose()
    assert fitted.t[2] > 0.0
    np.testing.assert_allclose(_project(fitted, model, INFO), points, atol=0.05)


def test_track_is_deterministic():
    model = _cap_model()
    points = _project(_true_pose(), model, INFO)

    a = PointTracker(clock=_Clock())
    b = PointTracker(clock=_Clock())
    assert a.track(points, model, INFO, 250)
    assert b.track(points, model, INFO, 250)
    np.testing.assert_allclose(a.pose().R, b.pose().R)
    np.testing.assert_allclose(a.pose().t, b.pose().t)


def test_initial_correspondence_ignores_input_order():
    model = _cap_model()
    points = _project(_true_pose(), model, INFO)

    a = PointTracker(clock=_Clock())
    b = PointTracker(clock=_Clock())
    assert a.track(points, model, INFO, 250)
    assert b.track(points[[2, 0, 1]], model, INFO, 250)
    np.testing.assert_allclose(a.pose().t, b.pose().t, atol=1e-6)


def test_previous_pose_matching_within_timeout():
    model = _cap_model()
    clock = _Clock()
    pt = PointTracker(clock=clock)
    points = _project(_true_pose(), model, INFO)
    assert pt.track(points, model, INFO, 250)

    moved = Affine(euler_to_rmat(0.0, math.radians(12.0), 0.0), [22.0, -10.0, 605.0])
    moved_points = _project(moved, model, INFO)
    clock.t += 0.03
    assert pt.track(moved_points[[1, 2, 0]], model, INFO, 250)
    np.testing.assert_allclose(_project(pt.pose(), model, INFO), moved_points, atol=0.05)


def test_too_few_points_keeps_previous_pose():
    model = _cap_model()
    pt = PointTracker(clock=_Clock())
    points = _project(_true_pose(), model, INFO)
    assert pt.track(points, model, INFO, 250)
    before = pt.pose()

    assert not pt.track(points[:2], model, INFO, 250)
    np.testing.assert_allclose(pt.pose().t, before.t)
    np.testing.assert_allclose(pt.pose().R, before.R)


def test_degenerate_model_or_unknown_focal_length_fails():
    pts = np.array([[300.0, 200.0], [340.0, 260.0], [280.0, 270.0]])
    degenerate = PointModel(np.zeros(3), np.zeros(3))
    assert not PointTracker(clock=_Clock()).track(pts, degenerate, INFO, 250)

    no_fov = CameraInfo(fov=0.0, fps=30.0, res_x=640, res_y=480)
    assert not PointTracker(clock=_Clock()).track(pts, _cap_model(), no_fov, 250)


def test_d_order_sorts_along_model_direction():
    model = _cap_model()
    # d points along -x for the cap, so the rightmost point comes first.
    order = model.get_d_order(np.array([[-10.0, 0.0], [30.0, 0.0], [0.0, 5.0]]))
    assert list(order) == [1, 2, 0]
