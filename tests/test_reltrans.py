import numpy as np
import pytest

from pointtrack.control.reltrans import RampPhase, Reltrans, looking_behind, wrap_deg
from pointtrack.math3d.euler import euler_deg_to_rmat

NO_DISABLE = (False, False, False)


class _Clock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_rotate_identity_keeps_translation():
    xyz = np.array([1.0, -2.0, 3.0])
    out = Reltrans.rotate(np.eye(3), xyz, False, False, False)
    np.testing.assert_allclose(out, xyz, atol=1e-12)


def test_rotate_respects_disabled_axes():
    xyz = np.array([1.0, -2.0, 3.0])
    R = euler_deg_to_rmat(40.0, 10.0, 0.0)
    out = Reltrans.rotate(R, xyz, True, True, True)
    np.testing.assert_allclose(out, xyz)


def test_rotate_preserves_length():
    xyz = np.array([4.0, 1.0, -3.0])
    out = Reltrans.rotate(euler_deg_to_rmat(30.0, -20.0, 15.0), xyz, False, False, False)
    assert np.linalg.norm(out) == pytest.approx(np.linalg.norm(xyz))


def test_looking_behind_zone():
    assert looking_behind(40.0, 0.0)
    assert not looking_behind(40.0, 30.0)
    assert looking_behind(-70.0, 30.0)
    assert not looking_behind(10.0, 0.0)


def test_wrap_deg():
    np.testing.assert_allclose(wrap_deg([190.0, -190.0, 45.0]), [-170.0, 170.0, 45.0])


def test_ramp_interpolates_from_last_output():
    clock = _Clock()
    rel = Reltrans(interp_time_s=1.0, clock=clock)
    v0 = np.array([0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
    v1 = np.array([10.0, 0.0, -4.0, 20.0, 0.0, 0.0])

    np.testing.assert_allclose(rel.apply_pipeline(False, v0, NO_DISABLE), v0)
    assert rel.start_transition()
    assert rel.phase is RampPhase.INTERPOLATING

    clock.t = 0.5
    np.testing.assert_allclose(rel.apply_pipeline(False, v1, NO_DISABLE), v1 * 0.5)

    clock.t = 1.5
    np.testing.assert_allclose(rel.apply_pipeline(False, v1, NO_DISABLE), v1)
    assert rel.phase is RampPhase.SETTLED


def test_new_ramp_ignored_while_interpolating():
    clock = _Clock()
    rel = Reltrans(interp_time_s=1.0, clock=clock)
    rel.apply_pipeline(False, np.zeros(6), NO_DISABLE)
    assert rel.start_transition()
    clock.t = 0.2
    assert not rel.start_transition()


def test_ramp_takes_short_way_around_for_angles():
    clock = _Clock()
    rel = Reltrans(interp_time_s=1.0, clock=clock)
    start = np.array([0.0, 0.0, 0.0, 170.0, 0.0, 0.0])
    target = np.array([0.0, 0.0, 0.0, -170.0, 0.0, 0.0])
    rel.apply_pipeline(False, start, NO_DISABLE)
    rel.start_transition()
    clock.t = 0.5
    out = rel.apply_pipeline(False, target, NO_DISABLE)
    assert abs(abs(out[3]) - 180.0) < 1e-9


def test_switching_compensation_off_starts_ramp():
    clock = _Clock()
    rel = Reltrans(interp_time_s=1.0, clock=clock)
    value = np.array([1.0, 2.0, 3.0, 30.0, 0.0, 0.0])
    rel.apply_pipeline(True, value, NO_DISABLE)
    assert rel.phase is RampPhase.IDLE
    rel.apply_pipeline(False, value, NO_DISABLE)
    assert rel.phase is RampPhase.INTERPOLATING


def test_only_in_zone_leaves_translation_when_facing_forward():
    rel = Reltrans(interp_time_s=1.0, only_in_zone=True, clock=_Clock())
    value = np.array([1.0, 2.0, 3.0, 10.0, 0.0, 0.0])
    np.testing.assert_allclose(rel.apply_pipeline(True, value, NO_DISABLE), value)
    assert not rel.in_zone


def test_interp_time_must_be_positive():
    with pytest.raises(ValueError):
        Reltrans(interp_time_s=0.0)
