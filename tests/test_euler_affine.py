import math

import numpy as np
import pytest

from pointtrack.math3d.affine import Affine
from pointtrack.math3d.euler import (
    euler_deg_to_rmat,
    euler_to_rmat,
    orthonormalize,
    rmat_to_euler,
    rmat_to_euler_deg,
)


def test_euler_zero_is_identity():
    np.testing.assert_allclose(euler_to_rmat(0.0, 0.0, 0.0), np.eye(3), atol=1e-12)


def test_yaw_rotates_about_z():
    R = euler_to_rmat(math.pi / 2.0, 0.0, 0.0)
    np.testing.assert_allclose(R @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)


def test_euler_matrix_roundtrip_recovers_angles():
    for yaw, pitch, roll in [(10.0, 20.0, -30.0), (-170.0, 45.0, 5.0), (90.0, -80.0, 120.0)]:
        out = rmat_to_euler_deg(euler_deg_to_rmat(yaw, pitch, roll))
        np.testing.assert_allclose(out, (yaw, pitch, roll), atol=1e-9)


def test_rmat_to_euler_is_finite_at_gimbal_lock():
    R = euler_to_rmat(0.3, math.pi / 2.0, 0.0)
    yaw, pitch, roll = rmat_to_euler(R)
    assert all(math.isfinite(v) for v in (yaw, pitch, roll))
    assert abs(pitch - math.pi / 2.0) < 1e-6


def test_orthonormalize_projects_to_rotation():
    R = euler_deg_to_rmat(15.0, -5.0, 40.0) + 1e-3 * np.arange(9).reshape(3, 3)
    out = orthonormalize(R)
    np.testing.assert_allclose(out @ out.T, np.eye(3), atol=1e-12)
    assert np.linalg.det(out) == pytest.approx(1.0)


def test_orthonormalize_rejects_wrong_shape():
    with pytest.raises(ValueError):
        orthonormalize(np.eye(2))


def test_affine_compose_and_inverse():
    a = Affine(euler_deg_to_rmat(30.0, 0.0, 0.0), [1.0, 2.0, 3.0])
    b = Affine(euler_deg_to_rmat(0.0, 10.0, 0.0), [0.0, 0.0, 5.0])
    p = np.array([0.5, -1.0, 2.0])

    np.testing.assert_allclose((a * b).apply(p), a.apply(b.apply(p)), atol=1e-12)

    ident = a * a.inv()
    np.testing.assert_allclose(ident.R, np.eye(3), atol=1e-12)
    np.testing.assert_allclose(ident.t, np.zeros(3), atol=1e-12)


def test_affine_copy_is_independent():
    a = Affine(t=[1.0, 2.0, 3.0])
    b = a.copy()
    b.t[0] = 10.0
    assert a.t[0] == 1.0


def test_affine_is_finite():
    assert Affine().is_finite()
    assert not Affine(t=[np.nan, 0.0, 0.0]).is_finite()
