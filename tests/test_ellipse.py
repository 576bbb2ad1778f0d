import numpy as np
import pytest

from pose_ekf.utils.ellipse import confidence_scale, covariance_ellipse


def test_axis_aligned_ellipse():
    major, minor, theta = covariance_ellipse(np.diag([4.0, 1.0]))
    assert major == pytest.approx(2.0)
    assert minor == pytest.approx(1.0)
    assert theta == pytest.approx(0.0)


def test_major_axis_along_y():
    major, minor, theta = covariance_ellipse(np.diag([1.0, 9.0]))
    assert (major, minor) == pytest.approx((3.0, 1.0))
    assert abs(theta) == pytest.approx(np.pi / 2)


def test_rotated_ellipse():
    angle = np.deg2rad(30)
    R = np.array([[np.cos(angle), -np.sin(angle)], [np.sin(angle), np.cos(angle)]])
    cov = R.dot(np.diag([25.0, 4.0])).dot(R.T)
    major, minor, theta = covariance_ellipse(cov)
    assert (major, minor) == pytest.approx((5.0, 2.0))
    assert theta == pytest.approx(angle)


def test_isotropic_covariance_has_equal_axes():
    major, minor, theta = covariance_ellipse(np.eye(2))
    assert major == pytest.approx(minor)
    assert -np.pi / 2 < theta <= np.pi / 2


def test_zero_covariance():
    assert covariance_ellipse(np.zeros((2, 2)))[:2] == (0.0, 0.0)


def test_negative_round_off_is_clipped():
    cov = np.array([[1.0, 1.0], [1.0, 1.0 - 1e-15]])
    major, minor, _ = covariance_ellipse(cov)
    assert major == pytest.approx(np.sqrt(2.0))
    assert minor == pytest.approx(0.0, abs=1e-6)
    assert np.isfinite(minor)


def test_rejects_wrong_shape():
    with pytest.raises(ValueError):
        covariance_ellipse(np.eye(3))


def test_confidence_scale():
    assert confidence_scale(0.95) == pytest.approx(2.4477, abs=1e-4)
    with pytest.raises(ValueError):
        confidence_scale(1.0)
