import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from pose_ekf import FilterConfig, Landmark, LocalizationFilter, RangeBearingSensor


@pytest.fixture
def config():
    return FilterConfig()


@pytest.fixture
def ekf(config):
    f = LocalizationFilter(config)
    f.set_state(0.0, 0.0, 0.0)
    return f


@pytest.fixture
def sensor():
    return RangeBearingSensor()


@pytest.fixture
def observe(sensor):
    """Attach the exact measurement seen from (x, y, yaw) to a landmark."""

    def _observe(landmark, x, y, yaw):
        r, b = sensor.expected_range_bearing(landmark, x, y, yaw)
        return landmark.with_measurement(r, b)

    return _observe


@pytest.fixture
def world_landmarks():
    return [
        Landmark(100, 100),
        Landmark(500, 100),
        Landmark(500, 500),
        Landmark(100, 500),
        Landmark(300, 300),
    ]


def assert_symmetric_psd(sigma, tol=1e-9):
    assert np.max(np.abs(sigma - sigma.T)) < tol
    assert np.min(np.linalg.eigvalsh(sigma)) >= -tol
