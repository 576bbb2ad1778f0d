import numpy as np
import pytest
from numpy.testing import assert_allclose

from conftest import assert_symmetric_psd
from pose_ekf import FilterConfig, Landmark, LocalizationFilter
from pose_ekf.localization.motion_model import MotionPredictor


def test_starts_uninitialized():
    ekf = LocalizationFilter()
    assert not ekf.initialized
    assert ekf.mu is None
    assert_allclose(ekf.sigma, np.zeros((3, 3)))
    assert ekf.pose_ellipse()[:2] == (0.0, 0.0)
    with pytest.raises(RuntimeError):
        ekf.update(1.0, 0.0, [], 0.1)
    for accessor in ("x", "y", "yaw"):
        with pytest.raises(RuntimeError):
            getattr(ekf, accessor)


def test_set_state_keeps_covariance(ekf):
    ekf.update(100.0, 0.0, [], 0.1)
    sigma = ekf.sigma
    ekf.set_state(1.0, 2.0, 0.5)
    assert_allclose(ekf.mu, [1.0, 2.0, 0.5])
    assert (ekf.x, ekf.y, ekf.yaw) == (1.0, 2.0, 0.5)
    assert_allclose(ekf.sigma, sigma, rtol=0, atol=0)


def test_straight_line_tick(ekf):
    ekf.update(100.0, 0.0, [], 0.1)

    assert_allclose(ekf.mu, [10.0, 0.0, 0.0])
    V = np.array([[0.1, 0.0], [0.0, 0.5], [0.0, 0.1]])
    M = np.diag([(0.1 * 100.0) ** 2, (0.0001 * 100.0) ** 2])
    assert_allclose(ekf.sigma, V.dot(M).dot(V.T))


def test_no_landmarks_matches_prediction_exactly(config):
    ekf = LocalizationFilter(config)
    ekf.set_state(5.0, -3.0, 1.2)
    predictor = MotionPredictor(config.motion_noise, config.epsilon)
    mu, sigma = ekf.mu, ekf.sigma
    for v, w in [(100.0, 0.3), (80.0, 0.0), (50.0, -1.0)]:
        mu, sigma = predictor.predict(mu, sigma, v, w, 0.1)
        ekf.update(v, w, [], 0.1)
        assert_allclose(ekf.mu, mu, rtol=0, atol=0)
        assert_allclose(ekf.sigma, sigma, rtol=0, atol=0)


def test_exact_observation_keeps_mean_and_shrinks_covariance(ekf, observe):
    predictor = MotionPredictor(ekf.config.motion_noise, ekf.config.epsilon)
    mu_bar, sigma_bar = predictor.predict(ekf.mu, ekf.sigma, 100.0, 0.0, 0.1)
    landmark = observe(Landmark(100.0, 100.0), *mu_bar)

    ekf.update(100.0, 0.0, [landmark], 0.1)

    assert_allclose(ekf.mu, mu_bar, atol=1e-12)
    assert np.trace(ekf.sigma) < np.trace(sigma_bar)
    assert np.max(np.linalg.eigvalsh(ekf.sigma - sigma_bar)) <= 1e-12


def test_skipped_landmark_leaves_prediction(ekf):
    predictor = MotionPredictor(ekf.config.motion_noise, ekf.config.epsilon)
    mu_bar, sigma_bar = predictor.predict(ekf.mu, ekf.sigma, 100.0, 0.5, 0.1)

    ekf.update(100.0, 0.5, [Landmark(100.0, 100.0, range=0.0, bearing=1.0)], 0.1)

    assert_allclose(ekf.mu, mu_bar, rtol=0, atol=0)
    assert_allclose(ekf.sigma, sigma_bar, rtol=0, atol=0)


def test_failed_update_keeps_previous_state(ekf):
    ekf.update(100.0, 0.0, [], 0.1)
    mu, sigma, rows = ekf.mu, ekf.sigma, len(ekf.states)
    with pytest.raises(ValueError):
        ekf.update(100.0, 0.0, [], -0.1)
    assert_allclose(ekf.mu, mu, rtol=0, atol=0)
    assert_allclose(ekf.sigma, sigma, rtol=0, atol=0)
    assert len(ekf.states) == rows


def test_tracks_circular_motion(world_landmarks, observe):
    """Closed-loop run: a robot driving in a circle seen through noisy sensors."""
    rng = np.random.default_rng(7)
    # Landmarks can be seen right behind the robot, where a noisy bearing
    # may cross ±π
    config = FilterConfig(wrap_bearing_innovation=True)
    ekf = LocalizationFilter(config)
    truth = np.array([300.0, 150.0, 0.0])
    ekf.set_state(*truth)

    v, w, dt = 100.0, np.pi / 3, 0.1
    predictor = MotionPredictor(config.motion_noise, config.epsilon)
    for _ in range(200):
        truth, _ = predictor.predict(truth, np.zeros((3, 3)), v, w, dt)
        observations = []
        for landmark in world_landmarks:
            seen = observe(landmark, *truth)
            if seen.range > 200:
                continue
            observations.append(
                seen.with_measurement(
                    seen.range + rng.normal(0, 0.02 * seen.range),
                    seen.bearing + rng.normal(0, np.deg2rad(1)),
                )
            )
        v_noisy = v + rng.normal(0, 5.0)
        w_noisy = w + rng.normal(0, 0.05)
        ekf.update(v_noisy, w_noisy, observations, dt)
        assert_symmetric_psd(ekf.sigma, tol=1e-7)
        assert -np.pi < ekf.yaw <= np.pi

    assert np.hypot(ekf.x - truth[0], ekf.y - truth[1]) < 25.0
    major, minor, _ = ekf.pose_ellipse()
    assert major >= minor > 0


def test_history_and_dataframes(ekf):
    for _ in range(5):
        ekf.update(100.0, 0.2, [], 0.1)

    assert ekf.states.shape == (6, 4)
    assert ekf.covariances.shape == (6, 3, 3)
    assert_allclose(ekf.states[:, 0], np.arange(6) * 0.1, atol=1e-12)
    assert_allclose(ekf.states[-1, 1:], ekf.mu)

    df = ekf.build_dataframes()
    assert list(df.columns) == ["x", "y", "theta", "major", "minor", "ellipse_theta"]
    assert len(df) == 6
    assert df["major"].iloc[0] == 0.0
    assert df["major"].iloc[-1] == pytest.approx(ekf.pose_ellipse()[0])

    ekf.reset_history()
    assert ekf.states.shape == (1, 4)


def test_repeated_set_state_replaces_history_row(ekf):
    ekf.set_state(5.0, 5.0, 1.0)
    ekf.set_state(7.0, -2.0, 0.5)
    assert_allclose(ekf.states, [[0.0, 7.0, -2.0, 0.5]])
    assert ekf.covariances.shape == (1, 3, 3)

    ekf.update(100.0, 0.0, [], 0.1)
    ekf.update(100.0, 0.0, [], 0.0)
    df = ekf.build_dataframes()
    assert len(df) == 2
    assert df.index.is_unique
    assert df["x"].iloc[-1] == pytest.approx(ekf.x)


def test_start_time_offsets_history():
    ekf = LocalizationFilter(start_time=1000.0)
    ekf.set_state(0.0, 0.0, 0.0)
    ekf.update(1.0, 0.0, [], 0.5)
    assert_allclose(ekf.states[:, 0], [1000.0, 1000.5])


def test_wrap_bearing_innovation_flag_reaches_corrector():
    ekf = LocalizationFilter(FilterConfig(wrap_bearing_innovation=True))
    assert ekf.corrector.wrap_bearing_innovation is True


def test_injected_sensor_model_is_used():
    class Recorder:
        def __init__(self):
            self.poses = []

        def expected_range_bearing(self, landmark, x, y, yaw):
            self.poses.append((x, y, yaw))
            return 50.0, 0.0

    recorder = Recorder()
    ekf = LocalizationFilter(sensor_model=recorder)
    ekf.set_state(0.0, 0.0, 0.0)
    ekf.update(100.0, 0.0, [Landmark(60.0, 0.0, range=50.0, bearing=0.0)], 0.1)
    assert recorder.poses == [pytest.approx((10.0, 0.0, 0.0))]
