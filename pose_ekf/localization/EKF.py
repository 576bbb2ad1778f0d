#!/usr/bin/env python3
"""
Extended Kalman Filter (EKF) Localization Implementation

This module implements the Extended Kalman Filter for mobile robot localization
with known landmark correspondences, following the algorithm described in
"Probabilistic Robotics" by Thrun, Fox, and Burgard.

References
----------
.. [1] Thrun, S., Fox, D., & Burgard, W. (2005). Probabilistic Robotics.
       MIT Press. Chapter 7, Table 7.2, Page 204.

Notes
-----
The EKF localization algorithm represents beliefs bel(x_t) by their first and
second moments: the mean μ_t and the covariance Σ_t. Each call to
:meth:`LocalizationFilter.update` runs one prediction with the velocity motion
model followed by one sequential correction per observed landmark.
"""

import numpy as np

from pose_ekf.config import FilterConfig
from pose_ekf.localization.measurement_model import MeasurementCorrector, RangeBearingSensor
from pose_ekf.localization.motion_model import MotionPredictor
from pose_ekf.utils.data_utils import build_timeseries
from pose_ekf.utils.ellipse import covariance_ellipse


class LocalizationFilter:
    """
    Extended Kalman Filter for Mobile Robot Localization

    Maintains a Gaussian belief bel(x_t) = N(μ_t, Σ_t) over the robot pose
    x_t = [x, y, θ]^T and updates it once per control tick.

    Algorithm Steps
    --------------
    1. Motion Update (Prediction):
       - μ̄_t = g(u_t, μ_{t-1})
       - Σ̄_t = G_t Σ_{t-1} G_t^T + V_t M_t V_t^T

    2. Measurement Update (Correction), once per landmark, in order:
       - K_t = Σ̄_t H_t^T (H_t Σ̄_t H_t^T + Q_t)^{-1}
       - μ_t = μ̄_t + K_t (z_t - ẑ_t)
       - Σ_t = (I - K_t H_t) Σ̄_t

    The belief is written back only after the whole tick has been computed,
    so an exception in the middle of :meth:`update` leaves the previous state
    untouched.

    Parameters
    ----------
    config : FilterConfig, optional
        Noise coefficients and thresholds (default: ``FilterConfig()``).
    sensor_model : SensorModel, optional
        Expected range/bearing provider (default: ``RangeBearingSensor()``).
    start_time : float, optional
        Timestamp in seconds of the first history row (default: 0.0).

    Attributes
    ----------
    states : numpy.ndarray, shape (T, 4)
        History of estimates [time, x, y, θ], one row per ``set_state`` and
        per ``update``. A row recorded at an unchanged timestamp
        replaces the previous one.
    covariances : numpy.ndarray, shape (T, 3, 3)
        Covariance matching each row of ``states``.

    Examples
    --------
    >>> import numpy as np
    >>> from pose_ekf import Landmark, LocalizationFilter
    >>>
    >>> ekf = LocalizationFilter()
    >>> ekf.set_state(0.0, 0.0, 0.0)
    >>> ekf.update(100.0, 0.0, [], 0.1)
    >>> ekf.mu
    array([10.,  0.,  0.])
    >>>
    >>> landmark = Landmark(100.0, 100.0).with_measurement(134.5, 0.8380)
    >>> ekf.update(100.0, np.pi / 3, [landmark], 0.1)
    >>> major, minor, theta = ekf.pose_ellipse()

    Notes
    -----
    - Data association is solved by the caller: every landmark passed to
      ``update`` already carries its known world position.
    - Landmarks with a near-zero range are treated as not detected.
    - The filter is not thread-safe; use one instance per writer.
    """

    def __init__(self, config=None, sensor_model=None, start_time=0.0):
        self.config = config if config is not None else FilterConfig()
        self.predictor = MotionPredictor(self.config.motion_noise, self.config.epsilon)
        self.corrector = MeasurementCorrector(
            self.config.measurement_noise,
            sensor_model if sensor_model is not None else RangeBearingSensor(),
            epsilon=self.config.epsilon,
            max_condition=self.config.max_condition,
            wrap_bearing_innovation=self.config.wrap_bearing_innovation,
        )
        self.start_time = start_time
        self.initialization()

    def initialization(self):
        """
        Reset the filter to the Uninitialized state.

        The covariance is zeroed and the pose is undefined until
        :meth:`set_state` is called.
        """
        self._mu = None
        self._sigma = np.zeros((3, 3))
        self.timestamp = self.start_time
        self.reset_history()

    def reset_history(self):
        """Drop the recorded trajectory, keeping the current belief."""
        self._states = []
        self._covariances = []
        if self._mu is not None:
            self._record()

    def set_state(self, x, y, yaw):
        """
        Set the pose estimate directly. The covariance is left untouched.

        Parameters
        ----------
        x, y : float
            Position in the world frame.
        yaw : float
            Heading in radians.
        """
        self._mu = np.array([x, y, yaw], dtype=float)
        self._record()

    def update(self, v, w, landmarks, dt):
        """
        Run one predict/correct cycle.

        Parameters
        ----------
        v : float
            Linear velocity command.
        w : float
            Angular velocity command [rad/s].
        landmarks : sequence of Landmark
            Observations for this tick, applied in order. May be empty.
        dt : float
            Time elapsed since the previous update, ``dt >= 0``.

        Raises
        ------
        RuntimeError
            If the pose has not been set with :meth:`set_state`.
        ValueError
            If ``dt`` is negative.
        """
        self._require_pose()

        mu, sigma = self.predictor.predict(self._mu, self._sigma, v, w, dt)
        mu, sigma = self.corrector.correct(mu, sigma, landmarks)

        self._mu = mu
        self._sigma = sigma
        self.timestamp += dt
        self._record()

    def pose_ellipse(self):
        """
        Position uncertainty ellipse in standard-deviation units.

        Returns
        -------
        major, minor, theta : float
            See :func:`pose_ekf.utils.ellipse.covariance_ellipse`. Multiply
            the axes by :func:`pose_ekf.utils.ellipse.confidence_scale` for a
            confidence region.
        """
        return covariance_ellipse(self._sigma[:2, :2])

    @property
    def initialized(self):
        return self._mu is not None

    @property
    def mu(self):
        """Current pose estimate [x, y, θ] (a copy), or None before set_state."""
        return None if self._mu is None else self._mu.copy()

    @property
    def sigma(self):
        """Current 3x3 pose covariance (a copy)."""
        return self._sigma.copy()

    def _require_pose(self):
        if self._mu is None:
            raise RuntimeError("Pose is undefined: call set_state() first")
        return self._mu

    @property
    def x(self):
        return self._require_pose()[0]

    @property
    def y(self):
        return self._require_pose()[1]

    @property
    def yaw(self):
        return self._require_pose()[2]

    @property
    def states(self):
        return np.array(self._states).reshape(-1, 4)

    @property
    def covariances(self):
        return np.array(self._covariances).reshape(-1, 3, 3)

    def _record(self):
        # One row per timestamp: a repeated set_state or a dt=0 update
        # overwrites the latest row
        if self._states and self._states[-1][0] == self.timestamp:
            self._states.pop()
            self._covariances.pop()
        self._states.append([self.timestamp, *self._mu])
        self._covariances.append(self._sigma.copy())

    def build_dataframes(self):
        """
        Convert the recorded trajectory to a pandas DataFrame.

        Returns
        -------
        pandas.DataFrame
            Indexed by datetime (timestamps in seconds), with columns
            ``x, y, theta`` and the 1-sigma position ellipse
            ``major, minor, ellipse_theta`` of every row.
        """
        states = self.states
        ellipses = np.array(
            [covariance_ellipse(cov[:2, :2]) for cov in self.covariances]
        ).reshape(-1, 3)
        self.states_df = build_timeseries(
            states[:, 0],
            np.hstack([states[:, 1:], ellipses]),
            cols=["x", "y", "theta", "major", "minor", "ellipse_theta"],
        )
        return self.states_df
