#!/usr/bin/env python3
"""
Range-Bearing Measurement Model (EKF correction step)

This module implements the correction half of EKF localization with known
correspondences. Each landmark observation is folded into the belief by its
own Kalman update, in the order the observations are given, and each update
is linearized around the mean produced by the previous one.

References
----------
.. [1] Thrun, S., Fox, D., & Burgard, W. (2005). Probabilistic Robotics.
       MIT Press. Chapter 7, Table 7.2, Lines 8-20.

Notes
-----
Sequential updates are equivalent to a joint update only when the
measurement noise of different landmarks is independent and the model is
linear. For the EKF the result depends on the observation order, which is
therefore preserved exactly.
"""

import logging
from typing import Protocol, Tuple

import numpy as np

from pose_ekf.config import MeasurementNoiseParams
from pose_ekf.utils.angles import constrain_angle

logger = logging.getLogger(__name__)


class SensorModel(Protocol):
    """
    Capability that predicts the measurement of a landmark from a pose.

    Bearing is the angle of the landmark relative to the robot's forward
    axis, so that ∂bearing/∂θ = -1.
    """

    def expected_range_bearing(self, landmark, x, y, yaw) -> Tuple[float, float]:
        ...


class RangeBearingSensor:
    """
    Exact range-bearing geometry.

        r = √((m_x - x)² + (m_y - y)²)
        φ = atan2(m_y - y, m_x - x) - θ      (wrapped into (-π, π])
    """

    def expected_range_bearing(self, landmark, x, y, yaw):
        dx = landmark.x - x
        dy = landmark.y - y
        return np.hypot(dx, dy), constrain_angle(np.arctan2(dy, dx) - yaw)


class MeasurementCorrector:
    """
    Sequential EKF correction with range-bearing observations.

    Mathematical Foundation
    ----------------------
    For each landmark with measured z = [r, φ]:

        ẑ = h(μ̄, m)                    expected measurement
        H = ∂h/∂x evaluated at μ̄       (2 x 3)
        Q = diag((r α_r)², σ_φ²)
        S = H Σ̄ Hᵀ + Q
        K = Σ̄ Hᵀ S⁻¹
        μ = μ̄ + K (z - ẑ)
        Σ = (I - K H) Σ̄

    Parameters
    ----------
    measurement_noise : MeasurementNoiseParams, optional
        Range-proportional coefficient and bearing standard deviation.
    sensor_model : SensorModel, optional
        Source of expected measurements (default: ``RangeBearingSensor()``).
    epsilon : float, optional
        Observations with ``|range| <= epsilon`` are skipped.
    max_condition : float, optional
        Innovation covariances with a larger condition number are rejected
        (measured on S scaled to unit diagonal).
    wrap_bearing_innovation : bool, optional
        Wrap the bearing innovation into (-π, π] (default: False, the raw
        difference is used).
    """

    def __init__(
        self,
        measurement_noise=None,
        sensor_model=None,
        epsilon=1e-4,
        max_condition=1e12,
        wrap_bearing_innovation=False,
    ):
        self.measurement_noise = (
            measurement_noise if measurement_noise is not None else MeasurementNoiseParams()
        )
        self.sensor_model = sensor_model if sensor_model is not None else RangeBearingSensor()
        self.epsilon = epsilon
        self.max_condition = max_condition
        self.wrap_bearing_innovation = wrap_bearing_innovation

    def jacobian(self, landmark, mu, expected_range):
        """
        Measurement Jacobian H = ∂(r, φ)/∂(x, y, θ).

        Linearized with the expected range ``r̂`` (not the measured one):

                -(m_x - x)/r̂    -(m_y - y)/r̂     0
          H  =   (m_y - y)/r̂²   -(m_x - x)/r̂²   -1
        """
        dx = landmark.x - mu[0]
        dy = landmark.y - mu[1]
        q = expected_range * expected_range
        return np.array(
            [
                [-dx / expected_range, -dy / expected_range, 0.0],
                [dy / q, -dx / q, -1.0],
            ]
        )

    def noise_covariance(self, measured_range):
        """Q = diag((measured_range * range_alpha)², bearing_sigma²)."""
        return np.diag(
            [
                (measured_range * self.measurement_noise.range_alpha) ** 2,
                self.measurement_noise.bearing_sigma ** 2,
            ]
        )

    def condition_number(self, S):
        """
        Condition number of S after scaling it to unit diagonal.

        S mixes range² and rad² entries, so its raw condition number depends
        on the world units. The scaled matrix D S D, with D = diag(S)^(-1/2),
        is the correlation matrix of the innovation and is unit-free.
        """
        diagonal = np.diag(S)
        if not np.all(np.isfinite(diagonal)) or np.any(diagonal <= 0):
            raise np.linalg.LinAlgError(f"non-positive innovation variance {diagonal}")
        scale = 1.0 / np.sqrt(diagonal)
        return np.linalg.cond(S * np.outer(scale, scale))

    def correct_one(self, mu, sigma, landmark):
        """
        Fold a single observation into the belief.

        Parameters
        ----------
        mu : numpy.ndarray, shape (3,)
            Current pose estimate.
        sigma : numpy.ndarray, shape (3, 3)
            Current covariance.
        landmark : Landmark
            Known landmark carrying the measured range and bearing.

        Returns
        -------
        mu : numpy.ndarray, shape (3,)
        sigma : numpy.ndarray, shape (3, 3)
        applied : bool
            False when the observation was skipped, in which case ``mu`` and
            ``sigma`` are the inputs unchanged.
        """
        # Range ~ 0 means "not detected"
        if abs(landmark.range) <= self.epsilon:
            logger.debug(f"Skipping landmark at {landmark.position}: range {landmark.range}")
            return mu, sigma, False

        # ---------------- Step 1: Expected measurement ---------------#
        range_expected, bearing_expected = self.sensor_model.expected_range_bearing(
            landmark, mu[0], mu[1], mu[2]
        )

        # -------- Step 2: Linearize Measurement by Jacobian ----------#
        H = self.jacobian(landmark, mu, range_expected)
        Q = self.noise_covariance(landmark.range)

        # ---------------- Step 3: Kalman gain update -----------------#
        S = H.dot(sigma).dot(H.T) + Q
        try:
            condition = self.condition_number(S)
            if not np.isfinite(condition) or condition > self.max_condition:
                raise np.linalg.LinAlgError(f"condition number {condition:.3g}")
            K = sigma.dot(H.T).dot(np.linalg.inv(S))
        except np.linalg.LinAlgError as err:
            logger.warning(
                f"Skipping landmark at {landmark.position}: "
                f"innovation covariance is singular or ill-conditioned ({err})"
            )
            return mu, sigma, False

        # ------------------- Step 4: mean update ---------------------#
        difference = np.array(
            [landmark.range - range_expected, landmark.bearing - bearing_expected]
        )
        if self.wrap_bearing_innovation:
            difference[1] = constrain_angle(difference[1])
        mu = mu + K.dot(difference)
        mu[2] = constrain_angle(mu[2])

        # ---------------- Step 5: covariance update ------------------#
        sigma = (np.identity(3) - K.dot(H)).dot(sigma)
        sigma = 0.5 * (sigma + sigma.T)

        return mu, sigma, True

    def correct(self, mu, sigma, landmarks):
        """
        Apply every observation sequentially, in input order.

        Returns
        -------
        mu : numpy.ndarray, shape (3,)
        sigma : numpy.ndarray, shape (3, 3)
        """
        mu = np.array(mu, dtype=float)
        sigma = np.array(sigma, dtype=float)
        for landmark in landmarks:
            mu, sigma, _ = self.correct_one(mu, sigma, landmark)
        return mu, sigma
