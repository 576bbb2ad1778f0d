#!/usr/bin/env python3
"""
Velocity Motion Model (EKF prediction step)

This module implements the prediction half of EKF localization: the velocity
motion model of "Probabilistic Robotics" linearized around the current pose,
with the control noise mapped into state space through the control Jacobian.

References
----------
.. [1] Thrun, S., Burgard, W., & Fox, D. (2005). Probabilistic Robotics.
       MIT Press. Chapter 7, Table 7.2, Page 204.

Notes
-----
The closed-form arc Jacobians divide by the angular velocity w. For
|w| <= epsilon the straight-line limit (L'Hôpital, w -> 0) is used instead,
so the linearization stays finite and continuous across the threshold.
"""

import numpy as np

from pose_ekf.config import MotionNoiseParams
from pose_ekf.utils.angles import constrain_angle


class MotionPredictor:
    """
    EKF prediction with the velocity (unicycle) motion model.

    Mathematical Foundation
    ----------------------
    Motion model (regular case, |w| > ε):
        x' = x - (v/w) sin θ + (v/w) sin(θ + w Δt)
        y' = y + (v/w) cos θ - (v/w) cos(θ + w Δt)
        θ' = θ + w Δt

    Straight-line limit (|w| <= ε):
        x' = x + v cos θ Δt
        y' = y + v sin θ Δt
        θ' = θ

    Covariance propagation:
        Σ' = G Σ Gᵀ + V M Vᵀ

    where G = ∂g/∂x is the state Jacobian, V = ∂g/∂u the control Jacobian
    and M the control noise covariance.

    Parameters
    ----------
    motion_noise : MotionNoiseParams, optional
        Noise coefficients α1..α4 (default: ``MotionNoiseParams()``).
    epsilon : float, optional
        Angular velocity threshold below which the straight-line model is
        used (default: 1e-4).

    Examples
    --------
    >>> predictor = MotionPredictor()
    >>> mu, sigma = predictor.predict(np.zeros(3), np.zeros((3, 3)), 100.0, 0.0, 0.1)
    >>> mu
    array([10.,  0.,  0.])
    """

    def __init__(self, motion_noise=None, epsilon=1e-4):
        self.motion_noise = motion_noise if motion_noise is not None else MotionNoiseParams()
        self.epsilon = epsilon

    def noise_covariance(self, v, w):
        """
        Control noise covariance M.

        Parameters
        ----------
        v : float
            Linear velocity command.
        w : float
            Angular velocity command.

        Returns
        -------
        numpy.ndarray, shape (2, 2)
            diag((α1|v| + α2|w|)², (α3|v| + α4|w|)²)
        """
        a = self.motion_noise
        M = np.zeros((2, 2))
        M[0][0] = (a.alpha1 * abs(v) + a.alpha2 * abs(w)) ** 2
        M[1][1] = (a.alpha3 * abs(v) + a.alpha4 * abs(w)) ** 2
        return M

    def is_singular(self, w):
        return abs(w) <= self.epsilon

    def jacobians(self, theta, v, w, dt):
        """
        Linearize the motion model around heading ``theta``.

        Parameters
        ----------
        theta : float
            Heading of the previous pose estimate.
        v, w : float
            Linear and angular velocity commands.
        dt : float
            Elapsed time.

        Returns
        -------
        G : numpy.ndarray, shape (3, 3)
            Jacobian with respect to the previous pose.
        V : numpy.ndarray, shape (3, 2)
            Jacobian with respect to the control (v, w).
        """
        G = np.identity(3)
        V = np.zeros((3, 2))
        sin_t = np.sin(theta)
        cos_t = np.cos(theta)

        if not self.is_singular(w):
            # Jacobian of the arc:
            #         1  0  -(v/w)cosθ + (v/w)cos(θ + wΔt)
            #   G  =  0  1  -(v/w)sinθ + (v/w)sin(θ + wΔt)
            #         0  0                1
            sin_tw = np.sin(theta + w * dt)
            cos_tw = np.cos(theta + w * dt)
            G[0][2] = -(v / w) * cos_t + (v / w) * cos_tw
            G[1][2] = -(v / w) * sin_t + (v / w) * sin_tw

            V[0][0] = (-sin_t + sin_tw) / w
            V[1][0] = (cos_t - cos_tw) / w
            V[0][1] = v * (sin_t - sin_tw) / (w * w) + v * cos_tw * dt / w
            V[1][1] = -v * (cos_t - cos_tw) / (w * w) + v * sin_tw * dt / w
        else:
            # Limit w -> 0:
            #         1  0  -v Δt sinθ             cosθ Δt   -v sinθ Δt²/2
            #   G  =  0  1   v Δt cosθ       V  =  sinθ Δt    v cosθ Δt²/2
            #         0  0       1                    0            Δt
            G[0][2] = -v * sin_t * dt
            G[1][2] = v * cos_t * dt

            V[0][0] = cos_t * dt
            V[1][0] = sin_t * dt
            V[0][1] = -v * sin_t * dt * dt * 0.5
            V[1][1] = v * cos_t * dt * dt * 0.5
        V[2][1] = dt

        return G, V

    def predict(self, mu, sigma, v, w, dt):
        """
        Perform the EKF motion update (prediction step).

        Parameters
        ----------
        mu : array_like, shape (3,)
            Previous pose estimate [x, y, θ].
        sigma : array_like, shape (3, 3)
            Previous pose covariance.
        v : float
            Linear velocity command.
        w : float
            Angular velocity command.
        dt : float
            Elapsed time, ``dt >= 0``. With ``dt == 0`` the pose is unchanged
            and so is the covariance.

        Returns
        -------
        mu_bar : numpy.ndarray, shape (3,)
            Predicted pose, heading wrapped into (-π, π].
        sigma_bar : numpy.ndarray, shape (3, 3)
            Predicted covariance.

        Raises
        ------
        ValueError
            If ``dt`` is negative.

        References
        ----------
        Table 7.2, Lines 2-7 in "Probabilistic Robotics"
        """
        if dt < 0:
            raise ValueError(f"Elapsed time must be >= 0, got dt={dt}")
        mu = np.asarray(mu, dtype=float)
        sigma = np.asarray(sigma, dtype=float)

        # ------------------ Step 1: Mean update ---------------------#
        x_t, y_t, theta = mu
        if not self.is_singular(w):
            x_t = x_t - (v / w) * np.sin(theta) + (v / w) * np.sin(theta + w * dt)
            y_t = y_t + (v / w) * np.cos(theta) - (v / w) * np.cos(theta + w * dt)
            theta_t = theta + w * dt
        else:
            x_t = x_t + v * np.cos(theta) * dt
            y_t = y_t + v * np.sin(theta) * dt
            theta_t = theta
        mu_bar = np.array([x_t, y_t, constrain_angle(theta_t)])

        # ------ Step 2: Linearize motion and control noise ----------#
        G, V = self.jacobians(theta, v, w, dt)
        M = self.noise_covariance(v, w)

        # ---------------- Step 3: Covariance update ------------------#
        sigma_bar = G.dot(sigma).dot(G.T) + V.dot(M).dot(V.T)

        return mu_bar, sigma_bar
