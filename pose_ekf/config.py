"""
Filter configuration.

Noise coefficients and numerical thresholds are passed to the filter as an
explicit :class:`FilterConfig` value instead of module-level constants, so
several filters with different tunings can coexist in one process.

Examples
--------
>>> from pose_ekf.config import FilterConfig, MotionNoiseParams
>>> config = FilterConfig(motion_noise=MotionNoiseParams(0.2, 0.0, 0.0, 0.2))
>>> config = FilterConfig.from_dict({
...     "motion_noise": {"alpha1": 0.2, "alpha4": 0.2},
...     "measurement_noise": {"bearing_sigma": 0.05},
...     "wrap_bearing_innovation": True,
... })
"""

from dataclasses import dataclass, field, fields

import numpy as np


def _check_non_negative(owner, **values):
    for name, value in values.items():
        if not np.isfinite(value) or value < 0:
            raise ValueError(f"{owner}.{name} must be a finite value >= 0, got {value}")


@dataclass(frozen=True)
class MotionNoiseParams:
    """
    Velocity motion model noise coefficients.

    The control-space covariance is
    ``M = diag((α1|v| + α2|w|)², (α3|v| + α4|w|)²)``: α1/α2 scale the
    translational velocity noise, α3/α4 the rotational one.
    """

    alpha1: float = 0.1
    alpha2: float = 0.0
    alpha3: float = 0.0001
    alpha4: float = 0.1

    def __post_init__(self):
        _check_non_negative(
            "MotionNoiseParams",
            alpha1=self.alpha1,
            alpha2=self.alpha2,
            alpha3=self.alpha3,
            alpha4=self.alpha4,
        )


@dataclass(frozen=True)
class MeasurementNoiseParams:
    """
    Range-bearing sensor noise.

    Range noise grows with the observed range (``range * range_alpha``);
    bearing noise is a fixed standard deviation in radians.
    """

    range_alpha: float = 0.1
    bearing_sigma: float = 2 * np.pi / 180

    def __post_init__(self):
        _check_non_negative(
            "MeasurementNoiseParams",
            range_alpha=self.range_alpha,
            bearing_sigma=self.bearing_sigma,
        )


@dataclass(frozen=True)
class FilterConfig:
    """
    Complete configuration of a :class:`~pose_ekf.localization.EKF.LocalizationFilter`.

    Attributes
    ----------
    motion_noise : MotionNoiseParams
        Control noise coefficients.
    measurement_noise : MeasurementNoiseParams
        Sensor noise coefficients.
    epsilon : float
        Small-value threshold. Angular velocities with ``|w| <= epsilon`` use
        the straight-line motion model, and observations with
        ``|range| <= epsilon`` are treated as "no detection".
    max_condition : float
        Largest condition number accepted for the innovation covariance S
        before a landmark update is skipped. S is first scaled to unit
        diagonal, so the threshold does not depend on the units of range.
    wrap_bearing_innovation : bool
        Wrap the bearing innovation into (-π, π] before the correction.
        Off by default, which keeps the raw ``measured - expected`` difference.
    """

    motion_noise: MotionNoiseParams = field(default_factory=MotionNoiseParams)
    measurement_noise: MeasurementNoiseParams = field(
        default_factory=MeasurementNoiseParams
    )
    epsilon: float = 1e-4
    max_condition: float = 1e12
    wrap_bearing_innovation: bool = False

    def __post_init__(self):
        if not self.epsilon > 0:
            raise ValueError(f"FilterConfig.epsilon must be > 0, got {self.epsilon}")
        if not self.max_condition > 1:
            raise ValueError(
                f"FilterConfig.max_condition must be > 1, got {self.max_condition}"
            )

    @classmethod
    def from_dict(cls, mapping):
        """
        Build a configuration from a plain (possibly nested) dictionary.

        Missing keys keep their defaults; unknown keys raise ``ValueError``
        so typos in hand-written configs are not silently ignored.
        """
        mapping = dict(mapping)
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ValueError(f"Unknown FilterConfig keys: {sorted(unknown)}")

        if isinstance(mapping.get("motion_noise"), dict):
            mapping["motion_noise"] = _build(MotionNoiseParams, mapping["motion_noise"])
        if isinstance(mapping.get("measurement_noise"), dict):
            mapping["measurement_noise"] = _build(
                MeasurementNoiseParams, mapping["measurement_noise"]
            )
        return cls(**mapping)


def _build(params_cls, values):
    known = {f.name for f in fields(params_cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown {params_cls.__name__} keys: {sorted(unknown)}")
    return params_cls(**values)
