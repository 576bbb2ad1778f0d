"""EKF pose localization with known landmarks."""

from .config import FilterConfig, MeasurementNoiseParams, MotionNoiseParams
from .localization import (
    Landmark,
    LocalizationFilter,
    MeasurementCorrector,
    MotionPredictor,
    RangeBearingSensor,
    SensorModel,
)
from .utils.angles import constrain_angle
from .utils.ellipse import confidence_scale, covariance_ellipse

__all__ = [
    "FilterConfig",
    "Landmark",
    "LocalizationFilter",
    "MeasurementCorrector",
    "MeasurementNoiseParams",
    "MotionNoiseParams",
    "MotionPredictor",
    "RangeBearingSensor",
    "SensorModel",
    "confidence_scale",
    "constrain_angle",
    "covariance_ellipse",
]
