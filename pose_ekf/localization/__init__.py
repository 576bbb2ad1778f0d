"""Localization algorithms: EKF prediction, correction and the filter loop."""

from .EKF import LocalizationFilter
from .landmark import Landmark
from .measurement_model import MeasurementCorrector, RangeBearingSensor, SensorModel
from .motion_model import MotionPredictor

__all__ = [
    "Landmark",
    "LocalizationFilter",
    "MeasurementCorrector",
    "MotionPredictor",
    "RangeBearingSensor",
    "SensorModel",
]
