"""
Landmark observations with known correspondence.
"""

from dataclasses import dataclass, replace
from typing import Tuple


@dataclass(frozen=True)
class Landmark:
    """
    A landmark with a known world position and its current measurement.

    Data association is solved upstream: each instance pairs the landmark
    geometry with the range and bearing the robot measured to it during the
    current tick. A range of zero means "not detected" and the filter skips
    it.

    Attributes
    ----------
    x, y : float
        Known landmark position in the world frame.
    range : float
        Measured distance to the landmark.
    bearing : float
        Measured angle of the landmark relative to the robot's forward axis
        (radians, counter-clockwise positive).
    color : tuple of float
        RGB tag in [0, 1]. Only used for plotting.
    """

    x: float
    y: float
    range: float = 0.0
    bearing: float = 0.0
    color: Tuple[float, float, float] = (1.0, 0.0, 0.0)

    @property
    def position(self):
        return (self.x, self.y)

    def with_measurement(self, range, bearing):
        """Return a copy of this landmark carrying a new measurement."""
        return replace(self, range=range, bearing=bearing)
