"""
Angle helpers shared by the motion and measurement models.
"""

import numpy as np


def constrain_angle(radian):
    """
    Wrap an angle into (-π, π] with a single correction.

    The input is assumed to be at most one revolution outside the range,
    which is what one integration step or one Kalman correction can produce.
    Larger offsets are not folded back (no modulo loop).

    Parameters
    ----------
    radian : float
        Angle in radians.

    Returns
    -------
    float
        Angle shifted by ±2π when it lies outside (-π, π].

    Examples
    --------
    >>> constrain_angle(3 * np.pi / 2)
    -1.5707963267948966
    >>> constrain_angle(-np.pi)
    3.141592653589793
    """
    if radian <= -np.pi:
        radian += 2 * np.pi
    elif radian > np.pi:
        radian -= 2 * np.pi
    return radian
