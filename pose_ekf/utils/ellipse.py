"""
Covariance ellipse extraction.

A 2D Gaussian with covariance Σ has iso-probability contours that are
ellipses whose axes follow the eigenvectors of Σ and whose half-lengths are
proportional to the square roots of its eigenvalues. This module returns the
raw one-standard-deviation ellipse; scaling it to a confidence level is left
to the caller (see :func:`confidence_scale`).
"""

import logging
from typing import Tuple

import numpy as np
from scipy import stats

logger = logging.getLogger(__name__)


def covariance_ellipse(cov) -> Tuple[float, float, float]:
    """
    Decompose a 2x2 covariance block into an uncertainty ellipse.

    Parameters
    ----------
    cov : array_like, shape (2, 2)
        Symmetric position covariance, typically ``sigma[:2, :2]``.

    Returns
    -------
    major : float
        Standard deviation along the major axis.
    minor : float
        Standard deviation along the minor axis.
    theta : float
        Orientation of the major axis in radians, in (-π/2, π/2].

    Raises
    ------
    ValueError
        If ``cov`` is not 2x2.

    Notes
    -----
    Eigenvalues are sorted ascending by ``numpy.linalg.eigh``. Round-off can
    leave a slightly negative eigenvalue on a rank-deficient block; those are
    clipped to zero before taking the square root.

    An eigenvector and its negation describe the same axis, so the sign is
    fixed to keep ``theta`` in (-π/2, π/2].

    With isotropic uncertainty (equal eigenvalues) every direction is an
    eigenvector: ``major == minor`` and ``theta`` is arbitrary.

    Examples
    --------
    >>> covariance_ellipse(np.diag([4.0, 1.0]))
    (2.0, 1.0, 0.0)
    """
    cov = np.asarray(cov, dtype=float)
    if cov.shape != (2, 2):
        raise ValueError(f"Expected a 2x2 covariance block, got shape {cov.shape}")

    eigenvalues, eigenvectors = np.linalg.eigh(cov)
    if np.any(eigenvalues < 0):
        logger.debug(f"Clipping negative eigenvalues {eigenvalues} to zero")
    e0, e1 = np.sqrt(np.clip(eigenvalues, 0.0, None))

    if e0 > e1:
        major, minor = e0, e1
        axis = eigenvectors[:, 0]
    else:
        major, minor = e1, e0
        axis = eigenvectors[:, 1]

    theta = np.arctan2(axis[1], axis[0])
    if theta > np.pi / 2:
        theta -= np.pi
    elif theta <= -np.pi / 2:
        theta += np.pi

    return float(major), float(minor), float(theta)


def confidence_scale(probability=0.95):
    """
    Factor that scales a 1-sigma 2D ellipse to a confidence region.

    Parameters
    ----------
    probability : float
        Probability mass enclosed by the ellipse, in (0, 1).

    Returns
    -------
    float
        sqrt of the chi-square quantile with 2 degrees of freedom
        (≈2.4477 for 95%).
    """
    if not 0.0 < probability < 1.0:
        raise ValueError(f"probability must be in (0, 1), got {probability}")
    return float(np.sqrt(stats.chi2.ppf(probability, df=2)))
