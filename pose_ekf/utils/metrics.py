"""
Trajectory evaluation metrics for EKF localization.

This module provides metrics for evaluating the filter against a reference
trajectory: Absolute Trajectory Error (ATE) for accuracy and the Normalized
Estimation Error Squared (NEES) for consistency of the reported covariance.
Trajectory metrics operate on pandas DataFrames with timestamp indices, as
produced by :meth:`LocalizationFilter.build_dataframes` and
:func:`pose_ekf.utils.data_utils.build_timeseries`.
"""

import logging
from typing import Tuple

import numpy as np
import pandas as pd
from scipy import stats

from pose_ekf.utils.angles import constrain_angle

# Configure module logger
logger = logging.getLogger(__name__)


def _validate(estimated_states, groundtruth_data, required_cols):
    if not isinstance(estimated_states, pd.DataFrame):
        raise ValueError(
            f"estimated_states must be a DataFrame, got {type(estimated_states).__name__}. "
            f"Did you call build_dataframes()?"
        )
    if not isinstance(groundtruth_data, pd.DataFrame):
        raise ValueError(
            f"groundtruth_data must be a DataFrame, got {type(groundtruth_data).__name__}. "
            f"Use build_timeseries() to index the reference trajectory by time."
        )
    for col in required_cols:
        if col not in estimated_states.columns:
            raise ValueError(
                f"estimated_states missing required column '{col}'. "
                f"Available columns: {list(estimated_states.columns)}"
            )
        if col not in groundtruth_data.columns:
            raise ValueError(
                f"groundtruth_data missing required column '{col}'. "
                f"Available columns: {list(groundtruth_data.columns)}"
            )


def _align(estimated_states, groundtruth_data, cols):
    # Join on timestamp index (inner join to get only matching timestamps)
    aligned = estimated_states[cols].join(
        groundtruth_data[cols], how="inner", rsuffix="_gt"
    )
    if len(aligned) == 0:
        raise RuntimeError(
            "Timestamp alignment produced 0 matching frames! "
            f"Estimated time range: [{estimated_states.index.min()}, {estimated_states.index.max()}], "
            f"Ground truth time range: [{groundtruth_data.index.min()}, {groundtruth_data.index.max()}]"
        )
    return aligned


def compute_ate(
    estimated_states: pd.DataFrame,
    groundtruth_data: pd.DataFrame,
    verbose: bool = True
) -> float:
    """
    Compute Absolute Trajectory Error (ATE) using RMSE with timestamp matching.

    Parameters
    ----------
    estimated_states : pd.DataFrame
        Estimated trajectory with datetime index and columns ['x', 'y'].
        Typically ``ekf.build_dataframes()``.
    groundtruth_data : pd.DataFrame
        Reference trajectory with datetime index and columns ['x', 'y'].
    verbose : bool, optional
        If True, log alignment and error statistics. Default: True.

    Returns
    -------
    float
        Root Mean Squared Error (RMSE) of position errors.

    Raises
    ------
    ValueError
        If inputs are not DataFrames or missing required columns.
    RuntimeError
        If timestamp alignment produces no matching frames.

    Examples
    --------
    >>> states_df = ekf.build_dataframes()
    >>> gt = build_timeseries(stamps, true_poses, cols=["x", "y", "theta"])
    >>> ate = compute_ate(states_df, gt)
    """
    _validate(estimated_states, groundtruth_data, ["x", "y"])
    aligned = _align(estimated_states, groundtruth_data, ["x", "y"])

    if verbose:
        alignment_pct = len(aligned) / len(estimated_states) * 100
        logger.info("=" * 60)
        logger.info("ATE Computation: Timestamp Alignment")
        logger.info(f"✓ Aligned frames: {len(aligned)} ({alignment_pct:.1f}% of estimates)")

        if alignment_pct < 90:
            logger.warning(
                f"⚠ Only {alignment_pct:.1f}% of frames aligned! "
                "Check timestamp synchronization."
            )

    # Compute per-frame Euclidean errors
    errors = np.sqrt(
        (aligned["x"] - aligned["x_gt"]) ** 2 +
        (aligned["y"] - aligned["y_gt"]) ** 2
    )
    ate = float(np.sqrt(np.mean(errors ** 2)))

    if verbose:
        logger.info("=" * 60)
        logger.info("ATE Computation: Error Statistics")
        logger.info(f"✓ Mean error: {np.mean(errors):.4f}")
        logger.info(f"✓ Max error: {np.max(errors):.4f}")
        logger.info(f"✓ ATE (RMSE): {ate:.4f}")
        logger.info("=" * 60)

    return ate


def compute_trajectory_stats(
    estimated_states: pd.DataFrame,
    groundtruth_data: pd.DataFrame
) -> dict:
    """
    Compute detailed trajectory error statistics.

    Parameters
    ----------
    estimated_states : pd.DataFrame
        Estimated trajectory with datetime index and columns ['x', 'y', 'theta'].
    groundtruth_data : pd.DataFrame
        Reference trajectory with datetime index and columns ['x', 'y', 'theta'].

    Returns
    -------
    dict
        - 'ate': Absolute Trajectory Error (RMSE)
        - 'mean_error', 'std_error', 'median_error', 'max_error', 'min_error':
          position error statistics
        - 'heading_rmse': RMSE of the wrapped heading error
        - 'aligned_frames': Number of temporally aligned frames
        - 'alignment_ratio': Fraction of frames successfully aligned
    """
    _validate(estimated_states, groundtruth_data, ["x", "y", "theta"])
    aligned = _align(estimated_states, groundtruth_data, ["x", "y", "theta"])

    errors = np.sqrt(
        (aligned["x"] - aligned["x_gt"]) ** 2 +
        (aligned["y"] - aligned["y_gt"]) ** 2
    )
    heading_errors = np.array(
        [constrain_angle(d) for d in aligned["theta"] - aligned["theta_gt"]]
    )

    return {
        "ate": float(np.sqrt(np.mean(errors ** 2))),
        "mean_error": float(np.mean(errors)),
        "std_error": float(np.std(errors)),
        "median_error": float(np.median(errors)),
        "max_error": float(np.max(errors)),
        "min_error": float(np.min(errors)),
        "heading_rmse": float(np.sqrt(np.mean(heading_errors ** 2))),
        "aligned_frames": len(aligned),
        "alignment_ratio": len(aligned) / len(estimated_states),
    }


def compute_nees(errors, covariances):
    """
    Normalized Estimation Error Squared per frame.

    NEES_k = e_kᵀ Σ_k⁻¹ e_k. For a consistent filter it is χ²-distributed
    with as many degrees of freedom as the state dimension.

    Parameters
    ----------
    errors : array_like, shape (T, n)
        Estimate minus truth per frame (headings already wrapped).
    covariances : array_like, shape (T, n, n)
        Filter covariance per frame, as in ``LocalizationFilter.covariances``.

    Returns
    -------
    numpy.ndarray, shape (T,)

    Raises
    ------
    ValueError
        If the shapes do not match.
    """
    errors = np.asarray(errors, dtype=float)
    covariances = np.asarray(covariances, dtype=float)
    if errors.ndim != 2 or covariances.shape != errors.shape + (errors.shape[1],):
        raise ValueError(
            f"Shape mismatch: errors {errors.shape}, covariances {covariances.shape}"
        )
    # Pseudo-inverse: the seed covariance is usually all zeros
    return np.einsum("ti,tij,tj->t", errors, np.linalg.pinv(covariances), errors)


def nees_bounds(n_frames, dof=3, probability=0.95) -> Tuple[float, float]:
    """
    Two-sided acceptance interval for the mean NEES over ``n_frames``.

    The sum of ``n_frames`` NEES values is χ² with ``n_frames * dof`` degrees
    of freedom; dividing the quantiles by ``n_frames`` gives the interval the
    average must fall in for the filter to be considered consistent.
    """
    if n_frames < 1:
        raise ValueError(f"n_frames must be >= 1, got {n_frames}")
    tail = (1.0 - probability) / 2.0
    total_dof = n_frames * dof
    lower = stats.chi2.ppf(tail, total_dof) / n_frames
    upper = stats.chi2.ppf(1.0 - tail, total_dof) / n_frames
    return float(lower), float(upper)
