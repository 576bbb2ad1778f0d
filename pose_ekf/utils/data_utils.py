"""
Data transformation and preprocessing utilities.

This module provides helper functions for converting filter output into
time-indexed pandas structures for analysis and plotting.
"""

import numpy as np
import pandas as pd


def build_timeseries(stamps, data, cols):
    """
    Build a time-indexed DataFrame from timestamps and a data array.

    Parameters
    ----------
    stamps : array_like, shape (n,)
        Timestamps in seconds (Unix epoch or relative to a run start).
    data : array_like, shape (n, len(cols))
        One row of values per timestamp.
    cols : list of str
        Column names for ``data``.

    Returns
    -------
    pandas.DataFrame
        DataFrame indexed by ``stamp`` (datetime) with the given columns.

    Raises
    ------
    ValueError
        If the number of timestamps and data rows differ.

    Examples
    --------
    >>> import numpy as np
    >>> df = build_timeseries([0.0, 0.1], np.array([[0, 0, 0], [10, 0, 0]]),
    ...                       cols=["x", "y", "theta"])
    >>> list(df.columns)
    ['x', 'y', 'theta']

    Notes
    -----
    Timestamps are converted with ``pd.to_datetime(..., unit="s")`` so that
    estimated and ground-truth trajectories can be aligned with a join on the
    index (see :func:`pose_ekf.utils.metrics.compute_ate`).
    """
    stamps = np.asarray(stamps, dtype=float)
    data = np.atleast_2d(np.asarray(data, dtype=float))
    if data.shape[0] != stamps.shape[0]:
        raise ValueError(
            f"Got {stamps.shape[0]} timestamps for {data.shape[0]} data rows"
        )

    timeseries = pd.DataFrame(data, columns=cols)
    timeseries["stamp"] = pd.to_datetime(stamps, unit="s")
    timeseries = timeseries.set_index("stamp")
    return timeseries
