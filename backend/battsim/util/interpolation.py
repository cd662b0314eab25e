"""Table lookup with clamped linear interpolation."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike


def linterp_col(table: ArrayLike, x_col: int, x: float, y_col: int) -> float:
    """Linearly interpolate column *y_col* of *table* at *x* in column *x_col*.

    Rows are sorted by the x column before lookup.  Queries outside the
    tabulated range return the value at the nearest end point, which is the
    behaviour of :func:`numpy.interp`.

    Parameters
    ----------
    table : array-like, shape (n, m)
        Lookup table with at least one row.
    x_col, y_col : int
        Column indices of the abscissa and the ordinate.
    x : float
        Query value.

    Returns
    -------
    float
    """
    data = np.asarray(table, dtype=np.float64)
    if data.ndim != 2 or data.shape[0] == 0:
        raise ValueError(f"table must be a non-empty 2-D array, got shape {data.shape}")

    order = np.argsort(data[:, x_col], kind="stable")
    xs = data[order, x_col]
    ys = data[order, y_col]
    return float(np.interp(x, xs, ys))
