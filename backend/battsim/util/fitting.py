"""
Least-squares curve fitting for datasheet-derived battery curves.

Two entry points:

* :func:`fit_curve` -- general nonlinear least squares via
  :func:`scipy.optimize.least_squares` for a model ``f(x, coeffs)``.
* :func:`fit_polynomial` -- ordinary linear least squares for a polynomial
  in power-series form via :func:`numpy.polynomial.polynomial.polyfit`.

Neither raises when the solver fails to converge.  The returned
:class:`FitResult` carries the best-effort coefficients together with a
convergence flag so callers can report the problem and keep running.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.optimize import least_squares

CurveModel = Callable[[NDArray[np.float64], NDArray[np.float64]], NDArray[np.float64]]


@dataclass(frozen=True)
class FitResult:
    """Outcome of a least-squares fit."""

    coefficients: NDArray[np.float64]
    converged: bool
    message: str = ""


def _as_samples(x: ArrayLike, y: ArrayLike) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    xs = np.asarray(x, dtype=np.float64).ravel()
    ys = np.asarray(y, dtype=np.float64).ravel()
    if xs.shape != ys.shape:
        raise ValueError(
            f"x and y must have the same length, got {xs.size} vs {ys.size}"
        )
    return xs, ys


def fit_curve(
    model: CurveModel,
    n_params: int,
    x: ArrayLike,
    y: ArrayLike,
    p0: Optional[Sequence[float]] = None,
    max_nfev: int = 2000,
) -> FitResult:
    """Fit *n_params* coefficients of *model* to paired samples.

    Parameters
    ----------
    model : callable
        ``model(x, coeffs)`` evaluated element-wise on an array *x*.
    n_params : int
        Number of coefficients to fit.
    x, y : array-like
        Sample abscissae and ordinates, equal length, at least *n_params*
        points.
    p0 : sequence of float, optional
        Initial guess.  Defaults to all zeros.
    max_nfev : int
        Function-evaluation budget for the solver.

    Returns
    -------
    FitResult
    """
    xs, ys = _as_samples(x, y)
    if n_params < 1:
        raise ValueError(f"n_params must be >= 1, got {n_params}")
    if xs.size < n_params:
        raise ValueError(
            f"At least {n_params} samples are required to fit {n_params} "
            f"coefficients, got {xs.size}"
        )

    guess = np.zeros(n_params) if p0 is None else np.asarray(p0, dtype=np.float64)
    if guess.shape != (n_params,):
        raise ValueError(f"p0 must have {n_params} entries, got {guess.size}")

    def residuals(coeffs: NDArray[np.float64]) -> NDArray[np.float64]:
        return model(xs, coeffs) - ys

    with np.errstate(over="ignore", invalid="ignore"):
        result = least_squares(residuals, guess, x_scale="jac", max_nfev=max_nfev)

    coeffs = np.asarray(result.x, dtype=np.float64)
    converged = bool(result.success) and bool(np.all(np.isfinite(coeffs)))
    return FitResult(coefficients=coeffs, converged=converged, message=str(result.message))


def fit_polynomial(x: ArrayLike, y: ArrayLike, degree: int) -> FitResult:
    """Least-squares polynomial fit, coefficients in increasing power order.

    A rank-deficient design matrix (fewer distinct samples than
    coefficients) still yields the minimum-norm solution but is reported as
    not converged.
    """
    xs, ys = _as_samples(x, y)
    if xs.size == 0:
        raise ValueError("At least one sample is required for a polynomial fit")

    coeffs, (_resid, rank, _sv, _rcond) = np.polynomial.polynomial.polyfit(
        xs, ys, degree, full=True
    )
    converged = int(rank) == degree + 1
    message = "" if converged else f"rank {int(rank)} < {degree + 1} coefficients"
    return FitResult(coefficients=np.asarray(coeffs, dtype=np.float64), converged=converged, message=message)
