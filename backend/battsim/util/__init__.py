"""Numerical helpers shared by the battery models: lookup, fitting, calendar."""

from .interpolation import linterp_col
from .fitting import FitResult, fit_curve, fit_polynomial
from .time_index import hours_in_month, month_hour

__all__ = [
    "linterp_col",
    "FitResult",
    "fit_curve",
    "fit_polynomial",
    "hours_in_month",
    "month_hour",
]
