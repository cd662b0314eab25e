"""Tests for battsim.util -- calendar, table lookup and curve fitting."""

from __future__ import annotations

import numpy as np
import pytest

from battsim.util import (
    fit_curve,
    fit_polynomial,
    hours_in_month,
    linterp_col,
    month_hour,
)


def _line(x, a):
    return a[0] + a[1] * x


class TestCalendar:
    @pytest.mark.parametrize(
        "hour_of_year,expected",
        [
            (0, (1, 1)),
            (23, (1, 24)),
            (743, (1, 24)),
            (744, (2, 1)),
            (1416, (3, 1)),
            (8759, (12, 24)),
        ],
    )
    def test_month_hour(self, hour_of_year, expected):
        assert month_hour(hour_of_year) == expected

    @pytest.mark.parametrize("hour_of_year", [-1, 8760])
    def test_month_hour_out_of_range(self, hour_of_year):
        with pytest.raises(ValueError, match="hour_of_year"):
            month_hour(hour_of_year)

    def test_hours_in_month(self):
        assert hours_in_month(2) == 672
        assert sum(hours_in_month(m) for m in range(1, 13)) == 8760

    def test_hours_in_month_invalid(self):
        with pytest.raises(ValueError, match="month"):
            hours_in_month(13)


class TestLinterpCol:
    TABLE = [[25.0, 100.0, 1.0], [0.0, 80.0, 2.0], [40.0, 100.0, 3.0]]

    def test_interpolates_unsorted_table(self):
        assert linterp_col(self.TABLE, 0, 12.5, 1) == pytest.approx(90.0)

    def test_selects_column(self):
        assert linterp_col(self.TABLE, 0, 32.5, 2) == pytest.approx(2.0)

    def test_clamps_outside_range(self):
        assert linterp_col(self.TABLE, 0, -50.0, 1) == 80.0
        assert linterp_col(self.TABLE, 0, 100.0, 1) == 100.0

    def test_empty_table(self):
        with pytest.raises(ValueError, match="non-empty"):
            linterp_col(np.empty((0, 2)), 0, 1.0, 1)


class TestFitting:
    def test_fit_curve_exact_line(self):
        x = np.linspace(0.0, 10.0, 6)
        fit = fit_curve(_line, 2, x, 1.0 + 2.0 * x)
        assert fit.converged
        np.testing.assert_allclose(fit.coefficients, [1.0, 2.0], atol=1e-6)

    def test_fit_curve_budget_exhausted(self):
        x = np.linspace(0.0, 10.0, 6)
        fit = fit_curve(_line, 2, x, 1.0 + 2.0 * x, max_nfev=1)
        assert not fit.converged
        assert fit.message

    def test_fit_curve_length_mismatch(self):
        with pytest.raises(ValueError, match="same length"):
            fit_curve(_line, 2, [0.0, 1.0, 2.0], [1.0, 2.0])

    def test_fit_curve_bad_guess(self):
        with pytest.raises(ValueError, match="p0"):
            fit_curve(_line, 2, [0.0, 1.0, 2.0], [1.0, 2.0, 3.0], p0=[1.0])

    def test_fit_polynomial_exact_cubic(self):
        x = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
        y = 1.0 - 2.0 * x + 0.5 * x ** 3
        fit = fit_polynomial(x, y, degree=3)
        assert fit.converged
        np.testing.assert_allclose(fit.coefficients, [1.0, -2.0, 0.0, 0.5], atol=1e-9)

    def test_fit_polynomial_rank_deficient(self):
        fit = fit_polynomial([0.0, 1.0], [1.0, 2.0], degree=3)
        assert not fit.converged
        assert "rank" in fit.message
        assert fit.coefficients.shape == (4,)
