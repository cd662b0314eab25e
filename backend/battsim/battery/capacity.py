"""
Capacity models: Kinetic Battery Model (KiBaM) and a lithium-ion charge tank.

Both variants track the charge held by the battery under an applied
current and expose state of charge (SOC, percent) and depth of discharge
(DOD = 100 - SOC).  Sign convention: positive current or power discharges
the battery, negative charges it.  Charge is in Ah, current in A, power in
W, voltage in V and time in hours.

KiBaM splits the charge into two wells:
  - Available charge well (q1): directly supplies the load.
  - Bound charge well (q2): feeds into q1 via a rate-limited conductance.

The rate constant *k* and capacity ratio *c* are derived from two
reference discharge tests by a fixed grid search over *k*; the closed-form
well updates and current limits follow the analytic KiBaM solution.

Reference:
    Manwell, J.F. & McGowan, J.G. (1993). Lead acid battery storage model
    for hybrid energy systems. Solar Energy, 50(5), 399-405.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence, Union

import numpy as np
from numpy.typing import NDArray

from battsim.util.fitting import fit_polynomial

logger = logging.getLogger(__name__)

# k grid used to fit (k, c): k = i * K_GRID_STEP for i in range(K_GRID_STEPS).
K_GRID_STEPS: int = 5000
K_GRID_STEP: float = 0.001

# Reference discharge duration (hours) of the q20 test.
_T20: float = 20.0


# ======================================================================
# KiBaM closed forms
# ======================================================================

def c_estimate(F, t1: float, t2: float, k):
    """Capacity ratio *c* implied by a capacity ratio *F* between two tests.

    *F* is the ratio of the capacity delivered in time *t1* to the capacity
    delivered in time *t2*.  Works element-wise on numpy arrays of *k*.
    """
    e1 = 1.0 - np.exp(-k * t1)
    e2 = 1.0 - np.exp(-k * t2)
    num = F * e1 * t2 - e2 * t1
    denom = num - k * F * t1 * t2 + k * t1 * t2
    return num / denom


def fit_kc(F1: float, F2: float, t1: float, t2: float) -> tuple[float, float]:
    """Grid-search the KiBaM (k, c) pair matching two capacity ratios.

    For every grid value of *k*, two independent estimates of *c* are made
    (one from the t1/20 h ratio *F1*, one from the t1/t2 ratio *F2*).  The
    first *k* with the smallest disagreement wins and *c* is the mean of
    its two estimates.  Grid points where the estimator is undefined are
    skipped.
    """
    k_grid = np.arange(K_GRID_STEPS) * K_GRID_STEP
    with np.errstate(divide="ignore", invalid="ignore"):
        c1 = c_estimate(F1, t1, _T20, k_grid)
        c2 = c_estimate(F2, t1, t2, k_grid)
        residual = np.abs(c1 - c2)

    if not np.any(np.isfinite(residual)):
        raise ValueError(
            f"Cannot fit KiBaM parameters: no finite c estimate for "
            f"F1={F1}, F2={F2}, t1={t1}, t2={t2}"
        )

    residual = np.where(np.isfinite(residual), residual, np.inf)
    best = int(np.argmin(residual))
    return float(k_grid[best]), float(0.5 * (c1[best] + c2[best]))


def qmax_from_q20(q20: float, k: float, c: float) -> float:
    """Maximum capacity implied by the 20-hour capacity *q20*."""
    num = q20 * ((1.0 - math.exp(-k * _T20)) * (1.0 - c) + k * c * _T20)
    denom = k * c * _T20
    return num / denom


# ======================================================================
# Shared state
# ======================================================================

class _CapacityBase:
    """State common to both capacity variants."""

    def __init__(self, q: float, voltage: float) -> None:
        if q <= 0:
            raise ValueError(f"capacity must be positive, got {q}")
        if voltage <= 0:
            raise ValueError(f"voltage must be positive, got {voltage}")

        self._q0: float = q
        self._I: float = 0.0
        self._V: float = voltage
        self._P: float = 0.0

        # Assume the battery starts full.
        self._soc: float = 100.0
        self._dod: float = 0.0

        self._prev_charging: bool = False
        self._charge_changed: bool = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def soc(self) -> float:
        """State of charge in percent."""
        return self._soc

    @property
    def dod(self) -> float:
        """Depth of discharge in percent."""
        return self._dod

    @property
    def q0(self) -> float:
        """Total charge held (Ah)."""
        return self._q0

    @property
    def current(self) -> float:
        """Current applied during the last update (A), discharge positive."""
        return self._I

    @property
    def power(self) -> float:
        """Power applied during the last update (W), discharge positive."""
        return self._P

    @property
    def voltage(self) -> float:
        return self._V

    @property
    def charge_changed(self) -> bool:
        """True when the last update reversed the charge direction."""
        return self._charge_changed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _track_direction(self, current: float) -> None:
        charging = current < 0
        self._charge_changed = current != 0 and charging != self._prev_charging
        # An idle step counts as charging for the next comparison.
        self._prev_charging = not current > 0

    def _set_soc(self, soc: float) -> None:
        self._soc = min(max(soc, 0.0), 100.0)
        self._dod = 100.0 - self._soc


# ======================================================================
# KiBaM
# ======================================================================

class KiBaMCapacity(_CapacityBase):
    """Two-well kinetic battery model fitted from two discharge tests.

    Parameters
    ----------
    q10 : float
        10-hour discharge capacity (Ah).
    q20 : float
        20-hour discharge capacity (Ah).
    i20 : float
        20-hour discharge current (A).
    voltage : float
        Nominal battery voltage (V).
    t1, t2 : float
        Durations (h) of the two sample discharges.
    q1, q2 : float
        Capacities (Ah) delivered in *t1* and *t2*.
    """

    def __init__(
        self,
        q10: float,
        q20: float,
        i20: float,
        voltage: float,
        t1: float,
        t2: float,
        q1: float,
        q2: float,
    ) -> None:
        super().__init__(q20, voltage)
        if i20 <= 0:
            raise ValueError(f"i20 must be positive, got {i20}")
        if t1 <= 0 or t2 <= 0:
            raise ValueError(f"t1 and t2 must be positive, got t1={t1}, t2={t2}")
        if q1 <= 0 or q2 <= 0:
            raise ValueError(f"q1 and q2 must be positive, got q1={q1}, q2={q2}")

        self.q10: float = q10
        self.q20: float = q20
        self.i20: float = i20

        self._t1 = t1
        self._t2 = t2
        self._F1 = q1 / q20
        self._F2 = q1 / q2

        self.k, self.c = fit_kc(self._F1, self._F2, t1, t2)
        self._qmax: float = qmax_from_q20(q20, self.k, self.c)
        logger.info(
            "KiBaM fit: k=%.3f 1/h, c=%.4f, qmax=%.3f Ah", self.k, self.c, self._qmax
        )

        # Assume the initial current is the 20-hour current.
        self._qmax_i: float = self.qmax_of_i(self._q0 / i20)
        self._q0 = q20

        self._q1: float = self._q0 * self.c
        self._q2: float = self._q0 - self._q1

    # ------------------------------------------------------------------
    # Closed forms
    # ------------------------------------------------------------------

    def _q1_next(self, q1: float, q0: float, dt: float, I: float) -> float:
        k, c = self.k, self.c
        decay = math.exp(-k * dt)
        A = q1 * decay
        B = (q0 * k * c - I) * (1.0 - decay) / k
        C = I * c * (k * dt - 1.0 + decay) / k
        return A + B - C

    def _q2_next(self, q2: float, q0: float, dt: float, I: float) -> float:
        k, c = self.k, self.c
        decay = math.exp(-k * dt)
        A = q2 * decay
        B = q0 * (1.0 - c) * (1.0 - decay)
        C = I * (1.0 - c) * (k * dt - 1.0 + decay) / k
        return A + B - C

    def _limit_denominator(self, dt: float) -> float:
        k, c = self.k, self.c
        decay = math.exp(-k * dt)
        return 1.0 - decay + c * (k * dt - 1.0 + decay)

    def max_charge_current(self, dt: float) -> float:
        """Largest charge current (A, negative) the wells accept over *dt*."""
        k, c = self.k, self.c
        decay = math.exp(-k * dt)
        num = -k * c * self._qmax + k * self._q1 * decay + self._q0 * k * c * (1.0 - decay)
        return num / self._limit_denominator(dt)

    def max_discharge_current(self, dt: float) -> float:
        """Largest discharge current (A) the available well sustains over *dt*."""
        k, c = self.k, self.c
        decay = math.exp(-k * dt)
        num = k * self._q1 * decay + self._q0 * k * c * (1.0 - decay)
        return num / self._limit_denominator(dt)

    def qmax_of_i(self, T: float) -> float:
        """Maximum capacity when discharged over *T* hours."""
        k, c = self.k, self.c
        decay = math.exp(-k * T)
        return (self._qmax * k * c * T) / (1.0 - decay + c * (k * T - 1.0 + decay))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update_capacity(self, P: float, V: float, dt: float, cycles: int = 0) -> None:
        """Advance both wells by *dt* hours at power *P* and voltage *V*."""
        I = P / V

        if I > 0:
            I = min(I, self.max_discharge_current(dt))
        elif I < 0:
            I = -min(abs(I), abs(self.max_charge_current(dt)))

        self._track_direction(I)

        q1 = self._q1_next(self._q1, self._q0, dt, I)
        q2 = self._q2_next(self._q2, self._q0, dt, I)

        if abs(I) > 0:
            self._qmax_i = self.qmax_of_i(abs(self._qmax_i / I))

        # Dynamics can overshoot slightly past empty or full.
        self._set_soc((q1 + q2) / self._qmax * 100.0)

        self._q1 = q1
        self._q2 = q2
        self._q0 = q1 + q2
        self._I = I
        self._V = V
        self._P = P

    def update_capacity_for_thermal(self, capacity_percent: float) -> None:
        """Scale all wells by the thermal capacity retention (percent)."""
        fraction = capacity_percent * 0.01
        self._q0 *= fraction
        self._q1 *= fraction
        self._q2 *= fraction

    @property
    def q1(self) -> float:
        """Available charge (Ah)."""
        return self._q1

    @property
    def q2(self) -> float:
        """Bound charge (Ah)."""
        return self._q2

    @property
    def qmax(self) -> float:
        return self._qmax

    @property
    def qmax_i(self) -> float:
        """Maximum capacity at the present operating current (Ah)."""
        return self._qmax_i

    def __repr__(self) -> str:
        return (
            f"KiBaMCapacity(qmax={self._qmax:.3f}, k={self.k}, c={self.c:.4f}, "
            f"soc={self._soc:.2f})"
        )


# ======================================================================
# Lithium-ion
# ======================================================================

def third_order_polynomial(x, a: Sequence[float]):
    return a[0] + a[1] * x + a[2] * x ** 2 + a[3] * x ** 3


class LithiumIonCapacity(_CapacityBase):
    """Single charge tank whose maximum capacity fades with cycling.

    Parameters
    ----------
    q : float
        Initial maximum capacity (Ah).
    voltage : float
        Nominal battery voltage (V).
    cycles : sequence of float
        Half-cycle counts at which capacity was measured.
    capacities : sequence of float
        Remaining capacity (percent of *q*) at each cycle count.
    """

    def __init__(
        self,
        q: float,
        voltage: float,
        cycles: Sequence[float],
        capacities: Sequence[float],
    ) -> None:
        super().__init__(q, voltage)
        self._qmax: float = q
        self._qmax0: float = q

        fit = fit_polynomial(cycles, capacities, degree=3)
        if not fit.converged:
            logger.warning("Capacity fade fit did not converge: %s", fit.message)
        self.fade_coefficients: NDArray[np.float64] = fit.coefficients
        self._fade_exhausted: bool = False

    def capacity_modifier(self, cycles: float) -> float:
        """Remaining capacity (percent) after *cycles* half-cycles."""
        return float(third_order_polynomial(cycles, self.fade_coefficients))

    def update_capacity(self, P: float, V: float, dt: float, cycles: int = 0) -> None:
        """Move charge in or out of the tank, clamping at empty and full.

        When a clamp engages, the current and power are recomputed to match
        the charge that was actually moved.
        """
        q0_old = self._q0
        modifier = self.capacity_modifier(cycles)
        if modifier <= 0 and not self._fade_exhausted:
            logger.warning(
                "Capacity fade curve reaches %.3f %% at %s cycles; "
                "the fit is being used outside its sampled range",
                modifier, cycles,
            )
            self._fade_exhausted = True
        self._qmax = self._qmax0 * modifier / 100.0

        self._I = P / V
        self._P = P
        self._V = V
        self._track_direction(self._I)

        self._q0 -= self._I * dt

        if self._q0 > self._qmax:
            self._I = -(self._qmax - q0_old) / dt
            self._P = self._I * V
            self._q0 = self._qmax
            logger.debug("Overcharge clamp: realized I=%.4f A", self._I)

        if self._q0 < 0:
            self._I = q0_old / dt
            self._P = self._I * V
            self._q0 = 0.0
            logger.debug("Undercharge clamp: realized I=%.4f A", self._I)

        self._set_soc(self._q0 / self._qmax * 100.0)

    def update_capacity_for_thermal(self, capacity_percent: float) -> None:
        self._q0 *= capacity_percent * 0.01

    @property
    def q1(self) -> float:
        """Available charge (Ah); the whole tank for this chemistry."""
        return self._q0

    @property
    def qmax(self) -> float:
        return self._qmax

    @property
    def qmax_i(self) -> float:
        return self._qmax

    def __repr__(self) -> str:
        return f"LithiumIonCapacity(qmax={self._qmax:.3f}, soc={self._soc:.2f})"


CapacityModel = Union[KiBaMCapacity, LithiumIonCapacity]
