"""
Battery cycle-life model: streaming rainflow counting + Miner damage.

Rainflow cycle counting
-----------------------
Turning points of the depth-of-discharge (DOD) series arrive one at a time
(the battery only reports a DOD when the charge direction reverses).  Each
new point forms two ranges with its predecessors:

    Y = |peak[j-1] - peak[j-2]|   (older)
    X = |peak[j]   - peak[j-1]|   (newest)

and the four-point rule decides whether Y closes a cycle:

* ``X < Y`` -- not enough data, wait for the next point.
* ``X >= Y`` and the start point S is an end of Y -- Y is a half range
  hanging off the start; move S forward when ``X > Y`` and wait.
* otherwise -- count Y, discard its two points (keeping the newest) and
  compare again without new input.

:meth:`LifetimeModel.rainflow_finish` closes the ranges still open at the
end of a run by walking the residual sequence circularly.

Damage
------
Each counted range of depth D consumes ``100 / life(D)`` percent of life,
where ``life(D) = a0 + a1*exp(a2*D) + a3*exp(a4*D)`` is fitted to the
user's (DOD, cycles-to-failure) samples.
"""

from __future__ import annotations

import enum
import logging
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from battsim.util.fitting import fit_curve

logger = logging.getLogger(__name__)

LIFE_CURVE_PARAMS: int = 5


class _Rainflow(enum.Enum):
    GET_DATA = "get_data"
    RERANGE = "rerange"


def life_vs_dod(dod, a: Sequence[float]):
    """Cycles to failure at depth of discharge *dod* (percent)."""
    return a[0] + a[1] * np.exp(a[2] * dod) + a[3] * np.exp(a[4] * dod)


def _initial_guess(dod: NDArray[np.float64], cycles: NDArray[np.float64]) -> list[float]:
    # Decaying exponential anchored at the shallowest sample.
    span = float(np.max(dod) - np.min(dod)) or 100.0
    return [float(np.min(cycles)), float(np.max(cycles)), -3.0 / span, 0.0, -1.0 / span]


class LifetimeModel:
    """Rainflow cycle counter with cumulative damage.

    Parameters
    ----------
    dod_samples : sequence of float
        Depths of discharge (percent) of the cycle-life test points.
    cycle_samples : sequence of float
        Cycles to failure at each depth.  At least five pairs are needed.
    """

    def __init__(self, dod_samples: Sequence[float], cycle_samples: Sequence[float]) -> None:
        dod = np.asarray(dod_samples, dtype=np.float64)
        cycles = np.asarray(cycle_samples, dtype=np.float64)

        fit = fit_curve(
            life_vs_dod,
            LIFE_CURVE_PARAMS,
            dod,
            cycles,
            p0=_initial_guess(dod, cycles) if dod.size else None,
        )
        if not fit.converged:
            logger.warning("Cycle-life curve fit did not converge: %s", fit.message)
        self.life_coefficients: NDArray[np.float64] = fit.coefficients

        self._peaks: list[float] = []
        self._n_cycles: int = 0
        self._damage: float = 0.0
        self._j: int = 0          # index of the newest peak
        self._k: int = 0          # index of the start point
        self._X: float = 0.0
        self._Y: float = 0.0
        self._S: float = 0.0
        self._range: float = 0.0
        self._finished: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cycles_to_failure(self, dod: float) -> float:
        return float(life_vs_dod(dod, self.life_coefficients))

    def rainflow(self, dod: float) -> None:
        """Feed the next DOD turning point (percent)."""
        self._peaks.append(dod)

        if self._j == 0:
            self._S = dod
            self._k = self._j

        ret = _Rainflow.GET_DATA
        while True:
            if self._j < 2:
                ret = _Rainflow.GET_DATA
                break
            self._ranges()
            ret = self._compare_ranges()
            if ret is _Rainflow.GET_DATA:
                break

        if ret is _Rainflow.GET_DATA:
            self._j += 1

    def rainflow_finish(self) -> None:
        """Count the ranges left open by the online pass.

        Must be called once after the last timestep; later calls are
        ignored.
        """
        if self._finished:
            logger.warning("rainflow_finish called more than once; ignoring")
            return
        self._finished = True

        ii = 0
        self._j -= 1
        P = 0.0
        reread = 0

        while reread <= 1:
            if ii < len(self._peaks):
                P = self._peaks[ii]
            else:
                break

            if P == self._S:
                reread += 1

            at_step_seven = True
            while at_step_seven:
                if self._j >= 2:
                    self._ranges_circular(ii)
                else:
                    at_step_seven = False
                    if self._j == 1:
                        self._peaks.append(P)
                        self._j += 1
                        ii = self._j
                        self._ranges_circular(ii)
                    else:
                        reread += 1
                        break

                if self._X < self._Y:
                    at_step_seven = False
                    ii += 1
                else:
                    self._count_range()

    @property
    def cycles_elapsed(self) -> int:
        return self._n_cycles

    @property
    def damage(self) -> float:
        """Cumulative damage (percent of life consumed)."""
        return self._damage

    @property
    def peaks(self) -> list[float]:
        """Residual turning points not yet closed into cycles."""
        return list(self._peaks)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ranges(self) -> None:
        j = self._j
        self._Y = abs(self._peaks[j - 1] - self._peaks[j - 2])
        self._X = abs(self._peaks[j] - self._peaks[j - 1])

    def _ranges_circular(self, index: int) -> None:
        end = len(self._peaks) - 1
        if index == 0:
            self._X = abs(self._peaks[0] - self._peaks[end])
            self._Y = abs(self._peaks[end] - self._peaks[end - 1])
        elif index == 1:
            self._X = abs(self._peaks[1] - self._peaks[0])
            self._Y = abs(self._peaks[0] - self._peaks[end])
        else:
            self._ranges()

    def _compare_ranges(self) -> _Rainflow:
        X, Y = self._X, self._Y
        if X < Y:
            return _Rainflow.GET_DATA

        j = self._j
        if self._S in (self._peaks[j - 1], self._peaks[j - 2]):
            if X > Y:
                self._k += 1
                self._S = self._peaks[self._k]
            return _Rainflow.GET_DATA

        self._count_range()
        return _Rainflow.RERANGE

    def _count_range(self) -> None:
        """Count range Y and drop its two points, keeping the newest."""
        self._range = self._Y
        life = self.cycles_to_failure(self._range)
        if abs(life) > 0:
            self._damage += 100.0 / life
        self._n_cycles += 1
        logger.debug(
            "Rainflow cycle %d: range=%.3f, damage=%.6f%%",
            self._n_cycles, self._range, self._damage,
        )

        save = self._peaks[self._j]
        del self._peaks[-3:]
        self._peaks.append(save)
        self._j -= 2

    def __repr__(self) -> str:
        return (
            f"LifetimeModel(cycles={self._n_cycles}, damage={self._damage:.6f}%, "
            f"open_peaks={len(self._peaks)})"
        )
