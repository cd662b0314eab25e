"""
Terminal voltage models.

* :class:`BasicVoltage` -- constant per-cell voltage.
* :class:`DynamicVoltage` -- Tremblay-style dynamic model whose five
  constants are fitted once from datasheet points.

Pack voltage is always ``num_cells * cell_voltage``.

Reference:
    Tremblay, O. & Dessaint, L.-A. (2009). Experimental validation of a
    battery dynamic model for EV applications. World Electric Vehicle
    Journal, 3.
"""

from __future__ import annotations

import math
from typing import Union

from .capacity import CapacityModel

# Efficiency assumed when deriving the internal resistance.
_ETA: float = 0.995

# Below this fraction of qmaxI the dynamic model is singular; the voltage
# is held at its previous value instead.
MIN_CHARGE_FRACTION: float = 0.01


class BasicVoltage:
    """Fixed per-cell voltage."""

    def __init__(self, num_cells: int, cell_voltage: float) -> None:
        if num_cells < 1:
            raise ValueError(f"num_cells must be >= 1, got {num_cells}")
        if cell_voltage <= 0:
            raise ValueError(f"cell_voltage must be positive, got {cell_voltage}")
        self.num_cells: int = num_cells
        self._cell_voltage: float = cell_voltage

    @property
    def cell_voltage(self) -> float:
        return self._cell_voltage

    @property
    def battery_voltage(self) -> float:
        return self.num_cells * self._cell_voltage

    def update_voltage(self, capacity: CapacityModel, dt: float) -> None:
        """Constant voltage: nothing to update."""

    def __repr__(self) -> str:
        return f"BasicVoltage(num_cells={self.num_cells}, cell_voltage={self._cell_voltage})"


class DynamicVoltage(BasicVoltage):
    """Dynamic cell voltage fitted from the discharge curve.

    Parameters
    ----------
    num_cells : int
        Cells in series within one battery.
    cell_voltage : float
        Nominal cell voltage (V).  The model starts at *v_full* instead.
    v_full, v_exp, v_nom : float
        Cell voltage when full, at the end of the exponential zone, and at
        the end of the nominal zone (V).
    q_full, q_exp, q_nom : float
        Charge removed at the corresponding points (Ah).
    c_rate : float
        C-rate of the datasheet discharge curve.
    """

    def __init__(
        self,
        num_cells: int,
        cell_voltage: float,
        v_full: float,
        v_exp: float,
        v_nom: float,
        q_full: float,
        q_exp: float,
        q_nom: float,
        c_rate: float,
    ) -> None:
        super().__init__(num_cells, cell_voltage)
        if min(q_full, q_exp, q_nom, c_rate) <= 0:
            raise ValueError(
                "q_full, q_exp, q_nom and c_rate must be positive, got "
                f"{q_full}, {q_exp}, {q_nom}, {c_rate}"
            )

        self.v_full = v_full
        self.v_exp = v_exp
        self.v_nom = v_nom
        self.q_full = q_full
        self.q_exp = q_exp
        self.q_nom = q_nom
        self.c_rate = c_rate

        # Assume fully charged rather than nominal.
        self._cell_voltage = v_full

        current = q_full * c_rate
        self.R: float = v_nom * (1.0 - _ETA) / (c_rate * q_nom)
        self.A: float = v_full - v_exp
        self.B: float = 3.0 / q_exp
        self.K: float = (
            (v_full - v_nom + self.A * (math.exp(-self.B * q_nom) - 1.0)) * (q_full - q_nom)
        ) / q_nom
        self.E0: float = v_full + self.K + self.R * current - self.A

    def update_voltage(self, capacity: CapacityModel, dt: float) -> None:
        Q = capacity.qmax_i
        q0 = capacity.q0
        if q0 / Q > MIN_CHARGE_FRACTION:
            n = self.num_cells
            self._cell_voltage = self.cell_voltage_at(
                Q / n, abs(capacity.current) / n, q0 / n, dt
            )

    def cell_voltage_at(self, Q: float, I: float, q0: float, dt: float) -> float:
        """Per-cell voltage for capacity *Q*, current *I* and charge *q0*."""
        f = 1.0 - q0 / Q
        return self.E0 - self.R * I - self.K * (1.0 / (1.0 - f)) + self.A * math.exp(-self.B * I * dt)

    def unnewehr_voltage(self, Q: float, I: float, q0: float) -> float:
        """Per-cell voltage from the Unnewehr universal model."""
        return self.E0 - self.R * I - self.K * (1.0 - q0 / Q)

    def __repr__(self) -> str:
        return (
            f"DynamicVoltage(num_cells={self.num_cells}, E0={self.E0:.4f}, "
            f"R={self.R:.5f}, K={self.K:.5f}, A={self.A:.4f}, B={self.B:.4f})"
        )


VoltageModel = Union[BasicVoltage, DynamicVoltage]
