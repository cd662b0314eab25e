"""
Lumped single-node battery thermal model.

    dT/dt = (h * A * (T_room - T) + I^2 * R) / (m * Cp)

The battery is treated as one isothermal block exchanging heat with the
room by convection over all six faces and heated resistively by the
current.  Temperatures are in kelvin and the ODE is integrated in seconds.
Capacity retention is read from a temperature lookup table.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from battsim.util.interpolation import linterp_col

SECONDS_PER_HOUR: float = 3600.0
_ZERO_CELSIUS_K: float = 273.15


class ThermalModel:
    """Battery temperature and temperature-dependent capacity.

    Parameters
    ----------
    mass : float
        Battery mass (kg).
    length, width, height : float
        Battery dimensions (m).
    cp : float
        Specific heat (J/kg/K).
    h : float
        Convective heat transfer coefficient (W/m^2/K).
    t_room : float
        Ambient temperature (K).  The battery starts at this temperature.
    R : float
        Internal resistance (Ohm).
    capacity_vs_temperature : array-like, shape (n, 2)
        Rows of ``(temperature degC, capacity percent)``.
    """

    def __init__(
        self,
        mass: float,
        length: float,
        width: float,
        height: float,
        cp: float,
        h: float,
        t_room: float,
        R: float,
        capacity_vs_temperature: ArrayLike,
    ) -> None:
        if mass <= 0 or cp <= 0:
            raise ValueError(f"mass and cp must be positive, got mass={mass}, cp={cp}")
        if h < 0:
            raise ValueError(f"h must be >= 0, got {h}")

        table = np.array(capacity_vs_temperature, dtype=np.float64)
        if table.ndim != 2 or table.shape[1] != 2 or table.shape[0] == 0:
            raise ValueError(
                "capacity_vs_temperature must have shape (n, 2), "
                f"got {table.shape}"
            )
        table[:, 0] += _ZERO_CELSIUS_K
        table[:, 1] *= 0.01
        self._cap_vs_temp = table

        self.mass = mass
        self.length = length
        self.width = width
        self.height = height
        self.cp = cp
        self.h = h
        self.t_room = t_room
        self.R = R

        # All faces exposed.
        self.area: float = 2.0 * (length * width + length * height + width * height)
        self._temperature: float = t_room

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def _dT_dt(self, T: float, I: float) -> float:
        return (1.0 / (self.mass * self.cp)) * (
            self.h * (self.t_room - T) * self.area + I ** 2 * self.R
        )

    def trapezoidal(self, I: float, dt: float) -> float:
        """Temperature after *dt* seconds, trapezoidal rule solved in closed form."""
        B = 1.0 / (self.mass * self.cp)
        C = self.h * self.area
        D = I ** 2 * self.R
        T = self._temperature
        return (T + 0.5 * dt * (self._dT_dt(T, I) + B * (C * self.t_room + D))) / (
            1.0 + 0.5 * dt * B * C
        )

    def rk4(self, I: float, dt: float) -> float:
        """Temperature after *dt* seconds, classic fourth-order Runge-Kutta."""
        T = self._temperature
        k1 = dt * self._dT_dt(T, I)
        k2 = dt * self._dT_dt(T + k1 / 2.0, I)
        k3 = dt * self._dT_dt(T + k2 / 2.0, I)
        k4 = dt * self._dT_dt(T + k3, I)
        return T + (k1 + k4) / 6.0 + (k2 + k3) / 3.0

    def update_temperature(self, I: float, dt: float) -> None:
        """Advance the battery temperature over a step of *dt* hours."""
        self._temperature = self.trapezoidal(I, dt * SECONDS_PER_HOUR)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def temperature(self) -> float:
        """Battery temperature (K)."""
        return self._temperature

    def capacity_percent(self) -> float:
        """Capacity retention (percent) at the current temperature."""
        return 100.0 * linterp_col(self._cap_vs_temp, 0, self._temperature, 1)

    def __repr__(self) -> str:
        return f"ThermalModel(T={self._temperature:.2f} K, h={self.h}, area={self.area:.4f})"
