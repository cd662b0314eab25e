"""Simulation orchestrator for a dispatched battery bank.

``SimulationRunner`` steps a :class:`ManualDispatch` through an hourly PV
and load series, collects per-hour time series from the bank, flushes the
lifetime model once at the end, and returns arrays plus summary totals.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from battsim.battery.bank import BatteryBank
from battsim.config import settings
from battsim.dispatch.manual import ManualDispatch
from battsim.util.time_index import HOURS_PER_YEAR

logger = logging.getLogger(__name__)

_SERIES_KEYS = (
    "mode",
    "soc",
    "dod",
    "cell_voltage",
    "bank_voltage",
    "temperature_k",
    "battery_energy_kwh",
    "grid_energy_kwh",
    "pv_to_load_kwh",
    "battery_to_load_kwh",
    "grid_to_load_kwh",
)


class SimulationRunner:
    """Hour-by-hour battery dispatch simulation.

    Parameters
    ----------
    bank : BatteryBank
        The bank being driven by *dispatch*.
    dispatch : ManualDispatch
        Dispatch controller bound to *bank*.
    pv_kwh, load_kwh : array-like
        Hourly PV generation and load energy (kWh), equal length.
    start_hour : int
        Hour of year of the first sample.
    progress_every : int or None
        Log progress every this many hours.  Defaults to the configured
        ``progress_every_hours``.
    """

    def __init__(
        self,
        bank: BatteryBank,
        dispatch: ManualDispatch,
        pv_kwh: ArrayLike,
        load_kwh: ArrayLike,
        start_hour: int = 0,
        progress_every: int | None = None,
    ) -> None:
        self.bank = bank
        self.dispatch = dispatch
        self.pv_kwh = np.asarray(pv_kwh, dtype=np.float64).ravel()
        self.load_kwh = np.asarray(load_kwh, dtype=np.float64).ravel()
        self.start_hour = start_hour
        self.progress_every = (
            settings.progress_every_hours if progress_every is None else progress_every
        )

        if self.pv_kwh.shape != self.load_kwh.shape:
            raise ValueError(
                f"pv_kwh and load_kwh must have the same length, got "
                f"{self.pv_kwh.size} and {self.load_kwh.size}"
            )
        if dispatch.bank is not bank:
            raise ValueError("dispatch controller is bound to a different bank")
        self._done = False

    def run(self) -> dict[str, Any]:
        """Run every timestep, then close the lifetime model.

        Returns
        -------
        dict
            Time-series arrays (one entry per step): ``mode``, ``soc``,
            ``dod``, ``cell_voltage``, ``bank_voltage``, ``temperature_k``,
            ``battery_energy_kwh``, ``grid_energy_kwh``, ``pv_to_load_kwh``,
            ``battery_to_load_kwh``, ``grid_to_load_kwh``.

            Summary scalars: ``cycles``, ``damage_percent``,
            ``pv_kwh_total``, ``load_kwh_total``, ``battery_discharge_kwh``,
            ``battery_charge_kwh``, ``grid_export_kwh``, ``grid_import_kwh``.
        """
        if self._done:
            raise RuntimeError("SimulationRunner.run may only be called once")

        n = self.pv_kwh.size
        series = {key: np.zeros(n, dtype=np.float64) for key in _SERIES_KEYS}
        battery = self.bank.battery

        logger.info(
            "Starting battery simulation: %d steps, %d x %d bank",
            n, self.bank.num_series, self.bank.num_parallel,
        )

        for t in range(n):
            hour = (self.start_hour + t) % HOURS_PER_YEAR
            result = self.dispatch.dispatch(hour, float(self.pv_kwh[t]), float(self.load_kwh[t]))

            series["mode"][t] = int(result.mode)
            series["soc"][t] = battery.capacity.soc
            series["dod"][t] = battery.capacity.dod
            series["cell_voltage"][t] = battery.cell_voltage
            series["bank_voltage"][t] = self.bank.bank_voltage()
            series["temperature_k"][t] = battery.thermal.temperature
            series["battery_energy_kwh"][t] = result.energy_tofrom_battery
            series["grid_energy_kwh"][t] = result.energy_tofrom_grid
            series["pv_to_load_kwh"][t] = result.pv_to_load
            series["battery_to_load_kwh"][t] = result.battery_to_load
            series["grid_to_load_kwh"][t] = result.grid_to_load

            if self.progress_every and (t + 1) % self.progress_every == 0:
                logger.debug(
                    "Simulation step %d/%d (%.0f %%)", t + 1, n, 100.0 * (t + 1) / n,
                    extra={"hour": hour, "soc": battery.capacity.soc},
                )

        self.bank.finish()
        self._done = True

        e_batt = series["battery_energy_kwh"]
        e_grid = series["grid_energy_kwh"]
        results: dict[str, Any] = dict(series)
        results.update(
            {
                "cycles": battery.lifetime.cycles_elapsed,
                "damage_percent": battery.lifetime.damage,
                "pv_kwh_total": float(np.sum(self.pv_kwh)),
                "load_kwh_total": float(np.sum(self.load_kwh)),
                "battery_discharge_kwh": float(np.sum(np.maximum(e_batt, 0.0))),
                "battery_charge_kwh": float(-np.sum(np.minimum(e_batt, 0.0))),
                "grid_export_kwh": float(np.sum(np.maximum(e_grid, 0.0))),
                "grid_import_kwh": float(-np.sum(np.minimum(e_grid, 0.0))),
            }
        )

        logger.info(
            "Battery simulation complete: %d cycles, damage %.4f %%",
            results["cycles"], results["damage_percent"],
            extra={"cycles": results["cycles"], "damage": results["damage_percent"]},
        )
        return results
