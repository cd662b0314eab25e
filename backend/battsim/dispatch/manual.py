"""Manual (schedule-driven) battery dispatch.

Each hour of the year maps, through a month x hour-of-day schedule, to one
of four permission profiles saying whether the battery may charge from the
array, discharge to the load, and charge from the grid.  Within those
permissions the decision follows a fixed priority:

**PV surplus:** charge from array (all surplus if it exceeds what the bank
can take, otherwise top up from the grid when allowed) -> grid-only charge
-> idle.

**PV deficit:** discharge to meet the load -> grid charge -> idle.

The requested energy is applied to the bank, then the realized battery
energy is read back from the capacity model, which may have limited the
current.  PV always serves the load first, then the battery, then the grid.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from battsim.battery.bank import BatteryBank
from battsim.util.time_index import month_hour

logger = logging.getLogger(__name__)

WATT_TO_KILOWATT: float = 0.001
KILOWATT_TO_WATT: float = 1000.0

NUM_PROFILES: int = 4
SCHEDULE_SHAPE: tuple[int, int] = (12, 24)


class DispatchMode(enum.IntEnum):
    NO_ACTION = 0
    CHARGE_ALL_FROM_GRID = 1
    CHARGE_SOME_ARRAY_REST_GRID = 2
    CHARGE_SOME_ARRAY_NONE_GRID = 3
    CHARGE_ALL_FROM_ARRAY = 4
    DISCHARGE_TO_MEET_LOAD = -1


@dataclass(frozen=True)
class DispatchProfile:
    """Charge/discharge permissions for one schedule period."""

    can_charge: bool = False
    can_discharge: bool = False
    can_grid_charge: bool = False


@dataclass(frozen=True)
class DispatchResult:
    """Energy flows (kWh) for one dispatched hour.

    ``energy_tofrom_battery`` is positive when discharging;
    ``energy_tofrom_grid`` is positive when exporting.
    """

    mode: DispatchMode
    requested_battery_energy: float
    energy_tofrom_battery: float
    energy_tofrom_grid: float
    pv_to_load: float
    battery_to_load: float
    grid_to_load: float


def decide_dispatch(
    e_pv: float,
    e_load: float,
    profile: DispatchProfile,
    energy_needed_to_fill: float,
) -> tuple[DispatchMode, float]:
    """Choose the dispatch mode and requested battery energy (kWh).

    Returns ``(mode, energy)`` where *energy* is positive for discharge
    and negative for charge.
    """
    if e_pv > e_load:
        surplus = e_pv - e_load
        if profile.can_charge:
            if surplus > energy_needed_to_fill:
                # The battery takes only what it can.
                return DispatchMode.CHARGE_ALL_FROM_ARRAY, -surplus
            if profile.can_grid_charge:
                return DispatchMode.CHARGE_SOME_ARRAY_REST_GRID, -energy_needed_to_fill
            return DispatchMode.CHARGE_SOME_ARRAY_NONE_GRID, -surplus
        if profile.can_grid_charge:
            return DispatchMode.CHARGE_ALL_FROM_GRID, -energy_needed_to_fill
        return DispatchMode.NO_ACTION, 0.0

    if profile.can_discharge:
        return DispatchMode.DISCHARGE_TO_MEET_LOAD, e_load - e_pv
    if profile.can_grid_charge:
        # Grid charging while the load exceeds PV is kept as an explicit
        # branch even though it is rarely a sensible schedule.
        return DispatchMode.CHARGE_ALL_FROM_GRID, -energy_needed_to_fill
    return DispatchMode.NO_ACTION, 0.0


def validate_schedule(schedule: ArrayLike) -> NDArray[np.int64]:
    """Check a 12 x 24 schedule of 1-based profile numbers.

    Returns the schedule converted to 0-based profile indices.
    """
    sched = np.asarray(schedule)
    if sched.shape != SCHEDULE_SHAPE:
        raise ValueError(
            f"dispatch schedule must have shape {SCHEDULE_SHAPE}, got {sched.shape}"
        )
    if not np.all(np.equal(np.mod(sched, 1), 0)):
        raise ValueError("dispatch schedule entries must be whole profile numbers")

    index = sched.astype(np.int64) - 1
    bad = (index < 0) | (index >= NUM_PROFILES)
    if np.any(bad):
        month, hour = np.argwhere(bad)[0]
        raise ValueError(
            f"invalid battery dispatch schedule profile {int(sched[month, hour])} "
            f"at month {month + 1}, hour {hour + 1}: profile index must be in "
            f"0..{NUM_PROFILES - 1}"
        )
    return index


class ManualDispatch:
    """Schedule-driven dispatch controller for a :class:`BatteryBank`.

    Parameters
    ----------
    bank : BatteryBank
        The bank to drive.  Not owned by the controller.
    dt : float
        Timestep in hours.
    schedule : array-like, shape (12, 24)
        1-based profile number for every month and hour of day.
    profiles : sequence of DispatchProfile
        The four permission profiles.
    """

    def __init__(
        self,
        bank: BatteryBank,
        dt: float,
        schedule: ArrayLike,
        profiles: Sequence[DispatchProfile],
    ) -> None:
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        if len(profiles) != NUM_PROFILES:
            raise ValueError(f"exactly {NUM_PROFILES} profiles are required, got {len(profiles)}")

        self.bank = bank
        self.dt = dt
        self.profiles: tuple[DispatchProfile, ...] = tuple(profiles)
        self._profile_index = validate_schedule(schedule)

        self._mode = DispatchMode.NO_ACTION
        self._e_tofrom_batt: float = 0.0
        self._e_grid: float = 0.0
        self._pv_to_load: float = 0.0
        self._battery_to_load: float = 0.0
        self._grid_to_load: float = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def profile_for_hour(self, hour_of_year: int) -> DispatchProfile:
        month, hour = month_hour(hour_of_year)
        return self.profiles[int(self._profile_index[month - 1, hour - 1])]

    def dispatch(self, hour_of_year: int, e_pv: float, e_load: float) -> DispatchResult:
        """Dispatch the bank for one hour given PV and load energy (kWh)."""
        profile = self.profile_for_hour(hour_of_year)

        # Charge state from the previous step.
        bank_voltage = self.bank.bank_voltage()
        energy_needed = self.bank.bank_charge_needed() * bank_voltage * WATT_TO_KILOWATT

        mode, requested = decide_dispatch(e_pv, e_load, profile, energy_needed)

        self.bank.run(KILOWATT_TO_WATT * requested / self.dt)

        # The capacity model may have limited the current.
        current = self.bank.battery.capacity.current
        e_batt = current * bank_voltage * self.dt * WATT_TO_KILOWATT
        e_grid = e_pv + e_batt - e_load

        battery_to_load = 0.0
        grid_to_load = 0.0
        if e_pv > e_load:
            pv_to_load = e_load
        else:
            pv_to_load = e_pv
            if e_batt > 0:
                battery_to_load = e_batt
            grid_to_load = e_load - (pv_to_load + battery_to_load)

        self._mode = mode
        self._e_tofrom_batt = e_batt
        self._e_grid = e_grid
        self._pv_to_load = pv_to_load
        self._battery_to_load = battery_to_load
        self._grid_to_load = grid_to_load

        logger.debug(
            "Hour %d: mode=%s requested=%.4f kWh realized=%.4f kWh grid=%.4f kWh",
            hour_of_year, mode.name, requested, e_batt, e_grid,
        )

        return DispatchResult(
            mode=mode,
            requested_battery_energy=requested,
            energy_tofrom_battery=e_batt,
            energy_tofrom_grid=e_grid,
            pv_to_load=pv_to_load,
            battery_to_load=battery_to_load,
            grid_to_load=grid_to_load,
        )

    @property
    def mode(self) -> DispatchMode:
        return self._mode

    @property
    def energy_tofrom_battery(self) -> float:
        return self._e_tofrom_batt

    @property
    def energy_tofrom_grid(self) -> float:
        return self._e_grid

    @property
    def pv_to_load(self) -> float:
        return self._pv_to_load

    @property
    def battery_to_load(self) -> float:
        return self._battery_to_load

    @property
    def grid_to_load(self) -> float:
        return self._grid_to_load
