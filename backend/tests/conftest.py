"""Shared test fixtures for the battsim battery and dispatch tests."""

from __future__ import annotations

import pytest

from battsim.battery import (
    BasicVoltage,
    Battery,
    BatteryBank,
    KiBaMCapacity,
    LifetimeModel,
    LithiumIonCapacity,
    ThermalModel,
)

ROOM_K = 298.15


# ======================================================================
# Parameter fixtures
# ======================================================================

@pytest.fixture
def kibam_params() -> dict:
    """12 V lead-acid battery: 58 Ah in 1 h, 93 Ah in 10 h, 100 Ah in 20 h."""
    return {
        "q10": 93.0,
        "q20": 100.0,
        "i20": 5.0,
        "voltage": 12.0,
        "t1": 1.0,
        "t2": 10.0,
        "q1": 58.0,
        "q2": 93.0,
    }


@pytest.fixture
def fade_samples() -> dict:
    """Linear capacity fade: 2 % per 500 half-cycles."""
    return {
        "cycles": [0.0, 500.0, 1000.0, 1500.0, 2000.0],
        "capacities": [100.0, 98.0, 96.0, 94.0, 92.0],
    }


@pytest.fixture
def life_samples() -> dict:
    """Cycles to failure vs depth of discharge (percent)."""
    return {
        "dod": [20.0, 40.0, 60.0, 80.0, 100.0],
        "cycles": [10000.0, 4500.0, 2500.0, 1600.0, 1100.0],
    }


@pytest.fixture
def capacity_table() -> list[list[float]]:
    """Capacity retention (percent) vs temperature (degC); 100 % at and above 25 degC."""
    return [[-10.0, 60.0], [0.0, 80.0], [25.0, 100.0], [40.0, 100.0]]


# ======================================================================
# Model fixtures
# ======================================================================

@pytest.fixture
def thermal(capacity_table) -> ThermalModel:
    return ThermalModel(
        mass=30.0,
        length=0.3,
        width=0.17,
        height=0.22,
        cp=1000.0,
        h=20.0,
        t_room=ROOM_K,
        R=0.002,
        capacity_vs_temperature=capacity_table,
    )


@pytest.fixture
def lifetime(life_samples) -> LifetimeModel:
    return LifetimeModel(life_samples["dod"], life_samples["cycles"])


@pytest.fixture
def li_ion_battery(fade_samples, lifetime, thermal) -> Battery:
    """100 Ah lithium-ion battery at 4 x 3.6 V = 14.4 V."""
    voltage = BasicVoltage(num_cells=4, cell_voltage=3.6)
    capacity = LithiumIonCapacity(
        q=100.0,
        voltage=voltage.battery_voltage,
        cycles=fade_samples["cycles"],
        capacities=fade_samples["capacities"],
    )
    return Battery(capacity, voltage, lifetime, thermal, dt=1.0)


@pytest.fixture
def kibam_battery(kibam_params, lifetime, thermal) -> Battery:
    voltage = BasicVoltage(num_cells=6, cell_voltage=2.0)
    capacity = KiBaMCapacity(**kibam_params)
    return Battery(capacity, voltage, lifetime, thermal, dt=1.0)


@pytest.fixture
def li_ion_bank(li_ion_battery) -> BatteryBank:
    return BatteryBank(li_ion_battery, num_series=1, num_parallel=1)


@pytest.fixture
def bank_config_dict(life_samples, fade_samples, capacity_table) -> dict:
    """Raw configuration for a 2s x 1p lithium-ion bank, free dispatch."""
    return {
        "capacity": {
            "type": "lithium_ion",
            "qmax": 100.0,
            "cycles": fade_samples["cycles"],
            "capacities": fade_samples["capacities"],
        },
        "voltage": {"type": "basic", "num_cells": 4, "cell_voltage": 3.6},
        "thermal": {
            "mass": 30.0,
            "length": 0.3,
            "width": 0.17,
            "height": 0.22,
            "cp": 1000.0,
            "h": 20.0,
            "t_room": ROOM_K,
            "resistance": 0.002,
            "capacity_vs_temperature": capacity_table,
        },
        "lifetime": {
            "dod": life_samples["dod"],
            "cycles_to_failure": life_samples["cycles"],
        },
        "dispatch": {
            "schedule": [[1] * 24 for _ in range(12)],
            "profiles": [
                {"can_charge": True, "can_discharge": True, "can_grid_charge": False},
                {"can_charge": False, "can_discharge": False, "can_grid_charge": False},
                {"can_charge": True, "can_discharge": False, "can_grid_charge": True},
                {"can_charge": False, "can_discharge": True, "can_grid_charge": False},
            ],
        },
        "num_series": 2,
        "num_parallel": 1,
    }
