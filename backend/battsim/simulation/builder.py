"""Construct a battery bank and its dispatcher from validated configuration."""

from __future__ import annotations

from battsim.battery import (
    BasicVoltage,
    Battery,
    BatteryBank,
    DynamicVoltage,
    KiBaMCapacity,
    LifetimeModel,
    LithiumIonCapacity,
    ThermalModel,
)
from battsim.battery.capacity import CapacityModel
from battsim.battery.voltage import VoltageModel
from battsim.config import settings
from battsim.dispatch import DispatchProfile, ManualDispatch
from battsim.schemas.battery import (
    BatteryBankConfig,
    BasicVoltageConfig,
    KiBaMConfig,
)


def _build_voltage(cfg: BatteryBankConfig) -> VoltageModel:
    v = cfg.voltage
    if isinstance(v, BasicVoltageConfig):
        return BasicVoltage(num_cells=v.num_cells, cell_voltage=v.cell_voltage)
    return DynamicVoltage(
        num_cells=v.num_cells,
        cell_voltage=v.cell_voltage,
        v_full=v.v_full,
        v_exp=v.v_exp,
        v_nom=v.v_nom,
        q_full=v.q_full,
        q_exp=v.q_exp,
        q_nom=v.q_nom,
        c_rate=v.c_rate,
    )


def _build_capacity(cfg: BatteryBankConfig, battery_voltage: float) -> CapacityModel:
    c = cfg.capacity
    if isinstance(c, KiBaMConfig):
        return KiBaMCapacity(
            q10=c.q10,
            q20=c.q20,
            i20=c.i20,
            voltage=battery_voltage,
            t1=c.t1,
            t2=c.t2,
            q1=c.q1,
            q2=c.q2,
        )
    return LithiumIonCapacity(
        q=c.qmax,
        voltage=battery_voltage,
        cycles=c.cycles,
        capacities=c.capacities,
    )


def build_from_config(
    cfg: BatteryBankConfig, dt: float | None = None
) -> tuple[BatteryBank, ManualDispatch]:
    """Build the bank and its dispatcher.

    Parameters
    ----------
    cfg : BatteryBankConfig
        Validated configuration.
    dt : float, optional
        Timestep in hours.  Defaults to the configured ``timestep_hours``.

    Returns
    -------
    (BatteryBank, ManualDispatch)
    """
    if dt is None:
        dt = settings.timestep_hours

    voltage = _build_voltage(cfg)
    capacity = _build_capacity(cfg, voltage.battery_voltage)

    t = cfg.thermal
    thermal = ThermalModel(
        mass=t.mass,
        length=t.length,
        width=t.width,
        height=t.height,
        cp=t.cp,
        h=t.h,
        t_room=t.t_room,
        R=t.resistance,
        capacity_vs_temperature=t.capacity_vs_temperature,
    )
    lifetime = LifetimeModel(cfg.lifetime.dod, cfg.lifetime.cycles_to_failure)

    battery = Battery(
        capacity=capacity,
        voltage=voltage,
        lifetime=lifetime,
        thermal=thermal,
        dt=dt,
        power_conversion_efficiency=cfg.power_conversion_efficiency,
    )
    bank = BatteryBank(
        battery,
        num_series=cfg.num_series,
        num_parallel=cfg.num_parallel,
        chemistry=cfg.capacity.type,
    )

    profiles = [
        DispatchProfile(
            can_charge=p.can_charge,
            can_discharge=p.can_discharge,
            can_grid_charge=p.can_grid_charge,
        )
        for p in cfg.dispatch.profiles
    ]
    dispatch = ManualDispatch(bank, dt, cfg.dispatch.schedule, profiles)
    return bank, dispatch
