"""Validated static configuration for a battery bank and its dispatcher."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator


# Capacity model configs
class KiBaMConfig(BaseModel):
    type: Literal["kibam"] = "kibam"
    q10: float = Field(gt=0)  # Ah, 10-hour capacity
    q20: float = Field(gt=0)  # Ah, 20-hour capacity
    i20: float = Field(gt=0)  # A, 20-hour current
    t1: float = Field(gt=0)  # h
    t2: float = Field(gt=0)  # h
    q1: float = Field(gt=0)  # Ah delivered in t1
    q2: float = Field(gt=0)  # Ah delivered in t2


class LithiumIonConfig(BaseModel):
    type: Literal["lithium_ion"] = "lithium_ion"
    qmax: float = Field(gt=0)  # Ah
    cycles: list[float] = Field(min_length=1)
    capacities: list[float] = Field(min_length=1)  # percent of qmax

    @model_validator(mode="after")
    def _same_length(self) -> "LithiumIonConfig":
        if len(self.cycles) != len(self.capacities):
            raise ValueError(
                f"cycles and capacities must have the same length, got "
                f"{len(self.cycles)} and {len(self.capacities)}"
            )
        return self


CapacityConfig = Annotated[Union[KiBaMConfig, LithiumIonConfig], Field(discriminator="type")]


# Voltage model configs
class BasicVoltageConfig(BaseModel):
    type: Literal["basic"] = "basic"
    num_cells: int = Field(ge=1)
    cell_voltage: float = Field(gt=0)


class DynamicVoltageConfig(BaseModel):
    type: Literal["dynamic"] = "dynamic"
    num_cells: int = Field(ge=1)
    cell_voltage: float = Field(gt=0)
    v_full: float = Field(gt=0)
    v_exp: float = Field(gt=0)
    v_nom: float = Field(gt=0)
    q_full: float = Field(gt=0)
    q_exp: float = Field(gt=0)
    q_nom: float = Field(gt=0)
    c_rate: float = Field(gt=0)


VoltageConfig = Annotated[
    Union[BasicVoltageConfig, DynamicVoltageConfig], Field(discriminator="type")
]


class ThermalConfig(BaseModel):
    mass: float = Field(gt=0)  # kg
    length: float = Field(gt=0)  # m
    width: float = Field(gt=0)  # m
    height: float = Field(gt=0)  # m
    cp: float = Field(gt=0)  # J/kg/K
    h: float = Field(default=20.0, ge=0)  # W/m^2/K
    t_room: float = Field(default=298.15, gt=0)  # K
    resistance: float = Field(default=0.001, ge=0)  # Ohm
    capacity_vs_temperature: list[tuple[float, float]] = Field(
        default=[(-10.0, 60.0), (0.0, 80.0), (25.0, 100.0), (40.0, 100.0)],
        min_length=1,
    )  # [(degC, percent), ...]


class LifetimeConfig(BaseModel):
    dod: list[float] = Field(min_length=5)  # percent
    cycles_to_failure: list[float] = Field(min_length=5)

    @model_validator(mode="after")
    def _same_length(self) -> "LifetimeConfig":
        if len(self.dod) != len(self.cycles_to_failure):
            raise ValueError(
                f"dod and cycles_to_failure must have the same length, got "
                f"{len(self.dod)} and {len(self.cycles_to_failure)}"
            )
        return self


class ProfileConfig(BaseModel):
    can_charge: bool = False
    can_discharge: bool = False
    can_grid_charge: bool = False


class DispatchConfig(BaseModel):
    schedule: list[list[int]]  # 12 x 24, 1-based profile numbers
    profiles: list[ProfileConfig] = Field(min_length=4, max_length=4)

    @model_validator(mode="after")
    def _check_schedule(self) -> "DispatchConfig":
        if len(self.schedule) != 12 or any(len(row) != 24 for row in self.schedule):
            raise ValueError("dispatch schedule must be 12 months x 24 hours")
        for m, row in enumerate(self.schedule, start=1):
            for h, profile in enumerate(row, start=1):
                if not 0 <= profile - 1 <= 3:
                    raise ValueError(
                        f"invalid battery dispatch schedule profile {profile} at "
                        f"month {m}, hour {h}: profile index must be in 0..3"
                    )
        return self


class BatteryBankConfig(BaseModel):
    capacity: CapacityConfig
    voltage: VoltageConfig
    thermal: ThermalConfig
    lifetime: LifetimeConfig
    dispatch: DispatchConfig
    num_series: int = Field(default=1, ge=1)
    num_parallel: int = Field(default=1, ge=1)
    power_conversion_efficiency: float = Field(default=1.0, gt=0, le=1)
