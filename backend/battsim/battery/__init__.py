"""Battery storage engine -- capacity, voltage, thermal and lifetime models."""

from .capacity import CapacityModel, KiBaMCapacity, LithiumIonCapacity
from .voltage import BasicVoltage, DynamicVoltage, VoltageModel
from .thermal import ThermalModel
from .lifetime import LifetimeModel, life_vs_dod
from .battery import Battery
from .bank import BatteryBank

__all__ = [
    "CapacityModel",
    "KiBaMCapacity",
    "LithiumIonCapacity",
    "BasicVoltage",
    "DynamicVoltage",
    "VoltageModel",
    "ThermalModel",
    "LifetimeModel",
    "life_vs_dod",
    "Battery",
    "BatteryBank",
]
