"""
Single-battery composition of the capacity, voltage, thermal and lifetime
models.

``Battery.run`` advances one timestep in a fixed order:

1. If the charge direction reversed on the previous step (or this is the
   first step), the pre-step DOD is fed to the rainflow counter.
2. Thermal update with ``I = P / V`` at the present battery voltage.
3. Capacity update, then thermal derating of the stored charge.
4. Voltage update from the new capacity state.
"""

from __future__ import annotations

from .capacity import CapacityModel
from .lifetime import LifetimeModel
from .thermal import ThermalModel
from .voltage import VoltageModel


class Battery:
    """One battery unit.

    Parameters
    ----------
    capacity : KiBaMCapacity or LithiumIonCapacity
    voltage : BasicVoltage or DynamicVoltage
    lifetime : LifetimeModel
    thermal : ThermalModel
    dt : float
        Timestep in hours.
    power_conversion_efficiency : float
        Stored for reporting; not applied to the energy balance.
    """

    def __init__(
        self,
        capacity: CapacityModel,
        voltage: VoltageModel,
        lifetime: LifetimeModel,
        thermal: ThermalModel,
        dt: float = 1.0,
        power_conversion_efficiency: float = 1.0,
    ) -> None:
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")

        self.capacity: CapacityModel = capacity
        self.voltage: VoltageModel = voltage
        self.lifetime: LifetimeModel = lifetime
        self.thermal: ThermalModel = thermal
        self.dt: float = dt
        self.power_conversion_efficiency: float = power_conversion_efficiency

        self._first_step: bool = True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, P: float) -> None:
        """Advance one timestep at power *P* (W, discharge positive)."""
        last_dod = self.capacity.dod

        if self.capacity.charge_changed or self._first_step:
            self.lifetime.rainflow(last_dod)
            self._first_step = False

        V = self.voltage.battery_voltage
        self.thermal.update_temperature(P / V, self.dt)

        self.capacity.update_capacity(P, V, self.dt, self.lifetime.cycles_elapsed)
        self.capacity.update_capacity_for_thermal(self.thermal.capacity_percent())

        self.voltage.update_voltage(self.capacity, self.dt)

    def finish(self) -> None:
        """Close open rainflow ranges; call once after the last step."""
        self.lifetime.rainflow_finish()

    def charge_needed_to_fill(self) -> float:
        """Charge (Ah) needed to reach qmax from the present total charge."""
        return max(0.0, self.capacity.qmax - self.capacity.q0)

    def current_charge(self) -> float:
        """Available charge (Ah)."""
        return self.capacity.q1

    @property
    def cell_voltage(self) -> float:
        return self.voltage.cell_voltage

    @property
    def battery_voltage(self) -> float:
        return self.voltage.battery_voltage

    def get_state(self) -> dict[str, float]:
        """Return a snapshot of the battery state."""
        return {
            "soc": self.capacity.soc,
            "dod": self.capacity.dod,
            "q0": self.capacity.q0,
            "qmax": self.capacity.qmax,
            "current": self.capacity.current,
            "cell_voltage": self.cell_voltage,
            "battery_voltage": self.battery_voltage,
            "temperature_k": self.thermal.temperature,
            "cycles": float(self.lifetime.cycles_elapsed),
            "damage": self.lifetime.damage,
        }

    def __repr__(self) -> str:
        return (
            f"Battery(soc={self.capacity.soc:.3f}, V={self.battery_voltage:.3f}, "
            f"T={self.thermal.temperature:.2f} K, cycles={self.lifetime.cycles_elapsed})"
        )
