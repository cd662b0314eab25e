"""Battery bank: one modelled battery replicated in series and parallel.

All units are assumed identical and to share current equally, so a single
:class:`Battery` is simulated and its quantities are scaled.
"""

from __future__ import annotations

from .battery import Battery


class BatteryBank:
    """Series/parallel bank of identical batteries.

    Parameters
    ----------
    battery : Battery
        The representative unit.  The bank takes ownership of it.
    num_series : int
        Batteries per series string.
    num_parallel : int
        Parallel strings.
    chemistry : str
        Chemistry label, informational.
    """

    def __init__(
        self,
        battery: Battery,
        num_series: int,
        num_parallel: int,
        chemistry: str = "lithium_ion",
    ) -> None:
        if num_series < 1 or num_parallel < 1:
            raise ValueError(
                f"num_series and num_parallel must be >= 1, got "
                f"{num_series} and {num_parallel}"
            )
        self.battery: Battery = battery
        self.num_series: int = num_series
        self.num_parallel: int = num_parallel
        self.chemistry: str = chemistry

    @property
    def num_batteries(self) -> int:
        return self.num_series * self.num_parallel

    def run(self, P: float) -> None:
        """Advance one timestep at bank power *P* (W, discharge positive)."""
        self.battery.run(P / self.num_series)

    def finish(self) -> None:
        self.battery.finish()

    def bank_charge_needed(self) -> float:
        """Charge (Ah) needed to fill every unit."""
        return self.num_batteries * self.battery.charge_needed_to_fill()

    def bank_charge_available(self) -> float:
        """Available charge (Ah) summed over every unit."""
        return self.num_batteries * self.battery.current_charge()

    def bank_voltage(self) -> float:
        return self.num_series * self.battery.battery_voltage

    def __repr__(self) -> str:
        return (
            f"BatteryBank(series={self.num_series}, parallel={self.num_parallel}, "
            f"battery={self.battery!r})"
        )
