"""Simulation orchestration: configuration-driven setup and the hourly loop."""

from .builder import build_from_config
from .runner import SimulationRunner

__all__ = ["build_from_config", "SimulationRunner"]
