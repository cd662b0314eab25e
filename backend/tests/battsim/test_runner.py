"""Tests for configuration, setup and the hourly simulation loop."""

from __future__ import annotations

import json
import logging

import numpy as np
import pytest
from pydantic import ValidationError

from battsim.config import Settings, settings
from battsim.core.logging import JSONFormatter, setup_logging
from battsim.dispatch import DispatchMode
from battsim.schemas.battery import BatteryBankConfig, KiBaMConfig, LithiumIonConfig
from battsim.simulation import SimulationRunner, build_from_config


def _two_days() -> tuple[np.ndarray, np.ndarray]:
    hours = np.arange(48) % 24
    pv = np.clip(np.sin((hours - 6) / 12.0 * np.pi), 0.0, None) * 1.5
    load = np.full(48, 0.4)
    return pv, load


@pytest.fixture
def bank_and_dispatch(bank_config_dict):
    cfg = BatteryBankConfig.model_validate(bank_config_dict)
    return build_from_config(cfg)


# ======================================================================
# Configuration
# ======================================================================


class TestConfig:
    def test_capacity_discriminator(self, bank_config_dict):
        cfg = BatteryBankConfig.model_validate(bank_config_dict)
        assert isinstance(cfg.capacity, LithiumIonConfig)

        bank_config_dict["capacity"] = {
            "type": "kibam", "q10": 93.0, "q20": 100.0, "i20": 5.0,
            "t1": 1.0, "t2": 10.0, "q1": 58.0, "q2": 93.0,
        }
        cfg = BatteryBankConfig.model_validate(bank_config_dict)
        assert isinstance(cfg.capacity, KiBaMConfig)

    def test_unknown_capacity_type(self, bank_config_dict):
        bank_config_dict["capacity"]["type"] = "nickel"
        with pytest.raises(ValidationError):
            BatteryBankConfig.model_validate(bank_config_dict)

    @pytest.mark.parametrize("value", [0, 5])
    def test_schedule_profile_out_of_range(self, bank_config_dict, value):
        bank_config_dict["dispatch"]["schedule"][4][10] = value
        with pytest.raises(ValidationError, match="invalid battery dispatch schedule profile"):
            BatteryBankConfig.model_validate(bank_config_dict)

    def test_schedule_shape(self, bank_config_dict):
        bank_config_dict["dispatch"]["schedule"] = [[1] * 24 for _ in range(11)]
        with pytest.raises(ValidationError, match="12 months"):
            BatteryBankConfig.model_validate(bank_config_dict)

    def test_lifetime_needs_five_samples(self, bank_config_dict):
        bank_config_dict["lifetime"] = {"dod": [20.0, 80.0], "cycles_to_failure": [5000.0, 1000.0]}
        with pytest.raises(ValidationError):
            BatteryBankConfig.model_validate(bank_config_dict)

    def test_fade_lengths_must_match(self, bank_config_dict):
        bank_config_dict["capacity"]["capacities"] = [100.0, 95.0]
        with pytest.raises(ValidationError, match="same length"):
            BatteryBankConfig.model_validate(bank_config_dict)

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("BATTSIM_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("BATTSIM_PROGRESS_EVERY_HOURS", "24")
        s = Settings()
        assert s.log_level == "DEBUG"
        assert s.progress_every_hours == 24
        assert s.timestep_hours == 1.0


# ======================================================================
# Logging
# ======================================================================


class TestLogging:
    def test_json_formatter_includes_extras(self):
        record = logging.LogRecord(
            "battsim.simulation.runner", logging.INFO, __file__, 1,
            "step %d", (5,), None,
        )
        record.soc = 87.5
        record.hour = 5
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "step 5"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "battsim.simulation.runner"
        assert entry["soc"] == 87.5
        assert entry["hour"] == 5
        assert "damage" not in entry

    def test_setup_logging_replaces_handlers(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(json_format=True, level="WARNING")
            setup_logging(json_format=True, level="WARNING")
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_setup_logging_defaults_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "log_json", True)
        monkeypatch.setattr(settings, "log_level", "debug")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging()
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


# ======================================================================
# Builder and runner
# ======================================================================


class TestBuilder:
    def test_bank_layout(self, bank_and_dispatch):
        bank, dispatch = bank_and_dispatch
        assert bank.num_series == 2
        assert bank.num_batteries == 2
        assert bank.chemistry == "lithium_ion"
        assert bank.bank_voltage() == pytest.approx(28.8)
        assert dispatch.bank is bank

    def test_dynamic_voltage(self, bank_config_dict):
        bank_config_dict["voltage"] = {
            "type": "dynamic", "num_cells": 4, "cell_voltage": 3.6,
            "v_full": 4.1, "v_exp": 4.05, "v_nom": 3.4,
            "q_full": 2.25, "q_exp": 0.04, "q_nom": 2.0, "c_rate": 0.2,
        }
        bank, _ = build_from_config(BatteryBankConfig.model_validate(bank_config_dict))
        assert bank.battery.battery_voltage == pytest.approx(4 * 4.1)


class TestSimulationRunner:
    def test_two_day_run(self, bank_and_dispatch):
        bank, dispatch = bank_and_dispatch
        pv, load = _two_days()
        results = SimulationRunner(bank, dispatch, pv, load).run()

        assert results["soc"].shape == (48,)
        assert np.all((results["soc"] >= 0.0) & (results["soc"] <= 100.0))
        np.testing.assert_allclose(results["soc"] + results["dod"], 100.0)
        np.testing.assert_allclose(
            results["grid_energy_kwh"],
            pv + results["battery_energy_kwh"] - load,
            atol=1e-9,
        )
        np.testing.assert_allclose(
            results["pv_to_load_kwh"] + results["battery_to_load_kwh"] + results["grid_to_load_kwh"],
            load,
            atol=1e-9,
        )
        # Night hours discharge to the load.
        assert results["mode"][0] == int(DispatchMode.DISCHARGE_TO_MEET_LOAD)
        assert results["battery_discharge_kwh"] > 0.0
        assert results["battery_charge_kwh"] > 0.0
        assert results["pv_kwh_total"] == pytest.approx(float(pv.sum()))
        assert results["load_kwh_total"] == pytest.approx(19.2)
        assert results["cycles"] >= 1
        assert results["damage_percent"] == bank.battery.lifetime.damage
        assert np.all(results["temperature_k"] >= 298.15 - 1e-9)

    def test_run_only_once(self, bank_and_dispatch):
        bank, dispatch = bank_and_dispatch
        pv, load = _two_days()
        runner = SimulationRunner(bank, dispatch, pv, load)
        runner.run()
        with pytest.raises(RuntimeError, match="once"):
            runner.run()

    def test_length_mismatch(self, bank_and_dispatch):
        bank, dispatch = bank_and_dispatch
        with pytest.raises(ValueError, match="same length"):
            SimulationRunner(bank, dispatch, np.zeros(24), np.zeros(23))

    def test_dispatch_bound_to_other_bank(self, bank_config_dict):
        cfg = BatteryBankConfig.model_validate(bank_config_dict)
        bank_a, _ = build_from_config(cfg)
        _, dispatch_b = build_from_config(cfg)
        with pytest.raises(ValueError, match="different bank"):
            SimulationRunner(bank_a, dispatch_b, np.zeros(3), np.zeros(3))

    def test_start_hour_wraps_year_end(self, bank_and_dispatch):
        bank, dispatch = bank_and_dispatch
        pv, load = _two_days()
        results = SimulationRunner(bank, dispatch, pv, load, start_hour=8750).run()
        assert results["mode"].shape == (48,)

    def test_progress_logged(self, bank_and_dispatch, caplog):
        bank, dispatch = bank_and_dispatch
        pv, load = _two_days()
        with caplog.at_level(logging.DEBUG, logger="battsim.simulation.runner"):
            SimulationRunner(bank, dispatch, pv, load, progress_every=24).run()
        progress = [r for r in caplog.records if r.getMessage().startswith("Simulation step")]
        assert len(progress) == 2
        assert "Battery simulation complete" in caplog.text

    def test_full_year(self, bank_config_dict):
        bank_config_dict["capacity"] = {
            "type": "kibam", "q10": 93.0, "q20": 100.0, "i20": 5.0,
            "t1": 1.0, "t2": 10.0, "q1": 58.0, "q2": 93.0,
        }
        bank_config_dict["voltage"] = {"type": "basic", "num_cells": 6, "cell_voltage": 2.0}
        bank, dispatch = build_from_config(BatteryBankConfig.model_validate(bank_config_dict))
        assert dispatch.dt == 1.0

        hours = np.arange(8760) % 24
        pv = np.clip(np.sin((hours - 6) / 12.0 * np.pi), 0.0, None) * 1.2
        load = np.full(8760, 0.25)
        results = SimulationRunner(bank, dispatch, pv, load, progress_every=0).run()

        assert results["soc"].shape == (8760,)
        assert np.all((results["soc"] >= 0.0) & (results["soc"] <= 100.0))
        assert results["cycles"] >= 1
        assert results["battery_charge_kwh"] > 0.0
        assert results["grid_export_kwh"] - results["grid_import_kwh"] == pytest.approx(
            results["pv_kwh_total"] + results["battery_discharge_kwh"]
            - results["battery_charge_kwh"] - results["load_kwh_total"]
        )
