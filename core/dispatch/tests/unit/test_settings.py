"""Test the BatterySettings and PriceSettings dataclasses."""

import math

import pytest

from core.dispatch.settings import (
    BATTERY_EFFICIENCY_CHARGE,
    PRICE_CAP,
    PRICE_FLOOR,
    BatterySettings,
    PriceSettings,
)


def test_battery_settings_defaults():
    """Defaults follow the documented input contract."""
    settings = BatterySettings()

    assert settings.dt_hours == pytest.approx(1 / 12)
    assert settings.efficiency_charge == 0.97
    assert settings.efficiency_discharge == 0.97
    assert settings.initial_soc == 0.5
    assert settings.target_soc is None
    assert settings.throughput_cost == 0.0
    assert settings.soc_steps is None
    assert settings.salvage_weight == 0.8
    assert settings.replenish_weight == 1.2


def test_battery_settings_computed_properties():
    settings = BatterySettings(capacity_mwh=20.0, initial_soc=0.25)

    assert settings.initial_soc_mwh == 5.0
    assert settings.round_trip_efficiency == pytest.approx(0.97 * 0.97)


def test_battery_settings_update_ignores_unknown_keys():
    """Test the update method of BatterySettings."""
    settings = BatterySettings()

    settings.update(capacity_mwh=40.0, power_mw=20.0, not_a_setting=123)

    assert settings.capacity_mwh == 40.0
    assert settings.power_mw == 20.0
    assert not hasattr(settings, "not_a_setting")


def test_battery_settings_from_config():
    config = {
        "battery": {
            "capacity_mwh": 100.0,
            "power_mw": 50.0,
            "throughput_cost": 12.5,
            "target_soc": 0.5,
            "soc_steps": 161,
        }
    }

    settings = BatterySettings().from_config(config)

    assert settings.capacity_mwh == 100.0
    assert settings.power_mw == 50.0
    assert settings.throughput_cost == 12.5
    assert settings.target_soc == 0.5
    assert settings.soc_steps == 161
    # Missing keys fall back to defaults
    assert settings.efficiency_charge == BATTERY_EFFICIENCY_CHARGE
    assert settings.salvage_price is None


def test_battery_settings_from_config_without_section():
    settings = BatterySettings(capacity_mwh=42.0).from_config({"prices": {}})
    assert settings.capacity_mwh == 42.0


def test_from_round_trip_splits_efficiency_evenly():
    settings = BatterySettings.from_round_trip(0.81, capacity_mwh=4.0)

    assert settings.efficiency_charge == pytest.approx(0.9)
    assert settings.efficiency_discharge == pytest.approx(0.9)
    assert settings.round_trip_efficiency == pytest.approx(0.81)
    assert settings.capacity_mwh == 4.0


def test_scaled_returns_fleet_copy():
    unit = BatterySettings(capacity_mwh=2.0, power_mw=1.0)

    fleet = unit.scaled(5)

    assert fleet.capacity_mwh == 10.0
    assert fleet.power_mw == 5.0
    assert unit.capacity_mwh == 2.0
    assert fleet.efficiency_charge == unit.efficiency_charge


def test_as_dict_echoes_all_fields():
    data = BatterySettings(throughput_cost=3.0).as_dict()

    assert data["throughput_cost"] == 3.0
    assert "salvage_price" in data
    assert "soc_steps" in data


def test_price_settings_defaults_and_config():
    settings = PriceSettings()
    assert settings.clamp is False
    assert settings.despike is False
    assert settings.price_floor == PRICE_FLOOR
    assert settings.price_cap == PRICE_CAP

    settings.from_config({"prices": {"clamp": True, "price_cap": 300.0}})
    assert settings.clamp is True
    assert settings.despike is False
    assert settings.price_cap == 300.0
    assert math.isclose(settings.price_floor, -1000.0)
