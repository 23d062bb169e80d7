"""Tests for the command-line entry point."""

import json

import pytest
import yaml

from core.dispatch.__main__ import load_options, load_prices, main

IDEAL_BATTERY_CONFIG = {
    "battery": {
        "capacity_mwh": 10.0,
        "power_mw": 10.0,
        "efficiency_charge": 1.0,
        "efficiency_discharge": 1.0,
        "initial_soc": 0.0,
        "target_soc": 0.0,
        "soc_steps": 121,
    }
}


@pytest.fixture
def prices_file(tmp_path, sawtooth_price_data):
    path = tmp_path / "prices.json"
    path.write_text(json.dumps({"prices": sawtooth_price_data}))
    return path


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(IDEAL_BATTERY_CONFIG))
    return path


def test_load_prices_accepts_list_and_object(tmp_path):
    list_file = tmp_path / "list.json"
    list_file.write_text("[1.5, null, 3.0]")
    object_file = tmp_path / "object.json"
    object_file.write_text('{"prices": [4.0]}')

    assert load_prices(list_file) == [1.5, None, 3.0]
    assert load_prices(object_file) == [4.0]


def test_load_options_unwraps_options_section(tmp_path):
    path = tmp_path / "options.yaml"
    path.write_text(yaml.safe_dump({"options": IDEAL_BATTERY_CONFIG}))

    assert load_options(path) == IDEAL_BATTERY_CONFIG
    assert load_options(None) == {}


def test_main_prints_summary(prices_file, config_file, capsys, restore_logging):
    exit_code = main([str(prices_file), "--config", str(config_file), "--min-run", "3"])

    assert exit_code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["revenue"] == pytest.approx(900.0)
    assert output["cycles"] == pytest.approx(1.0)
    assert output["soc_steps"] == 121
    assert output["post_processed_revenue"] == pytest.approx(900.0)


def test_main_calibrates_before_optimizing(
    prices_file, config_file, capsys, restore_logging
):
    exit_code = main(
        [str(prices_file), "--config", str(config_file), "--target-cycles", "0.5"]
    )

    assert exit_code == 0
    output = json.loads(capsys.readouterr().out)
    # A single 90 $/MWh spread stops paying above 45 $/MWh per leg
    assert output["throughput_cost"] == pytest.approx(45.0, abs=0.01)


def test_main_missing_prices_file(tmp_path, restore_logging):
    assert main([str(tmp_path / "missing.json")]) == 1


def test_main_invalid_battery_config(prices_file, tmp_path, restore_logging):
    config = tmp_path / "bad.yaml"
    config.write_text(yaml.safe_dump({"battery": {"capacity_mwh": -1.0}}))

    assert main([str(prices_file), "--config", str(config)]) == 1


def test_main_malformed_yaml(prices_file, tmp_path, restore_logging):
    config = tmp_path / "broken.yaml"
    config.write_text("battery: [unclosed\n")

    assert main([str(prices_file), "--config", str(config)]) == 1
