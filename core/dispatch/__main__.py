"""Command line for running the dispatch optimizer on a stored price series.

Usage:
    python -m core.dispatch prices.json [--config config.yaml] [--clamp]
        [--despike] [--min-run N] [--target-cycles X] [--log-level LEVEL]

The prices file holds either a JSON list of prices or an object with a
"prices" list. The optional YAML config holds "battery" and "prices"
sections (optionally nested under "options").
"""

import argparse
import json
import sys
from pathlib import Path

import yaml
from loguru import logger

from .calibration import calibrate_throughput_cost
from .dp_dispatch_algorithm import optimize_dispatch, print_dispatch_results
from .exceptions import DispatchException
from .log_config import setup_logging
from .settings import BatterySettings, PriceSettings


def load_prices(path: Path) -> list:
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        return data["prices"]
    return data


def load_options(path: Path | None) -> dict:
    """Load the YAML config, unwrapping an "options" section if present."""
    if path is None:
        return {}
    with open(path) as f:
        config = yaml.safe_load(f) or {}
    if "options" in config:
        logger.info(f"Loaded options from {path} (options section)")
        return config["options"]
    logger.info(f"Loaded options from {path}")
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m core.dispatch",
        description="Optimal battery dispatch against a price series",
    )
    parser.add_argument("prices", type=Path, help="JSON file with the price series")
    parser.add_argument("--config", type=Path, help="YAML file with battery settings")
    parser.add_argument("--clamp", action="store_true", help="Clamp to market limits")
    parser.add_argument("--despike", action="store_true", help="3-point median filter")
    parser.add_argument("--min-run", type=int, help="Minimum run length in intervals")
    parser.add_argument(
        "--target-cycles",
        type=float,
        help="Calibrate throughput cost to this cycle count first",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        options = load_options(args.config)
        battery_settings = BatterySettings().from_config(options)
        price_settings = PriceSettings().from_config(options)
        if args.clamp:
            price_settings.clamp = True
        if args.despike:
            price_settings.despike = True

        prices = load_prices(args.prices)

        if args.target_cycles is not None:
            battery_settings.throughput_cost = calibrate_throughput_cost(
                prices, args.target_cycles, battery_settings, price_settings
            )

        result = optimize_dispatch(
            prices,
            battery_settings,
            price_settings=price_settings,
            min_run_intervals=args.min_run,
        )
    except (DispatchException, OSError, KeyError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Dispatch optimization failed: {e}")
        return 1

    print_dispatch_results(result)

    summary = result.summary
    output = {
        "revenue": summary.revenue,
        "cycles": summary.cycles,
        "throughput": summary.throughput,
        "energy_charged": summary.energy_charged,
        "energy_discharged": summary.energy_discharged,
        "avg_spread": summary.avg_spread,
        "value0": result.value0,
        "throughput_cost": battery_settings.throughput_cost,
        "soc_steps": result.settings["soc_steps"],
    }
    if result.min_run is not None:
        output["post_processed_revenue"] = result.min_run.post_processed_revenue
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
