"""Throughput-cost calibration against a cycle target.

Realized throughput is non-increasing in the throughput cost, so a bisection
over the cost drives the realized cycle count toward a target. Every trial
re-runs the full optimization; the caller's settings are never mutated.
"""

import logging
from collections.abc import Sequence
from dataclasses import replace

from .dp_dispatch_algorithm import optimize_dispatch
from .exceptions import InvalidConfigurationError
from .settings import (
    CALIBRATION_COST_BRACKET,
    CALIBRATION_ITERATIONS,
    BatterySettings,
    PriceSettings,
)

logger = logging.getLogger(__name__)


def calibrate_throughput_cost(
    prices: Sequence[float | None],
    target_cycles: float,
    battery_settings: BatterySettings,
    price_settings: PriceSettings | None = None,
    bracket: tuple[float, float] = CALIBRATION_COST_BRACKET,
    iterations: int = CALIBRATION_ITERATIONS,
) -> float:
    """Bisection over throughput_cost so realized cycles approach target_cycles.

    Args:
        prices: Raw prices ($/MWh)
        target_cycles: Desired full cycles over the horizon
        battery_settings: Settings for every trial (throughput_cost is overridden)
        price_settings: Price conditioning options
        bracket: (low, high) search bracket in $/MWh
        iterations: Fixed number of bisection steps

    Returns:
        Calibrated throughput cost in $/MWh
    """
    if target_cycles < 0:
        raise InvalidConfigurationError(
            "target_cycles", f"Invalid target_cycles={target_cycles}, must be >= 0"
        )
    low, high = bracket
    if not 0 <= low < high:
        raise InvalidConfigurationError(
            "bracket", f"Invalid calibration bracket {bracket}"
        )

    target_throughput = 2 * battery_settings.capacity_mwh * target_cycles

    for iteration in range(iterations):
        mid = (low + high) / 2
        result = optimize_dispatch(
            prices,
            replace(battery_settings, throughput_cost=mid),
            price_settings=price_settings,
        )

        logger.debug(
            f"Calibration step {iteration + 1}/{iterations}: cost={mid:.4f}, "
            f"throughput={result.throughput:.3f} MWh (target {target_throughput:.3f})"
        )

        if result.throughput > target_throughput:
            low = mid  # Higher cost needed to reduce throughput
        else:
            high = mid

    calibrated = (low + high) / 2
    logger.info(
        f"Calibrated throughput cost {calibrated:.4f} $/MWh for "
        f"{target_cycles:.2f} target cycles"
    )
    return calibrated
