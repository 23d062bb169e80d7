"""Shared test fixtures and utilities for dispatch optimizer tests."""

import logging
import math
import os
import sys

import pytest

# Add the project root to Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../../.."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from core.dispatch.settings import BatterySettings  # noqa: E402

FIVE_MINUTES = 1 / 12


def sawtooth_prices(blocks, block_length=12):
    """Concatenate constant-price blocks of block_length intervals."""
    prices = []
    for price in blocks:
        prices.extend([float(price)] * block_length)
    return prices


@pytest.fixture
def ideal_battery():
    """10 MWh / 10 MW lossless battery that starts and must end empty.

    At 5-minute intervals it fills in exactly 12 intervals.
    """
    return BatterySettings(
        capacity_mwh=10.0,
        power_mw=10.0,
        dt_hours=FIVE_MINUTES,
        efficiency_charge=1.0,
        efficiency_discharge=1.0,
        initial_soc=0.0,
        target_soc=0.0,
        throughput_cost=0.0,
        soc_steps=121,
    )


@pytest.fixture
def grid_battery():
    """Typical 2-hour utility battery with default efficiencies."""
    return BatterySettings(
        capacity_mwh=10.0,
        power_mw=5.0,
        dt_hours=FIVE_MINUTES,
        initial_soc=0.5,
        soc_steps=201,
    )


@pytest.fixture
def sawtooth_price_data():
    """One low block (10 $/MWh) followed by one high block (100 $/MWh)."""
    return sawtooth_prices([10, 100])


@pytest.fixture
def stacked_spread_price_data():
    """Three charge/discharge block pairs with spreads of 90, 50 and 20 $/MWh."""
    return sawtooth_prices([10, 100, 40, 90, 50, 70])


@pytest.fixture
def daily_price_data():
    """A day of 5-minute prices with a midday solar trough and an evening peak."""
    prices = []
    for t in range(288):
        hour = t / 12
        price = 60 + 40 * math.sin((hour - 9) / 24 * 2 * math.pi)
        if 11 <= hour < 15:
            price -= 50
        if 17 <= hour < 20:
            price += 120
        prices.append(round(price + 5 * math.sin(t * 0.7), 2))
    return prices


@pytest.fixture
def restore_logging():
    """Undo logging changes made by the loguru setup."""
    from loguru import logger as loguru_logger

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    loguru_logger.remove()
    root.handlers = handlers
    root.setLevel(level)
