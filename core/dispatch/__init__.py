"""Battery dispatch optimization package."""

# Define public API - only include what users should directly access
__all__ = [
    "BatterySettings",
    "DispatchResult",
    "InfeasibleHorizonError",
    "InvalidConfigurationError",
    "PriceSettings",
    "calculate_degradation_cost",
    "calibrate_throughput_cost",
    "clean_prices",
    "enforce_min_run",
    "optimize_dispatch",
    "smooth_reservation_prices",
]

from .settings import (  # noqa: I001
    BatterySettings,
    PriceSettings,
)

from .exceptions import InfeasibleHorizonError, InvalidConfigurationError
from .models import DispatchResult
from .price_conditioner import clean_prices
from .reservation_prices import smooth_reservation_prices
from .post_processing import calculate_degradation_cost, enforce_min_run

# Main entry points
from .dp_dispatch_algorithm import optimize_dispatch
from .calibration import calibrate_throughput_cost
