"""
Price conditioning for the dispatch optimizer.

Raw price series can contain missing or non-finite entries and extreme spikes.
The conditioner coerces every entry to a finite number so the dynamic
programming pass never sees a gap:

- None, NaN and infinite values become 0.
- With clamping enabled, values are limited to the market floor and cap.
- With de-spiking enabled, a 3-point median filter runs as the final pass
  (endpoints unchanged).

No error is raised; the output always has the same length as the input.
"""

import logging
import math
from collections.abc import Sequence

from .settings import PRICE_CAP, PRICE_FLOOR, PriceSettings

logger = logging.getLogger(__name__)


def _coerce_price(price) -> float:
    if price is None:
        return 0.0
    try:
        value = float(price)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def median_filter_3(prices: Sequence[float]) -> list[float]:
    """3-point median filter leaving the first and last value unchanged."""
    filtered = list(prices)
    for i in range(1, len(prices) - 1):
        window = sorted((prices[i - 1], prices[i], prices[i + 1]))
        filtered[i] = window[1]
    return filtered


def clean_prices(
    prices: Sequence[float | None],
    clamp: bool = False,
    despike: bool = False,
    price_floor: float = PRICE_FLOOR,
    price_cap: float = PRICE_CAP,
) -> list[float]:
    """Clean a raw price series.

    Args:
        prices: Raw prices in $/MWh, possibly containing None or NaN
        clamp: Limit every value to [price_floor, price_cap]
        despike: Apply a 3-point median filter after coercion and clamping
        price_floor: Market floor price used when clamping
        price_cap: Market price cap used when clamping

    Returns:
        Cleaned prices with the same length as the input
    """
    cleaned = []
    coerced = 0
    for price in prices:
        value = _coerce_price(price)
        if value == 0.0 and price != 0:
            coerced += 1
        if clamp:
            value = max(price_floor, min(price_cap, value))
        cleaned.append(value)

    if coerced:
        logger.warning(f"Replaced {coerced} missing or non-finite prices with 0")

    if despike:
        return median_filter_3(cleaned)

    return cleaned


def clean_prices_with_settings(
    prices: Sequence[float | None], price_settings: PriceSettings
) -> list[float]:
    """Clean prices using the options held in a PriceSettings instance."""
    return clean_prices(
        prices,
        clamp=price_settings.clamp,
        despike=price_settings.despike,
        price_floor=price_settings.price_floor,
        price_cap=price_settings.price_cap,
    )


def reference_price(
    prices: Sequence[float],
    dt_hours: float,
    window_hours: float,
    default: float,
) -> float:
    """Median of the prices in the first window_hours of the series.

    The upper median is used for even-length windows. Falls back to default
    when the window holds no finite prices.
    """
    window_intervals = max(1, int(round(window_hours / dt_hours)))
    window = sorted(
        p for p in prices[:window_intervals] if p is not None and math.isfinite(p)
    )
    if not window:
        return default
    return window[len(window) // 2]
