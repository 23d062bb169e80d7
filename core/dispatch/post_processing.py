"""Post-processing of realized dispatch schedules.

Nothing here re-runs the optimizer. The minimum run-length pass produces a
derived schedule whose revenue is reported separately and is no longer an
optimum.
"""

import logging
from dataclasses import replace

from .exceptions import InvalidConfigurationError
from .models import IntervalData, MinRunResult, Operation
from .settings import DEFAULT_OM_COST_PER_MWH, MIN_RUN_INTERVALS

logger = logging.getLogger(__name__)


def _as_hold(interval: IntervalData) -> IntervalData:
    # SoC fields keep the optimizer's trajectory
    return replace(
        interval,
        operation=Operation.HOLD.value,
        action_cells=0,
        battery_delta_mwh=0.0,
        grid_buy_mwh=0.0,
        grid_sell_mwh=0.0,
        cash=0.0,
        throughput_cost=0.0,
    )


def enforce_min_run(
    intervals: list[IntervalData], min_run_intervals: int = MIN_RUN_INTERVALS
) -> MinRunResult:
    """Collapse runs of identical non-hold operations shorter than
    min_run_intervals into hold.

    The input schedule is not modified.
    """
    if min_run_intervals < 1:
        raise InvalidConfigurationError(
            "min_run_intervals",
            f"Invalid min_run_intervals={min_run_intervals}, must be >= 1",
        )

    processed = list(intervals)
    collapsed = 0
    i = 0

    while i < len(processed):
        operation = processed[i].operation
        if operation == Operation.HOLD.value:
            i += 1
            continue

        run_length = 1
        while (
            i + run_length < len(processed)
            and processed[i + run_length].operation == operation
        ):
            run_length += 1

        if run_length < min_run_intervals:
            for j in range(i, i + run_length):
                processed[j] = _as_hold(processed[j])
            collapsed += run_length
            logger.debug(
                f"Collapsed {operation} run of {run_length} intervals at {i} to hold"
            )

        i += run_length

    revenue = sum(interval.cash for interval in processed)
    if collapsed:
        logger.info(
            f"Minimum run enforcement ({min_run_intervals}) collapsed "
            f"{collapsed} intervals, post-processed revenue={revenue:.2f}"
        )

    return MinRunResult(
        min_run_intervals=min_run_intervals,
        intervals=processed,
        post_processed_revenue=revenue,
        collapsed_intervals=collapsed,
    )


def calculate_degradation_cost(
    pack_cost_per_kwh: float,
    usable_dod: float,
    cycle_life: float,
    om_per_mwh: float = DEFAULT_OM_COST_PER_MWH,
) -> float:
    """
    Throughput cost ($/MWh) from battery economics.

    throughput_cost = pack_cost / (usable_dod * cycle_life) * 1000 + O&M

    Example for a 300 $/kWh pack, 90% usable depth of discharge and 6000
    cycles with 5 $/MWh O&M:
    - degradation: 300 / (0.9 x 6000) x 1000 = 55.56 $/MWh
    - throughput cost: 55.56 + 5 = 60.56 $/MWh
    """
    if not 0 < usable_dod <= 1:
        raise InvalidConfigurationError(
            "usable_dod", f"Invalid usable_dod={usable_dod}, must be in (0, 1]"
        )
    if not cycle_life > 0:
        raise InvalidConfigurationError(
            "cycle_life", f"Invalid cycle_life={cycle_life}, must be > 0"
        )
    if pack_cost_per_kwh < 0 or om_per_mwh < 0:
        raise InvalidConfigurationError(
            message="Pack cost and O&M cost must be non-negative"
        )

    degradation = pack_cost_per_kwh / (usable_dod * cycle_life) * 1000
    return degradation + om_per_mwh
