"""
Dynamic Programming Algorithm for battery dispatch against a price series.

This module computes the revenue-maximizing charge/discharge schedule for an
energy-storage asset given a known or forecast price series ($/MWh) at a fixed
interval length.

ALGORITHM OVERVIEW:
The battery state of charge is discretized into a lattice of uniformly spaced
energy levels. Backward induction over the horizon computes, for every
(time, SoC level) pair, the maximum achievable revenue-to-go and the optimal
action, measured as a signed number of lattice cells to move:
- positive = charge, negative = discharge, zero = hold
- bounded each interval by the power limit translated into lattice cells
- bounded by the remaining headroom/floor of the lattice

TERMINAL CONDITION:
- Fixed terminal SoC (target_soc set): only the target level is feasible at
  the end of the horizon, every other terminal level carries the
  infeasibility sentinel.
- Cyclic boundary (default): each terminal level is valued against a
  reference price (median of the first hours of the series). Energy above the
  starting SoC earns a salvage value, energy below it is charged a
  replenishment cost. This pulls the end state back toward the start without
  a hard equality constraint.

SWEEP:
Within one time step every lattice index depends only on the already
computed next row, so the sweep across indices is vectorized with numpy, one
candidate action at a time. Tie order is not plain enumeration order: hold is
the baseline and every other action, from discharge-most to charge-most,
replaces the incumbent only on a strict ">". Any tie involving hold therefore
resolves to hold, and ties among non-hold actions go to the most negative k.
Time steps run strictly in reverse.

FORWARD SIMULATION:
The policy is replayed from the initial SoC. The continuous SoC advances by
k * dE each interval; the lattice index is recomputed from the continuous SoC
for policy lookup only, so rounding never compounds. When the continuous SoC
sits between levels, the snapped level may allow a step past 0 or capacity;
the realized move is then cut at the bound and grid energy, cash and the
operation tag all follow the realized move.

RETURN STRUCTURE:
- per-interval schedule with operation, grid energy, cash and SoC
- aggregate revenue, throughput, cycles and volume-weighted prices
- the DP optimum V[0][idx(soc0)] and the terminal value of the realized end
  state, so revenue + terminal_value equals the optimum when soc0 lies on a
  lattice level
- smoothed reservation prices at multiple reference SoC levels
- echoed settings including the resolved lattice resolution
"""

__all__ = [
    "DispatchTables",
    "compare_resolutions",
    "optimize_dispatch",
    "print_dispatch_results",
    "simulate_dispatch",
    "solve_value_function",
]


import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, replace

import numpy as np

from core.dispatch.exceptions import InfeasibleHorizonError, InvalidConfigurationError
from core.dispatch.lattice import (
    INFEASIBLE,
    StateLattice,
    is_feasible,
)
from core.dispatch.models import (
    DispatchResult,
    DispatchSummary,
    IntervalData,
    Operation,
)
from core.dispatch.post_processing import enforce_min_run
from core.dispatch.price_conditioner import clean_prices_with_settings, reference_price
from core.dispatch.reservation_prices import estimate_reservation_prices
from core.dispatch.settings import (
    RESERVATION_HALF_WINDOW,
    RESERVATION_SOC_LEVELS,
    BatterySettings,
    PriceSettings,
)

logger = logging.getLogger(__name__)


@dataclass
class DispatchTables:
    """Value function and policy owned by one optimization call."""

    lattice: StateLattice
    value_function: np.ndarray  # (T + 1) x soc_steps revenue-to-go
    policy: np.ndarray  # T x soc_steps signed lattice-cell actions
    reference_price: float | None = None  # None in fixed terminal mode


def _validate_inputs(prices: Sequence[float], battery_settings: BatterySettings) -> None:
    """Reject configurations that cannot describe a valid problem."""
    if len(prices) == 0:
        raise InvalidConfigurationError("prices", "Price series is empty")
    if not battery_settings.capacity_mwh > 0:
        raise InvalidConfigurationError(
            "capacity_mwh",
            f"Invalid capacity_mwh={battery_settings.capacity_mwh}, must be > 0",
        )
    if not battery_settings.power_mw >= 0:
        raise InvalidConfigurationError(
            "power_mw", f"Invalid power_mw={battery_settings.power_mw}, must be >= 0"
        )
    if not battery_settings.dt_hours > 0:
        raise InvalidConfigurationError(
            "dt_hours", f"Invalid dt_hours={battery_settings.dt_hours}, must be > 0"
        )
    for name in ("efficiency_charge", "efficiency_discharge"):
        value = getattr(battery_settings, name)
        if not 0 < value <= 1:
            raise InvalidConfigurationError(
                name, f"Invalid {name}={value}, must be in (0, 1]"
            )
    if not 0 <= battery_settings.initial_soc <= 1:
        raise InvalidConfigurationError(
            "initial_soc",
            f"Invalid initial_soc={battery_settings.initial_soc}, must be in [0, 1]",
        )
    if battery_settings.target_soc is not None and not (
        0 <= battery_settings.target_soc <= 1
    ):
        raise InvalidConfigurationError(
            "target_soc",
            f"Invalid target_soc={battery_settings.target_soc}, must be in [0, 1]",
        )
    if not battery_settings.throughput_cost >= 0:
        raise InvalidConfigurationError(
            "throughput_cost",
            f"Invalid throughput_cost={battery_settings.throughput_cost}, must be >= 0",
        )
    if battery_settings.soc_steps is not None and battery_settings.soc_steps < 2:
        raise InvalidConfigurationError(
            "soc_steps",
            f"Invalid soc_steps={battery_settings.soc_steps}, must be >= 2",
        )


def _interval_flows(
    delta_mwh: float,
    price: float,
    battery_settings: BatterySettings,
) -> tuple[float, float, float, float]:
    """
    Grid energy and cash for a battery-side SoC change of delta_mwh.

    EFFICIENCY HANDLING:
    - Charging: grid energy bought = stored energy / charge efficiency
    - Discharging: energy sold = removed energy x discharge efficiency
    Throughput cost applies to battery-side energy in both directions.

    Returns:
        (grid_buy_mwh, grid_sell_mwh, cash, throughput_cost)
    """
    if delta_mwh > 0:
        grid_buy = delta_mwh / battery_settings.efficiency_charge
        wear_cost = battery_settings.throughput_cost * delta_mwh
        return grid_buy, 0.0, -price * grid_buy - wear_cost, wear_cost

    if delta_mwh < 0:
        removed = -delta_mwh
        grid_sell = battery_settings.efficiency_discharge * removed
        wear_cost = battery_settings.throughput_cost * removed
        return 0.0, grid_sell, price * grid_sell - wear_cost, wear_cost

    return 0.0, 0.0, 0.0, 0.0


def _terminal_values(
    lattice: StateLattice,
    battery_settings: BatterySettings,
    terminal_reference_price: float | None,
) -> np.ndarray:
    """Terminal valuation V[T][.] for the fixed or cyclic boundary mode."""
    if battery_settings.target_soc is not None:
        terminal = np.full(lattice.soc_steps, INFEASIBLE)
        end_index = lattice.index_of(
            battery_settings.capacity_mwh * battery_settings.target_soc
        )
        terminal[end_index] = 0.0
        return terminal

    start_soc = battery_settings.initial_soc_mwh
    deviation = np.arange(lattice.soc_steps) * lattice.step_mwh - start_soc

    # Excess energy is salvaged, deficit energy must be bought back
    salvage = (
        battery_settings.efficiency_discharge
        * deviation
        * terminal_reference_price
        * battery_settings.salvage_weight
    )
    replenish = (
        deviation
        * terminal_reference_price
        / battery_settings.efficiency_charge
        * battery_settings.replenish_weight
    )
    return np.where(deviation > 0, salvage, replenish)


def solve_value_function(
    prices: Sequence[float], battery_settings: BatterySettings
) -> DispatchTables:
    """
    Backward induction over the SoC lattice.

    Prices must already be cleaned (finite, no gaps).
    """
    horizon = len(prices)
    lattice = StateLattice.from_settings(battery_settings)
    n_levels = lattice.soc_steps

    terminal_reference_price = None
    if battery_settings.target_soc is None:
        if battery_settings.salvage_price is not None:
            terminal_reference_price = battery_settings.salvage_price
        else:
            terminal_reference_price = reference_price(
                prices,
                battery_settings.dt_hours,
                battery_settings.reference_window_hours,
                battery_settings.default_reference_price,
            )

    V = np.full((horizon + 1, n_levels), INFEASIBLE)
    policy = np.zeros((horizon, n_levels), dtype=np.int32)
    V[horizon] = _terminal_values(lattice, battery_settings, terminal_reference_price)

    actions = [k for k in lattice.actions() if abs(k) < n_levels]

    logger.debug(
        f"Starting DP sweep: horizon={horizon}, levels={n_levels}, "
        f"actions={len(actions) + 1}"
    )

    for t in reversed(range(horizon)):
        price = prices[t]
        next_values = V[t + 1]

        # Hold is the baseline; it stays infeasible if V[t+1][i] is
        best_values = next_values.copy()
        best_actions = np.zeros(n_levels, dtype=np.int32)

        for k in actions:
            if k > 0:
                current, target = slice(0, n_levels - k), slice(k, n_levels)
            else:
                current, target = slice(-k, n_levels), slice(0, n_levels + k)

            _, _, reward, _ = _interval_flows(k * lattice.step_mwh, price, battery_settings)
            target_values = next_values[target]
            candidates = reward + target_values
            improved = is_feasible(target_values) & (candidates > best_values[current])

            best_values[current] = np.where(improved, candidates, best_values[current])
            best_actions[current] = np.where(improved, k, best_actions[current])

        V[t] = best_values
        policy[t] = best_actions

    return DispatchTables(
        lattice=lattice,
        value_function=V,
        policy=policy,
        reference_price=terminal_reference_price,
    )


def simulate_dispatch(
    prices: Sequence[float],
    tables: DispatchTables,
    battery_settings: BatterySettings,
) -> tuple[list[IntervalData], list[float]]:
    """Replay the optimal policy forward from the initial SoC.

    Returns:
        (interval rows, SoC series in MWh of length T + 1)
    """
    lattice = tables.lattice
    capacity = battery_settings.capacity_mwh
    soc = battery_settings.initial_soc_mwh
    soc_series = [soc]
    intervals = []

    for t, price in enumerate(prices):
        i = lattice.index_of(soc)
        k = int(tables.policy[t, i])
        soc_next = soc + k * lattice.step_mwh

        # An off-lattice SoC can snap to a level with more floor or headroom
        # than it really has, so the move stops at the physical bound
        if soc_next < 0.0 or soc_next > capacity:
            soc_next = min(capacity, max(0.0, soc_next))
            delta = soc_next - soc
        else:
            delta = k * lattice.step_mwh

        grid_buy, grid_sell, cash, wear_cost = _interval_flows(
            delta, price, battery_settings
        )
        if delta > 0:
            operation = Operation.CHARGE
        elif delta < 0:
            operation = Operation.DISCHARGE
        else:
            operation = Operation.HOLD

        intervals.append(
            IntervalData(
                interval=t,
                price=price,
                operation=operation.value,
                action_cells=k,
                soc_start_mwh=soc,
                soc_end_mwh=soc_next,
                soc_fraction=soc_next / capacity,
                battery_delta_mwh=delta,
                grid_buy_mwh=grid_buy,
                grid_sell_mwh=grid_sell,
                cash=cash,
                throughput_cost=wear_cost,
            )
        )
        soc = soc_next
        soc_series.append(soc)

    return intervals, soc_series


def summarize_schedule(intervals: list[IntervalData], capacity_mwh: float) -> DispatchSummary:
    """Aggregate statistics of a realized schedule."""
    revenue = math.fsum(interval.cash for interval in intervals)
    throughput = math.fsum(interval.throughput_mwh for interval in intervals)
    energy_charged = math.fsum(interval.grid_buy_mwh for interval in intervals)
    energy_discharged = math.fsum(interval.grid_sell_mwh for interval in intervals)

    weighted_charge = math.fsum(
        interval.price * interval.grid_buy_mwh for interval in intervals
    )
    weighted_discharge = math.fsum(
        interval.price * interval.grid_sell_mwh for interval in intervals
    )

    return DispatchSummary(
        revenue=revenue,
        throughput=throughput,
        cycles=throughput / (2 * capacity_mwh),
        energy_charged=energy_charged,
        energy_discharged=energy_discharged,
        avg_charge_price=weighted_charge / energy_charged if energy_charged > 0 else 0.0,
        avg_discharge_price=(
            weighted_discharge / energy_discharged if energy_discharged > 0 else 0.0
        ),
    )


def optimize_dispatch(
    prices: Sequence[float | None],
    battery_settings: BatterySettings,
    price_settings: PriceSettings | None = None,
    reservation_levels: Sequence[float] = RESERVATION_SOC_LEVELS,
    reservation_half_window: int = RESERVATION_HALF_WINDOW,
    min_run_intervals: int | None = None,
    return_tables: bool = False,
) -> DispatchResult:
    """
    Revenue-maximizing dispatch schedule for a price series.

    Args:
        prices: Raw prices ($/MWh), one per dt_hours interval
        battery_settings: Battery and terminal-valuation settings
        price_settings: Price conditioning options (defaults: no clamp, no despike)
        reservation_levels: Reference SoC fractions for reservation curves
        reservation_half_window: Half-width of the reservation median filter
        min_run_intervals: If set, also report a schedule with short runs
            collapsed to hold
        return_tables: Attach the value function and policy to the result

    Raises:
        InvalidConfigurationError: Invalid settings or empty price series
        InfeasibleHorizonError: Terminal SoC target unreachable
    """
    _validate_inputs(prices, battery_settings)
    for level in reservation_levels:
        if not 0 <= level <= 1:
            raise InvalidConfigurationError(
                "reservation_levels", f"Invalid reservation SoC level {level}"
            )

    if price_settings is None:
        price_settings = PriceSettings()
    cleaned = clean_prices_with_settings(prices, price_settings)

    logger.info(
        f"Starting dispatch optimization: horizon={len(cleaned)}, "
        f"capacity={battery_settings.capacity_mwh:.2f} MWh, "
        f"power={battery_settings.power_mw:.2f} MW, "
        f"initial_soc={battery_settings.initial_soc:.2f}, "
        f"throughput_cost={battery_settings.throughput_cost:.2f}"
    )

    # Step 1: Backward induction
    tables = solve_value_function(cleaned, battery_settings)
    lattice = tables.lattice

    start_index = lattice.index_of(battery_settings.initial_soc_mwh)
    value0 = float(tables.value_function[0, start_index])
    if not is_feasible(value0):
        raise InfeasibleHorizonError(
            target_soc=battery_settings.target_soc,
            initial_soc=battery_settings.initial_soc,
        )

    # Step 2: Forward simulation
    intervals, soc_series = simulate_dispatch(cleaned, tables, battery_settings)
    summary = summarize_schedule(intervals, battery_settings.capacity_mwh)
    terminal_value = float(
        tables.value_function[len(cleaned), lattice.index_of(soc_series[-1])]
    )

    # Step 3: Reservation prices from the value function
    reservation = estimate_reservation_prices(
        tables.value_function,
        lattice,
        battery_settings,
        soc_levels=reservation_levels,
        half_window=reservation_half_window,
    )

    # Step 4: Optional post-processing
    min_run = None
    if min_run_intervals is not None:
        min_run = enforce_min_run(intervals, min_run_intervals)

    settings = battery_settings.as_dict()
    settings.update(
        soc_steps=lattice.soc_steps,
        step_mwh=lattice.step_mwh,
        max_charge_cells=lattice.max_charge_cells,
        max_discharge_cells=lattice.max_discharge_cells,
        reference_price=tables.reference_price,
        horizon=len(cleaned),
        price_settings={
            "clamp": price_settings.clamp,
            "despike": price_settings.despike,
            "price_floor": price_settings.price_floor,
            "price_cap": price_settings.price_cap,
        },
    )

    logger.info(
        f"Dispatch results: revenue={summary.revenue:.2f}, "
        f"cycles={summary.cycles:.2f}, throughput={summary.throughput:.2f} MWh, "
        f"spread={summary.avg_spread:.2f} $/MWh, DP optimum={value0:.2f}"
    )

    return DispatchResult(
        summary=summary,
        intervals=intervals,
        soc_series=soc_series,
        value0=value0,
        terminal_value=terminal_value,
        reservation=reservation,
        settings=settings,
        min_run=min_run,
        value_function=tables.value_function if return_tables else None,
        policy=tables.policy if return_tables else None,
    )


def compare_resolutions(
    prices: Sequence[float | None],
    battery_settings: BatterySettings,
    resolutions: Sequence[int] = (61, 121, 241),
    price_settings: PriceSettings | None = None,
) -> dict[int, dict[str, float]]:
    """Re-run the optimizer at several lattice resolutions.

    Material divergence between resolutions indicates the coarser lattice
    under-resolves the power/capacity ratio.
    """
    results = {}
    for soc_steps in resolutions:
        result = optimize_dispatch(
            prices,
            replace(battery_settings, soc_steps=soc_steps),
            price_settings=price_settings,
        )
        results[soc_steps] = {
            "revenue": result.revenue,
            "cycles": result.cycles,
            "value0": result.value0,
        }

    finest = results[max(results)]
    for soc_steps, stats in sorted(results.items()):
        divergence = stats["revenue"] - finest["revenue"]
        logger.info(
            f"Resolution {soc_steps:4d} levels: revenue={stats['revenue']:.2f}, "
            f"cycles={stats['cycles']:.2f}, vs finest={divergence:+.2f}"
        )
    return results


def print_dispatch_results(result: DispatchResult) -> None:
    """Log a detailed results table for a dispatch result.

    Args:
        result: DispatchResult from optimize_dispatch
    """
    reservation = result.reservation
    summary = result.summary

    output = []

    output.append("\nDispatch Schedule:")
    output.append(
        "╔══════╦══════════╦═══════════╦════════╦════════╦═══════╦══════════╦══════════╦══════════╗"
    )
    output.append(
        "║ Int. ║  Price   ║ Operation ║  Buy   ║  Sell  ║  SoC  ║   Cash   ║ Res. Chg ║ Res. Dis ║"
    )
    output.append(
        "║      ║ ($/MWh)  ║           ║ (MWh)  ║ (MWh)  ║  (%)  ║   ($)    ║ ($/MWh)  ║ ($/MWh)  ║"
    )
    output.append(
        "╠══════╬══════════╬═══════════╬════════╬════════╬═══════╬══════════╬══════════╬══════════╣"
    )

    for interval in result.intervals:
        t = interval.interval
        output.append(
            f"║{t:5d} ║{interval.price:9.2f} ║ {interval.operation:9s} ║"
            f"{interval.grid_buy_mwh:7.3f} ║{interval.grid_sell_mwh:7.3f} ║"
            f"{interval.soc_fraction * 100:6.1f} ║{interval.cash:9.2f} ║"
            f"{reservation.charge[t]:9.2f} ║{reservation.discharge[t]:9.2f} ║"
        )

    output.append(
        "╠══════╬══════════╬═══════════╬════════╬════════╬═══════╬══════════╬══════════╬══════════╣"
    )
    output.append(
        f"║ Tot  ║          ║           ║{summary.energy_charged:7.2f} ║"
        f"{summary.energy_discharged:7.2f} ║       ║{summary.revenue:9.2f} ║          ║          ║"
    )
    output.append(
        "╚══════╩══════════╩═══════════╩════════╩════════╩═══════╩══════════╩══════════╩══════════╝"
    )

    output.append("\n      Summary:")
    output.append(f"      Revenue:                  {summary.revenue:.2f} $")
    output.append(f"      DP optimum:               {result.value0:.2f} $")
    output.append(f"      Terminal value:           {result.terminal_value:.2f} $")
    output.append(f"      Throughput:               {summary.throughput:.2f} MWh")
    output.append(f"      Cycles:                   {summary.cycles:.2f}")
    output.append(f"      Avg charge price:         {summary.avg_charge_price:.2f} $/MWh")
    output.append(f"      Avg discharge price:      {summary.avg_discharge_price:.2f} $/MWh")
    output.append(f"      Effective spread:         {summary.avg_spread:.2f} $/MWh")
    output.append(f"      SoC levels:               {result.settings['soc_steps']}")
    if result.min_run is not None:
        output.append(
            f"      Revenue after min-run ({result.min_run.min_run_intervals}): "
            f"{result.min_run.post_processed_revenue:.2f} $ (not optimal)"
        )

    # Log all output in a single call
    logger.info("\n".join(output))
