"""
Reservation prices derived from the value function.

The marginal value of stored energy at time t is the finite-difference slope
of V[t+1][.] with respect to SoC at a reference lattice level (forward
difference, backward difference at the top level). It converts to break-even
prices:

- charge reservation price = eta_charge * marginal - throughput_cost
- discharge reservation price = (marginal + throughput_cost) / eta_discharge

Charging is worthwhile below the charge reservation price, discharging above
the discharge reservation price. Each series is smoothed with a sliding
median filter so single-interval noise does not flip the recommendation.
The mid-SoC curve is the primary one; other levels are diagnostics.
"""

import logging
import math
from collections.abc import Sequence

import numpy as np

from .lattice import StateLattice, is_feasible
from .models import ReservationCurve, ReservationPrices
from .settings import RESERVATION_HALF_WINDOW, RESERVATION_SOC_LEVELS, BatterySettings

logger = logging.getLogger(__name__)

PRIMARY_SOC_LEVEL = 0.5


def smooth_reservation_prices(
    values: Sequence[float], half_window: int = RESERVATION_HALF_WINDOW
) -> list[float]:
    """Sliding median filter ignoring non-finite entries.

    Uses the upper median for even windows. Entries whose whole window is
    non-finite keep their original value.
    """
    smoothed = []
    for i in range(len(values)):
        window = sorted(
            v
            for v in values[max(0, i - half_window) : i + half_window + 1]
            if math.isfinite(v)
        )
        smoothed.append(float(window[len(window) // 2]) if window else float(values[i]))
    return smoothed


def marginal_values(
    value_function: np.ndarray, lattice: StateLattice, index: int
) -> np.ndarray:
    """Marginal value ($/MWh stored) of energy at a lattice index, one per interval.

    Entries whose neighbouring cells are unreachable are NaN.
    """
    next_values = value_function[1:]
    if index < lattice.soc_steps - 1:
        lower, upper = next_values[:, index], next_values[:, index + 1]
    else:
        lower, upper = next_values[:, index - 1], next_values[:, index]

    feasible = is_feasible(lower) & is_feasible(upper)
    with np.errstate(invalid="ignore"):
        marginal = (upper - lower) / lattice.step_mwh
    return np.where(feasible, marginal, np.nan)


def reservation_curve(
    value_function: np.ndarray,
    lattice: StateLattice,
    battery_settings: BatterySettings,
    soc_level: float,
    half_window: int = RESERVATION_HALF_WINDOW,
) -> ReservationCurve:
    """Smoothed charge/discharge reservation prices at one reference SoC fraction."""
    marginal = marginal_values(
        value_function, lattice, lattice.index_of_fraction(soc_level)
    )
    charge = (
        battery_settings.efficiency_charge * marginal - battery_settings.throughput_cost
    )
    discharge = (
        marginal + battery_settings.throughput_cost
    ) / battery_settings.efficiency_discharge

    return ReservationCurve(
        soc_level=soc_level,
        charge=smooth_reservation_prices(charge.tolist(), half_window),
        discharge=smooth_reservation_prices(discharge.tolist(), half_window),
    )


def estimate_reservation_prices(
    value_function: np.ndarray,
    lattice: StateLattice,
    battery_settings: BatterySettings,
    soc_levels: Sequence[float] = RESERVATION_SOC_LEVELS,
    half_window: int = RESERVATION_HALF_WINDOW,
) -> ReservationPrices:
    """Primary (mid-SoC) reservation prices plus curves at each reference level."""
    primary = reservation_curve(
        value_function, lattice, battery_settings, PRIMARY_SOC_LEVEL, half_window
    )
    by_soc = {
        level: reservation_curve(
            value_function, lattice, battery_settings, level, half_window
        )
        for level in soc_levels
    }

    logger.debug(
        f"Reservation prices computed at SoC levels {list(soc_levels)} "
        f"(half window {half_window})"
    )

    return ReservationPrices(
        charge=primary.charge,
        discharge=primary.discharge,
        by_soc=by_soc,
    )
