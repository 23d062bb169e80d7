# core/dispatch/models.py
"""
Data models for the dispatch optimizer.

This module contains dataclasses representing the records produced by a single
optimization call: per-interval schedule rows, aggregate statistics, reservation
price curves and the complete result record.

"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

__all__ = [
    "DispatchResult",
    "DispatchSummary",
    "IntervalData",
    "MinRunResult",
    "Operation",
    "ReservationCurve",
    "ReservationPrices",
]


class Operation(Enum):
    """Battery operation for one dispatch interval."""

    CHARGE = "charge"
    DISCHARGE = "discharge"
    HOLD = "hold"


@dataclass
class IntervalData:
    """Realized schedule row for one dispatch interval.

    Energy is in MWh per interval, cash in $. Grid-side energy is what is
    bought from or sold to the market; battery-side energy is the SoC change.
    """

    interval: int
    price: float  # $/MWh
    operation: str  # Operation value
    action_cells: int  # policy action in lattice cells (+ charge, - discharge)
    soc_start_mwh: float
    soc_end_mwh: float
    soc_fraction: float  # soc_end_mwh / capacity
    battery_delta_mwh: float  # signed battery-side SoC change
    grid_buy_mwh: float = 0.0
    grid_sell_mwh: float = 0.0
    cash: float = 0.0  # market cash flow net of throughput cost
    throughput_cost: float = 0.0  # $ degradation charge included in cash

    @property
    def throughput_mwh(self) -> float:
        """Battery-side energy moved during this interval."""
        return abs(self.battery_delta_mwh)

    @property
    def is_hold(self) -> bool:
        return self.operation == Operation.HOLD.value

    def validate_energy_balance(
        self, efficiency_charge: float, efficiency_discharge: float, tolerance: float = 1e-9
    ) -> tuple[bool, str]:
        """Check grid-side energy against the battery-side SoC change."""
        if self.operation == Operation.CHARGE.value:
            expected = self.battery_delta_mwh / efficiency_charge
            error = abs(self.grid_buy_mwh - expected)
        elif self.operation == Operation.DISCHARGE.value:
            expected = efficiency_discharge * abs(self.battery_delta_mwh)
            error = abs(self.grid_sell_mwh - expected)
        else:
            error = abs(self.grid_buy_mwh) + abs(self.grid_sell_mwh)

        if error <= tolerance:
            return True, f"Energy balance OK: {error:.3g} MWh error"
        logger.warning(
            f"Energy balance mismatch in interval {self.interval}: "
            f"error={error:.6f} MWh"
        )
        return False, f"Energy balance error: {error:.6f} MWh"


@dataclass
class DispatchSummary:
    """Aggregate statistics of the forward-simulated schedule."""

    revenue: float  # $ - sum of interval cash flows
    throughput: float  # MWh - battery-side energy moved
    cycles: float  # throughput / (2 * capacity)
    energy_charged: float  # MWh bought from the grid
    energy_discharged: float  # MWh sold to the grid
    avg_charge_price: float  # $/MWh volume-weighted
    avg_discharge_price: float  # $/MWh volume-weighted
    avg_spread: float = field(init=False)
    energy_traded: float = field(init=False)

    def __post_init__(self):
        self.avg_spread = self.avg_discharge_price - self.avg_charge_price
        self.energy_traded = self.energy_charged + self.energy_discharged


@dataclass
class ReservationCurve:
    """Smoothed charge/discharge break-even prices at one reference SoC."""

    soc_level: float
    charge: list[float]
    discharge: list[float]


@dataclass
class ReservationPrices:
    """Primary (mid-SoC) reservation curve plus per-level diagnostics."""

    charge: list[float]
    discharge: list[float]
    by_soc: dict[float, ReservationCurve] = field(default_factory=dict)


@dataclass
class MinRunResult:
    """Schedule after minimum run-length enforcement.

    The revenue here is a derived statistic; it is not an optimum.
    """

    min_run_intervals: int
    intervals: list[IntervalData]
    post_processed_revenue: float
    collapsed_intervals: int


@dataclass
class DispatchResult:
    """Result structure returned by optimize_dispatch."""

    summary: DispatchSummary
    intervals: list[IntervalData]
    soc_series: list[float]  # MWh, length T + 1
    value0: float  # DP optimum V[0][idx(soc0)]
    terminal_value: float  # terminal valuation of the realized end state
    reservation: ReservationPrices
    settings: dict[str, Any]
    min_run: MinRunResult | None = None
    value_function: np.ndarray | None = None
    policy: np.ndarray | None = None

    @property
    def revenue(self) -> float:
        return self.summary.revenue

    @property
    def cycles(self) -> float:
        return self.summary.cycles

    @property
    def throughput(self) -> float:
        return self.summary.throughput

    @property
    def soc_fractions(self) -> list[float]:
        capacity = self.settings["capacity_mwh"]
        return [soc / capacity for soc in self.soc_series]

    def validate_data(self, tolerance: float = 1e-6) -> list[str]:
        """Validate invariants of the realized schedule and return any errors."""
        errors = []
        capacity = self.settings["capacity_mwh"]
        eta_c = self.settings["efficiency_charge"]
        eta_d = self.settings["efficiency_discharge"]

        for interval in self.intervals:
            ok, message = interval.validate_energy_balance(eta_c, eta_d)
            if not ok:
                errors.append(f"Interval {interval.interval}: {message}")

            soc_change = interval.soc_end_mwh - interval.soc_start_mwh
            if abs(soc_change - interval.battery_delta_mwh) > tolerance:
                errors.append(
                    f"Interval {interval.interval}: SoC change {soc_change:.6f} MWh "
                    f"differs from battery delta {interval.battery_delta_mwh:.6f} MWh"
                )

        for t, soc in enumerate(self.soc_series):
            if soc < -tolerance or soc > capacity + tolerance:
                errors.append(f"SoC out of bounds at step {t}: {soc:.6f} MWh")

        # The SoC series must chain through the interval rows
        for t, interval in enumerate(self.intervals[: len(self.soc_series) - 1]):
            series_change = self.soc_series[t + 1] - self.soc_series[t]
            if abs(series_change - interval.battery_delta_mwh) > tolerance:
                errors.append(
                    f"SoC series step {t} changes by {series_change:.6f} MWh, "
                    f"battery delta is {interval.battery_delta_mwh:.6f} MWh"
                )

        cash_total = sum(interval.cash for interval in self.intervals)
        if abs(cash_total - self.summary.revenue) > tolerance:
            errors.append(
                f"Cash total {cash_total:.6f} differs from revenue "
                f"{self.summary.revenue:.6f}"
            )

        return errors
