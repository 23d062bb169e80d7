"""Core configuration values and types for battery dispatch using dataclasses."""

import math
from dataclasses import asdict, dataclass, replace
from typing import Any

# Market settings defaults
PRICE_FLOOR = -1000.0  # $/MWh market floor price
PRICE_CAP = 16600.0  # $/MWh market price cap
DEFAULT_REFERENCE_PRICE = 50.0  # $/MWh when no reference window is available
REFERENCE_WINDOW_HOURS = 5.0  # Hours at the start of the horizon used for the reference price

# Battery settings defaults
BATTERY_CAPACITY_MWH = 10.0
BATTERY_POWER_MW = 5.0
BATTERY_EFFICIENCY_CHARGE = 0.97
BATTERY_EFFICIENCY_DISCHARGE = 0.97
BATTERY_INITIAL_SOC = 0.5  # fraction of capacity
BATTERY_THROUGHPUT_COST = 0.0  # $/MWh of battery-side energy moved

# Dispatch interval defaults
DISPATCH_INTERVAL_HOURS = 5 / 60  # 5-minute dispatch intervals

# Cyclic terminal valuation weights on the reference price
SALVAGE_WEIGHT = 0.8  # Energy above the starting SoC
REPLENISH_WEIGHT = 1.2  # Energy below the starting SoC

# Reservation price defaults
RESERVATION_SOC_LEVELS = (0.2, 0.5, 0.8)
RESERVATION_HALF_WINDOW = 3

# Calibration defaults
CALIBRATION_COST_BRACKET = (0.0, 200.0)  # $/MWh
CALIBRATION_ITERATIONS = 16

# Post-processing defaults
MIN_RUN_INTERVALS = 3
DEFAULT_OM_COST_PER_MWH = 5.0


@dataclass
class PriceSettings:
    """Price conditioning options applied before optimization."""

    clamp: bool = False
    despike: bool = False
    price_floor: float = PRICE_FLOOR
    price_cap: float = PRICE_CAP

    def update(self, **kwargs: Any) -> None:
        """Update settings from dict."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def from_config(self, config: dict) -> "PriceSettings":
        """Load settings from the "prices" section of a config dict."""
        if "prices" in config:
            price_config = config["prices"]
            self.clamp = price_config.get("clamp", False)
            self.despike = price_config.get("despike", False)
            self.price_floor = price_config.get("price_floor", PRICE_FLOOR)
            self.price_cap = price_config.get("price_cap", PRICE_CAP)
        return self


@dataclass
class BatterySettings:
    """Battery and market settings for a single dispatch optimization.

    SoC values (initial_soc, target_soc) are fractions of capacity.
    A target_soc of None selects the cyclic terminal valuation.
    A soc_steps of None lets the lattice resolution auto-scale.
    """

    capacity_mwh: float = BATTERY_CAPACITY_MWH
    power_mw: float = BATTERY_POWER_MW
    dt_hours: float = DISPATCH_INTERVAL_HOURS
    efficiency_charge: float = BATTERY_EFFICIENCY_CHARGE
    efficiency_discharge: float = BATTERY_EFFICIENCY_DISCHARGE
    initial_soc: float = BATTERY_INITIAL_SOC
    target_soc: float | None = None
    throughput_cost: float = BATTERY_THROUGHPUT_COST
    soc_steps: int | None = None
    salvage_price: float | None = None
    salvage_weight: float = SALVAGE_WEIGHT
    replenish_weight: float = REPLENISH_WEIGHT
    reference_window_hours: float = REFERENCE_WINDOW_HOURS
    default_reference_price: float = DEFAULT_REFERENCE_PRICE

    @property
    def initial_soc_mwh(self) -> float:
        return min(self.capacity_mwh, max(0.0, self.capacity_mwh * self.initial_soc))

    @property
    def round_trip_efficiency(self) -> float:
        return self.efficiency_charge * self.efficiency_discharge

    def update(self, **kwargs: Any) -> None:
        """Update settings from dict."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def from_config(self, config: dict) -> "BatterySettings":
        """Load settings from the "battery" section of a config dict."""
        if "battery" in config:
            battery_config = config["battery"]
            self.capacity_mwh = battery_config.get(
                "capacity_mwh", BATTERY_CAPACITY_MWH
            )
            self.power_mw = battery_config.get("power_mw", BATTERY_POWER_MW)
            self.dt_hours = battery_config.get("dt_hours", DISPATCH_INTERVAL_HOURS)
            self.efficiency_charge = battery_config.get(
                "efficiency_charge", BATTERY_EFFICIENCY_CHARGE
            )
            self.efficiency_discharge = battery_config.get(
                "efficiency_discharge", BATTERY_EFFICIENCY_DISCHARGE
            )
            self.initial_soc = battery_config.get("initial_soc", BATTERY_INITIAL_SOC)
            self.target_soc = battery_config.get("target_soc")
            self.throughput_cost = battery_config.get(
                "throughput_cost", BATTERY_THROUGHPUT_COST
            )
            self.soc_steps = battery_config.get("soc_steps")
            self.salvage_price = battery_config.get("salvage_price")
        return self

    @classmethod
    def from_round_trip(
        cls, round_trip_efficiency: float, **kwargs: Any
    ) -> "BatterySettings":
        """Create settings splitting a round-trip efficiency evenly between
        the charge and discharge legs."""
        leg_efficiency = math.sqrt(round_trip_efficiency)
        return cls(
            efficiency_charge=leg_efficiency,
            efficiency_discharge=leg_efficiency,
            **kwargs,
        )

    def scaled(self, num_units: int) -> "BatterySettings":
        """Return a copy describing a fleet of identical units."""
        return replace(
            self,
            capacity_mwh=self.capacity_mwh * num_units,
            power_mw=self.power_mw * num_units,
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
