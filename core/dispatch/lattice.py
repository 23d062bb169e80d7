"""State-of-charge lattice used by the dynamic programming pass.

The lattice spans [0, capacity] with soc_steps uniformly spaced energy levels.
Continuous SoC values map to the nearest level index; this snapping is the
only source of discretization error in the optimizer.
"""

import logging
import math
from dataclasses import dataclass

from .settings import BatterySettings

logger = logging.getLogger(__name__)

# Auto-scaling parameters
MIN_AUTO_SOC_STEPS = 121
MAX_AUTO_SOC_STEPS = 401
MIN_INTERVALS_TO_FILL = 6
CELLS_PER_FILL_INTERVAL = 8

# Absorbs float noise such as 9.999999999999998 cells before flooring
_STEP_TOLERANCE = 1e-9

# Value-function sentinel for unreachable states. Real values never come
# close to this magnitude; anything at or below FEASIBLE_THRESHOLD is treated
# as unreachable, so sentinel + reward can never pass as a real value.
INFEASIBLE = -1e15
FEASIBLE_THRESHOLD = -1e14


def is_feasible(value):
    """True where a value-function entry is reachable (works on arrays)."""
    return value > FEASIBLE_THRESHOLD


def resolve_soc_steps(battery_settings: BatterySettings) -> int:
    """Return the configured lattice resolution or auto-scale it from the
    power-to-capacity ratio."""
    if battery_settings.soc_steps is not None:
        return int(battery_settings.soc_steps)

    energy_per_interval = battery_settings.power_mw * battery_settings.dt_hours
    if energy_per_interval <= 0:
        return MIN_AUTO_SOC_STEPS

    intervals_to_fill = max(
        MIN_INTERVALS_TO_FILL,
        math.ceil(battery_settings.capacity_mwh / energy_per_interval),
    )
    return min(
        MAX_AUTO_SOC_STEPS,
        max(MIN_AUTO_SOC_STEPS, intervals_to_fill * CELLS_PER_FILL_INTERVAL),
    )


@dataclass(frozen=True)
class StateLattice:
    """Discrete SoC levels and the per-interval step limits in lattice cells."""

    capacity_mwh: float
    soc_steps: int
    max_charge_cells: int
    max_discharge_cells: int

    @property
    def step_mwh(self) -> float:
        """Energy between adjacent levels (dE)."""
        return self.capacity_mwh / (self.soc_steps - 1)

    @classmethod
    def from_settings(cls, battery_settings: BatterySettings) -> "StateLattice":
        soc_steps = resolve_soc_steps(battery_settings)
        step_mwh = battery_settings.capacity_mwh / (soc_steps - 1)

        charge_mwh = (
            battery_settings.efficiency_charge
            * battery_settings.power_mw
            * battery_settings.dt_hours
        )
        discharge_mwh = battery_settings.power_mw * battery_settings.dt_hours

        if battery_settings.power_mw > 0:
            max_charge_cells = max(
                1, math.floor(charge_mwh / step_mwh + _STEP_TOLERANCE)
            )
            max_discharge_cells = max(
                1, math.floor(discharge_mwh / step_mwh + _STEP_TOLERANCE)
            )
        else:
            max_charge_cells = 0
            max_discharge_cells = 0

        lattice = cls(
            capacity_mwh=battery_settings.capacity_mwh,
            soc_steps=soc_steps,
            max_charge_cells=max_charge_cells,
            max_discharge_cells=max_discharge_cells,
        )
        logger.debug(
            f"Lattice: {soc_steps} levels, dE={step_mwh:.4f} MWh, "
            f"charge<={max_charge_cells} cells, discharge<={max_discharge_cells} cells"
        )
        return lattice

    def index_of(self, soc_mwh: float) -> int:
        """Nearest lattice index for a continuous SoC in MWh."""
        return max(0, min(self.soc_steps - 1, round(soc_mwh / self.step_mwh)))

    def soc_of(self, index: int) -> float:
        return index * self.step_mwh

    def index_of_fraction(self, soc_fraction: float) -> int:
        """Lattice index for a reference SoC fraction (rounded down)."""
        return math.floor((self.soc_steps - 1) * soc_fraction)

    def actions(self) -> list[int]:
        """Non-hold actions, discharge-most to charge-most."""
        return [
            k
            for k in range(-self.max_discharge_cells, self.max_charge_cells + 1)
            if k != 0
        ]
