from __future__ import annotations

import random
from dataclasses import dataclass

from .logging_utils import log_event
from .models import SimulationInputs
from .risk_grid import RISK_HIGH, RiskGrid, create_grid, set_cell
from .risk_model import NO_INTERVENTION
from .scenario_errors import ScenarioDataError
from .settings import settings


@dataclass(frozen=True)
class Preset:
    id: str
    note: str
    weather: float
    congestion: float
    holiday_peak: bool
    sensor_coverage: float
    grid_density: float
    # (row_start, row_stop, col_start, col_stop) block forced to HIGH.
    forced_high: tuple[int, int, int, int] | None = None

    def build_grid(self, rng: random.Random) -> RiskGrid:
        grid = create_grid(density=self.grid_density, rng=rng)
        if self.forced_high is not None:
            r0, r1, c0, c1 = self.forced_high
            for r in range(r0, r1):
                for c in range(c0, c1):
                    grid = set_cell(grid, r, c, RISK_HIGH)
        return grid

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "note": self.note,
            "weather": self.weather,
            "congestion": self.congestion,
            "holiday_peak": self.holiday_peak,
            "sensor_coverage": self.sensor_coverage,
            "grid_density": self.grid_density,
        }


PRESETS: tuple[Preset, ...] = (
    Preset("Baseline", "Normal day, moderate sensing", 25.0, 20.0, False, 40.0, 0.12),
    Preset("Winter storm", "Severe weather on East corridor", 80.0, 65.0, False, 35.0, 0.5),
    Preset("Peak + sensor", "Holiday surge with SenseAware rollout", 50.0, 70.0, True, 80.0, 0.35),
    Preset(
        "Facility outage",
        "Localized disruption (paint high cells)",
        30.0,
        45.0,
        False,
        50.0,
        0.2,
        forced_high=(2, 4, 4, 7),
    ),
)


def get_preset(preset_id: str) -> Preset:
    for preset in PRESETS:
        if preset.id == preset_id:
            return preset
    raise ScenarioDataError(
        reason_code="preset_unknown",
        message=f"unknown preset '{preset_id}'",
        details={"known_presets": [p.id for p in PRESETS]},
    )


def _rng(rng: random.Random | None) -> random.Random:
    if rng is not None:
        return rng
    return random.Random(settings.grid_seed) if settings.grid_seed is not None else random.Random()


def apply_preset(inputs: SimulationInputs, preset_id: str, *, rng: random.Random | None = None) -> SimulationInputs:
    """Overwrite environment inputs and the grid; any applied intervention is cleared."""
    preset = get_preset(preset_id)
    updated = inputs.model_copy(
        update={
            "weather": preset.weather,
            "congestion": preset.congestion,
            "holiday_peak": preset.holiday_peak,
            "sensor_coverage": preset.sensor_coverage,
            "risk_grid": preset.build_grid(_rng(rng)),
            "intervention": NO_INTERVENTION,
        }
    )
    log_event("preset_applied", preset_id=preset.id, lane_id=inputs.lane_id)
    return updated


def reset_inputs(*, rng: random.Random | None = None) -> SimulationInputs:
    return SimulationInputs(
        risk_grid=create_grid(density=settings.default_grid_density, rng=_rng(rng)),
    )
