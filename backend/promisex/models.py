from __future__ import annotations

import random
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .lanes import DEFAULT_LANE_ID
from .risk_grid import RiskGrid, coerce_grid, create_grid
from .risk_model import NO_INTERVENTION, Intervention, InterventionSuggestion
from .services import EmissionFactors, ServiceClass
from .settings import settings


def default_grid() -> RiskGrid:
    rng = random.Random(settings.grid_seed) if settings.grid_seed is not None else random.Random()
    return create_grid(density=settings.default_grid_density, rng=rng)


class SimulationInputs(BaseModel):
    """Immutable snapshot of every input the derivation reads.

    Numeric fields carry no range constraints: the engine clamps, so a
    misbehaving caller still gets a valid-range result.
    """

    model_config = ConfigDict(frozen=True)

    lane_id: str = DEFAULT_LANE_ID
    service: ServiceClass = ServiceClass.GROUND
    weight_kg: float = 2.0
    holiday_peak: bool = False
    weather: float = 35.0
    congestion: float = 25.0
    sensor_coverage: float = 40.0
    emission_factors: EmissionFactors = Field(default_factory=EmissionFactors)
    sla_target: float = Field(default_factory=lambda: settings.default_sla_target)
    volume_per_week: float = Field(default_factory=lambda: float(settings.default_volume_per_week))
    penalty_per_late: float = Field(default_factory=lambda: settings.default_penalty_per_late)
    risk_grid: RiskGrid = Field(default_factory=default_grid)
    intervention: Intervention = NO_INTERVENTION

    @field_validator("risk_grid", mode="before")
    @classmethod
    def _rectangular_grid(cls, value: Any) -> Any:
        grid = coerce_grid(value)
        if grid is None:
            raise ValueError("risk_grid must be a non-empty rectangular matrix of levels 0-2")
        return grid


class GridEditRequest(BaseModel):
    risk_grid: RiskGrid
    row: int
    col: int

    @field_validator("risk_grid", mode="before")
    @classmethod
    def _rectangular_grid(cls, value: Any) -> Any:
        grid = coerce_grid(value)
        if grid is None:
            raise ValueError("risk_grid must be a non-empty rectangular matrix of levels 0-2")
        return grid


class PresetApplyRequest(BaseModel):
    inputs: SimulationInputs = Field(default_factory=SimulationInputs)
    seed: int | None = None


class InterveneRequest(BaseModel):
    inputs: SimulationInputs
    seed: int | None = None


class SnapshotSaveRequest(BaseModel):
    inputs: SimulationInputs
    key: str | None = None


class SnapshotLoadRequest(BaseModel):
    current: SimulationInputs = Field(default_factory=SimulationInputs)
    key: str | None = None


class SnapshotApplyRequest(BaseModel):
    current: SimulationInputs = Field(default_factory=SimulationInputs)
    snapshot: dict[str, Any] | None = None
    blob: str | None = None


class InputsResponse(BaseModel):
    inputs: SimulationInputs


class InterveneResponse(BaseModel):
    inputs: SimulationInputs
    applied: bool


class DeriveResponse(BaseModel):
    lane_id: str
    network_risk: float
    base_risk: float
    effective_risk: float
    row_risk: list[float]
    col_risk: list[float]
    prediction: dict[str, Any]
    density: list[dict[str, int | float]]
    trend: list[dict[str, str | int]]
    drivers: dict[str, float]
    commercial: dict[str, Any]
    conversion_uplift: float
    hotspots: list[dict[str, Any]]
    suggestion: InterventionSuggestion | None = None


class SnapshotOutputs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    eta: str
    p50_days: float = Field(..., alias="p50Days")
    p90_days: float = Field(..., alias="p90Days")
    on_time_prob: float = Field(..., alias="onTimeProb")
    emissions_kg: float = Field(..., alias="emissionsKg")
    cost: float


class ScenarioSnapshot(BaseModel):
    """Wire form of a snapshot; `riskGrid` only in the persisted variant, `outputs` only in the export."""

    model_config = ConfigDict(populate_by_name=True)

    lane: str
    service: ServiceClass
    weight_kg: float = Field(..., alias="weightKg")
    holiday_peak: bool = Field(..., alias="holidayPeak")
    weather: float
    congestion: float
    sensor_coverage: float = Field(..., alias="sensorCoverage")
    emission_factors: dict[str, float] = Field(..., alias="emissionFactors")
    sla_target: float = Field(..., alias="slaTarget")
    risk_grid: list[list[int]] | None = Field(default=None, alias="riskGrid")
    outputs: SnapshotOutputs | None = None


class SnapshotSaveResponse(BaseModel):
    saved: bool
    path: str


class DiagnosticsResponse(BaseModel):
    checks: list[dict[str, Any]]
    all_passed: bool
