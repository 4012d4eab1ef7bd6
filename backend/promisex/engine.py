"""Single derivation entry point: one input snapshot in, one output bundle out."""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass
from datetime import UTC, datetime

from .commercial_model import CommercialMetrics, compute_commercial_metrics, conversion_uplift
from .derived_views import DensityPoint, DriverShares, TrendPoint, driver_shares, eta_density, trend_series
from .eta_model import PredictionBundle, predict
from .lanes import resolve_lane
from .logging_utils import log_event
from .models import SimulationInputs
from .risk_grid import Hotspot, aggregate_risk, col_risk, row_risk, top_hotspots
from .risk_model import (
    NO_INTERVENTION,
    InterventionSuggestion,
    compute_base_risk,
    compute_effective_risk,
    suggest_intervention,
)
from .settings import settings


@dataclass(frozen=True)
class ScenarioOutputs:
    lane_id: str
    network_risk: float
    base_risk: float
    effective_risk: float
    row_risk: tuple[float, ...]
    col_risk: tuple[float, ...]
    prediction: PredictionBundle
    density: tuple[DensityPoint, ...]
    trend: tuple[TrendPoint, ...]
    drivers: DriverShares
    commercial: CommercialMetrics
    conversion_uplift: float
    hotspots: tuple[Hotspot, ...]
    suggestion: InterventionSuggestion | None

    def as_dict(self) -> dict[str, object]:
        return {
            "lane_id": self.lane_id,
            "network_risk": self.network_risk,
            "base_risk": self.base_risk,
            "effective_risk": self.effective_risk,
            "row_risk": list(self.row_risk),
            "col_risk": list(self.col_risk),
            "prediction": self.prediction.as_dict(),
            "density": [point.as_dict() for point in self.density],
            "trend": [point.as_dict() for point in self.trend],
            "drivers": self.drivers.as_dict(),
            "commercial": self.commercial.as_dict(),
            "conversion_uplift": self.conversion_uplift,
            "hotspots": [item.as_dict() for item in self.hotspots],
            "suggestion": self.suggestion.model_dump() if self.suggestion else None,
        }


def _suggestion_seed(inputs: SimulationInputs, effective_risk: float, user_seed: int) -> int:
    material = f"{inputs.lane_id}|{inputs.service.value}|{effective_risk:.6f}|{user_seed}"
    return int(hashlib.sha1(material.encode("utf-8")).hexdigest()[:16], 16)


def derive(
    inputs: SimulationInputs,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> ScenarioOutputs:
    """Recompute the full bundle. Pure apart from `now` and the suggestion RNG, both injectable."""
    as_of = now or datetime.now(UTC)
    lane = resolve_lane(inputs.lane_id)

    network = aggregate_risk(inputs.risk_grid)
    base = compute_base_risk(inputs.weather, inputs.congestion, inputs.holiday_peak)
    effective = compute_effective_risk(base, network, inputs.sensor_coverage, inputs.intervention)

    prediction = predict(
        lane,
        inputs.service,
        effective,
        inputs.weight_kg,
        inputs.emission_factors,
        inputs.holiday_peak,
        inputs.intervention,
        now=as_of,
    )
    commercial = compute_commercial_metrics(
        prediction,
        sla_target=inputs.sla_target,
        volume_per_week=inputs.volume_per_week,
        penalty_per_late=inputs.penalty_per_late,
    )

    suggestion = None
    if not inputs.intervention.active:
        draw = rng or random.Random(_suggestion_seed(inputs, effective, settings.intervention_seed))
        suggestion = suggest_intervention(
            effective,
            rng=draw,
            threshold=settings.intervention_risk_threshold,
        )

    return ScenarioOutputs(
        lane_id=lane.id,
        network_risk=network,
        base_risk=base,
        effective_risk=effective,
        row_risk=tuple(row_risk(inputs.risk_grid)),
        col_risk=tuple(col_risk(inputs.risk_grid)),
        prediction=prediction,
        density=tuple(eta_density(prediction.p50_days, prediction.p90_days)),
        trend=tuple(trend_series(effective, prediction.on_time_prob, start=as_of)),
        drivers=driver_shares(inputs.weather, inputs.congestion, inputs.holiday_peak, network),
        commercial=commercial,
        conversion_uplift=conversion_uplift(prediction.on_time_prob),
        hotspots=tuple(top_hotspots(inputs.risk_grid)),
        suggestion=suggestion,
    )


def apply_intervention(
    inputs: SimulationInputs,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> SimulationInputs:
    """Activate the currently suggested intervention. No-op when none is suggested or one is active."""
    outputs = derive(inputs, now=now, rng=rng)
    if outputs.suggestion is None:
        return inputs
    intervention = outputs.suggestion.to_intervention()
    log_event(
        "intervention_applied",
        lane_id=outputs.lane_id,
        effective_risk_before=round(outputs.effective_risk, 6),
        risk_cut=round(intervention.risk_cut, 6),
        distance_penalty=round(intervention.distance_penalty, 6),
    )
    return inputs.model_copy(update={"intervention": intervention})


def clear_intervention(inputs: SimulationInputs) -> SimulationInputs:
    return inputs.model_copy(update={"intervention": NO_INTERVENTION})
