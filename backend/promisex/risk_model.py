from __future__ import annotations

import math
import random

from pydantic import BaseModel, ConfigDict

# Illustrative business weighting; keep the coefficients as-is for output parity.
WEATHER_WEIGHT = 0.6
CONGESTION_WEIGHT = 0.4
PEAK_MULTIPLIER = 1.25
SENSOR_DAMPING = 0.35
ENV_SHARE = 0.5
NETWORK_SHARE = 0.5


def finite(value: float, default: float = 0.0) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, finite(value)))


def clamp_pct(value: float) -> float:
    """Clamp a 0-100 slider value; NaN/inf collapse to 0."""
    return min(100.0, max(0.0, finite(value)))


def peak_multiplier(peak: bool) -> float:
    return PEAK_MULTIPLIER if peak else 1.0


class Intervention(BaseModel):
    """Applied network intervention: multiplicative risk cut paired with a distance penalty."""

    model_config = ConfigDict(frozen=True)

    active: bool = False
    risk_cut: float = 0.0
    distance_penalty: float = 0.0


NO_INTERVENTION = Intervention()


class InterventionSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_cut: float
    distance_penalty: float

    def to_intervention(self) -> Intervention:
        return Intervention(
            active=True,
            risk_cut=clamp01(self.risk_cut),
            distance_penalty=max(0.0, finite(self.distance_penalty)),
        )


def compute_base_risk(weather: float, congestion: float, peak: bool) -> float:
    env = clamp01(WEATHER_WEIGHT * (clamp_pct(weather) / 100.0) + CONGESTION_WEIGHT * (clamp_pct(congestion) / 100.0))
    return clamp01(env * peak_multiplier(peak))


def compute_effective_risk(
    base_risk: float,
    grid_risk: float,
    sensor_coverage: float,
    intervention: Intervention | None = None,
) -> float:
    """Single source of truth for how risky the network is right now."""
    sensor_factor = 1.0 - SENSOR_DAMPING * (clamp_pct(sensor_coverage) / 100.0)
    raw = clamp01(clamp01(ENV_SHARE * clamp01(base_risk) + NETWORK_SHARE * clamp01(grid_risk)) * sensor_factor)
    if intervention is not None and intervention.active:
        raw = clamp01(raw * (1.0 - clamp01(intervention.risk_cut)))
    return raw


def suggest_intervention(
    effective_risk: float,
    *,
    rng: random.Random,
    threshold: float = 0.42,
) -> InterventionSuggestion | None:
    """Offer an intervention once risk crosses the threshold; larger cuts for riskier networks."""
    risk = clamp01(effective_risk)
    th = min(0.999, max(0.0, finite(threshold, 0.42)))
    if risk <= th:
        return None
    return InterventionSuggestion(
        risk_cut=0.35 + 0.2 * min(1.0, (risk - th) / (1.0 - th)),
        distance_penalty=0.05 + 0.07 * rng.random(),
    )


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Half-up rounding (2.5 -> 3) as displayed; round() would use banker's rounding."""
    scale = 10.0**ndigits
    return math.floor(finite(value) * scale + 0.5) / scale
