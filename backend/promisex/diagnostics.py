from __future__ import annotations

from dataclasses import dataclass

from .commercial_model import get_sla_breach_label
from .engine import ScenarioOutputs
from .lanes import resolve_lane
from .models import SimulationInputs
from .risk_model import finite, round_half_up


@dataclass(frozen=True)
class DiagnosticCheck:
    name: str
    passed: bool
    detail: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {"name": self.name, "pass": self.passed, "detail": self.detail}


def run_self_tests(inputs: SimulationInputs, outputs: ScenarioOutputs) -> list[DiagnosticCheck]:
    """Cross-check a derived bundle against the headline formulas."""
    prediction = outputs.prediction
    lane = resolve_lane(inputs.lane_id)
    penalty = max(0.0, finite(inputs.intervention.distance_penalty)) if inputs.intervention.active else 0.0
    dist = lane.distance_km * (1 + penalty)
    expected = round_half_up((max(0.0, inputs.weight_kg) / 1000) * dist * inputs.emission_factors.for_service(inputs.service), 2)
    actual = round_half_up(prediction.emissions_kg, 2)
    driver_sum = outputs.drivers.total

    return [
        DiagnosticCheck("Emissions formula", abs(expected - actual) < 0.01, f"{expected} vs {actual}"),
        DiagnosticCheck(
            "OTP in [0,1]",
            0.0 <= prediction.on_time_prob <= 1.0,
            f"{prediction.on_time_prob:.3f}",
        ),
        DiagnosticCheck("Drivers sum ≈ 1", abs(driver_sum - 1) < 0.01, f"{driver_sum:.3f}"),
        DiagnosticCheck("Service mix has 3 entries", len(prediction.service_mix) == 3),
        DiagnosticCheck(
            "P90 ≥ P50",
            prediction.p90_days >= prediction.p50_days,
            f"{round_half_up(prediction.p50_days, 2)}→{round_half_up(prediction.p90_days, 2)}",
        ),
        DiagnosticCheck("SLA label (elevated)", get_sla_breach_label(0.80, 90) == "Elevated"),
        DiagnosticCheck("SLA label (low)", get_sla_breach_label(0.97, 95) == "Low"),
        DiagnosticCheck("Upsell share bounded", 0.0 <= outputs.commercial.upsell_share <= 1.0),
    ]
