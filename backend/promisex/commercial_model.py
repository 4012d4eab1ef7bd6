from __future__ import annotations

from dataclasses import dataclass

from .eta_model import PredictionBundle, ServiceMixRow
from .risk_model import clamp01, finite, round_half_up
from .services import ServiceClass

UPSELL_EPSILON = 0.0001
MAX_CONVERSION_UPLIFT = 0.08


def get_sla_breach_label(otp: float, target_pct: float) -> str:
    return "Elevated" if otp < target_pct / 100 else "Low"


def conversion_uplift(confidence: float) -> float:
    """Illustrative checkout conversion uplift for a given delivery confidence (0-8%)."""
    return MAX_CONVERSION_UPLIFT * clamp01(confidence)


@dataclass(frozen=True)
class CommercialMetrics:
    sla_target: float
    sla_gap_points: int
    late_pct: float
    exposure_usd: int
    breach_label: str
    best_alternative: ServiceMixRow | None
    upsell_share: float
    otp_if_shifted: float
    added_weekly_cost_usd: int
    co2_delta_per_shipment_kg: float | None
    co2_delta_vs_ground_kg: float

    def as_dict(self) -> dict[str, object]:
        return {
            "sla_target": self.sla_target,
            "sla_gap_points": self.sla_gap_points,
            "late_pct": self.late_pct,
            "exposure_usd": self.exposure_usd,
            "breach_label": self.breach_label,
            "best_alternative": self.best_alternative.as_dict() if self.best_alternative else None,
            "upsell_share": self.upsell_share,
            "otp_if_shifted": self.otp_if_shifted,
            "added_weekly_cost_usd": self.added_weekly_cost_usd,
            "co2_delta_per_shipment_kg": self.co2_delta_per_shipment_kg,
            "co2_delta_vs_ground_kg": self.co2_delta_vs_ground_kg,
        }


def best_alternative(prediction: PredictionBundle) -> ServiceMixRow | None:
    alts = [row for row in prediction.service_mix if row.service is not prediction.service]
    if not alts:
        return None
    # sorted() is stable, so ties keep catalog order.
    return sorted(alts, key=lambda row: -row.otp)[0]


def compute_commercial_metrics(
    prediction: PredictionBundle,
    *,
    sla_target: float,
    volume_per_week: float,
    penalty_per_late: float,
) -> CommercialMetrics:
    target_pct = min(100.0, max(0.0, finite(sla_target)))
    target = target_pct / 100
    volume = max(0.0, finite(volume_per_week))
    penalty = max(0.0, finite(penalty_per_late))
    otp = clamp01(prediction.on_time_prob)

    late_pct = max(0.0, target - otp)
    alt = best_alternative(prediction)
    current = prediction.mix_row(prediction.service)
    ground = prediction.mix_row(ServiceClass.GROUND)

    if alt is None:
        upsell = 0.0
    else:
        upsell = clamp01((target - otp) / max(UPSELL_EPSILON, alt.otp - otp))

    return CommercialMetrics(
        sla_target=target_pct,
        sla_gap_points=int(max(0.0, round_half_up((target - otp) * 100))),
        late_pct=late_pct,
        exposure_usd=int(round_half_up(volume * late_pct * penalty)),
        breach_label=get_sla_breach_label(otp, target_pct),
        best_alternative=alt,
        upsell_share=upsell,
        otp_if_shifted=max(otp, target),
        added_weekly_cost_usd=(
            int(round_half_up(volume * upsell * max(0.0, alt.cost - prediction.cost))) if alt else 0
        ),
        co2_delta_per_shipment_kg=(alt.emissions_kg - current.emissions_kg) if alt else None,
        co2_delta_vs_ground_kg=current.emissions_kg - ground.emissions_kg,
    )
