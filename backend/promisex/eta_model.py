from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .lanes import Lane
from .risk_model import Intervention, clamp01, finite
from .services import SERVICE_ORDER, EmissionFactors, ServiceClass


@dataclass(frozen=True)
class ServiceMixRow:
    service: ServiceClass
    label: str
    otp: float
    cost: float
    p50_days: float
    emissions_kg: float

    def as_dict(self) -> dict[str, object]:
        return {
            "key": self.service.value,
            "label": self.label,
            "otp": self.otp,
            "cost": self.cost,
            "p50_days": self.p50_days,
            "emissions_kg": self.emissions_kg,
        }


@dataclass(frozen=True)
class PredictionBundle:
    service: ServiceClass
    p50_days: float
    p90_days: float
    on_time_prob: float
    sla_days: float
    lateness_days: float
    eta_text: str
    distance_km: float
    emissions_kg: float
    cost: float
    service_mix: tuple[ServiceMixRow, ...]

    def mix_row(self, service: ServiceClass) -> ServiceMixRow:
        for row in self.service_mix:
            if row.service is service:
                return row
        raise KeyError(service)

    def as_dict(self) -> dict[str, object]:
        return {
            "service": self.service.value,
            "p50_days": self.p50_days,
            "p90_days": self.p90_days,
            "on_time_prob": self.on_time_prob,
            "sla_days": self.sla_days,
            "lateness_days": self.lateness_days,
            "eta_text": self.eta_text,
            "distance_km": self.distance_km,
            "emissions_kg": self.emissions_kg,
            "cost": self.cost,
            "service_mix": [row.as_dict() for row in self.service_mix],
        }


def sla_days_for(lane: Lane, service: ServiceClass) -> float:
    # Ground gets a one-day grace window; expedited tiers do not.
    if service is ServiceClass.GROUND:
        return lane.base_transit_days.ground + 1.0
    return lane.base_transit_days.for_service(service)


def format_day(d: datetime) -> str:
    return f"{d:%a}, {d:%b} {d.day}"


def format_eta_window(now: datetime, p50_days: float, p90_days: float) -> str:
    # Whole days only: fractional offsets are truncated.
    start = now + timedelta(days=int(finite(p50_days)))
    end = now + timedelta(days=int(finite(p90_days)))
    return f"{format_day(start)} – {format_day(end)}"


def _tonne_km(weight_kg: float, distance_km: float) -> float:
    return (max(0.0, finite(weight_kg)) / 1000.0) * max(0.0, finite(distance_km))


def _mix_row(
    lane: Lane,
    service: ServiceClass,
    *,
    selected: ServiceClass,
    effective_risk: float,
    tonne_km: float,
    emission_factors: EmissionFactors,
) -> ServiceMixRow:
    if service is selected:
        risk_adj = effective_risk
    else:
        # Alternatives are shown with damped risk; overnight is damped most.
        offset = -0.1 if service is ServiceClass.OVERNIGHT else -0.05
        risk_adj = clamp01(effective_risk * 0.9 + offset)
    base = lane.base_transit_days.for_service(service)
    p50 = base * (1.0 + 0.25 * risk_adj)
    sla = sla_days_for(lane, service)
    otp = clamp01(1.0 - 0.6 * risk_adj - 0.12 * max(0.0, p50 - sla) / max(0.5, sla))
    return ServiceMixRow(
        service=service,
        label=service.label,
        otp=otp,
        cost=lane.base_cost.for_service(service),
        p50_days=p50,
        emissions_kg=tonne_km * emission_factors.for_service(service),
    )


def predict(
    lane: Lane,
    service: ServiceClass,
    effective_risk: float,
    weight_kg: float,
    emission_factors: EmissionFactors,
    peak: bool,
    intervention: Intervention | None = None,
    *,
    now: datetime | None = None,
) -> PredictionBundle:
    risk = clamp01(effective_risk)
    intervened = intervention is not None and intervention.active

    stretch = 1.0 + 0.3 * risk - (0.07 if intervened else 0.0)
    p50 = lane.base_transit_days.for_service(service) * stretch
    # Added term is non-negative, so P90 >= P50.
    p90 = p50 + 0.8 * risk + (0.5 if peak else 0.0)

    sla = sla_days_for(lane, service)
    lateness = max(0.0, p50 - sla)
    otp = clamp01(1.0 - 0.65 * risk - 0.15 * lateness / max(0.5, sla))

    penalty = max(0.0, finite(intervention.distance_penalty)) if intervention is not None and intervened else 0.0
    distance = max(0.0, lane.distance_km) * (1.0 + penalty)
    tonne_km = _tonne_km(weight_kg, distance)

    mix = tuple(
        _mix_row(
            lane,
            k,
            selected=service,
            effective_risk=risk,
            tonne_km=tonne_km,
            emission_factors=emission_factors,
        )
        for k in SERVICE_ORDER
    )

    return PredictionBundle(
        service=service,
        p50_days=p50,
        p90_days=p90,
        on_time_prob=otp,
        sla_days=sla,
        lateness_days=lateness,
        eta_text=format_eta_window(now or datetime.now(UTC), p50, p90),
        distance_km=distance,
        emissions_kg=tonne_km * emission_factors.for_service(service),
        cost=lane.base_cost.for_service(service),
        service_mix=mix,
    )
