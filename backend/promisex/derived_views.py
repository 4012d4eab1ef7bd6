from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .eta_model import format_day
from .risk_model import (
    CONGESTION_WEIGHT,
    WEATHER_WEIGHT,
    clamp01,
    clamp_pct,
    finite,
    peak_multiplier,
    round_half_up,
)

TREND_DAYS = 14
SHARE_EPSILON = 1e-6


@dataclass(frozen=True)
class DensityPoint:
    day: float
    density: int

    def as_dict(self) -> dict[str, float | int]:
        return {"d": self.day, "p": self.density}


@dataclass(frozen=True)
class TrendPoint:
    day: str
    otp_pct: int
    risk_pct: int

    def as_dict(self) -> dict[str, str | int]:
        return {"day": self.day, "otp": self.otp_pct, "risk": self.risk_pct}


@dataclass(frozen=True)
class DriverShares:
    weather: float
    congestion: float
    network: float

    @property
    def total(self) -> float:
        return self.weather + self.congestion + self.network

    def as_dict(self) -> dict[str, float]:
        return {"weather": self.weather, "congestion": self.congestion, "network": self.network}


def eta_density(p50_days: float, p90_days: float) -> list[DensityPoint]:
    """Gaussian-shaped relative likelihood around P50, peak rescaled to 100.

    Not a normalized PDF: the 100 scale is relative to the sampled maximum.
    """
    mu = finite(p50_days)
    p90 = max(mu, finite(p90_days, mu))
    sigma = max(0.25, (p90 - mu) / 1.28)
    end = max(mu + 3 * sigma, p90 + 1)
    step = max(0.15, end / 48)

    raw: list[tuple[float, float]] = []
    x = max(0.3, mu - 3 * sigma)
    while x <= end:
        z = (x - mu) / sigma
        raw.append((x, math.exp(-0.5 * z * z)))
        x += step

    peak = max((pdf for _, pdf in raw), default=0.0) or 1.0
    return [DensityPoint(day=round_half_up(d, 1), density=int(round_half_up(pdf / peak * 100))) for d, pdf in raw]


def trend_series(
    effective_risk: float,
    on_time_prob: float,
    *,
    start: datetime | None = None,
    days: int = TREND_DAYS,
) -> list[TrendPoint]:
    # Deterministic pseudo-variation so the chart is stable between renders.
    base_risk = clamp01(effective_risk)
    base_otp = clamp01(on_time_prob)
    origin = start or datetime.now(UTC)
    out: list[TrendPoint] = []
    for i in range(max(0, int(days))):
        jitter = (math.sin(i * 0.7) + math.cos(i * 0.3)) * 0.04
        risk = clamp01(base_risk + jitter)
        otp = clamp01(base_otp - (risk - base_risk) * 0.4)
        out.append(
            TrendPoint(
                day=format_day(origin + timedelta(days=i)),
                otp_pct=int(round_half_up(otp * 100)),
                risk_pct=int(round_half_up(risk * 100)),
            )
        )
    return out


def driver_shares(weather: float, congestion: float, peak: bool, network_risk: float) -> DriverShares:
    mult = peak_multiplier(peak)
    w = (clamp_pct(weather) / 100.0) * mult * WEATHER_WEIGHT
    c = (clamp_pct(congestion) / 100.0) * mult * CONGESTION_WEIGHT
    n = clamp01(network_risk)
    total = w + c + n + SHARE_EPSILON
    return DriverShares(weather=w / total, congestion=c / total, network=n / total)
