from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .scenario_errors import ScenarioDataError
from .services import ServiceTable


class Lane(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    origin: str
    destination: str
    distance_km: float = Field(..., ge=0.0)
    base_transit_days: ServiceTable
    base_cost: ServiceTable


def _lane(
    origin: str,
    destination: str,
    distance_km: float,
    transit: tuple[float, float, float],
    cost: tuple[float, float, float],
) -> Lane:
    return Lane(
        id=f"{origin}→{destination}",
        origin=origin,
        destination=destination,
        distance_km=distance_km,
        base_transit_days=ServiceTable(ground=transit[0], two_day=transit[1], overnight=transit[2]),
        base_cost=ServiceTable(ground=cost[0], two_day=cost[1], overnight=cost[2]),
    )


LANES: tuple[Lane, ...] = (
    _lane("SFO", "JFK", 4150.0, (6.5, 2.0, 1.0), (18.0, 42.0, 69.0)),
    _lane("LAX", "ATL", 3120.0, (5.0, 2.0, 1.0), (16.0, 39.0, 62.0)),
    _lane("DFW", "ORD", 1290.0, (3.0, 2.0, 1.0), (12.0, 29.0, 49.0)),
    _lane("SEA", "MIA", 5420.0, (7.0, 2.0, 1.0), (20.0, 45.0, 75.0)),
)

LANES_BY_ID: dict[str, Lane] = {lane.id: lane for lane in LANES}
DEFAULT_LANE_ID = LANES[0].id


def get_lane(lane_id: str) -> Lane:
    lane = LANES_BY_ID.get(str(lane_id or "").strip())
    if lane is None:
        raise ScenarioDataError(
            reason_code="lane_unknown",
            message=f"unknown lane '{lane_id}'",
            details={"known_lanes": sorted(LANES_BY_ID)},
        )
    return lane


def resolve_lane(lane_id: str | None) -> Lane:
    """Lenient lookup used on the derivation path: unknown ids fall back to the default lane."""
    return LANES_BY_ID.get(str(lane_id or "").strip(), LANES_BY_ID[DEFAULT_LANE_ID])
