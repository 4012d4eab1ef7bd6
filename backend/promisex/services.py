from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ServiceClass(str, Enum):
    GROUND = "ground"
    TWO_DAY = "twoDay"
    OVERNIGHT = "overnight"

    @property
    def label(self) -> str:
        return _SERVICE_LABELS[self]

    @property
    def default_emission_factor(self) -> float:
        """kg CO2e per tonne-km."""
        return _DEFAULT_EMISSION_FACTORS[self]


_SERVICE_LABELS: dict[ServiceClass, str] = {
    ServiceClass.GROUND: "Ground",
    ServiceClass.TWO_DAY: "2Day",
    ServiceClass.OVERNIGHT: "Overnight",
}

_DEFAULT_EMISSION_FACTORS: dict[ServiceClass, float] = {
    ServiceClass.GROUND: 0.062,
    ServiceClass.TWO_DAY: 0.30,
    ServiceClass.OVERNIGHT: 0.60,
}

SERVICE_ORDER: tuple[ServiceClass, ...] = (
    ServiceClass.GROUND,
    ServiceClass.TWO_DAY,
    ServiceClass.OVERNIGHT,
)


def parse_service(value: Any, *, default: ServiceClass | None = None) -> ServiceClass | None:
    """Map a wire value ("ground", "twoDay", "overnight" or the enum itself) to a ServiceClass."""
    if isinstance(value, ServiceClass):
        return value
    if isinstance(value, str):
        key = value.strip()
        for service in SERVICE_ORDER:
            if key == service.value or key.lower() == service.value.lower():
                return service
    return default


class ServiceTable(BaseModel):
    """One value per service class; every class is always present."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ground: float
    two_day: float = Field(..., alias="twoDay")
    overnight: float

    def for_service(self, service: ServiceClass) -> float:
        if service is ServiceClass.GROUND:
            return float(self.ground)
        if service is ServiceClass.TWO_DAY:
            return float(self.two_day)
        return float(self.overnight)

    def as_wire(self) -> dict[str, float]:
        return self.model_dump(by_alias=True)


class EmissionFactors(ServiceTable):
    """Per-session emission factor overrides (kg CO2e per tonne-km)."""

    ground: float = Field(default=_DEFAULT_EMISSION_FACTORS[ServiceClass.GROUND])
    two_day: float = Field(default=_DEFAULT_EMISSION_FACTORS[ServiceClass.TWO_DAY], alias="twoDay")
    overnight: float = Field(default=_DEFAULT_EMISSION_FACTORS[ServiceClass.OVERNIGHT])

    def for_service(self, service: ServiceClass) -> float:
        value = super().for_service(service)
        if not math.isfinite(value) or value < 0.0:
            return 0.0
        return value


DEFAULT_EMISSION_FACTORS = EmissionFactors()
