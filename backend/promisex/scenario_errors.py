from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "lane_unknown",
        "service_unknown",
        "preset_unknown",
        "grid_shape_invalid",
        "snapshot_missing",
        "snapshot_unparseable",
        "snapshot_not_object",
        "scenario_input_invalid",
    }
)


@dataclass
class ScenarioDataError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


def normalize_reason_code(reason_code: str, *, default: str = "scenario_input_invalid") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
