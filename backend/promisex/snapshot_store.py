"""Scenario Snapshot wire format and the local key-value store behind save/load.

Loading is best-effort: every field is type-checked on its own and falls back
to the current in-memory value; an unparseable blob leaves the state unchanged.
There is no schema version field.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .engine import ScenarioOutputs
from .lanes import LANES_BY_ID
from .logging_utils import log_event
from .models import SimulationInputs
from .risk_grid import coerce_grid, grid_shape
from .risk_model import round_half_up
from .scenario_errors import ScenarioDataError
from .services import EmissionFactors, parse_service
from .settings import settings

_NUMERIC_FIELDS: tuple[tuple[str, str], ...] = (
    ("weightKg", "weight_kg"),
    ("weather", "weather"),
    ("congestion", "congestion"),
    ("sensorCoverage", "sensor_coverage"),
    ("slaTarget", "sla_target"),
)


def snapshot_from_inputs(inputs: SimulationInputs, *, include_grid: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "lane": inputs.lane_id,
        "service": inputs.service.value,
        "weightKg": inputs.weight_kg,
        "holidayPeak": inputs.holiday_peak,
        "weather": inputs.weather,
        "congestion": inputs.congestion,
        "sensorCoverage": inputs.sensor_coverage,
        "emissionFactors": inputs.emission_factors.as_wire(),
        "slaTarget": inputs.sla_target,
    }
    if include_grid:
        payload["riskGrid"] = [list(row) for row in inputs.risk_grid]
    return payload


def export_snapshot(inputs: SimulationInputs, outputs: ScenarioOutputs) -> dict[str, Any]:
    """Clipboard variant: no grid, plus a read-only copy of the headline outputs."""
    prediction = outputs.prediction
    payload = snapshot_from_inputs(inputs, include_grid=False)
    payload["outputs"] = {
        "eta": prediction.eta_text,
        "p50Days": round_half_up(prediction.p50_days, 2),
        "p90Days": round_half_up(prediction.p90_days, 2),
        "onTimeProb": round_half_up(prediction.on_time_prob, 2),
        "emissionsKg": round_half_up(prediction.emissions_kg, 2),
        "cost": prediction.cost,
    }
    return payload


def decode_snapshot_blob(raw: str | bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ScenarioDataError(
            reason_code="snapshot_unparseable",
            message="snapshot blob is not valid JSON",
            details={"error": str(e)},
        ) from e
    if not isinstance(payload, dict):
        raise ScenarioDataError(
            reason_code="snapshot_not_object",
            message="snapshot blob must decode to an object",
            details={"type": type(payload).__name__},
        )
    return payload


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    v = float(value)
    return v if math.isfinite(v) else None


def _emission_factors(value: Any, current: EmissionFactors) -> tuple[EmissionFactors, list[str]]:
    if not isinstance(value, Mapping):
        return current, ["emissionFactors"]
    merged = current.as_wire()
    rejected: list[str] = []
    for key in merged:
        if key not in value:
            continue
        factor = _number(value[key])
        if factor is None or factor < 0.0:
            rejected.append(f"emissionFactors.{key}")
            continue
        merged[key] = factor
    return EmissionFactors.model_validate(merged), rejected


def apply_snapshot(current: SimulationInputs, payload: Mapping[str, Any]) -> SimulationInputs:
    """Overlay a decoded snapshot onto `current`, field by field.

    Any embedded `outputs` block is ignored. Fields that are missing or of the
    wrong type keep their current value.
    """
    update: dict[str, Any] = {}
    rejected: list[str] = []

    # `laneId` is the legacy key; it is consulted only when `lane` is absent or unusable.
    lanes = [payload[key] for key in ("lane", "laneId") if key in payload]
    lane = next((v for v in lanes if isinstance(v, str) and v in LANES_BY_ID), None)
    if lane is not None:
        update["lane_id"] = lane
    elif lanes:
        rejected.append("lane")

    if "service" in payload:
        service = parse_service(payload["service"])
        if service is None:
            rejected.append("service")
        else:
            update["service"] = service

    for wire_key, field in _NUMERIC_FIELDS:
        if wire_key not in payload:
            continue
        value = _number(payload[wire_key])
        if value is None:
            rejected.append(wire_key)
        else:
            update[field] = value

    if "holidayPeak" in payload:
        if isinstance(payload["holidayPeak"], bool):
            update["holiday_peak"] = payload["holidayPeak"]
        else:
            rejected.append("holidayPeak")

    if "emissionFactors" in payload:
        factors, bad = _emission_factors(payload["emissionFactors"], current.emission_factors)
        update["emission_factors"] = factors
        rejected.extend(bad)

    if "riskGrid" in payload:
        rows, cols = grid_shape(current.risk_grid)
        grid = coerce_grid(payload["riskGrid"], rows=rows, cols=cols)
        if grid is None:
            rejected.append("riskGrid")
        else:
            update["risk_grid"] = grid

    if rejected:
        log_event("snapshot_fields_rejected", level=logging.WARNING, fields=sorted(rejected))
    return current.model_copy(update=update)


def load_snapshot_blob(current: SimulationInputs, raw: str | bytes | None) -> SimulationInputs:
    if not raw:
        return current
    try:
        payload = decode_snapshot_blob(raw)
    except ScenarioDataError as e:
        log_event(
            "snapshot_load_ignored",
            level=logging.WARNING,
            reason_code=e.reason_code,
            error=e.message,
        )
        return current
    return apply_snapshot(current, payload)


class SnapshotStore:
    """JSON file of key -> serialized snapshot string, standing in for browser local storage."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        if self._path is not None:
            return self._path
        return Path(settings.out_dir) / settings.snapshot_store_file

    def _read_all(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            log_event("snapshot_store_unreadable", level=logging.WARNING, path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def raw(self, key: str | None = None) -> str | None:
        return self._read_all().get(key or settings.snapshot_key)

    def save(self, inputs: SimulationInputs, key: str | None = None) -> Path:
        store_key = key or settings.snapshot_key
        items = self._read_all()
        items[store_key] = json.dumps(snapshot_from_inputs(inputs))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        log_event("snapshot_saved", key=store_key, path=str(self.path), lane_id=inputs.lane_id)
        return self.path

    def load(self, current: SimulationInputs, key: str | None = None) -> SimulationInputs:
        store_key = key or settings.snapshot_key
        raw = self.raw(store_key)
        if raw is None:
            log_event("snapshot_missing", key=store_key)
            return current
        loaded = load_snapshot_blob(current, raw)
        log_event("snapshot_loaded", key=store_key, lane_id=loaded.lane_id)
        return loaded


SNAPSHOT_STORE = SnapshotStore()
