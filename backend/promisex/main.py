from __future__ import annotations

import random
import time
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .diagnostics import run_self_tests
from .engine import apply_intervention, derive
from .lanes import LANES, get_lane
from .logging_utils import log_event
from .models import (
    DeriveResponse,
    DiagnosticsResponse,
    GridEditRequest,
    InputsResponse,
    InterveneRequest,
    InterveneResponse,
    PresetApplyRequest,
    ScenarioSnapshot,
    SimulationInputs,
    SnapshotApplyRequest,
    SnapshotLoadRequest,
    SnapshotSaveRequest,
    SnapshotSaveResponse,
)
from .presets import PRESETS, apply_preset, reset_inputs
from .risk_grid import COL_LABELS, ROW_LABELS, aggregate_risk, paint_cell, toggle_cell
from .scenario_errors import ScenarioDataError, normalize_reason_code
from .services import SERVICE_ORDER
from .snapshot_store import SNAPSHOT_STORE, apply_snapshot, export_snapshot, load_snapshot_blob

app = FastAPI(title="PromiseX delivery-promise simulator", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(e: ScenarioDataError, *, status_code: int) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"reason_code": normalize_reason_code(e.reason_code), "message": e.message, "details": e.details},
    )


def _rng(seed: int | None) -> random.Random | None:
    return random.Random(seed) if seed is not None else None


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Backend is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/lanes")
async def list_lanes() -> dict[str, Any]:
    return {
        "lanes": [lane.model_dump(mode="json", by_alias=True) for lane in LANES],
        "services": [
            {"key": s.value, "label": s.label, "default_emission_factor": s.default_emission_factor}
            for s in SERVICE_ORDER
        ],
        "grid": {"rows": list(ROW_LABELS), "cols": list(COL_LABELS)},
    }


@app.get("/lanes/{lane_id:path}")
async def lane_detail(lane_id: str) -> dict[str, Any]:
    try:
        lane = get_lane(lane_id)
    except ScenarioDataError as e:
        raise _http_error(e, status_code=404) from e
    return lane.model_dump(mode="json", by_alias=True)


@app.get("/presets")
async def list_presets() -> dict[str, Any]:
    return {"presets": [preset.as_dict() for preset in PRESETS]}


@app.get("/defaults", response_model=InputsResponse)
async def defaults(seed: int | None = None) -> InputsResponse:
    return InputsResponse(inputs=reset_inputs(rng=_rng(seed)))


@app.post("/derive", response_model=DeriveResponse)
async def derive_outputs(inputs: SimulationInputs) -> DeriveResponse:
    t0 = time.perf_counter()
    outputs = derive(inputs)
    log_event(
        "derive_request",
        lane_id=outputs.lane_id,
        service=inputs.service.value,
        effective_risk=round(outputs.effective_risk, 6),
        on_time_prob=round(outputs.prediction.on_time_prob, 6),
        duration_ms=round((time.perf_counter() - t0) * 1000.0, 3),
    )
    return DeriveResponse.model_validate(outputs.as_dict())


@app.post("/grid/toggle")
async def grid_toggle(req: GridEditRequest) -> dict[str, Any]:
    grid = toggle_cell(req.risk_grid, req.row, req.col)
    return {"risk_grid": [list(row) for row in grid], "network_risk": aggregate_risk(grid)}


@app.post("/grid/paint")
async def grid_paint(req: GridEditRequest) -> dict[str, Any]:
    grid = paint_cell(req.risk_grid, req.row, req.col)
    return {"risk_grid": [list(row) for row in grid], "network_risk": aggregate_risk(grid)}


@app.post("/presets/{preset_id}/apply", response_model=InputsResponse)
async def preset_apply(preset_id: str, req: PresetApplyRequest) -> InputsResponse:
    try:
        inputs = apply_preset(req.inputs, preset_id, rng=_rng(req.seed))
    except ScenarioDataError as e:
        raise _http_error(e, status_code=404) from e
    return InputsResponse(inputs=inputs)


@app.post("/intervene", response_model=InterveneResponse)
async def intervene(req: InterveneRequest) -> InterveneResponse:
    inputs = apply_intervention(req.inputs, rng=_rng(req.seed))
    return InterveneResponse(inputs=inputs, applied=inputs.intervention.active)


@app.post("/reset", response_model=InputsResponse)
async def reset(seed: int | None = None) -> InputsResponse:
    return InputsResponse(inputs=reset_inputs(rng=_rng(seed)))


@app.post("/scenario/export", response_model=ScenarioSnapshot, response_model_exclude_none=True)
async def scenario_export(inputs: SimulationInputs) -> ScenarioSnapshot:
    return ScenarioSnapshot.model_validate(export_snapshot(inputs, derive(inputs)))


@app.post("/scenario/save", response_model=SnapshotSaveResponse)
async def scenario_save(req: SnapshotSaveRequest) -> SnapshotSaveResponse:
    path = SNAPSHOT_STORE.save(req.inputs, key=req.key)
    return SnapshotSaveResponse(saved=True, path=str(path))


@app.post("/scenario/load", response_model=InputsResponse)
async def scenario_load(req: SnapshotLoadRequest) -> InputsResponse:
    return InputsResponse(inputs=SNAPSHOT_STORE.load(req.current, key=req.key))


@app.post("/scenario/apply", response_model=InputsResponse)
async def scenario_apply(req: SnapshotApplyRequest) -> InputsResponse:
    if req.snapshot is not None:
        inputs = apply_snapshot(req.current, req.snapshot)
    else:
        inputs = load_snapshot_blob(req.current, req.blob)
    return InputsResponse(inputs=inputs)


@app.post("/diagnostics", response_model=DiagnosticsResponse)
async def diagnostics(inputs: SimulationInputs) -> DiagnosticsResponse:
    checks = run_self_tests(inputs, derive(inputs))
    return DiagnosticsResponse(
        checks=[check.as_dict() for check in checks],
        all_passed=all(c.passed for c in checks),
    )
