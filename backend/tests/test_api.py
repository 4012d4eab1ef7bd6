from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from promisex.main import app
from promisex.settings import settings

ZERO_GRID = [[0] * 10 for _ in range(6)]
HOT_GRID = [[2] * 10 for _ in range(6)]


def _client(tmp_path: Path, monkeypatch) -> TestClient:
    monkeypatch.setattr(settings, "out_dir", str(tmp_path))
    return TestClient(app)


def test_health_lanes_and_presets(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    assert client.get("/health").json() == {"status": "ok"}

    lanes = client.get("/lanes").json()
    assert [lane["id"] for lane in lanes["lanes"]] == ["SFO→JFK", "LAX→ATL", "DFW→ORD", "SEA→MIA"]
    assert [s["key"] for s in lanes["services"]] == ["ground", "twoDay", "overnight"]
    assert len(lanes["grid"]["rows"]) == 6
    assert len(lanes["grid"]["cols"]) == 10

    detail = client.get("/lanes/LAX→ATL").json()
    assert detail["distance_km"] == 3120.0
    assert detail["base_transit_days"]["twoDay"] == 2.0

    presets = client.get("/presets").json()["presets"]
    assert len(presets) == 4


def test_unknown_lane_and_preset_are_404(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    resp = client.get("/lanes/AAA→BBB")
    assert resp.status_code == 404
    assert resp.json()["detail"]["reason_code"] == "lane_unknown"

    resp = client.post("/presets/Volcano/apply", json={})
    assert resp.status_code == 404
    assert resp.json()["detail"]["reason_code"] == "preset_unknown"


def test_derive_endpoint_returns_full_bundle(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    resp = client.post(
        "/derive",
        json={"weather": 50, "congestion": 50, "sensor_coverage": 0, "risk_grid": ZERO_GRID},
    )
    assert resp.status_code == 200
    body = resp.json()

    assert abs(body["effective_risk"] - 0.25) < 1e-9
    assert body["lane_id"] == "SFO→JFK"
    assert len(body["prediction"]["service_mix"]) == 3
    assert len(body["trend"]) == 14
    assert body["commercial"]["breach_label"] in {"Low", "Elevated", "High"}
    assert body["suggestion"] is None


def test_derive_rejects_ragged_grid(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    resp = client.post("/derive", json={"risk_grid": [[0, 1], [2]]})
    assert resp.status_code == 422


def test_grid_edit_endpoints(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    toggled = client.post("/grid/toggle", json={"risk_grid": ZERO_GRID, "row": 1, "col": 2}).json()
    assert toggled["risk_grid"][1][2] == 1
    assert abs(toggled["network_risk"] - 1 / 120) < 1e-12

    painted = client.post("/grid/paint", json={"risk_grid": HOT_GRID, "row": 0, "col": 0}).json()
    assert painted["risk_grid"][0][0] == 2

    outside = client.post("/grid/toggle", json={"risk_grid": ZERO_GRID, "row": 9, "col": 0}).json()
    assert outside["risk_grid"] == ZERO_GRID


def test_preset_and_intervention_flow(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    preset = client.post("/presets/Winter storm/apply", json={"seed": 7}).json()["inputs"]
    assert preset["weather"] == 80.0
    assert preset["intervention"]["active"] is False

    risky = {**preset, "sensor_coverage": 0, "risk_grid": HOT_GRID}
    result = client.post("/intervene", json={"inputs": risky, "seed": 3}).json()
    assert result["applied"] is True
    assert 0.35 <= result["inputs"]["intervention"]["risk_cut"] <= 0.55

    again = client.post("/intervene", json={"inputs": result["inputs"]}).json()
    assert again["applied"] is True
    assert again["inputs"]["intervention"] == result["inputs"]["intervention"]


def test_reset_and_defaults_are_seedable(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    first = client.post("/reset", params={"seed": 42}).json()["inputs"]
    second = client.get("/defaults", params={"seed": 42}).json()["inputs"]
    assert first == second
    assert first["lane_id"] == "SFO→JFK"
    assert first["weather"] == 35.0


def test_save_load_and_apply_snapshot(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    scenario = {
        "lane_id": "SEA→MIA",
        "service": "twoDay",
        "weight_kg": 4.0,
        "weather": 66,
        "risk_grid": HOT_GRID,
    }

    saved = client.post("/scenario/save", json={"inputs": scenario}).json()
    assert saved["saved"] is True
    assert Path(saved["path"]).parent == tmp_path

    loaded = client.post("/scenario/load", json={"current": {"risk_grid": ZERO_GRID}}).json()["inputs"]
    assert loaded["lane_id"] == "SEA→MIA"
    assert loaded["service"] == "twoDay"
    assert loaded["risk_grid"] == HOT_GRID

    exported = client.post("/scenario/export", json=scenario).json()
    assert "riskGrid" not in exported
    assert exported["outputs"]["cost"] == 45.0

    applied = client.post(
        "/scenario/apply",
        json={"current": {"risk_grid": ZERO_GRID}, "snapshot": exported},
    ).json()["inputs"]
    assert applied["lane_id"] == "SEA→MIA"
    assert applied["risk_grid"] == ZERO_GRID

    ignored = client.post(
        "/scenario/apply",
        json={"current": {"risk_grid": ZERO_GRID, "weather": 12}, "blob": "not-json"},
    ).json()["inputs"]
    assert ignored["weather"] == 12.0


def test_diagnostics_endpoint(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    body = client.post("/diagnostics", json={"risk_grid": HOT_GRID}).json()
    assert len(body["checks"]) == 8
    assert body["all_passed"] is True


def test_derive_clamps_out_of_range_numbers(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    resp = client.post(
        "/derive",
        json={
            "weather": 500,
            "emission_factors": {"ground": -0.5},
            "intervention": {"active": True, "risk_cut": 1.4, "distance_penalty": 0.1},
            "risk_grid": HOT_GRID,
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["effective_risk"] == 0.0
    assert body["prediction"]["emissions_kg"] == 0.0
    assert 0.0 <= body["prediction"]["on_time_prob"] <= 1.0


def test_response_models_shape_scenario_payloads(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    inputs = client.get("/defaults", params={"seed": 5}).json()["inputs"]
    assert inputs["emission_factors"] == {"ground": 0.062, "twoDay": 0.30, "overnight": 0.60}

    exported = client.post("/scenario/export", json=inputs).json()
    assert set(exported) == {
        "lane",
        "service",
        "weightKg",
        "holidayPeak",
        "weather",
        "congestion",
        "sensorCoverage",
        "emissionFactors",
        "slaTarget",
        "outputs",
    }
    assert set(exported["outputs"]) == {"eta", "p50Days", "p90Days", "onTimeProb", "emissionsKg", "cost"}

    derived = client.post("/derive", json=inputs).json()
    assert set(derived["drivers"]) == {"weather", "congestion", "network"}
    assert all(isinstance(point["p"], int) for point in derived["density"])
    assert "/derive" in client.get("/openapi.json").json()["paths"]
