from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from promisex.main import app
from promisex.settings import settings
from scripts.run_headless_scenario import (
    build_parser,
    execute_headless_run,
    load_snapshot_from_json,
    main,
)


def test_headless_parser_defaults() -> None:
    args = build_parser().parse_args(["--input-json", "snap.json"])
    assert args.input_json == "snap.json"
    assert args.backend_url == "http://localhost:8000"
    assert args.seed is None
    assert args.save_dir == "out/headless"
    assert args.summary_path is None


def test_load_snapshot_from_json(tmp_path: Path) -> None:
    good = tmp_path / "snap.json"
    good.write_text(json.dumps({"lane": "LAX→ATL"}), encoding="utf-8")
    assert load_snapshot_from_json(str(good)) == {"lane": "LAX→ATL"}

    bad = tmp_path / "list.json"
    bad.write_text("[1]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_snapshot_from_json(str(bad))


def test_execute_headless_run_with_mock_transport(tmp_path: Path) -> None:
    seen: list[tuple[str, str]] = []
    inputs = {"lane_id": "LAX→ATL", "service": "overnight", "risk_grid": [[0] * 10 for _ in range(6)]}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        seen.append((request.method, path))
        if request.method == "GET" and path == "/defaults":
            assert request.url.params.get("seed") == "9"
            return httpx.Response(200, json={"inputs": {"lane_id": "SFO→JFK"}})
        if request.method == "POST" and path == "/scenario/apply":
            body = json.loads(request.content)
            assert body["snapshot"] == {"lane": "LAX→ATL", "service": "overnight"}
            return httpx.Response(200, json={"inputs": inputs})
        if request.method == "POST" and path == "/derive":
            return httpx.Response(
                200,
                json={
                    "prediction": {
                        "eta_text": "Tue, Oct 20 – Wed, Oct 21",
                        "p50_days": 1.1,
                        "p90_days": 1.4,
                        "on_time_prob": 0.93,
                        "emissions_kg": 3.74,
                    },
                    "commercial": {"breach_label": "Low", "exposure_usd": 80},
                },
            )
        if request.method == "POST" and path == "/scenario/export":
            return httpx.Response(200, json={"lane": "LAX→ATL", "outputs": {"cost": 62.0}})
        return httpx.Response(404, json={"detail": "not found"})

    transport = httpx.MockTransport(handler)
    client = httpx.Client(transport=transport, base_url="http://testserver")
    try:
        summary = execute_headless_run(
            {"lane": "LAX→ATL", "service": "overnight"},
            backend_url="http://testserver",
            save_dir=str(tmp_path / "headless"),
            summary_path=str(tmp_path / "summary.json"),
            seed=9,
            client=client,
        )
    finally:
        client.close()

    assert [p for _, p in seen] == ["/defaults", "/scenario/apply", "/derive", "/scenario/export"]
    assert summary["lane"] == "LAX→ATL"
    assert summary["breach_label"] == "Low"
    assert Path(summary["summary_file"]) == tmp_path / "summary.json"
    saved = Path(summary["saved_dir"])
    assert sorted(p.name for p in saved.iterdir()) == ["export.json", "inputs.json", "outputs.json"]


def test_headless_run_against_in_process_app(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "out_dir", str(tmp_path))
    with TestClient(app) as client:
        summary = execute_headless_run(
            {"lane": "DFW→ORD", "service": "twoDay", "weather": 90, "holidayPeak": True},
            backend_url="http://testserver",
            save_dir=str(tmp_path / "headless"),
            seed=1,
            client=client,
        )

    assert summary["lane"] == "DFW→ORD"
    assert summary["service"] == "twoDay"
    assert summary["p90_days"] >= summary["p50_days"]
    assert 0.0 <= summary["on_time_prob"] <= 1.0
    assert Path(summary["summary_file"]).exists()


def test_main_prints_summary(tmp_path: Path, monkeypatch, capsys) -> None:
    snap = tmp_path / "snap.json"
    snap.write_text(json.dumps({"lane": "SEA→MIA"}), encoding="utf-8")

    def fake_run(snapshot, **kwargs):
        assert snapshot == {"lane": "SEA→MIA"}
        assert kwargs["save_dir"] == str(tmp_path)
        return {"lane": snapshot["lane"]}

    monkeypatch.setattr("scripts.run_headless_scenario.execute_headless_run", fake_run)
    assert main(["--input-json", str(snap), "--save-dir", str(tmp_path)]) == 0
    assert json.loads(capsys.readouterr().out) == {"lane": "SEA→MIA"}
