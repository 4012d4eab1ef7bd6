from __future__ import annotations

import argparse
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

import httpx


def _utc_now_compact() -> str:
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Derive a saved scenario snapshot headlessly and store the output bundle."
    )
    parser.add_argument("--input-json", required=True)
    parser.add_argument("--backend-url", default="http://localhost:8000")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--save-dir", default="out/headless")
    parser.add_argument("--summary-path", default=None)
    return parser


def load_snapshot_from_json(path: str) -> dict[str, Any]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("JSON snapshot must be an object")
    return payload


def _post(client: httpx.Client, url: str, payload: dict[str, Any]) -> dict[str, Any]:
    resp = client.post(url, json=payload)
    resp.raise_for_status()
    return resp.json()


def execute_headless_run(
    snapshot: dict[str, Any],
    *,
    backend_url: str,
    save_dir: str,
    summary_path: str | None = None,
    seed: int | None = None,
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    base = backend_url.rstrip("/")
    own_client = client is None
    if client is None:
        client = httpx.Client(timeout=30.0)

    try:
        params = {"seed": seed} if seed is not None else None
        defaults_resp = client.get(f"{base}/defaults", params=params)
        defaults_resp.raise_for_status()
        current = defaults_resp.json()["inputs"]

        inputs = _post(client, f"{base}/scenario/apply", {"current": current, "snapshot": snapshot})["inputs"]
        outputs = _post(client, f"{base}/derive", inputs)
        exported = _post(client, f"{base}/scenario/export", inputs)

        run_dir = Path(save_dir) / f"scenario_{_utc_now_compact()}"
        run_dir.mkdir(parents=True, exist_ok=True)
        (run_dir / "inputs.json").write_text(json.dumps(inputs, indent=2), encoding="utf-8")
        (run_dir / "outputs.json").write_text(json.dumps(outputs, indent=2), encoding="utf-8")
        (run_dir / "export.json").write_text(json.dumps(exported, indent=2), encoding="utf-8")

        prediction = outputs["prediction"]
        commercial = outputs["commercial"]
        summary = {
            "timestamp": datetime.now(UTC).isoformat(),
            "lane": inputs["lane_id"],
            "service": inputs["service"],
            "eta": prediction["eta_text"],
            "p50_days": prediction["p50_days"],
            "p90_days": prediction["p90_days"],
            "on_time_prob": prediction["on_time_prob"],
            "emissions_kg": prediction["emissions_kg"],
            "breach_label": commercial["breach_label"],
            "exposure_usd": commercial["exposure_usd"],
            "saved_dir": str(run_dir),
        }

        summary_file = (
            Path(summary_path)
            if summary_path
            else run_dir / f"headless_summary_{_utc_now_compact()}.json"
        )
        summary_file.parent.mkdir(parents=True, exist_ok=True)
        summary_file.write_text(json.dumps(summary, indent=2), encoding="utf-8")
        summary["summary_file"] = str(summary_file)
        return summary
    finally:
        if own_client and client is not None:
            client.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    snapshot = load_snapshot_from_json(args.input_json)
    summary = execute_headless_run(
        snapshot,
        backend_url=args.backend_url,
        save_dir=args.save_dir,
        summary_path=args.summary_path,
        seed=args.seed,
    )
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
