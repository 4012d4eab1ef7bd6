from __future__ import annotations

import ast
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "promisex"

EXPECTED_APP_FILES = {
    "__init__.py",
    "commercial_model.py",
    "derived_views.py",
    "diagnostics.py",
    "engine.py",
    "eta_model.py",
    "lanes.py",
    "logging_utils.py",
    "main.py",
    "models.py",
    "presets.py",
    "risk_grid.py",
    "risk_model.py",
    "scenario_errors.py",
    "services.py",
    "settings.py",
    "snapshot_store.py",
}


def _all_app_paths() -> list[Path]:
    return sorted(path for path in APP_DIR.glob("*.py") if path.is_file())


def test_app_inventory_is_complete() -> None:
    discovered = {path.name for path in _all_app_paths()}
    assert discovered == EXPECTED_APP_FILES


@pytest.mark.parametrize("module_path", _all_app_paths(), ids=lambda p: p.name)
def test_app_module_parses(module_path: Path) -> None:
    source = module_path.read_text(encoding="utf-8")
    ast.parse(source, filename=str(module_path))
