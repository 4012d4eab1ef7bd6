"""Stage x time-bucket risk grid.

Grids are tuples of tuples so every edit yields a new object; callers detect
changes by identity. Cell levels are 0 (low), 1 (medium) and 2 (high).
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

RISK_LOW = 0
RISK_MEDIUM = 1
RISK_HIGH = 2
RISK_LEVELS: tuple[int, ...] = (RISK_LOW, RISK_MEDIUM, RISK_HIGH)

ROW_LABELS: tuple[str, ...] = (
    "Pickup",
    "Linehaul W",
    "Air/Sort hub",
    "Linehaul E",
    "Last-mile",
    "Returns",
)
COL_LABELS: tuple[str, ...] = tuple("T+0h" if i == 0 else f"T+{i * 12}h" for i in range(10))

RiskGrid = tuple[tuple[int, ...], ...]


def _level(value: Any) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError, OverflowError):
        return RISK_LOW
    return min(RISK_HIGH, max(RISK_LOW, level))


def create_grid(
    rows: int = len(ROW_LABELS),
    cols: int = len(COL_LABELS),
    density: float = 0.22,
    *,
    rng: random.Random | None = None,
) -> RiskGrid:
    """Random grid: HIGH with probability `density`, else MEDIUM with 1.5 x density, else LOW.

    Two independent draws per cell, not a calibrated three-way distribution.
    """
    draw = rng if rng is not None else random.Random()
    p = float(density)
    out: list[tuple[int, ...]] = []
    for _ in range(max(0, int(rows))):
        row: list[int] = []
        for _ in range(max(0, int(cols))):
            if draw.random() < p:
                row.append(RISK_HIGH)
            elif draw.random() < p * 1.5:
                row.append(RISK_MEDIUM)
            else:
                row.append(RISK_LOW)
        out.append(tuple(row))
    return tuple(out)


def grid_shape(grid: RiskGrid) -> tuple[int, int]:
    rows = len(grid)
    return rows, (len(grid[0]) if rows else 0)


def _in_bounds(grid: RiskGrid, r: int, c: int) -> bool:
    return 0 <= r < len(grid) and 0 <= c < len(grid[r])


def _replace_cell(grid: RiskGrid, r: int, c: int, level: int) -> RiskGrid:
    row = grid[r]
    new_row = row[:c] + (level,) + row[c + 1 :]
    return grid[:r] + (new_row,) + grid[r + 1 :]


def set_cell(grid: RiskGrid, r: int, c: int, level: int) -> RiskGrid:
    if not _in_bounds(grid, r, c):
        return grid
    return _replace_cell(grid, r, c, _level(level))


def toggle_cell(grid: RiskGrid, r: int, c: int) -> RiskGrid:
    """Click edit: 0 -> 1 -> 2 -> 0."""
    if not _in_bounds(grid, r, c):
        return grid
    return _replace_cell(grid, r, c, (_level(grid[r][c]) + 1) % 3)


def paint_cell(grid: RiskGrid, r: int, c: int) -> RiskGrid:
    """Drag edit: one level up, saturating at HIGH."""
    if not _in_bounds(grid, r, c):
        return grid
    return _replace_cell(grid, r, c, min(RISK_HIGH, _level(grid[r][c]) + 1))


def aggregate_risk(grid: RiskGrid) -> float:
    cells = [_level(v) for row in grid for v in row]
    if not cells:
        return 0.0
    return sum(cells) / (len(cells) * 2)


def row_risk(grid: RiskGrid) -> list[float]:
    return [sum(_level(v) for v in row) / (len(row) * 2) if row else 0.0 for row in grid]


def col_risk(grid: RiskGrid) -> list[float]:
    rows, cols = grid_shape(grid)
    if rows == 0:
        return []
    return [sum(_level(row[c]) for row in grid if c < len(row)) / (rows * 2) for c in range(cols)]


def coerce_grid(value: Any, *, rows: int | None = None, cols: int | None = None) -> RiskGrid | None:
    """Validate a persisted grid. Returns None when the payload is not a rectangular numeric matrix.

    Numeric cells outside {0, 1, 2} are clamped into range. When `rows`/`cols`
    are given the shape must match them exactly.
    """
    if not isinstance(value, (list, tuple)) or not value:
        return None
    out: list[tuple[int, ...]] = []
    width: int | None = None
    for row in value:
        if not isinstance(row, (list, tuple)) or not row:
            return None
        if width is None:
            width = len(row)
        elif len(row) != width:
            return None
        cells: list[int] = []
        for cell in row:
            if isinstance(cell, bool) or not isinstance(cell, (int, float)) or cell != cell:
                return None
            cells.append(_level(cell))
        out.append(tuple(cells))
    if rows is not None and len(out) != rows:
        return None
    if cols is not None and width != cols:
        return None
    return tuple(out)


@dataclass(frozen=True)
class Hotspot:
    row: int
    col: int
    level: int
    stage: str
    time_bucket: str
    action: str
    risk_cut: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "col": self.col,
            "level": self.level,
            "stage": self.stage,
            "time_bucket": self.time_bucket,
            "action": self.action,
            "risk_cut": self.risk_cut,
        }


def _action_for_stage(stage: str) -> str:
    if "hub" in stage:
        return "Bypass alternate sort hub"
    if "Linehaul" in stage:
        return "Add linehaul capacity"
    if "Last" in stage:
        return "Expand delivery wave"
    return "Advance pickup window"


def _label(labels: tuple[str, ...], idx: int, prefix: str) -> str:
    return labels[idx] if idx < len(labels) else f"{prefix}{idx}"


def top_hotspots(grid: RiskGrid, *, limit: int = 3) -> list[Hotspot]:
    cells = [(r, c, _level(v)) for r, row in enumerate(grid) for c, v in enumerate(row)]
    # sorted() is stable: ties keep row-major order.
    ranked = sorted(cells, key=lambda item: -item[2])
    out: list[Hotspot] = []
    for r, c, level in ranked[: max(0, int(limit))]:
        stage = _label(ROW_LABELS, r, "Stage ")
        out.append(
            Hotspot(
                row=r,
                col=c,
                level=level,
                stage=stage,
                time_bucket=_label(COL_LABELS, c, "Bucket "),
                action=_action_for_stage(stage),
                risk_cut=0.25 if level == RISK_HIGH else 0.12,
            )
        )
    return out
