from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_out_dir() -> str:
    # Keep snapshots and logs in backend/out by default to avoid polluting source.
    return str(Path(__file__).resolve().parents[1] / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven). They seed defaults only; engine functions take explicit arguments."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Local key-value store standing in for browser storage.
    snapshot_store_file: str = Field(default="scenario_store.json", alias="SNAPSHOT_STORE_FILE")
    snapshot_key: str = Field(default="promisex_scenario", alias="SNAPSHOT_KEY")

    grid_seed: int | None = Field(default=None, alias="GRID_SEED")
    default_grid_density: float = Field(default=0.22, ge=0.0, le=1.0, alias="DEFAULT_GRID_DENSITY")

    intervention_risk_threshold: float = Field(
        default=0.42,
        ge=0.0,
        lt=1.0,
        alias="INTERVENTION_RISK_THRESHOLD",
    )
    intervention_seed: int = Field(default=0, alias="INTERVENTION_SEED")

    default_sla_target: float = Field(default=95.0, ge=80.0, le=99.0, alias="DEFAULT_SLA_TARGET")
    default_volume_per_week: int = Field(default=2000, ge=0, alias="DEFAULT_VOLUME_PER_WEEK")
    default_penalty_per_late: float = Field(default=2.0, ge=0.0, alias="DEFAULT_PENALTY_PER_LATE")

    @model_validator(mode="after")
    def _normalize_store_file(self) -> "Settings":
        name = str(self.snapshot_store_file or "").strip()
        if not name.endswith(".json"):
            name = f"{name or 'scenario_store'}.json"
        self.snapshot_store_file = name
        self.snapshot_key = str(self.snapshot_key or "").strip() or "promisex_scenario"
        return self


settings = Settings()
