from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file + bundled policy file).
    - Override via `CINEMA_*` env vars, e.g. `CINEMA_DB_URL`, `CINEMA_LOG_LEVEL`.
    """

    model_config = SettingsConfigDict(env_prefix="CINEMA_", extra="ignore")

    db_url: str | None = None
    policy_config_path: str | None = None
    log_level: str = "INFO"
    seed_demo_data: bool = True

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "cinema.db"
        return f"sqlite:///{db_path}"

    def resolved_policy_config_path(self) -> Path:
        if self.policy_config_path:
            return Path(self.policy_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "policy.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
