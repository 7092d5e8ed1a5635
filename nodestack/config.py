from __future__ import annotations

import os
from datetime import date
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

from nodestack.policy import DEFAULT_CONNECTOR_CUTOFF, TimeWindowPolicy


def _resolve_project_root() -> Path:
    override = os.getenv("NODESTACK_HOME", "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path.cwd().resolve()


def _default_db_path() -> Path:
    override = os.getenv("NODESTACK_DB_PATH", "").strip()
    if override:
        return Path(override).expanduser()
    return _resolve_project_root() / "data" / "nodestack.db"


def _default_cutoff() -> date:
    raw = os.getenv("NODESTACK_CONNECTOR_CUTOFF", "").strip()
    return date.fromisoformat(raw) if raw else DEFAULT_CONNECTOR_CUTOFF


class Settings(BaseModel):
    project_root: Path = Field(default_factory=_resolve_project_root)
    database_path: Path = Field(default_factory=_default_db_path)

    # Introductions requested before this day are never surfaced to connectors.
    connector_cutoff: date = Field(default_factory=_default_cutoff)
    digest_delay_seconds: float = Field(
        default_factory=lambda: float(os.getenv("NODESTACK_DIGEST_DELAY", "0.1"))
    )

    def policy(self) -> TimeWindowPolicy:
        return TimeWindowPolicy(connector_cutoff=self.connector_cutoff)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
