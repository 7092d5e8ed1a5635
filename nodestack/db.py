from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, inspect as sa_inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from nodestack.config import get_settings
from nodestack.models import Base

log = logging.getLogger(__name__)

# Columns added after the first schema; older databases get them on startup.
_INTRODUCTION_UPGRADES = {
    "followup_owner": "VARCHAR(20) DEFAULT 'founder'",
    "last_followup_date": "DATE",
    "second_meeting_date": "DATE",
}

_lock = threading.Lock()
_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None
_current_db_path: Path | None = None


def _enable_foreign_keys(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, **kwargs) -> Engine:
    """SQLite engine with foreign keys enforced on every connection."""
    engine = create_engine(url, connect_args={"check_same_thread": False}, **kwargs)
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def _upgrade_schema(engine: Engine) -> None:
    inspector = sa_inspect(engine)
    if not inspector.has_table("introductions"):
        return
    present = {col["name"] for col in inspector.get_columns("introductions")}
    missing = [(name, ddl) for name, ddl in _INTRODUCTION_UPGRADES.items() if name not in present]
    if not missing:
        return
    with engine.begin() as conn:
        for name, ddl in missing:
            conn.execute(text(f"ALTER TABLE introductions ADD COLUMN {name} {ddl}"))
    log.info("Added introduction columns: %s", ", ".join(name for name, _ in missing))


def init_db(db_path: str | Path | None = None) -> None:
    """(Re)bind the module session factory to the SQLite file at *db_path*."""
    global _engine, _SessionLocal, _current_db_path
    path = Path(db_path) if db_path is not None else get_settings().database_path
    with _lock:
        if _engine is not None:
            _engine.dispose()
        path.parent.mkdir(parents=True, exist_ok=True)
        _engine = make_engine(f"sqlite:///{path}")
        _upgrade_schema(_engine)
        Base.metadata.create_all(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        _current_db_path = path


def get_session() -> Session:
    with _lock:
        factory = _SessionLocal
    if factory is None:
        raise RuntimeError("init_db() has not been called")
    return factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Session for work outside a request, such as the digest sweep."""
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def current_db_path() -> Path | None:
    return _current_db_path
