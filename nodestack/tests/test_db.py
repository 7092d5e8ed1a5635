from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine, inspect as sa_inspect, select, text
from sqlalchemy.exc import IntegrityError

from nodestack import db
from nodestack.models import FollowupLog, Founder


@pytest.fixture()
def db_file(tmp_path):
    path = tmp_path / "nodestack.db"
    db.init_db(path)
    yield path
    db._engine.dispose()


class TestSessionManagement:
    def test_init_records_path(self, db_file):
        assert db.current_db_path() == db_file
        assert db_file.exists()

    def test_session_scope(self, db_file):
        with db.session_scope() as session:
            session.add(Founder(name="Ada"))
            session.commit()
        with db.session_scope() as session:
            names = session.execute(select(Founder.name)).scalars().all()
        assert names == ["Ada"]

    def test_session_scope_rollback(self, db_file):
        with pytest.raises(RuntimeError):
            with db.session_scope() as session:
                session.add(Founder(name="Ghost"))
                session.flush()
                raise RuntimeError("boom")
        with db.session_scope() as session:
            assert session.execute(select(Founder)).scalars().all() == []

    def test_foreign_keys_enforced(self, db_file):
        with db.session_scope() as session:
            session.add(FollowupLog(introduction_id=999, followup_type="connector_check",
                                    completed_by="admin", completed_at=datetime.now(UTC)))
            with pytest.raises(IntegrityError):
                session.commit()


class TestSchemaUpgrade:
    def test_adds_missing_introduction_columns(self, tmp_path):
        path = tmp_path / "old.db"
        old = create_engine(f"sqlite:///{path}")
        with old.begin() as conn:
            conn.execute(text(
                "CREATE TABLE introductions (id INTEGER PRIMARY KEY, founder_id INTEGER, "
                "connector_id INTEGER, investor_id INTEGER, status VARCHAR(40))"
            ))
        old.dispose()

        db.init_db(path)
        try:
            columns = {c["name"] for c in sa_inspect(db._engine).get_columns("introductions")}
        finally:
            db._engine.dispose()
        assert {"followup_owner", "last_followup_date", "second_meeting_date"} <= columns
