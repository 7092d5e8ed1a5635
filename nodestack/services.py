"""Shared business logic: load snapshots from the store and run the engine over them."""
from __future__ import annotations

import logging
from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from nodestack import schemas
from nodestack.config import get_settings
from nodestack.db import session_scope
from nodestack.digest import (
    build_admin_digest,
    build_founder_digest,
    derive_connector_tasks,
    list_pending_founders,
    render_founder_digest,
)
from nodestack.models import FollowupLog, Founder, Introduction
from nodestack.policy import TimeWindowPolicy, today_of
from nodestack.status import coerce_status
from nodestack.tasks import derive_founder_tasks
from nodestack.transitions import validate_transition
from nodestack.trends import compute_pipeline_stats, compute_trends
from nodestack.views import NAMED_VIEWS, founder_dashboard_stats

log = logging.getLogger(__name__)


def _policy() -> TimeWindowPolicy:
    return get_settings().policy()


# ---------------------------------------------------------------------------
# Snapshot loading
# ---------------------------------------------------------------------------


def get_entity(session: Session, model, entity_id: int):
    return session.execute(select(model).where(model.id == entity_id)).scalars().first()


def to_snapshot(row: Introduction) -> schemas.Introduction:
    """Freeze one ORM row (with its relations) into an engine snapshot."""
    coerce_status(row.status, row.id)
    return schemas.Introduction.model_validate(row)


def load_introductions(
    session: Session, *, founder_id: int | None = None, connector_id: int | None = None,
) -> list[schemas.Introduction]:
    query = (
        select(Introduction)
        .options(
            selectinload(Introduction.founder),
            selectinload(Introduction.connector),
            selectinload(Introduction.investor),
            selectinload(Introduction.followup_logs),
        )
        .order_by(Introduction.id)
    )
    if founder_id is not None:
        query = query.where(Introduction.founder_id == founder_id)
    if connector_id is not None:
        query = query.where(Introduction.connector_id == connector_id)
    rows = session.execute(query).scalars().all()
    return [to_snapshot(row) for row in rows]


def load_founders(session: Session) -> list[schemas.FounderRef]:
    rows = session.execute(select(Founder).order_by(Founder.id)).scalars().all()
    return [schemas.FounderRef.model_validate(f) for f in rows]


# ---------------------------------------------------------------------------
# Engine operations
# ---------------------------------------------------------------------------


def founder_tasks(session: Session, founder_id: int, now: datetime) -> list[schemas.Task]:
    return derive_founder_tasks(load_introductions(session, founder_id=founder_id), now, _policy())


def founder_digest(session: Session, founder_id: int, today: date) -> schemas.FounderDigest:
    intros = load_introductions(session, founder_id=founder_id)
    return build_founder_digest(intros, today, founder_id=founder_id, policy=_policy())


def founder_dashboard(session: Session, founder_id: int, today: date) -> schemas.FounderDashboardStats:
    return founder_dashboard_stats(load_introductions(session, founder_id=founder_id), today)


def connector_tasks(session: Session, connector_id: int, now: datetime) -> list[schemas.FounderTaskGroup]:
    policy = _policy()
    intros = load_introductions(session, connector_id=connector_id)
    return derive_connector_tasks(intros, now, policy.connector_cutoff, policy)


def pending_founders(session: Session, today: date) -> list[schemas.PendingFounder]:
    return list_pending_founders(load_introductions(session), today, _policy())


def admin_digest(session: Session, today: date) -> schemas.AdminDigest:
    return build_admin_digest(load_introductions(session), load_founders(session), today, _policy())


def trends(session: Session, now: datetime) -> schemas.TrendReport:
    return compute_trends(load_introductions(session), now, _policy())


def pipeline_stats(session: Session, today: date) -> schemas.PipelineStats:
    return compute_pipeline_stats(load_introductions(session), today, _policy())


def named_view(session: Session, name: str, today: date) -> list | None:
    view = NAMED_VIEWS.get(name)
    if view is None:
        return None
    return view(load_introductions(session), today)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def log_followup(
    session: Session, intro: Introduction, body: schemas.FollowupCreate, now: datetime | None = None,
) -> FollowupLog:
    """Append a follow-up log, then stamp the parent in a second commit.

    Readers may briefly see the log without the parent's ``last_followup_date``
    (or the reverse if the second commit fails); the engine treats both states
    as valid snapshots.
    """
    now = now or datetime.now(UTC)
    entry = FollowupLog(
        followup_type=body.followup_type.value,
        completed_by=body.completed_by.value, completed_at=now,
        notes=body.notes, next_action=body.next_action,
    )
    intro.followup_logs.append(entry)
    session.commit()
    intro.last_followup_date = today_of(now)
    intro.updated_at = now
    session.commit()
    return entry


def update_status(
    session: Session, intro: Introduction, body: schemas.StatusUpdate, now: datetime | None = None,
) -> Introduction:
    intro.status = validate_transition(intro.status, body.status, body.actor).value
    if body.next_followup_date is not None:
        intro.next_followup_date = body.next_followup_date
    if body.notes is not None:
        intro.notes = body.notes
    intro.updated_at = now or datetime.now(UTC)
    session.commit()
    return intro


# ---------------------------------------------------------------------------
# Daily digest sweep
# ---------------------------------------------------------------------------


async def deliver_founder_digest(founder: schemas.FounderRef, today: date | None = None) -> str:
    """Render one founder's digest and hand it to the delivery log.

    Returns ``"skipped"`` when the founder has nothing pending.
    """
    today = today or datetime.now(UTC).date()
    with session_scope() as session:
        digest = founder_digest(session, founder.id, today)
    body = render_founder_digest(founder, digest)
    if not body:
        return "skipped"
    log.info("Digest for %s (%d items):\n%s", founder.name, digest.summary.total, body)
    return "success"
