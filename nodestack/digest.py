"""Digest aggregation: group introductions into per-role buckets of pending work."""
from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable
from datetime import date, datetime

from nodestack.errors import MissingReferenceWarning
from nodestack.policy import DEFAULT_POLICY, TimeWindowPolicy
from nodestack.schemas import (
    AdminDigest,
    AdminDigestSummary,
    FounderDigest,
    FounderDigestSummary,
    FounderRef,
    FounderTaskGroup,
    Introduction,
    PendingFounder,
)
from nodestack.status import (
    CONNECTOR_UPDATE_STATUSES,
    FollowupOwner,
    FollowupType,
    IntroStatus,
    Priority,
    RoundStatus,
    is_overdue_eligible,
)
from nodestack.tasks import connector_task

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Bucket predicates
# ---------------------------------------------------------------------------


def is_overdue(intro: Introduction, today: date) -> bool:
    due = intro.next_followup_date
    return due is not None and due < today and is_overdue_eligible(intro.status)


def is_due_today(intro: Introduction, today: date) -> bool:
    return intro.next_followup_date == today and is_overdue_eligible(intro.status)


def _awaiting_connector(intro: Introduction, before: date) -> bool:
    return (
        intro.status == IntroStatus.INTRO_REQUEST_SENT
        and intro.date_node_asked is None
        and intro.date_requested is not None
        and intro.date_requested < before
    )


def is_pending_connector(
    intro: Introduction, today: date, policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> bool:
    """Request sent but the connector has not asked the investor within the response window."""
    return _awaiting_connector(intro, policy.node_response_cutoff(today))


def is_escalated(
    intro: Introduction, today: date, policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> bool:
    return _awaiting_connector(intro, policy.escalation_cutoff(today))


def needs_connector_update(intro: Introduction) -> bool:
    return (
        intro.status in CONNECTOR_UPDATE_STATUSES
        and not intro.has_log(FollowupType.CONNECTOR_UPDATE)
    )


def _owned_by(intro: Introduction, owner: FollowupOwner) -> bool:
    return intro.followup_owner == owner


def _missing(intro: Introduction, what: str) -> None:
    log.warning("Introduction %s has no %s relation; skipping", intro.id, what)
    warnings.warn(
        f"Introduction {intro.id} has no {what} relation",
        MissingReferenceWarning, stacklevel=3,
    )


# ---------------------------------------------------------------------------
# Founder digest
# ---------------------------------------------------------------------------


def build_founder_digest(
    introductions: Iterable[Introduction],
    today: date,
    founder_id: int | None = None,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> FounderDigest:
    """Partition one founder's introductions into the daily digest buckets.

    When *founder_id* is given, introductions of other founders are ignored;
    an id present in no introduction yields empty buckets.
    """
    intros = [i for i in introductions if founder_id is None or i.founder_id == founder_id]
    founder_owned = [i for i in intros if _owned_by(i, FollowupOwner.FOUNDER)]

    overdue = [i for i in founder_owned if is_overdue(i, today)]
    due_today = [i for i in founder_owned if is_due_today(i, today)]
    pending = [i for i in intros if is_pending_connector(i, today, policy)]
    needs_update = [i for i in intros if needs_connector_update(i)]

    return FounderDigest(
        founder_id=founder_id,
        overdue_followups=overdue,
        due_today=due_today,
        pending_connector_response=pending,
        needs_connector_update=needs_update,
        summary=FounderDigestSummary(
            overdue_count=len(overdue),
            due_today_count=len(due_today),
            pending_connector_count=len(pending),
            needs_connector_update_count=len(needs_update),
        ),
    )


def list_pending_founders(
    introductions: Iterable[Introduction],
    today: date,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> list[PendingFounder]:
    """Founders with at least one overdue, due-today or connector-pending item."""
    founders: dict[int, FounderRef] = {}
    counts: dict[int, int] = {}
    for intro in introductions:
        if not (is_overdue(intro, today) or is_due_today(intro, today)
                or is_pending_connector(intro, today, policy)):
            continue
        if intro.founder is None:
            _missing(intro, "founder")
            continue
        founders.setdefault(intro.founder_id, intro.founder)
        counts[intro.founder_id] = counts.get(intro.founder_id, 0) + 1
    return [PendingFounder(founder=founders[fid], action_count=n) for fid, n in counts.items()]


# ---------------------------------------------------------------------------
# Admin digest
# ---------------------------------------------------------------------------


def build_admin_digest(
    introductions: Iterable[Introduction],
    founders: Iterable[FounderRef],
    today: date,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> AdminDigest:
    round_status = {f.id: f.round_status for f in founders}
    intros = list(introductions)

    escalated = [i for i in intros if is_escalated(i, today, policy)]
    admin_overdue = [i for i in intros if _owned_by(i, FollowupOwner.ADMIN) and is_overdue(i, today)]

    circle_back: list[Introduction] = []
    for intro in intros:
        if intro.status != IntroStatus.CIRCLE_BACK_ROUND_OPENS:
            continue
        if intro.founder_id not in round_status:
            _missing(intro, "founder")
            continue
        if round_status[intro.founder_id] == RoundStatus.ROUND_OPEN:
            circle_back.append(intro)

    return AdminDigest(
        escalated=escalated,
        admin_overdue=admin_overdue,
        circle_back_opportunities=circle_back,
        summary=AdminDigestSummary(
            escalated_count=len(escalated),
            admin_overdue_count=len(admin_overdue),
            circle_back_count=len(circle_back),
        ),
    )


# ---------------------------------------------------------------------------
# Connector task digest
# ---------------------------------------------------------------------------


def derive_connector_tasks(
    introductions: Iterable[Introduction],
    now: datetime,
    cutoff_date: date | None = None,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> list[FounderTaskGroup]:
    """Connector tasks grouped per founder, busiest founders (most high-priority tasks) first.

    Tasks are priority-sorted before grouping, so groups appear in the order
    their founder's first task appears in that list; ``sorted`` keeps that
    order among founders with equal high-priority counts.
    """
    pairs = []
    for intro in introductions:
        task = connector_task(intro, now, cutoff_date, policy)
        if task is None:
            continue
        if intro.founder is None:
            _missing(intro, "founder")
            continue
        pairs.append((task, intro.founder))

    groups: dict[int, FounderTaskGroup] = {}
    for task, founder in sorted(pairs, key=lambda pair: pair[0].priority.rank):
        group = groups.get(founder.id)
        if group is None:
            group = groups[founder.id] = FounderTaskGroup(founder=founder, tasks=[], high_priority_count=0)
        group.tasks.append(task)
        if task.priority == Priority.HIGH:
            group.high_priority_count += 1

    return sorted(groups.values(), key=lambda g: -g.high_priority_count)


# ---------------------------------------------------------------------------
# Plain-text rendering
# ---------------------------------------------------------------------------


def render_founder_digest(founder: FounderRef, digest: FounderDigest) -> str:
    """Render the daily digest body for *founder*. Returns "" when nothing is pending."""
    if digest.summary.total == 0:
        return ""

    first_name = founder.name.split(" ")[0] if founder.name else "there"
    lines = [f"Hi {first_name},", "", "Here's your daily NodeStack digest:", ""]

    def via(intro: Introduction) -> str:
        return f" (via {intro.connector.name})" if intro.connector else ""

    def connector_name(intro: Introduction) -> str:
        return intro.connector.name if intro.connector else "your connector"

    sections = (
        ("OVERDUE FOLLOW-UPS", digest.overdue_followups,
         lambda i: f"{i.investor_label}{via(i)} - was due {i.next_followup_date}"),
        ("DUE TODAY", digest.due_today,
         lambda i: f"{i.investor_label}{via(i)}"),
        ("WAITING ON CONNECTOR RESPONSE", digest.pending_connector_response,
         lambda i: f"Follow up with {connector_name(i)} about intro to {i.investor_label}"),
        ("UPDATE YOUR CONNECTORS", digest.needs_connector_update,
         lambda i: f"Let {connector_name(i)} know how it went with {i.investor_label}"),
    )
    for title, items, describe in sections:
        if not items:
            continue
        lines.append(f"{title} ({len(items)})")
        lines.extend(f"  - {describe(i)}" for i in items)
        lines.append("")

    lines.extend(["--", "NodeStack", ""])
    return "\n".join(lines)
