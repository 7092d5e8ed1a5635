"""Task derivation: what a founder or connector should do next on one introduction.

Founder rules
-------------
Founders own everything after the introduction is made. Explicit follow-up
dates always win (overdue, then due today). Without a date, the acted-on
heuristic decides: a record touched within the suppression window is quiet,
one touched longer ago resurfaces as a check-in, and one never touched asks
for a status-specific update.

Connector rules
---------------
Connectors get the same suppression treatment. Untouched ``introduced``
records follow a timeline: after 3 days ask whether a meeting was
scheduled, after 14 days ask whether it happened. Introductions requested
before the configured cutoff date are never surfaced to connectors.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime

from nodestack.policy import DEFAULT_POLICY, TimeWindowPolicy, age, today_of
from nodestack.schemas import Introduction, Task
from nodestack.status import IntroStatus, Priority, Role, is_task_eligible

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

_FOUNDER_UPDATE_MESSAGES = {
    IntroStatus.INTRODUCED: "Update needed: {investor} - how did it go?",
    IntroStatus.FIRST_MEETING_COMPLETE: "Update needed: {investor} - next steps?",
    IntroStatus.SECOND_MEETING_COMPLETE: "Update needed: {investor} - what's the outcome?",
    IntroStatus.FOLLOW_UP_QUESTIONS: "Action needed: {investor} has follow-up questions",
    IntroStatus.CIRCLE_BACK_ROUND_OPENS: "Time to reconnect with {investor}?",
}
_FOUNDER_DEFAULT_MESSAGE = "Update needed: {investor}"

_CONNECTOR_STATUS_TASKS = {
    IntroStatus.FIRST_MEETING_COMPLETE: (
        Priority.MEDIUM, "How did {founder}'s meeting with {investor_name} go?",
    ),
    IntroStatus.SECOND_MEETING_COMPLETE: (
        Priority.MEDIUM, "{founder} + {investor_name} - any outcome yet?",
    ),
    IntroStatus.FOLLOW_UP_QUESTIONS: (
        Priority.HIGH, "{investor_name} had questions for {founder} - resolved?",
    ),
    IntroStatus.CIRCLE_BACK_ROUND_OPENS: (
        Priority.LOW, "Time to reconnect {founder} with {investor_name}?",
    ),
}
_CONNECTOR_DEFAULT_TASK = (Priority.MEDIUM, "Check on {founder} + {investor}")


def _fmt(template: str, intro: Introduction) -> str:
    return template.format(
        investor=intro.investor_label,
        investor_name=intro.investor.name if intro.investor else intro.investor_label,
        founder=intro.founder_name,
    )


def _task(intro: Introduction, type_: str, priority: Priority, message: str) -> Task:
    return Task(
        type=type_, priority=priority, message=message,
        introduction_id=intro.id, founder_id=intro.founder_id,
    )


# ---------------------------------------------------------------------------
# Single-introduction rules
# ---------------------------------------------------------------------------


def founder_task(
    intro: Introduction, now: datetime, policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> Task | None:
    if not is_task_eligible(intro.status):
        return None

    today = today_of(now)
    due = intro.next_followup_date
    if due is not None and due < today:
        return _task(intro, "overdue_followup", Priority.HIGH,
                     f"Follow up with {intro.investor_label} (was due {due.isoformat()})")
    if due is not None and due == today:
        return _task(intro, "due_today", Priority.HIGH,
                     f"Follow up with {intro.investor_label} today")

    if policy.has_been_acted_on(intro.created_at, intro.updated_at):
        if policy.is_suppressed(intro.touched_at, now):
            return None
        return _task(intro, "check_in", Priority.MEDIUM,
                     f"Check in: Any update on {intro.investor_label}?")

    template = _FOUNDER_UPDATE_MESSAGES.get(intro.status, _FOUNDER_DEFAULT_MESSAGE)
    return _task(intro, "needs_update", Priority.HIGH, _fmt(template, intro))


def connector_task(
    intro: Introduction,
    now: datetime,
    cutoff_date: date | None = None,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> Task | None:
    cutoff = cutoff_date or policy.connector_cutoff
    if intro.effective_start < cutoff:
        return None
    if not is_task_eligible(intro.status):
        return None

    if policy.has_been_acted_on(intro.created_at, intro.updated_at):
        if policy.is_suppressed(intro.touched_at, now):
            return None
        return _task(intro, "check_in", Priority.MEDIUM,
                     f"Check in with {intro.founder_name} on {intro.investor_label}")

    if intro.status == IntroStatus.INTRODUCED:
        elapsed = age(intro.effective_intro_date, now)
        if elapsed >= policy.touch_suppression_window:
            return _task(intro, "check_meeting", Priority.HIGH,
                         f"Did {intro.founder_name} meet with {intro.investor_label}?")
        if elapsed >= policy.node_response_window:
            return _task(intro, "check_schedule", Priority.MEDIUM,
                         f"Did {intro.founder_name} schedule a meeting with {intro.investor_label}?")
        return None

    priority, template = _CONNECTOR_STATUS_TASKS.get(intro.status, _CONNECTOR_DEFAULT_TASK)
    return _task(intro, intro.status.value, priority, _fmt(template, intro))


def derive_task(
    intro: Introduction,
    role: Role | str,
    now: datetime,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
    cutoff_date: date | None = None,
) -> Task | None:
    """Derive zero or one task for *intro* from the point of view of *role*."""
    role = Role(role)
    if role is Role.FOUNDER:
        return founder_task(intro, now, policy)
    return connector_task(intro, now, cutoff_date, policy)


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Order by priority (high first); ``sorted`` keeps ties in input order."""
    return sorted(tasks, key=lambda t: t.priority.rank)


def derive_founder_tasks(
    introductions: Iterable[Introduction],
    now: datetime,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> list[Task]:
    tasks = [t for intro in introductions if (t := founder_task(intro, now, policy)) is not None]
    log.debug("Derived %d founder tasks", len(tasks))
    return sort_tasks(tasks)
