"""Admin pipeline views and founder dashboard counters."""
from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date

from nodestack.digest import is_overdue, is_pending_connector
from nodestack.policy import DEFAULT_POLICY, TimeWindowPolicy
from nodestack.schemas import FounderDashboardStats, IgnoredByInvestor, Introduction
from nodestack.status import (
    TERMINAL_STATUSES,
    IntroStatus,
    coerce_status,
)

_FOLLOWUP_SCHEDULING_STATUSES = frozenset({
    IntroStatus.FIRST_MEETING_COMPLETE, IntroStatus.SECOND_MEETING_COMPLETE,
})


def pending_connector_response(
    introductions: Iterable[Introduction], today: date, policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> list[Introduction]:
    """Requests still waiting on the connector, oldest request first."""
    rows = [i for i in introductions if is_pending_connector(i, today, policy)]
    return sorted(rows, key=lambda i: i.date_requested)


def ignored_by_investor(introductions: Iterable[Introduction]) -> list[IgnoredByInvestor]:
    """Ignored introductions grouped per investor, most ignored first."""
    groups: dict[int, IgnoredByInvestor] = {}
    for intro in introductions:
        if intro.status != IntroStatus.IGNORED:
            continue
        group = groups.get(intro.investor_id)
        if group is None:
            group = groups[intro.investor_id] = IgnoredByInvestor(
                investor_id=intro.investor_id, investor=intro.investor, count=0, introductions=[],
            )
        group.count += 1
        group.introductions.append(intro)
    return sorted(groups.values(), key=lambda g: -g.count)


def needs_followup_scheduled(introductions: Iterable[Introduction]) -> list[Introduction]:
    return [
        i for i in introductions
        if i.status in _FOLLOWUP_SCHEDULING_STATUSES and i.next_followup_date is None
    ]


def overdue(introductions: Iterable[Introduction], today: date) -> list[Introduction]:
    rows = [i for i in introductions if is_overdue(i, today)]
    return sorted(rows, key=lambda i: i.next_followup_date)


def circle_back_pipeline(introductions: Iterable[Introduction]) -> list[Introduction]:
    rows = [i for i in introductions if i.status == IntroStatus.CIRCLE_BACK_ROUND_OPENS]
    # Never-followed-up rows sort first within a founder.
    return sorted(rows, key=lambda i: (i.founder_id, i.last_followup_date or date.min))


def founder_dashboard_stats(introductions: Iterable[Introduction], today: date) -> FounderDashboardStats:
    intros = list(introductions)
    inactive = TERMINAL_STATUSES | {IntroStatus.CIRCLE_BACK_ROUND_OPENS}
    return FounderDashboardStats(
        total_intros=len(intros),
        active_intros=sum(1 for i in intros if coerce_status(i.status) not in inactive),
        invested=sum(1 for i in intros if i.status == IntroStatus.INVESTED),
        overdue_followups=sum(1 for i in intros if is_overdue(i, today)),
    )


# Views addressable by name from the HTTP surface.
NAMED_VIEWS: dict[str, Callable[[list[Introduction], date], list]] = {
    "pending-connector-response": lambda rows, today: pending_connector_response(rows, today),
    "ignored-by-investor": lambda rows, today: ignored_by_investor(rows),
    "needs-followup": lambda rows, today: needs_followup_scheduled(rows),
    "overdue": overdue,
    "circle-back": lambda rows, today: circle_back_pipeline(rows),
}
