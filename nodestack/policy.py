"""SLA windows and the date/time primitives shared by every rule.

All comparisons work on parsed values: calendar dates are ``datetime.date``
and instants are timezone-aware ``datetime`` objects in UTC. A date-only
value that has to be compared with an instant is taken as midnight UTC.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

# Gap between created_at and updated_at above which a record counts as touched.
# Imports must stamp both fields equally or their rows read as touched.
ACTED_ON_THRESHOLD = timedelta(seconds=60)

DEFAULT_CONNECTOR_CUTOFF = date(2025, 5, 1)


@dataclass(frozen=True)
class TimeWindowPolicy:
    node_response_window: timedelta = timedelta(days=3)
    escalation_window: timedelta = timedelta(days=5)
    touch_suppression_window: timedelta = timedelta(days=14)
    acted_on_threshold: timedelta = ACTED_ON_THRESHOLD
    trend_horizon_months: int = 6
    connector_cutoff: date = DEFAULT_CONNECTOR_CUTOFF

    def __post_init__(self) -> None:
        if self.escalation_window <= self.node_response_window:
            raise ValueError("escalation_window must be longer than node_response_window")
        if self.trend_horizon_months < 2:
            raise ValueError("trend_horizon_months must cover at least two months")

    # -- acted-on heuristic ------------------------------------------------

    def has_been_acted_on(self, created_at: datetime, updated_at: datetime | None) -> bool:
        """True when the record was modified more than the threshold after creation."""
        if updated_at is None:
            return False
        return as_utc(updated_at) - as_utc(created_at) > self.acted_on_threshold

    def is_suppressed(self, updated_at: datetime | None, now: datetime) -> bool:
        """True when the last touch falls inside the suppression window."""
        if updated_at is None:
            return False
        return as_utc(now) - as_utc(updated_at) < self.touch_suppression_window

    # -- date thresholds ---------------------------------------------------

    def node_response_cutoff(self, today: date) -> date:
        """Requests dated strictly before this day are waiting on the connector."""
        return days_before(today, self.node_response_window)

    def escalation_cutoff(self, today: date) -> date:
        return days_before(today, self.escalation_window)


DEFAULT_POLICY = TimeWindowPolicy()


def as_utc(value: datetime) -> datetime:
    """Normalize *value* to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_instant(value: date | datetime) -> datetime:
    """Widen a calendar date to midnight UTC; instants are normalized to UTC."""
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime.combine(value, time.min, tzinfo=UTC)


def to_date(value: date | datetime) -> date:
    """Narrow an instant to its UTC calendar date."""
    if isinstance(value, datetime):
        return as_utc(value).date()
    return value


def age(value: date | datetime, now: datetime) -> timedelta:
    """Elapsed time between *value* and *now*."""
    return as_utc(now) - to_instant(value)


def today_of(now: datetime) -> date:
    return as_utc(now).date()


def days_before(today: date, window: timedelta) -> date:
    """Calendar day *window* (whole days) before *today*."""
    return today - timedelta(days=window.days)
