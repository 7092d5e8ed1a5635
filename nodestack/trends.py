"""Monthly pipeline trends and whole-pipeline counters."""
from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime

from nodestack.digest import is_overdue, is_pending_connector
from nodestack.policy import DEFAULT_POLICY, TimeWindowPolicy, today_of
from nodestack.schemas import (
    Introduction,
    MetricDelta,
    MonthlyStats,
    PipelineStats,
    TrendComparison,
    TrendReport,
)
from nodestack.status import IntroStatus, implies_introduction, implies_meeting

_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class _Bucket:
    total: int = 0
    introduced: int = 0
    meetings: int = 0
    passed: int = 0
    ignored: int = 0
    invested: int = 0


def month_key(intro: Introduction) -> str:
    """``YYYY-MM`` of the introduction's effective request date."""
    return intro.effective_start.strftime("%Y-%m")


def month_label(month: str) -> str:
    year, m = month.split("-")
    return f"{_MONTH_NAMES[int(m) - 1]} {year}"


def percent(numerator: int, denominator: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when the denominator is 0."""
    if denominator == 0:
        return 0
    return math.floor(numerator / denominator * 100 + 0.5)


def _accumulate(introductions: Iterable[Introduction]) -> dict[str, _Bucket]:
    buckets: dict[str, _Bucket] = {}
    for intro in introductions:
        bucket = buckets.setdefault(month_key(intro), _Bucket())
        bucket.total += 1
        if implies_introduction(intro.status):
            bucket.introduced += 1
        if implies_meeting(intro.status):
            bucket.meetings += 1
        if intro.status == IntroStatus.PASSED:
            bucket.passed += 1
        elif intro.status == IntroStatus.IGNORED:
            bucket.ignored += 1
        if intro.status == IntroStatus.INVESTED:
            bucket.invested += 1
    return buckets


def _stats(month: str, bucket: _Bucket) -> MonthlyStats:
    resolved = bucket.introduced + bucket.passed + bucket.ignored
    return MonthlyStats(
        month=month,
        label=month_label(month),
        total=bucket.total,
        introduced=bucket.introduced,
        meetings=bucket.meetings,
        passed=bucket.passed,
        ignored=bucket.ignored,
        invested=bucket.invested,
        intro_rate=percent(bucket.introduced, resolved),
        meeting_rate=percent(bucket.meetings, bucket.introduced),
    )


def _delta(current: int, previous: int, lower_is_better: bool = False) -> MetricDelta:
    if current == previous:
        direction = "same"
    elif (current > previous) != lower_is_better:
        direction = "up"
    else:
        direction = "down"
    return MetricDelta(current=current, previous=previous, change=current - previous, direction=direction)


def compare_months(current: MonthlyStats, previous: MonthlyStats) -> TrendComparison:
    """Period-over-period deltas. For ``ignored`` a decrease reads as ``up`` (improving)."""
    return TrendComparison(
        intros=_delta(current.total, previous.total),
        meetings=_delta(current.meetings, previous.meetings),
        intro_rate=_delta(current.intro_rate, previous.intro_rate),
        meeting_rate=_delta(current.meeting_rate, previous.meeting_rate),
        invested=_delta(current.invested, previous.invested),
        ignored=_delta(current.ignored, previous.ignored, lower_is_better=True),
    )


def compute_trends(
    introductions: Iterable[Introduction],
    now: datetime,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> TrendReport:
    """Monthly rollup of the most recent months with data, oldest first.

    The current month is the latest bucket present, not the calendar month of
    *now*; *now* only stamps the report.
    """
    buckets = _accumulate(introductions)
    recent = sorted(buckets, reverse=True)[:policy.trend_horizon_months]
    stats = [_stats(month, buckets[month]) for month in recent]

    empty = MonthlyStats(month="", label="")
    current = stats[0] if stats else empty
    previous = stats[1] if len(stats) > 1 else empty

    return TrendReport(
        as_of=today_of(now),
        monthly_stats=list(reversed(stats)),
        comparison=compare_months(current, previous),
        current_month=current.label or "This Month",
        previous_month=previous.label or "Last Month",
    )


def compute_pipeline_stats(
    introductions: Iterable[Introduction],
    today: date,
    policy: TimeWindowPolicy = DEFAULT_POLICY,
) -> PipelineStats:
    """Counts over all rows; ``overdue_count`` leaves out terminal statuses."""
    intros = list(introductions)
    by_status = Counter(intro.status.value for intro in intros)
    return PipelineStats(
        total=len(intros),
        by_status=dict(sorted(by_status.items())),
        overdue_count=sum(1 for i in intros if is_overdue(i, today)),
        pending_connector_count=sum(1 for i in intros if is_pending_connector(i, today, policy)),
    )
