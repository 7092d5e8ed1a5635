"""Pydantic snapshot, response and request schemas.

Snapshot models are frozen: the engine reads them and never mutates them.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from nodestack.policy import to_date
from nodestack.status import FollowupOwner, FollowupType, IntroStatus, Priority, RoundStatus


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)


# ---------------------------------------------------------------------------
# Snapshot (engine input)
# ---------------------------------------------------------------------------


class FounderRef(_Snapshot):
    id: int
    name: str = ""
    company_name: str = ""
    round_status: RoundStatus = RoundStatus.PRE_ROUND


class ConnectorRef(_Snapshot):
    id: int
    name: str = ""
    company: str | None = None


class InvestorRef(_Snapshot):
    id: int
    name: str = ""
    firm: str | None = None

    @property
    def display(self) -> str:
        return f"{self.name} @ {self.firm}" if self.firm else self.name


class FollowupLog(_Snapshot):
    id: int | None = None
    followup_type: FollowupType
    completed_by: str
    completed_at: datetime
    notes: str | None = None
    next_action: str | None = None


class Introduction(_Snapshot):
    id: int
    founder_id: int
    connector_id: int
    investor_id: int
    status: IntroStatus = IntroStatus.INTRO_REQUEST_SENT
    date_requested: date | None = None
    date_node_asked: date | None = None
    date_introduced: date | None = None
    first_meeting_date: date | None = None
    second_meeting_date: date | None = None
    next_followup_date: date | None = None
    last_followup_date: date | None = None
    followup_owner: FollowupOwner | None = None
    pass_reason: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    founder: FounderRef | None = None
    connector: ConnectorRef | None = None
    investor: InvestorRef | None = None
    followup_logs: tuple[FollowupLog, ...] = ()

    @property
    def effective_start(self) -> date:
        """Day the request was made: ``date_requested`` falling back to ``created_at``."""
        return self.date_requested or to_date(self.created_at)

    @property
    def effective_intro_date(self) -> date | datetime:
        return self.date_introduced or self.date_requested or self.created_at

    @property
    def touched_at(self) -> datetime:
        return self.updated_at or self.created_at

    @property
    def investor_label(self) -> str:
        if self.investor is None:
            return f"investor #{self.investor_id}"
        return self.investor.display

    @property
    def founder_name(self) -> str:
        if self.founder is None or not self.founder.name:
            return f"founder #{self.founder_id}"
        return self.founder.name

    def has_log(self, followup_type: FollowupType) -> bool:
        return any(entry.followup_type == followup_type for entry in self.followup_logs)


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------


class Task(BaseModel):
    type: str
    priority: Priority
    message: str
    introduction_id: int
    founder_id: int


class FounderTaskGroup(BaseModel):
    founder: FounderRef
    tasks: list[Task]
    high_priority_count: int


class FounderDigestSummary(BaseModel):
    overdue_count: int = 0
    due_today_count: int = 0
    pending_connector_count: int = 0
    needs_connector_update_count: int = 0

    @property
    def total(self) -> int:
        return (self.overdue_count + self.due_today_count
                + self.pending_connector_count + self.needs_connector_update_count)


class FounderDigest(BaseModel):
    founder_id: int | None = None
    overdue_followups: list[Introduction] = []
    due_today: list[Introduction] = []
    pending_connector_response: list[Introduction] = []
    needs_connector_update: list[Introduction] = []
    summary: FounderDigestSummary = FounderDigestSummary()


class PendingFounder(BaseModel):
    founder: FounderRef
    action_count: int


class AdminDigestSummary(BaseModel):
    escalated_count: int = 0
    admin_overdue_count: int = 0
    circle_back_count: int = 0


class AdminDigest(BaseModel):
    escalated: list[Introduction] = []
    admin_overdue: list[Introduction] = []
    circle_back_opportunities: list[Introduction] = []
    summary: AdminDigestSummary = AdminDigestSummary()


class MonthlyStats(BaseModel):
    month: str
    label: str
    total: int = 0
    introduced: int = 0
    meetings: int = 0
    passed: int = 0
    ignored: int = 0
    invested: int = 0
    intro_rate: int = 0
    meeting_rate: int = 0


class MetricDelta(BaseModel):
    current: int
    previous: int
    change: int
    direction: Literal["up", "down", "same"]


class TrendComparison(BaseModel):
    intros: MetricDelta
    meetings: MetricDelta
    intro_rate: MetricDelta
    meeting_rate: MetricDelta
    invested: MetricDelta
    ignored: MetricDelta


class TrendReport(BaseModel):
    as_of: date
    monthly_stats: list[MonthlyStats]
    comparison: TrendComparison
    current_month: str
    previous_month: str


class PipelineStats(BaseModel):
    total: int
    by_status: dict[str, int]
    overdue_count: int
    pending_connector_count: int


class IgnoredByInvestor(BaseModel):
    investor_id: int
    investor: InvestorRef | None = None
    count: int
    introductions: list[Introduction]


class FounderDashboardStats(BaseModel):
    total_intros: int
    active_intros: int
    invested: int
    overdue_followups: int


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class FollowupCreate(BaseModel):
    followup_type: FollowupType
    completed_by: FollowupOwner
    notes: str | None = None
    next_action: str | None = None


class StatusUpdate(BaseModel):
    status: IntroStatus
    actor: FollowupOwner = FollowupOwner.ADMIN
    next_followup_date: date | None = None
    notes: str | None = None


class ImportResult(BaseModel):
    total_rows: int
    imported: int
    skipped: int
    founders_created: int
    connectors_created: int
    investors_created: int
