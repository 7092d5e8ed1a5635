"""Closed status enumerations and their classification predicates."""
from __future__ import annotations

from enum import StrEnum

from nodestack.errors import InvalidStatusError


class IntroStatus(StrEnum):
    INTRO_REQUEST_SENT = "intro_request_sent"
    INTRODUCED = "introduced"
    PASSED = "passed"
    IGNORED = "ignored"
    NOT_A_FIT = "not_a_fit"
    FIRST_MEETING_COMPLETE = "first_meeting_complete"
    SECOND_MEETING_COMPLETE = "second_meeting_complete"
    FOLLOW_UP_QUESTIONS = "follow_up_questions"
    CIRCLE_BACK_ROUND_OPENS = "circle_back_round_opens"
    INVESTED = "invested"


class RoundStatus(StrEnum):
    PRE_ROUND = "pre_round"
    ROUND_OPEN = "round_open"
    ROUND_CLOSED = "round_closed"


class FollowupOwner(StrEnum):
    FOUNDER = "founder"
    ADMIN = "admin"


class FollowupType(StrEnum):
    CONNECTOR_CHECK = "connector_check"
    MEETING_UPDATE = "meeting_update"
    CONNECTOR_UPDATE = "connector_update"


class Role(StrEnum):
    FOUNDER = "founder"
    CONNECTOR = "connector"


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}

# ---------------------------------------------------------------------------
# Status sets
# ---------------------------------------------------------------------------

TERMINAL_STATUSES = frozenset({
    IntroStatus.PASSED, IntroStatus.IGNORED, IntroStatus.INVESTED, IntroStatus.NOT_A_FIT,
})

PRE_INTRODUCTION_STATUSES = frozenset({IntroStatus.INTRO_REQUEST_SENT})

OVERDUE_ELIGIBLE_STATUSES = frozenset({
    IntroStatus.INTRO_REQUEST_SENT,
    IntroStatus.INTRODUCED,
    IntroStatus.FIRST_MEETING_COMPLETE,
    IntroStatus.SECOND_MEETING_COMPLETE,
    IntroStatus.FOLLOW_UP_QUESTIONS,
    IntroStatus.CIRCLE_BACK_ROUND_OPENS,
})

# Any status that can only be reached after at least one meeting.
MEETING_STATUSES = frozenset({
    IntroStatus.FIRST_MEETING_COMPLETE,
    IntroStatus.SECOND_MEETING_COMPLETE,
    IntroStatus.FOLLOW_UP_QUESTIONS,
    IntroStatus.CIRCLE_BACK_ROUND_OPENS,
    IntroStatus.INVESTED,
})

POST_INTRODUCTION_STATUSES = MEETING_STATUSES | {IntroStatus.INTRODUCED}

# Statuses that block a second request for the same founder/investor pair.
ACTIVE_REQUEST_STATUSES = frozenset({
    IntroStatus.INTRO_REQUEST_SENT,
    IntroStatus.INTRODUCED,
    IntroStatus.FIRST_MEETING_COMPLETE,
    IntroStatus.SECOND_MEETING_COMPLETE,
    IntroStatus.FOLLOW_UP_QUESTIONS,
})

# Meeting outcomes the founder should report back to the connector.
CONNECTOR_UPDATE_STATUSES = frozenset({
    IntroStatus.FIRST_MEETING_COMPLETE,
    IntroStatus.SECOND_MEETING_COMPLETE,
    IntroStatus.INVESTED,
})


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def coerce_status(value: IntroStatus | str, introduction_id: int | None = None) -> IntroStatus:
    """Return *value* as an ``IntroStatus``. Raises InvalidStatusError for unknown strings."""
    if isinstance(value, IntroStatus):
        return value
    try:
        return IntroStatus(value)
    except ValueError:
        raise InvalidStatusError(value, introduction_id) from None


def is_terminal(status: IntroStatus | str) -> bool:
    return coerce_status(status) in TERMINAL_STATUSES


def is_pre_introduction(status: IntroStatus | str) -> bool:
    return coerce_status(status) in PRE_INTRODUCTION_STATUSES


def is_overdue_eligible(status: IntroStatus | str) -> bool:
    return coerce_status(status) in OVERDUE_ELIGIBLE_STATUSES


def implies_introduction(status: IntroStatus | str) -> bool:
    return coerce_status(status) in POST_INTRODUCTION_STATUSES


def implies_meeting(status: IntroStatus | str) -> bool:
    return coerce_status(status) in MEETING_STATUSES


def is_task_eligible(status: IntroStatus | str) -> bool:
    """True when either role may be handed a task for this status."""
    status = coerce_status(status)
    return status not in TERMINAL_STATUSES and status not in PRE_INTRODUCTION_STATUSES
