"""Status transition rules, kept apart from the read-only engine."""
from __future__ import annotations

from collections.abc import Iterable

from nodestack.errors import InvalidTransitionError
from nodestack.schemas import Introduction
from nodestack.status import (
    ACTIVE_REQUEST_STATUSES,
    FollowupOwner,
    IntroStatus,
    coerce_status,
)

# Outcomes a founder may report on their own introductions.
FOUNDER_SETTABLE_STATUSES = frozenset({
    IntroStatus.FIRST_MEETING_COMPLETE,
    IntroStatus.SECOND_MEETING_COMPLETE,
    IntroStatus.FOLLOW_UP_QUESTIONS,
    IntroStatus.CIRCLE_BACK_ROUND_OPENS,
    IntroStatus.INVESTED,
    IntroStatus.NOT_A_FIT,
})


def validate_transition(
    current: IntroStatus | str, target: IntroStatus | str, actor: FollowupOwner | str,
) -> IntroStatus:
    """Return the validated target status or raise InvalidTransitionError."""
    current = coerce_status(current)
    target = coerce_status(target)
    actor = FollowupOwner(actor)
    if actor is FollowupOwner.ADMIN or target == current:
        return target
    if target not in FOUNDER_SETTABLE_STATUSES:
        raise InvalidTransitionError(f"Founders cannot set status {target.value!r}")
    return target


def find_active_duplicate(
    introductions: Iterable[Introduction], founder_id: int, investor_id: int,
) -> Introduction | None:
    """Existing active request for the same founder/investor pair, if any."""
    for intro in introductions:
        if (intro.founder_id == founder_id and intro.investor_id == investor_id
                and intro.status in ACTIVE_REQUEST_STATUSES):
            return intro
    return None
