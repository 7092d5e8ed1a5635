from __future__ import annotations

from datetime import date, timedelta

import pytest

from nodestack.status import Priority, Role
from nodestack.tasks import connector_task, derive_founder_tasks, derive_task, founder_task, sort_tasks


class TestFounderTask:
    def test_overdue_followup(self, make_intro, now):
        intro = make_intro(status="introduced", next_followup_date=date(2025, 6, 10))
        task = founder_task(intro, now)
        assert task.type == "overdue_followup"
        assert task.priority == Priority.HIGH
        assert "2025-06-10" in task.message

    def test_due_today(self, make_intro, now):
        intro = make_intro(status="first_meeting_complete", next_followup_date=now.date())
        task = founder_task(intro, now)
        assert task.type == "due_today"
        assert task.priority == Priority.HIGH

    def test_explicit_date_beats_suppression(self, make_intro, now):
        intro = make_intro(
            status="introduced", next_followup_date=date(2025, 6, 1),
            updated_at=now - timedelta(hours=1),
        )
        assert founder_task(intro, now).type == "overdue_followup"

    def test_untouched_record_needs_update(self, make_intro, now):
        intro = make_intro(status="introduced", investor_id=7)
        task = founder_task(intro, now)
        assert task.type == "needs_update"
        assert task.priority == Priority.HIGH
        assert task.message == "Update needed: Investor 7 @ Fund - how did it go?"

    def test_follow_up_questions_message(self, make_intro, now):
        intro = make_intro(status="follow_up_questions", investor_id=3)
        assert founder_task(intro, now).message == "Action needed: Investor 3 @ Fund has follow-up questions"

    def test_recent_touch_is_suppressed(self, make_intro, now):
        intro = make_intro(status="introduced", updated_at=now - timedelta(days=2))
        assert founder_task(intro, now) is None

    def test_stale_touch_resurfaces_as_check_in(self, make_intro, now):
        intro = make_intro(status="introduced", updated_at=now - timedelta(days=20))
        task = founder_task(intro, now)
        assert task.type == "check_in"
        assert task.priority == Priority.MEDIUM

    def test_touch_within_threshold_is_not_acted_on(self, make_intro, now):
        created = now - timedelta(days=1)
        intro = make_intro(status="introduced", created_at=created,
                           updated_at=created + timedelta(milliseconds=60000))
        assert founder_task(intro, now).type == "needs_update"

    def test_touch_just_past_threshold_is_acted_on(self, make_intro, now):
        created = now - timedelta(days=1)
        intro = make_intro(status="introduced", created_at=created,
                           updated_at=created + timedelta(milliseconds=60001))
        assert founder_task(intro, now) is None

    @pytest.mark.parametrize("status", ["passed", "ignored", "invested", "not_a_fit", "intro_request_sent"])
    def test_ineligible_statuses(self, make_intro, now, status):
        intro = make_intro(status=status, next_followup_date=date(2025, 6, 1))
        assert founder_task(intro, now) is None


class TestConnectorTask:
    def test_introduced_two_weeks_ago_checks_meeting(self, make_intro, now):
        intro = make_intro(status="introduced", date_introduced=now.date() - timedelta(days=15))
        task = connector_task(intro, now)
        assert task.type == "check_meeting"
        assert task.priority == Priority.HIGH

    def test_introduced_recently_checks_schedule(self, make_intro, now):
        intro = make_intro(status="introduced", date_introduced=now.date() - timedelta(days=4))
        task = connector_task(intro, now)
        assert task.type == "check_schedule"
        assert task.priority == Priority.MEDIUM

    def test_introduced_yesterday_is_quiet(self, make_intro, now):
        intro = make_intro(status="introduced", date_introduced=now.date() - timedelta(days=1))
        assert connector_task(intro, now) is None

    def test_introduced_falls_back_to_request_date(self, make_intro, now):
        intro = make_intro(status="introduced", date_requested=now.date() - timedelta(days=20))
        assert connector_task(intro, now).type == "check_meeting"

    def test_status_tasks(self, make_intro, now):
        meeting = connector_task(make_intro(status="first_meeting_complete", investor_id=5), now)
        assert meeting.type == "first_meeting_complete"
        assert meeting.priority == Priority.MEDIUM
        assert meeting.message == "How did Founder 1's meeting with Investor 5 go?"

        questions = connector_task(make_intro(status="follow_up_questions"), now)
        assert questions.priority == Priority.HIGH

        circle = connector_task(make_intro(status="circle_back_round_opens"), now)
        assert circle.priority == Priority.LOW

    def test_requests_before_cutoff_are_hidden(self, make_intro, now):
        intro = make_intro(status="first_meeting_complete", date_requested=date(2025, 4, 1))
        assert connector_task(intro, now) is None

    def test_cutoff_override(self, make_intro, now):
        intro = make_intro(status="first_meeting_complete", date_requested=date(2025, 4, 1))
        assert connector_task(intro, now, cutoff_date=date(2025, 1, 1)) is not None

    def test_recent_touch_is_suppressed(self, make_intro, now):
        intro = make_intro(status="first_meeting_complete", updated_at=now - timedelta(days=1))
        assert connector_task(intro, now) is None

    def test_terminal_has_no_task(self, make_intro, now):
        assert connector_task(make_intro(status="invested"), now) is None

    def test_stale_touch_resurfaces_as_check_in(self, make_intro, now):
        intro = make_intro(status="first_meeting_complete", updated_at=now - timedelta(days=20))
        task = connector_task(intro, now)
        assert task.type == "check_in"
        assert task.priority == Priority.MEDIUM

    def test_introduced_exactly_three_days_checks_schedule(self, make_intro, now):
        intro = make_intro(status="introduced", date_requested=None, created_at=now - timedelta(days=3))
        assert connector_task(intro, now).type == "check_schedule"

    def test_introduced_exactly_fourteen_days_checks_meeting(self, make_intro, now):
        intro = make_intro(status="introduced", date_requested=None, created_at=now - timedelta(days=14))
        task = connector_task(intro, now)
        assert task.type == "check_meeting"
        assert task.priority == Priority.HIGH


class TestDeriveTask:
    def test_dispatches_on_role(self, make_intro, now):
        intro = make_intro(status="first_meeting_complete")
        assert derive_task(intro, Role.FOUNDER, now).type == "needs_update"
        assert derive_task(intro, "connector", now).type == "first_meeting_complete"

    def test_unknown_role(self, make_intro, now):
        with pytest.raises(ValueError):
            derive_task(make_intro(status="introduced"), "investor", now)


class TestTaskLists:
    def test_high_priority_first_stable(self, make_intro, now):
        intros = [
            make_intro(status="introduced", updated_at=now - timedelta(days=20)),
            make_intro(status="introduced"),
            make_intro(status="first_meeting_complete", updated_at=now - timedelta(days=25)),
            make_intro(status="second_meeting_complete"),
        ]
        tasks = derive_founder_tasks(intros, now)
        assert [t.introduction_id for t in tasks] == [intros[1].id, intros[3].id, intros[0].id, intros[2].id]
        assert [t.priority for t in tasks] == [Priority.HIGH, Priority.HIGH, Priority.MEDIUM, Priority.MEDIUM]

    def test_sort_tasks_empty(self):
        assert sort_tasks([]) == []
