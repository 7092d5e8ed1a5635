from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from nodestack.digest import (
    build_admin_digest,
    build_founder_digest,
    derive_connector_tasks,
    is_escalated,
    is_pending_connector,
    list_pending_founders,
    render_founder_digest,
)
from nodestack.errors import MissingReferenceWarning
from nodestack.schemas import FollowupLog, FounderDigest, FounderRef
from nodestack.status import Priority, RoundStatus


def _log(followup_type: str) -> FollowupLog:
    return FollowupLog(followup_type=followup_type, completed_by="founder",
                       completed_at=datetime(2025, 6, 10, tzinfo=UTC))


class TestConnectorResponseWindows:
    def test_four_days_is_pending_not_escalated(self, make_intro, today):
        intro = make_intro(date_requested=date(2025, 6, 11))
        assert is_pending_connector(intro, today)
        assert not is_escalated(intro, today)

    def test_six_days_is_pending_and_escalated(self, make_intro, today):
        intro = make_intro(date_requested=date(2025, 6, 9))
        assert is_pending_connector(intro, today)
        assert is_escalated(intro, today)

    def test_three_days_is_not_yet_pending(self, make_intro, today):
        assert not is_pending_connector(make_intro(date_requested=date(2025, 6, 12)), today)

    def test_connector_already_asked(self, make_intro, today):
        intro = make_intro(date_requested=date(2025, 6, 1), date_node_asked=date(2025, 6, 2))
        assert not is_pending_connector(intro, today)

    def test_missing_request_date(self, make_intro, today):
        assert not is_pending_connector(make_intro(date_requested=None), today)

    def test_only_unanswered_requests(self, make_intro, today):
        assert not is_pending_connector(make_intro(status="introduced"), today)


class TestFounderDigest:
    def test_buckets(self, make_intro, today):
        intros = [
            make_intro(status="introduced", next_followup_date=date(2025, 6, 10)),
            make_intro(status="introduced", next_followup_date=today),
            make_intro(status="introduced", next_followup_date=date(2025, 6, 10), followup_owner="admin"),
            make_intro(date_requested=date(2025, 6, 9)),
            make_intro(status="first_meeting_complete"),
            make_intro(status="invested", followup_logs=(_log("connector_update"),)),
            make_intro(status="passed", next_followup_date=date(2025, 6, 1)),
        ]
        digest = build_founder_digest(intros, today, founder_id=1)
        assert [i.id for i in digest.overdue_followups] == [intros[0].id]
        assert [i.id for i in digest.due_today] == [intros[1].id]
        assert [i.id for i in digest.pending_connector_response] == [intros[3].id]
        assert [i.id for i in digest.needs_connector_update] == [intros[4].id]
        assert digest.summary.total == 4

    def test_circle_back_counts_as_overdue(self, make_intro, today):
        intro = make_intro(status="circle_back_round_opens", next_followup_date=date(2025, 6, 1))
        assert build_founder_digest([intro], today).summary.overdue_count == 1

    def test_unknown_founder_is_empty(self, make_intro, today):
        intros = [make_intro(status="introduced", next_followup_date=date(2025, 6, 1))]
        digest = build_founder_digest(intros, today, founder_id=999)
        assert digest.founder_id == 999
        assert digest.summary.model_dump() == {
            "overdue_count": 0, "due_today_count": 0,
            "pending_connector_count": 0, "needs_connector_update_count": 0,
        }


class TestPendingFounders:
    def test_counts_per_founder(self, make_intro, today):
        intros = [
            make_intro(founder_id=1, status="introduced", next_followup_date=date(2025, 6, 1)),
            make_intro(founder_id=2, date_requested=date(2025, 6, 1)),
            make_intro(founder_id=1, status="introduced", next_followup_date=today),
            make_intro(founder_id=3, status="invested"),
        ]
        pending = list_pending_founders(intros, today)
        assert [(p.founder.id, p.action_count) for p in pending] == [(1, 2), (2, 1)]

    def test_missing_founder_warns_and_skips(self, make_intro, today):
        intro = make_intro(founder=None, date_requested=date(2025, 6, 1))
        with pytest.warns(MissingReferenceWarning):
            assert list_pending_founders([intro], today) == []


class TestAdminDigest:
    def test_buckets(self, make_intro, today):
        founders = [
            FounderRef(id=1, name="Open", round_status=RoundStatus.ROUND_OPEN),
            FounderRef(id=2, name="Closed", round_status=RoundStatus.ROUND_CLOSED),
        ]
        intros = [
            make_intro(founder_id=1, date_requested=date(2025, 6, 9)),
            make_intro(founder_id=1, date_requested=date(2025, 6, 11)),
            make_intro(founder_id=1, status="introduced", followup_owner="admin",
                       next_followup_date=date(2025, 6, 1)),
            make_intro(founder_id=1, status="circle_back_round_opens"),
            make_intro(founder_id=2, status="circle_back_round_opens"),
        ]
        digest = build_admin_digest(intros, founders, today)
        assert [i.id for i in digest.escalated] == [intros[0].id]
        assert [i.id for i in digest.admin_overdue] == [intros[2].id]
        assert [i.id for i in digest.circle_back_opportunities] == [intros[3].id]
        assert digest.summary.circle_back_count == 1

    def test_circle_back_with_unknown_founder_warns(self, make_intro, today):
        intro = make_intro(founder_id=5, status="circle_back_round_opens")
        with pytest.warns(MissingReferenceWarning):
            digest = build_admin_digest([intro], [], today)
        assert digest.circle_back_opportunities == []


class TestConnectorTaskGroups:
    def test_busiest_founder_first(self, make_intro, now):
        intros = [
            make_intro(founder_id=1, status="first_meeting_complete"),
            make_intro(founder_id=2, status="circle_back_round_opens"),
            make_intro(founder_id=2, status="follow_up_questions"),
        ]
        groups = derive_connector_tasks(intros, now)
        assert [g.founder.id for g in groups] == [2, 1]
        assert [t.priority for t in groups[0].tasks] == [Priority.HIGH, Priority.LOW]
        assert groups[0].high_priority_count == 1
        assert groups[1].high_priority_count == 0

    def test_ties_keep_first_appearance(self, make_intro, now):
        intros = [
            make_intro(founder_id=3, status="second_meeting_complete"),
            make_intro(founder_id=4, status="first_meeting_complete"),
        ]
        assert [g.founder.id for g in derive_connector_tasks(intros, now)] == [3, 4]

    def test_missing_founder_warns(self, make_intro, now):
        intro = make_intro(founder=None, status="first_meeting_complete")
        with pytest.warns(MissingReferenceWarning):
            assert derive_connector_tasks([intro], now) == []


class TestRenderDigest:
    def test_empty_digest_renders_nothing(self):
        assert render_founder_digest(FounderRef(id=1, name="Ada Lovelace"), FounderDigest(founder_id=1)) == ""

    def test_sections(self, make_intro, today):
        intros = [
            make_intro(status="introduced", next_followup_date=date(2025, 6, 10), investor_id=8),
            make_intro(date_requested=date(2025, 6, 1), investor_id=9),
        ]
        digest = build_founder_digest(intros, today, founder_id=1)
        body = render_founder_digest(FounderRef(id=1, name="Ada Lovelace"), digest)
        assert body.startswith("Hi Ada,")
        assert "OVERDUE FOLLOW-UPS (1)" in body
        assert "Investor 8 @ Fund (via Casey Node) - was due 2025-06-10" in body
        assert "WAITING ON CONNECTOR RESPONSE (1)" in body
        assert "DUE TODAY" not in body
