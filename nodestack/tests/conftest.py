from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from nodestack.schemas import ConnectorRef, FounderRef, Introduction, InvestorRef

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)
TODAY = NOW.date()


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def make_intro():
    """Factory for introduction snapshots with sensible relations.

    ``created_at`` defaults to 30 days before NOW and ``updated_at`` to the
    same instant, i.e. a record nobody has touched since creation.
    """
    counter = {"id": 0}

    def factory(**overrides) -> Introduction:
        counter["id"] += 1
        founder_id = overrides.pop("founder_id", 1)
        investor_id = overrides.pop("investor_id", counter["id"])
        created = overrides.pop("created_at", NOW - timedelta(days=30))
        fields = {
            "id": counter["id"],
            "founder_id": founder_id,
            "connector_id": 1,
            "investor_id": investor_id,
            "status": "intro_request_sent",
            "date_requested": date(2025, 6, 1),
            "created_at": created,
            "updated_at": created,
            "followup_owner": "founder",
            "founder": FounderRef(id=founder_id, name=f"Founder {founder_id}", company_name="Acme"),
            "connector": ConnectorRef(id=1, name="Casey Node"),
            "investor": InvestorRef(id=investor_id, name=f"Investor {investor_id}", firm="Fund"),
        }
        fields.update(overrides)
        return Introduction.model_validate(fields)

    return factory
