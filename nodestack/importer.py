from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime
from pathlib import Path

import openpyxl
from sqlalchemy import select
from sqlalchemy.orm import Session

from nodestack.models import Connector, Founder, Introduction, Investor
from nodestack.schemas import ImportResult
from nodestack.status import ACTIVE_REQUEST_STATUSES, IntroStatus

log = logging.getLogger(__name__)

# Spreadsheet status labels -> canonical status
STATUS_LABELS = {
    "intro request sent": IntroStatus.INTRO_REQUEST_SENT,
    "introduced": IntroStatus.INTRODUCED,
    "had me intro their partner": IntroStatus.INTRODUCED,
    "passed": IntroStatus.PASSED,
    "ignored": IntroStatus.IGNORED,
    "not a fit": IntroStatus.NOT_A_FIT,
    "invested": IntroStatus.INVESTED,
    "asking a partner/advisor": IntroStatus.FOLLOW_UP_QUESTIONS,
    "follow up questions": IntroStatus.FOLLOW_UP_QUESTIONS,
    "": IntroStatus.INTRO_REQUEST_SENT,
}

_HEADERS = {
    "founder": "founder", "investor": "investor", "firm": "firm",
    "intro status": "status", "pass reason": "pass_reason",
    "created": "created", "node": "connector", "connector": "connector",
}

_US_DATE_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")


def _s(value: object) -> str:
    """Safely coerce cell value to a whitespace-normalized string."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def parse_status(label: str) -> IntroStatus:
    """Map a spreadsheet label to a status; unknown labels fall back to a fresh request."""
    status = STATUS_LABELS.get(label.strip().lower())
    if status is None:
        log.warning("Unknown status label %r, importing as intro_request_sent", label)
        return IntroStatus.INTRO_REQUEST_SENT
    return status


def parse_date(value: object, today: date) -> date:
    """Accept Excel dates, ISO strings and US ``M/D/YYYY`` strings."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _s(value)
    if not text:
        return today
    match = _US_DATE_RE.search(text)
    try:
        if match:
            month, day, year = (int(g) for g in match.groups())
            return date(year, month, day)
        return date.fromisoformat(text[:10])
    except ValueError:
        log.warning("Unparseable date %r, using today", text)
        return today


def _read_rows(path: Path) -> list[dict[str, str | object]]:
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.active
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None) or ()
        columns = {idx: _HEADERS[_s(h).lower()] for idx, h in enumerate(header) if _s(h).lower() in _HEADERS}
        out = []
        for row in rows:
            entry = {field: row[idx] for idx, field in columns.items() if idx < len(row)}
            if any(_s(v) for v in entry.values()):
                out.append(entry)
        return out
    finally:
        wb.close()


class _Registry:
    """Find-or-create cache for the people referenced by imported rows."""

    def __init__(self, session: Session):
        self.session = session
        self.created = {"founders": 0, "connectors": 0, "investors": 0}

    def founder(self, name: str) -> Founder:
        found = self.session.execute(select(Founder).where(Founder.name == name)).scalars().first()
        if found:
            return found
        found = Founder(name=name, company_name="TBD")
        self.session.add(found)
        self.session.flush()
        self.created["founders"] += 1
        log.info("Created founder: %s", name)
        return found

    def connector(self, name: str) -> Connector:
        found = self.session.execute(select(Connector).where(Connector.name == name)).scalars().first()
        if found:
            return found
        found = Connector(name=name)
        self.session.add(found)
        self.session.flush()
        self.created["connectors"] += 1
        log.info("Created connector: %s", name)
        return found

    def investor(self, name: str, firm: str) -> Investor:
        exact = self.session.execute(
            select(Investor).where(Investor.name == name, Investor.firm == firm)
        ).scalars().first()
        if exact:
            return exact
        by_name = self.session.execute(select(Investor).where(Investor.name == name)).scalars().first()
        if by_name:
            return by_name
        found = Investor(name=name, firm=firm or None)
        self.session.add(found)
        self.session.flush()
        self.created["investors"] += 1
        log.info("Created investor: %s @ %s", name, firm)
        return found


def _expand(entry: dict) -> list[tuple[str, str, str]]:
    """Split multi-investor cells into (investor, firm, connector) triples.

    Firms and connectors are matched by position, falling back to the first
    value when the lists are shorter than the investor list.
    """
    investors = [v.strip() for v in _s(entry.get("investor")).split(",")]
    firms = [v.strip() for v in _s(entry.get("firm")).split(",")]
    connectors = [v.strip() for v in _s(entry.get("connector")).split(",")]
    out = []
    for i, inv in enumerate(investors):
        if not inv:
            continue
        firm = firms[i] if i < len(firms) and firms[i] else firms[0]
        conn = connectors[i] if i < len(connectors) and connectors[i] else connectors[0]
        out.append((inv, firm, conn))
    return out


def import_xlsx(
    path: str | Path, session: Session, default_connector: str = "Unassigned", today: date | None = None,
) -> ImportResult:
    """Import introduction rows from the first sheet of an XLSX workbook."""
    today = today or datetime.now(UTC).date()
    rows = _read_rows(Path(path))
    registry = _Registry(session)
    imported = skipped = 0

    for entry in rows:
        founder_name = _s(entry.get("founder"))
        triples = _expand(entry)
        if not founder_name or not triples:
            skipped += 1
            continue
        status = parse_status(_s(entry.get("status")))
        requested = parse_date(entry.get("created"), today)
        stamp = datetime.combine(requested, datetime.min.time(), tzinfo=UTC)

        founder = registry.founder(founder_name)
        for investor_name, firm, connector_name in triples:
            investor = registry.investor(investor_name, firm)
            connector = registry.connector(connector_name or default_connector)
            duplicate = session.execute(
                select(Introduction).where(
                    Introduction.founder_id == founder.id,
                    Introduction.investor_id == investor.id,
                    Introduction.status.in_([s.value for s in ACTIVE_REQUEST_STATUSES]),
                )
            ).scalars().first()
            if duplicate is not None:
                log.debug("Skipping duplicate active intro %s -> %s", founder_name, investor_name)
                skipped += 1
                continue
            session.add(Introduction(
                founder_id=founder.id, connector_id=connector.id, investor_id=investor.id,
                status=status.value, date_requested=requested,
                pass_reason=_s(entry.get("pass_reason")) or None,
                created_at=stamp, updated_at=stamp,
            ))
            session.flush()
            imported += 1

    session.commit()
    log.info("Imported %d introductions from %s (%d skipped)", imported, path, skipped)
    return ImportResult(
        total_rows=len(rows),
        imported=imported,
        skipped=skipped,
        founders_created=registry.created["founders"],
        connectors_created=registry.created["connectors"],
        investors_created=registry.created["investors"],
    )
