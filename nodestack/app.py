from __future__ import annotations

import asyncio
import logging
import tempfile
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Generator

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from nodestack import schemas, services
from nodestack.config import get_settings
from nodestack.db import current_db_path, get_session, init_db
from nodestack.errors import InvalidStatusError, InvalidTransitionError, JobAlreadyRunningError
from nodestack.importer import import_xlsx
from nodestack.jobs import BulkJob, run_bulk
from nodestack.models import Introduction

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("Database ready at %s", current_db_path())
    yield


app = FastAPI(
    title="NodeStack",
    version="0.1.0",
    description=(
        "Introduction tracking API for founders, connectors and investors. "
        "Derives prioritized follow-up tasks, daily digests and pipeline trends "
        "from the stored introductions. All endpoints return JSON."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Tasks", "description": "Prioritized next actions for founders and connectors."},
        {"name": "Digest", "description": "Daily digests for founders and admins."},
        {"name": "Stats", "description": "Monthly trends and pipeline counters."},
        {"name": "Views", "description": "Admin pipeline views."},
        {"name": "Introductions", "description": "Record follow-ups and status changes."},
        {"name": "Import", "description": "Bulk import introductions from XLSX spreadsheets."},
    ],
)

digest_job = BulkJob(name="daily-digest")
_background: set[asyncio.Task] = set()


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _get_or_404(session: Session, model, entity_id: int, label: str = "Entity"):
    obj = services.get_entity(session, model, entity_id)
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


def _now() -> datetime:
    return datetime.now(UTC)


def _today(today: date | None) -> date:
    return today or _now().date()


@app.exception_handler(InvalidStatusError)
async def invalid_status_handler(request: Request, exc: InvalidStatusError):
    log.error("Data integrity error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": f"Data integrity error: {exc}"})


# ---------------------------------------------------------------------------
# Routes: Tasks
# ---------------------------------------------------------------------------


@app.get("/api/founders/{founder_id}/tasks", response_model=list[schemas.Task],
         tags=["Tasks"], summary="Prioritized follow-up tasks for a founder")
async def founder_tasks(founder_id: int, session: Session = Depends(db_session)):
    return services.founder_tasks(session, founder_id, _now())


@app.get("/api/connectors/{connector_id}/tasks", response_model=list[schemas.FounderTaskGroup],
         tags=["Tasks"], summary="Connector tasks grouped by founder, busiest founders first")
async def connector_tasks(connector_id: int, session: Session = Depends(db_session)):
    return services.connector_tasks(session, connector_id, _now())


# ---------------------------------------------------------------------------
# Routes: Digest
# ---------------------------------------------------------------------------


@app.post("/api/digest/run", status_code=202, tags=["Digest"],
          summary="Render and deliver every founder's daily digest in the background")
async def run_digests(session: Session = Depends(db_session)):
    founders = services.load_founders(session)
    try:
        digest_job.start(len(founders))
    except JobAlreadyRunningError as exc:
        raise HTTPException(409, str(exc)) from exc
    task = asyncio.create_task(run_bulk(
        digest_job, founders, services.deliver_founder_digest,
        describe=lambda f: (f.id, f.name),
        delay=get_settings().digest_delay_seconds,
    ))
    _background.add(task)
    task.add_done_callback(_background.discard)
    return {"message": "Digest run started", "total": len(founders)}


@app.get("/api/digest/run/status", tags=["Digest"], summary="Progress of the current or last digest run")
async def digest_run_status():
    return digest_job.snapshot()


@app.get("/api/digest/pending", response_model=list[schemas.PendingFounder],
         tags=["Digest"], summary="Founders who need a digest today, with action counts")
async def pending_founders(today: date | None = Query(None), session: Session = Depends(db_session)):
    return services.pending_founders(session, _today(today))


@app.get("/api/digest/admin", response_model=schemas.AdminDigest,
         tags=["Digest"], summary="Escalations, admin-owned overdue items and circle-back opportunities")
async def admin_digest(today: date | None = Query(None), session: Session = Depends(db_session)):
    return services.admin_digest(session, _today(today))


@app.get("/api/founders/{founder_id}/digest", response_model=schemas.FounderDigest,
         tags=["Digest"], summary="Daily digest buckets for one founder")
async def founder_digest(founder_id: int, today: date | None = Query(None),
                         session: Session = Depends(db_session)):
    return services.founder_digest(session, founder_id, _today(today))


@app.get("/api/founders/{founder_id}/dashboard", response_model=schemas.FounderDashboardStats,
         tags=["Digest"], summary="Headline counters for a founder's dashboard")
async def founder_dashboard(founder_id: int, session: Session = Depends(db_session)):
    return services.founder_dashboard(session, founder_id, _today(None))


# ---------------------------------------------------------------------------
# Routes: Stats & Views
# ---------------------------------------------------------------------------


@app.get("/api/stats/trends", response_model=schemas.TrendReport,
         tags=["Stats"], summary="Monthly intro and meeting rates with month-over-month deltas")
async def trends(session: Session = Depends(db_session)):
    return services.trends(session, _now())


@app.get("/api/stats/pipeline", response_model=schemas.PipelineStats,
         tags=["Stats"], summary="Counts by status plus overdue and connector-pending totals")
async def pipeline_stats(today: date | None = Query(None), session: Session = Depends(db_session)):
    return services.pipeline_stats(session, _today(today))


@app.get("/api/views/{name}", tags=["Views"],
         summary="Named admin view: pending-connector-response, ignored-by-investor, needs-followup, overdue, circle-back")
async def named_view(name: str, today: date | None = Query(None), session: Session = Depends(db_session)):
    rows = services.named_view(session, name, _today(today))
    if rows is None:
        raise HTTPException(404, f"Unknown view '{name}'")
    return [row.model_dump(mode="json") for row in rows]


# ---------------------------------------------------------------------------
# Routes: Introductions
# ---------------------------------------------------------------------------


@app.post("/api/introductions/{introduction_id}/followups", status_code=201,
          tags=["Introductions"], summary="Log a follow-up and stamp the introduction")
async def add_followup(introduction_id: int, body: schemas.FollowupCreate,
                       session: Session = Depends(db_session)):
    intro = _get_or_404(session, Introduction, introduction_id, "Introduction")
    entry = services.log_followup(session, intro, body)
    return schemas.FollowupLog.model_validate(entry)


@app.put("/api/introductions/{introduction_id}/status", response_model=schemas.Introduction,
         tags=["Introductions"], summary="Change an introduction's status")
async def update_status(introduction_id: int, body: schemas.StatusUpdate,
                        session: Session = Depends(db_session)):
    intro = _get_or_404(session, Introduction, introduction_id, "Introduction")
    try:
        services.update_status(session, intro, body)
    except InvalidTransitionError as exc:
        raise HTTPException(400, str(exc)) from exc
    return services.to_snapshot(intro)


# ---------------------------------------------------------------------------
# Routes: Import
# ---------------------------------------------------------------------------


@app.post("/api/import", response_model=schemas.ImportResult,
          tags=["Import"], summary="Import introductions from an XLSX spreadsheet")
async def import_file(file: UploadFile = File(...), session: Session = Depends(db_session)):
    if not file.filename or not file.filename.endswith(".xlsx"):
        raise HTTPException(400, "Only .xlsx files are supported")
    content = await file.read()
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as f:
            tmp_path = Path(f.name)
            f.write(content)
        return import_xlsx(tmp_path, session)
    finally:
        if tmp_path:
            tmp_path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run("nodestack.app:app", host="127.0.0.1", port=8001, reload=True)


if __name__ == "__main__":
    main()
