"""Bulk job record with atomic state transitions.

A ``BulkJob`` moves ``pending -> running -> done`` and back to ``running``
on the next start. ``start()`` is a compare-and-swap under a lock, so at most
one run is active per record no matter how many requests race for it.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, TypeVar

from nodestack.errors import JobAlreadyRunningError

log = logging.getLogger(__name__)

T = TypeVar("T")


class JobState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"


@dataclass
class JobResult:
    key: int | str
    name: str
    status: str  # "success" | "failed" | "skipped"
    error: str | None = None


@dataclass
class BulkJob:
    name: str
    state: JobState = JobState.PENDING
    total: int = 0
    completed: int = 0
    failed: int = 0
    current: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None
    results: list[JobResult] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def running(self) -> bool:
        return self.state is JobState.RUNNING

    def start(self, total: int) -> None:
        """Move to ``running`` and reset progress. Raises JobAlreadyRunningError if already running."""
        with self._lock:
            if self.state is JobState.RUNNING:
                raise JobAlreadyRunningError(f"{self.name} is already running")
            self.state = JobState.RUNNING
            self.total = total
            self.completed = self.failed = 0
            self.current = ""
            self.started_at = datetime.now(UTC)
            self.completed_at = None
            self.results = []
        log.info("Job %s started with %d items", self.name, total)

    def record(self, result: JobResult) -> None:
        with self._lock:
            self.results.append(result)
            if result.status == "failed":
                self.failed += 1
            else:
                self.completed += 1

    def finish(self) -> None:
        with self._lock:
            if self.state is not JobState.RUNNING:
                return
            self.state = JobState.DONE
            self.current = ""
            self.completed_at = datetime.now(UTC)
        log.info("Job %s complete: %d succeeded, %d failed", self.name, self.completed, self.failed)

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view of the record for status endpoints."""
        with self._lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "running": self.state is JobState.RUNNING,
                "total": self.total,
                "completed": self.completed,
                "failed": self.failed,
                "current": self.current,
                "started_at": self.started_at.isoformat() if self.started_at else None,
                "completed_at": self.completed_at.isoformat() if self.completed_at else None,
                "results": [asdict(r) for r in self.results],
            }


async def run_bulk(
    job: BulkJob,
    items: Iterable[T],
    worker: Callable[[T], Awaitable[str]],
    describe: Callable[[T], tuple[int | str, str]] | None = None,
    delay: float = 0.0,
) -> BulkJob:
    """Run *worker* over *items* on an already-started *job*.

    The worker returns ``"success"`` or ``"skipped"``; any exception it raises
    is recorded as a failure for that item and the run continues. The job is
    always finished, even when the run itself is cancelled.
    """
    try:
        for index, item in enumerate(items):
            key, name = describe(item) if describe else (index, str(item))
            job.current = name
            try:
                status = await worker(item)
                job.record(JobResult(key=key, name=name, status=status))
            except Exception as exc:
                log.warning("Job %s failed for %s: %s", job.name, name, exc)
                job.record(JobResult(key=key, name=name, status="failed", error=str(exc)))
            if delay:
                await asyncio.sleep(delay)
    finally:
        job.finish()
    return job
