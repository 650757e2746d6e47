"""Bounded-concurrency runner for independent sub-jobs.

Each sub-job is the only writer of its own record. A failing job is recorded
as failed on its record and never takes down its siblings or the caller.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from scenario_engine.exceptions import ConfigurationError, RecordNotFoundError
from scenario_engine.models.domain import LevelResult, SubJob, utc_now_iso
from scenario_engine.observability.logger import get_logger
from scenario_engine.observability.metrics import log_scheduler_metrics
from scenario_engine.protocols.store import JobStore

logger = get_logger("scheduler")

SubJobWork = Callable[[SubJob], Awaitable[LevelResult]]

CANCELLED_ERROR = "cancelled"


@dataclass
class SchedulerReport:
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    peak_in_flight: int = 0


class SubJobScheduler:
    def __init__(self, job_store: JobStore, max_parallel: int) -> None:
        if max_parallel < 1:
            raise ConfigurationError(f"max_parallel must be >= 1, got {max_parallel}")
        self._store = job_store
        self._max_parallel = max_parallel
        self._cancel_requested = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        """Stop starting new jobs. In-flight jobs run to completion."""
        self._cancel_requested = True

    async def run(self, sub_job_ids: list[str], work: SubJobWork) -> SchedulerReport:
        ids = list(dict.fromkeys(sub_job_ids))
        pending: deque[str] = deque(ids)
        in_flight: set[asyncio.Task] = set()
        report = SchedulerReport()
        limit = min(self._max_parallel, len(ids)) or 1
        start = time.perf_counter()

        logger.info("scheduler_started", jobs=len(ids), max_parallel=limit)
        try:
            while pending or in_flight:
                while pending and len(in_flight) < limit and not self._cancel_requested:
                    job_id = pending.popleft()
                    in_flight.add(
                        asyncio.create_task(self._execute(job_id, work, report), name=job_id)
                    )
                    report.peak_in_flight = max(report.peak_in_flight, len(in_flight))

                if self._cancel_requested and pending:
                    await self._mark_cancelled(list(pending), report)
                    pending.clear()

                if not in_flight:
                    break
                done, in_flight = await asyncio.wait(
                    in_flight, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    task.result()
        except asyncio.CancelledError:
            for task in in_flight:
                task.cancel()
            raise

        log_scheduler_metrics(
            completed=len(report.completed),
            failed=len(report.failed),
            cancelled=len(report.cancelled),
            peak_in_flight=report.peak_in_flight,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        return report

    async def _execute(self, job_id: str, work: SubJobWork, report: SchedulerReport) -> None:
        job: SubJob | None = None
        try:
            job = await self._store.get_job(job_id)
            if job is None:
                raise RecordNotFoundError(f"Sub-job {job_id} not found")
            results = await work(job)
            job.status = "completed"
            job.results = results
            job.error = None
            job.completed_at = utc_now_iso()
            await self._store.put_job(job)
        except Exception as e:
            logger.exception("sub_job_failed", job_id=job_id, error=str(e))
            report.failed.append(job_id)
            await self._write_failure(job, str(e) or type(e).__name__)
            return

        logger.info("sub_job_completed", job_id=job_id, scenarios=results.total_scenarios)
        report.completed.append(job_id)

    async def _mark_cancelled(self, job_ids: list[str], report: SchedulerReport) -> None:
        for job_id in job_ids:
            report.cancelled.append(job_id)
            try:
                job = await self._store.get_job(job_id)
            except Exception:
                logger.exception("sub_job_cancel_lookup_failed", job_id=job_id)
                continue
            await self._write_failure(job, CANCELLED_ERROR)
        logger.info("scheduler_cancelled", cancelled=len(job_ids))

    async def _write_failure(self, job: SubJob | None, error: str) -> None:
        if job is None:
            return
        job.status = "failed"
        job.error = error
        job.completed_at = utc_now_iso()
        try:
            await self._store.put_job(job)
        except Exception:
            logger.exception("sub_job_status_write_failed", job_id=job.job_id)
