"""Batch pipeline: many pages generated in parallel, then optionally aggregated."""

from __future__ import annotations

from dataclasses import asdict
from uuid import uuid4

from scenario_engine.config.settings import Settings
from scenario_engine.dedup.deduplicator import ScenarioDeduplicator
from scenario_engine.exceptions import RecordNotFoundError
from scenario_engine.models.domain import (
    AggregationResults,
    BatchJob,
    BatchOptions,
    DocumentSection,
    LevelResult,
    ManualSource,
    PageInput,
    ScenarioWithSource,
    SubJob,
    utc_now_iso,
)
from scenario_engine.models.schemas import BatchStatusResponse, Progress, SubJobStatus
from scenario_engine.observability.logger import get_logger
from scenario_engine.pipeline.aggregator import HierarchicalAggregator
from scenario_engine.pipeline.page_level import PageLevelGenerator
from scenario_engine.pipeline.scheduler import SubJobScheduler
from scenario_engine.pipeline.summary import build_batch_summary
from scenario_engine.protocols.store import JobStore

logger = get_logger("batch")


def _section_from_dict(data: dict) -> DocumentSection:
    return DocumentSection(
        heading=data["heading"],
        content=data["content"],
        subsections=[_section_from_dict(s) for s in data.get("subsections", [])],
    )


def page_from_input(data: dict) -> PageInput:
    manual = data.get("manual")
    manual_source = None
    if manual:
        sections = manual.get("sections")
        manual_source = ManualSource(
            document_key=manual["document_key"],
            text=manual.get("text"),
            sections=[_section_from_dict(s) for s in sections] if sections is not None else None,
            filename=manual.get("filename", ""),
        )
    return PageInput(
        page_id=data["page_id"],
        title=data["title"],
        name=data.get("name", ""),
        description=data.get("description", ""),
        acceptance_criteria=list(data.get("acceptance_criteria", [])),
        parent_issue_id=data.get("parent_issue_id", ""),
        version=data.get("version", "1"),
        manual=manual_source,
    )


class BatchOrchestrator:
    def __init__(
        self,
        settings: Settings,
        job_store: JobStore,
        page_generator: PageLevelGenerator,
        aggregator: HierarchicalAggregator,
        deduplicator: ScenarioDeduplicator,
    ) -> None:
        self._settings = settings
        self._store = job_store
        self._page_generator = page_generator
        self._aggregator = aggregator
        self._deduplicator = deduplicator
        self._running: dict[str, SubJobScheduler] = {}

    async def submit(self, pages: list[PageInput], options: BatchOptions) -> BatchJob:
        batch_id = str(uuid4())
        sub_job_ids: list[str] = []
        for page in pages:
            job = SubJob(
                job_id=str(uuid4()),
                status="processing",
                input=asdict(page),
                batch_id=batch_id,
                level="page",
            )
            await self._store.put_job(job)
            sub_job_ids.append(job.job_id)

        batch = BatchJob(
            batch_id=batch_id, status="processing", options=options, sub_jobs=sub_job_ids
        )
        await self._store.put_batch(batch)
        logger.info("batch_submitted", batch_id=batch_id, pages=len(pages))
        return batch

    async def run(self, batch_id: str) -> BatchJob:
        batch = await self._store.get_batch(batch_id)
        if batch is None:
            raise RecordNotFoundError(f"Batch {batch_id} not found")

        scheduler = SubJobScheduler(self._store, self._settings.batch_max_parallel_jobs)
        self._running[batch_id] = scheduler
        try:
            options = batch.options
            # Module-level aggregation needs page scenarios even if they are not requested
            if options.generate_page_level_tests or options.generate_module_level_tests:
                report = await scheduler.run(batch.sub_jobs, self._page_work)
            else:
                logger.warning("batch_requests_no_tests", batch_id=batch_id)
                report = await scheduler.run(batch.sub_jobs, self._empty_work)

            if options.generate_module_level_tests and not scheduler.cancel_requested:
                batch.aggregation_results = await self._aggregate(batch)

            failures = len(report.failed) + len(report.cancelled)
            if failures == 0:
                batch.status = "completed"
            elif failures >= len(batch.sub_jobs):
                batch.status = "failed"
            else:
                batch.status = "partial"
            batch.completed_at = utc_now_iso()
            await self._store.put_batch(batch)
        except Exception as e:
            logger.exception("batch_failed", batch_id=batch_id)
            batch.status = "failed"
            batch.error = str(e) or type(e).__name__
            batch.completed_at = utc_now_iso()
            await self._store.put_batch(batch)
            raise
        finally:
            self._running.pop(batch_id, None)

        logger.info(
            "batch_finished",
            batch_id=batch_id,
            status=batch.status,
            completed=len(report.completed),
            failed=len(report.failed),
            cancelled=len(report.cancelled),
        )
        return batch

    async def cancel(self, batch_id: str) -> bool:
        """Cooperative cancel. False when the batch is not currently running."""
        if await self._store.get_batch(batch_id) is None:
            raise RecordNotFoundError(f"Batch {batch_id} not found")
        scheduler = self._running.get(batch_id)
        if scheduler is None:
            return False
        scheduler.cancel()
        logger.info("batch_cancel_requested", batch_id=batch_id)
        return True

    async def status(self, batch_id: str) -> BatchStatusResponse:
        batch = await self._store.get_batch(batch_id)
        if batch is None:
            raise RecordNotFoundError(f"Batch {batch_id} not found")

        sub_jobs: list[SubJobStatus] = []
        for job_id in batch.sub_jobs:
            job = await self._store.get_job(job_id)
            if job is None:
                sub_jobs.append(SubJobStatus(id=job_id, status="failed", error="missing record"))
                continue
            sub_jobs.append(
                SubJobStatus(
                    id=job.job_id,
                    status=job.status,
                    error=job.error,
                    results=job.results.to_dict() if job.results else None,
                )
            )

        progress = Progress(
            total=len(sub_jobs),
            completed=sum(1 for j in sub_jobs if j.status == "completed"),
            failed=sum(1 for j in sub_jobs if j.status == "failed"),
            in_progress=sum(1 for j in sub_jobs if j.status == "processing"),
        )
        return BatchStatusResponse(
            batch_id=batch.batch_id,
            status=batch.status,
            progress=progress,
            sub_jobs=sub_jobs,
            aggregation_results=(
                batch.aggregation_results.to_dict() if batch.aggregation_results else None
            ),
            error=batch.error,
        )

    async def _page_work(self, job: SubJob) -> LevelResult:
        page = page_from_input(job.input)
        return await self._page_generator.generate(page, job.job_id)

    @staticmethod
    async def _empty_work(job: SubJob) -> LevelResult:
        return LevelResult()

    async def _aggregate(self, batch: BatchJob) -> AggregationResults:
        collected: list[ScenarioWithSource] = []
        pages_processed: list[str] = []
        for job_id in batch.sub_jobs:
            job = await self._store.get_job(job_id)
            if job is None or job.status != "completed" or job.results is None:
                continue
            page = page_from_input(job.input)
            pages_processed.append(page.page_id)
            collected += [
                ScenarioWithSource(
                    scenario=s,
                    source_id=page.page_id,
                    source_job_id=job_id,
                    source_name=page.display_name,
                )
                for s in job.results.scenarios
            ]

        deduped = await self._deduplicator.deduplicate(collected, run_id=batch.batch_id)
        module_scenarios = await self._aggregator.scenarios_from_sources(
            name=f"Batch {batch.batch_id[:8]}",
            owner_id=batch.batch_id,
            sources=deduped.unique,
            trace_id=batch.batch_id,
        )
        summary = build_batch_summary(
            pages_processed,
            [item.scenario for item in deduped.unique],
            module_scenarios,
        )
        logger.info(
            "batch_aggregated",
            batch_id=batch.batch_id,
            pages=len(pages_processed),
            unique=len(deduped.unique),
            removed=deduped.removed_count,
            module_scenarios=len(module_scenarios),
        )
        return AggregationResults(
            total_pages=len(pages_processed),
            total_scenarios=len(deduped.unique),
            deduplicated_count=deduped.removed_count,
            module_level_scenarios=module_scenarios,
            summary=summary,
        )
