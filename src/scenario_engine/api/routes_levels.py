"""Module- and project-level generation, plus job lookup."""

from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from scenario_engine.api.dependencies import get_aggregator, get_job_store
from scenario_engine.api.routes_batch import manual_from_body
from scenario_engine.exceptions import ScenarioEngineError
from scenario_engine.models.domain import ModuleRef, PageRef, ProjectRef, SubJob
from scenario_engine.models.schemas import (
    LevelJobAccepted,
    ModuleGenerateRequest,
    ProjectGenerateRequest,
    SubJobStatus,
)
from scenario_engine.observability.logger import get_logger
from scenario_engine.pipeline.aggregator import HierarchicalAggregator
from scenario_engine.storage.sqlite_job_store import SQLiteJobStore

router = APIRouter()
logger = get_logger("routes_levels")


async def _run_module(
    aggregator: HierarchicalAggregator, module: ModuleRef, job_id: str, max_tests: int | None
) -> None:
    try:
        await aggregator.generate_module_level(module, job_id, max_tests)
    except ScenarioEngineError as e:
        logger.error("background_module_failed", job_id=job_id, error=str(e))


async def _run_project(
    aggregator: HierarchicalAggregator, project: ProjectRef, job_id: str, max_tests: int | None
) -> None:
    try:
        await aggregator.generate_project_level(project, job_id, max_tests)
    except ScenarioEngineError as e:
        logger.error("background_project_failed", job_id=job_id, error=str(e))


@router.post("/modules/{module_id}/generate", response_model=LevelJobAccepted, status_code=202)
async def generate_module(
    module_id: str,
    request: ModuleGenerateRequest,
    background_tasks: BackgroundTasks,
    aggregator: HierarchicalAggregator = Depends(get_aggregator),
    job_store: SQLiteJobStore = Depends(get_job_store),
) -> LevelJobAccepted:
    module = ModuleRef(
        module_id=module_id,
        name=request.name,
        pages=[
            PageRef(page_id=p.page_id, name=p.name, latest_job_id=p.latest_job_id)
            for p in request.pages
        ],
    )
    job = SubJob(
        job_id=str(uuid4()),
        status="processing",
        input={"module_id": module_id, "name": request.name},
        level="module",
    )
    await job_store.put_job(job)
    background_tasks.add_task(_run_module, aggregator, module, job.job_id, request.max_tests)
    return LevelJobAccepted(job_id=job.job_id, status=job.status)


@router.post("/projects/{project_id}/generate", response_model=LevelJobAccepted, status_code=202)
async def generate_project(
    project_id: str,
    request: ProjectGenerateRequest,
    background_tasks: BackgroundTasks,
    aggregator: HierarchicalAggregator = Depends(get_aggregator),
    job_store: SQLiteJobStore = Depends(get_job_store),
) -> LevelJobAccepted:
    project = ProjectRef(
        project_id=project_id,
        name=request.name,
        modules=[
            ModuleRef(
                module_id=m.module_id,
                name=m.name,
                pages=[PageRef(page_id=p.page_id, name=p.name) for p in m.pages],
                latest_job_id=m.latest_job_id,
            )
            for m in request.modules
        ],
        manual=manual_from_body(request.manual),
        linked_document_manual=manual_from_body(request.linked_document_manual),
    )
    job = SubJob(
        job_id=str(uuid4()),
        status="processing",
        input={"project_id": project_id, "name": request.name},
        level="project",
    )
    await job_store.put_job(job)
    background_tasks.add_task(_run_project, aggregator, project, job.job_id, request.max_tests)
    return LevelJobAccepted(job_id=job.job_id, status=job.status)


@router.get("/jobs/{job_id}", response_model=SubJobStatus)
async def job_status(
    job_id: str,
    job_store: SQLiteJobStore = Depends(get_job_store),
) -> SubJobStatus:
    job = await job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return SubJobStatus(
        id=job.job_id,
        status=job.status,
        error=job.error,
        results=job.results.to_dict() if job.results else None,
    )
