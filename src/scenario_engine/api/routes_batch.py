"""Batch submission, status and cancellation."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from scenario_engine.api.dependencies import get_orchestrator
from scenario_engine.exceptions import RecordNotFoundError, ScenarioEngineError
from scenario_engine.models.domain import BatchOptions, ManualSource, PageInput
from scenario_engine.models.schemas import (
    BatchAccepted,
    BatchRequest,
    BatchStatusResponse,
    CancelResponse,
    ManualSourceBody,
)
from scenario_engine.observability.logger import get_logger
from scenario_engine.pipeline.batch_orchestrator import BatchOrchestrator

router = APIRouter()
logger = get_logger("routes_batch")


def manual_from_body(body: ManualSourceBody | None) -> ManualSource | None:
    if body is None:
        return None
    return ManualSource(document_key=body.document_key, text=body.text, filename=body.filename)


async def _run_batch(orchestrator: BatchOrchestrator, batch_id: str) -> None:
    try:
        await orchestrator.run(batch_id)
    except ScenarioEngineError as e:
        # Already recorded on the batch; nothing awaits this task
        logger.error("background_batch_failed", batch_id=batch_id, error=str(e))


@router.post("/batches", response_model=BatchAccepted, status_code=202)
async def submit_batch(
    request: BatchRequest,
    background_tasks: BackgroundTasks,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> BatchAccepted:
    if not request.pages:
        raise HTTPException(status_code=422, detail="At least one page is required")

    pages = [
        PageInput(
            page_id=p.page_id,
            title=p.title,
            name=p.name,
            description=p.description,
            acceptance_criteria=p.acceptance_criteria,
            parent_issue_id=p.parent_issue_id,
            version=p.version,
            manual=manual_from_body(p.manual),
        )
        for p in request.pages
    ]
    options = BatchOptions(
        generate_page_level_tests=request.generate_page_level_tests,
        generate_module_level_tests=request.generate_module_level_tests,
    )
    batch = await orchestrator.submit(pages, options)
    background_tasks.add_task(_run_batch, orchestrator, batch.batch_id)
    return BatchAccepted(batch_id=batch.batch_id, sub_jobs=batch.sub_jobs, status=batch.status)


@router.get("/batches/{batch_id}", response_model=BatchStatusResponse)
async def batch_status(
    batch_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> BatchStatusResponse:
    try:
        return await orchestrator.status(batch_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/batches/{batch_id}/cancel", response_model=CancelResponse)
async def cancel_batch(
    batch_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> CancelResponse:
    try:
        requested = await orchestrator.cancel(batch_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CancelResponse(batch_id=batch_id, cancel_requested=requested)
