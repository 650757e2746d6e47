"""Metric recording helpers, emitted as structured log events."""

from __future__ import annotations

from scenario_engine.models.domain import TokenUsage
from scenario_engine.observability.logger import get_logger

logger = get_logger("metrics")


def log_generation_attempt(
    trace_id: str,
    provider: str,
    profile: str,
    success: bool,
    scenarios: int,
    duration_ms: float,
    error: str | None = None,
    usage: TokenUsage | None = None,
) -> None:
    usage = usage or TokenUsage()
    logger.info(
        "generation_attempt",
        trace_id=trace_id,
        provider=provider,
        profile=profile,
        success=success,
        scenarios=scenarios,
        duration_ms=round(duration_ms, 2),
        error=error,
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
        total_tokens=usage.total_tokens,
    )


def log_chunk_selection(
    document_key: str,
    candidates: int,
    selected: int,
    total_tokens: int,
    top_scores: list[float],
) -> None:
    logger.info(
        "chunk_selection",
        document_key=document_key,
        candidates=candidates,
        selected=selected,
        total_tokens=total_tokens,
        top_scores=[round(s, 4) for s in top_scores[:5]],
    )


def log_dedup_metrics(run_id: str, total: int, unique: int, groups: int) -> None:
    logger.info(
        "dedup_metrics",
        run_id=run_id,
        total=total,
        unique=unique,
        removed=total - unique,
        groups=groups,
    )


def log_scheduler_metrics(
    completed: int, failed: int, cancelled: int, peak_in_flight: int, duration_ms: float
) -> None:
    logger.info(
        "scheduler_metrics",
        completed=completed,
        failed=failed,
        cancelled=cancelled,
        peak_in_flight=peak_in_flight,
        duration_ms=round(duration_ms, 2),
    )


def log_latency(trace_id: str, stage: str, duration_ms: float) -> None:
    logger.info(
        "latency",
        trace_id=trace_id,
        stage=stage,
        duration_ms=round(duration_ms, 2),
    )
