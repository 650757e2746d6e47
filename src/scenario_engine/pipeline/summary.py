"""Batch summary: what was processed and how the scenarios are spread."""

from __future__ import annotations

from scenario_engine.models.domain import BatchSummary
from scenario_engine.models.schemas import Scenario


def coverage_stats(scenarios: list[Scenario]) -> dict[str, int]:
    stats = {"happy_path": 0, "negative": 0, "edge_case": 0, "validated": 0, "needs_review": 0}
    for s in scenarios:
        if s.scenario_classification in stats:
            stats[s.scenario_classification] += 1
        if s.validation_status in ("validated", "needs_review"):
            stats[s.validation_status] += 1
    return stats


def build_batch_summary(
    pages_processed: list[str],
    page_scenarios: list[Scenario],
    module_scenarios: list[Scenario],
) -> BatchSummary:
    features = list(dict.fromkeys(s.test_name for s in page_scenarios if s.test_name))
    return BatchSummary(
        pages_processed=pages_processed,
        coverage_stats=coverage_stats(page_scenarios + module_scenarios),
        feature_list=features,
    )
