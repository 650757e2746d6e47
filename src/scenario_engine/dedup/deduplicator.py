"""Near-duplicate removal across scenarios from multiple sources.

First-seen wins, so results depend on input order. Callers pass sources in a
stable order (page order within a module, module order within a project).
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

from scenario_engine.config.settings import Settings
from scenario_engine.models.domain import DedupResult, DuplicateGroup, ScenarioWithSource
from scenario_engine.models.schemas import Scenario
from scenario_engine.observability.logger import get_logger
from scenario_engine.observability.metrics import log_dedup_metrics
from scenario_engine.text.keywords import normalize_whitespace
from scenario_engine.text.similarity import calculate_similarity

logger = get_logger("deduplicator")


def comparison_text(scenario: Scenario) -> str:
    parts = [scenario.test_name, scenario.description, *scenario.preconditions]
    for step in scenario.test_steps:
        parts.append(f"{step.action} {step.input} {step.expected_result}")
    return normalize_whitespace(" ".join(parts).lower())


def _source_entry(item: ScenarioWithSource) -> dict:
    return {
        "test_id": item.scenario.test_id,
        "test_name": item.scenario.test_name,
        "source_id": item.source_id,
        "source_job_id": item.source_job_id,
        "source_name": item.source_name,
    }


class DedupReportWriter:
    """Writes the audit report as {reports_dir}/{run_id}_dedup.json."""

    def __init__(self, reports_dir: str | Path) -> None:
        self._dir = Path(reports_dir)

    def build_report(self, run_id: str, result: DedupResult, threshold: float) -> dict:
        return {
            "batch_id": run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "threshold": threshold,
            "total_duplicate_groups": len(result.groups),
            "total_duplicates_removed": result.removed_count,
            "duplicate_groups": [
                {
                    "kept": _source_entry(g.kept),
                    "duplicates": [_source_entry(d) for d in g.duplicates],
                    "similarity_score": round(g.similarity_score, 4),
                }
                for g in result.groups
            ],
        }

    async def write(self, run_id: str, result: DedupResult, threshold: float) -> Path:
        report = self.build_report(run_id, result, threshold)
        path = self._dir / f"{run_id}_dedup.json"
        await asyncio.to_thread(self._write_sync, path, report)
        logger.info("dedup_report_written", path=str(path))
        return path

    @staticmethod
    def _write_sync(path: Path, report: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report, indent=2, ensure_ascii=False), encoding="utf-8")


class ScenarioDeduplicator:
    def __init__(self, settings: Settings, report_writer: DedupReportWriter | None = None) -> None:
        self.threshold = settings.dedup_similarity_threshold
        self._report_writer = report_writer

    def find_duplicates(self, scenarios: list[ScenarioWithSource]) -> DedupResult:
        texts = [comparison_text(s.scenario) for s in scenarios]
        consumed: set[int] = set()
        unique: list[ScenarioWithSource] = []
        groups: list[DuplicateGroup] = []

        for i, item in enumerate(scenarios):
            if i in consumed:
                continue
            duplicates: list[ScenarioWithSource] = []
            best = 0.0
            for j in range(i + 1, len(scenarios)):
                if j in consumed:
                    continue
                similarity = calculate_similarity(texts[i], texts[j])
                if similarity >= self.threshold:
                    duplicates.append(scenarios[j])
                    consumed.add(j)
                    best = max(best, similarity)
            unique.append(item)
            if duplicates:
                groups.append(DuplicateGroup(kept=item, duplicates=duplicates, similarity_score=best))

        return DedupResult(unique=unique, groups=groups)

    async def deduplicate(self, scenarios: list[ScenarioWithSource], run_id: str) -> DedupResult:
        result = self.find_duplicates(scenarios)
        log_dedup_metrics(run_id, len(scenarios), len(result.unique), len(result.groups))
        if self._report_writer is not None:
            await self._report_writer.write(run_id, result, self.threshold)
        return result
