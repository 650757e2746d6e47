"""Touch-count rule for module- and project-level scenarios.

A cross-cutting scenario must reference at least N distinct sources through
"[Name] → action" step prefixes (an ASCII "->" also counts).
"""

from __future__ import annotations

import re

from scenario_engine.models.schemas import Scenario
from scenario_engine.observability.logger import get_logger
from scenario_engine.pipeline.scenario_validator import mark_needs_review

logger = get_logger("coverage")

_TOUCH_PREFIX = re.compile(r"^\s*\[([^\]]+)\]\s*(?:→|->)")


def touched_sources(scenario: Scenario) -> set[str]:
    touched = set()
    for step in scenario.test_steps:
        match = _TOUCH_PREFIX.match(step.action)
        if match:
            touched.add(" ".join(match.group(1).lower().split()))
    return touched


def apply_coverage_rule(scenarios: list[Scenario], min_sources: int, unit: str) -> list[Scenario]:
    for scenario in scenarios:
        count = len(touched_sources(scenario))
        if count < min_sources:
            mark_needs_review(
                scenario, [f"Scenario touches {count} {unit}, at least {min_sources} required"]
            )
    downgraded = sum(1 for s in scenarios if s.validation_status == "needs_review")
    logger.info(
        "coverage_checked", unit=unit, total=len(scenarios), needs_review=downgraded
    )
    return scenarios
