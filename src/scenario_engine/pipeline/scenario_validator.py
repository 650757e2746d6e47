"""Post-generation checks on page-level scenarios.

Scenarios are never dropped here. Any issue downgrades the scenario to
needs_review and the issues are joined into validation_notes.
"""

from __future__ import annotations

from scenario_engine.config.constants import (
    ACTION_VERBS,
    PLACEHOLDER_PATTERNS,
    VALID_CLASSIFICATIONS,
    VALID_PRIORITIES,
    VALID_TEST_TYPES,
)
from scenario_engine.config.settings import Settings
from scenario_engine.models.schemas import Scenario
from scenario_engine.observability.logger import get_logger
from scenario_engine.text.similarity import contains_new_concepts

logger = get_logger("scenario_validator")


def mark_needs_review(scenario: Scenario, issues: list[str]) -> None:
    if not issues:
        return
    scenario.validation_status = "needs_review"
    notes = [scenario.validation_notes] if scenario.validation_notes else []
    scenario.validation_notes = "; ".join(notes + issues)


class ScenarioValidator:
    def __init__(self, settings: Settings) -> None:
        self._min_step_length = settings.min_step_length
        self._check_new_concepts = settings.new_concept_check_enabled
        self._new_concept_threshold = settings.new_concept_threshold

    def validate(
        self, scenarios: list[Scenario], source_text: str, parent_issue_id: str = ""
    ) -> list[Scenario]:
        for scenario in scenarios:
            issues: list[str] = []
            issues += self.check_required_fields(scenario)
            issues += self.check_steps(scenario)
            if self._check_new_concepts and self._introduces_new_concepts(scenario, source_text):
                issues.append("Scenario introduces concepts not found in the specification")
            if scenario.parent_issue_id != parent_issue_id:
                issues.append("parent_issue_id does not match input")
            if not scenario.traceability.source_id:
                issues.append("Missing source_id in traceability")

            if issues:
                mark_needs_review(scenario, issues)
                logger.warning(
                    "scenario_needs_review", test_id=scenario.test_id, issues=issues
                )

        logger.info(
            "validation_completed",
            total=len(scenarios),
            validated=sum(1 for s in scenarios if s.validation_status == "validated"),
        )
        return scenarios

    @staticmethod
    def check_required_fields(scenario: Scenario) -> list[str]:
        issues = []
        if not scenario.test_name.strip():
            issues.append("Missing test_name")
        if scenario.test_type not in VALID_TEST_TYPES:
            issues.append("Invalid or missing test_type")
        if scenario.scenario_classification not in VALID_CLASSIFICATIONS:
            issues.append("Invalid or missing scenario_classification")
        if not scenario.preconditions:
            issues.append("Missing preconditions")
        if not scenario.test_steps:
            issues.append("Missing or empty test_steps")
        if not scenario.expected_result.strip():
            issues.append("Missing expected_result")
        if scenario.priority not in VALID_PRIORITIES:
            issues.append("Invalid or missing priority")
        return issues

    def check_steps(self, scenario: Scenario) -> list[str]:
        issues = []
        for i, step in enumerate(scenario.test_steps, 1):
            text = step.action.strip()
            lowered = text.lower()
            if len(text) < self._min_step_length:
                issues.append(
                    f"Test step {i} is too short (less than {self._min_step_length} characters)"
                )
            if not any(verb in lowered for verb in ACTION_VERBS):
                issues.append(f"Test step {i} does not contain an actionable verb")
            for pattern in PLACEHOLDER_PATTERNS:
                if pattern in lowered:
                    issues.append(f'Test step {i} contains placeholder text: "{pattern}"')
        return issues

    def _introduces_new_concepts(self, scenario: Scenario, source_text: str) -> bool:
        steps = " ".join(s.action for s in scenario.test_steps)
        scenario_text = " ".join(
            [scenario.test_name, *scenario.preconditions, steps, scenario.expected_result]
        )
        return contains_new_concepts(source_text, scenario_text, self._new_concept_threshold)
