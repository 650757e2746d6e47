"""Turn decoded payloads into identified, traceable scenarios."""

from __future__ import annotations

from uuid import uuid4

from scenario_engine.models.domain import GenerationOutcome, utc_now_iso
from scenario_engine.models.schemas import Scenario, ScenarioPayload, Traceability


def enrich_scenario(
    payload: ScenarioPayload,
    source_id: str,
    llm_model: str,
    tags: list[str],
    source_version: str = "1",
    parent_issue_id: str = "",
) -> Scenario:
    return Scenario(
        test_id=str(uuid4()),
        test_name=payload.test_name,
        description=payload.description,
        test_type=payload.test_type,
        scenario_classification=payload.scenario_classification,
        preconditions=list(payload.preconditions),
        test_steps=[s.model_copy() for s in payload.test_steps],
        expected_result=payload.expected_result,
        priority=payload.priority,
        tags=list(tags),
        parent_issue_id=parent_issue_id,
        traceability=Traceability(
            source_id=source_id,
            source_version=source_version,
            generated_at=utc_now_iso(),
            llm_model=llm_model,
        ),
        validation_status="validated",
    )


def enrich_outcome(
    outcome: GenerationOutcome,
    source_id: str,
    tags: list[str],
    source_version: str = "1",
    parent_issue_id: str = "",
) -> list[Scenario]:
    final = outcome.final_attempt
    llm_model = final.model or final.profile.model
    all_tags = [*tags, f"{outcome.attempt_type}-attempt"]
    return [
        enrich_scenario(
            payload,
            source_id=source_id,
            llm_model=llm_model,
            tags=all_tags,
            source_version=source_version,
            parent_issue_id=parent_issue_id,
        )
        for payload in outcome.scenarios
    ]
