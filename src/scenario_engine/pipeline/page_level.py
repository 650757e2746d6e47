"""Page-level generation: one change specification in, validated scenarios out."""

from __future__ import annotations

from scenario_engine.config.constants import SCENARIO_TAG_GENERATED
from scenario_engine.generation.client import GenerationClient
from scenario_engine.generation.prompt_templates import (
    MANUAL_BLOCK,
    PAGE_DEFAULT_COUNT,
    PAGE_LEVEL_PROMPT,
    PAGE_LEVEL_SYSTEM,
)
from scenario_engine.models.domain import LevelResult, PageInput, PromptMessages, RequirementRecord
from scenario_engine.observability.logger import get_logger
from scenario_engine.observability.tracing import TraceContext
from scenario_engine.pipeline.enrichment import enrich_outcome
from scenario_engine.pipeline.manual_context import ManualContextResolver
from scenario_engine.pipeline.scenario_validator import ScenarioValidator

logger = get_logger("page_level")


def build_page_prompt(page: PageInput, manual_context: str) -> PromptMessages:
    criteria = "\n".join(f"- {c}" for c in page.acceptance_criteria) or "- (none given)"
    manual_block = MANUAL_BLOCK.format(manual_context=manual_context) if manual_context else ""
    return PromptMessages(
        system=PAGE_LEVEL_SYSTEM,
        user=PAGE_LEVEL_PROMPT.format(
            title=page.title,
            description=page.description or "(none given)",
            acceptance_criteria=criteria,
            manual_block=manual_block,
            count=PAGE_DEFAULT_COUNT,
        ),
    )


class PageLevelGenerator:
    def __init__(
        self,
        client: GenerationClient,
        manual_resolver: ManualContextResolver,
        validator: ScenarioValidator,
    ) -> None:
        self._client = client
        self._manual_resolver = manual_resolver
        self._validator = validator

    async def generate(self, page: PageInput, job_id: str = "") -> LevelResult:
        trace = TraceContext(job_id or None)
        requirement = RequirementRecord(
            id=page.page_id,
            title=page.title,
            description=page.description,
            acceptance_criteria=list(page.acceptance_criteria),
        )

        with trace.span("manual_context"):
            manual_context = await self._manual_resolver.resolve(page.manual, [requirement])

        with trace.span("generation"):
            outcome = await self._client.generate_scenarios(
                build_page_prompt(page, manual_context), trace_id=trace.trace_id
            )

        scenarios = enrich_outcome(
            outcome,
            source_id=page.page_id,
            tags=[SCENARIO_TAG_GENERATED],
            source_version=page.version,
            parent_issue_id=page.parent_issue_id,
        )
        with trace.span("validation"):
            self._validator.validate(scenarios, requirement.as_text(), page.parent_issue_id)

        result = LevelResult(scenarios=scenarios)
        logger.info(
            "page_level_generated",
            page_id=page.page_id,
            job_id=job_id,
            total=result.total_scenarios,
            needs_review=result.needs_review_scenarios,
            latency_ms=round(trace.elapsed_ms, 2),
        )
        return result
