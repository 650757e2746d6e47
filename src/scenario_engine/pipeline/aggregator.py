"""Module- and project-level aggregation.

Each level reads the latest completed job of every child, deduplicates the
collected scenarios, asks the provider for cross-cutting scenarios and
persists the result into its own job record. Child jobs are only read.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from scenario_engine.config.constants import (
    SCENARIO_TAG_GENERATED,
    SCENARIO_TAG_MODULE,
    SCENARIO_TAG_PROJECT,
)
from scenario_engine.config.settings import Settings
from scenario_engine.dedup.deduplicator import ScenarioDeduplicator
from scenario_engine.exceptions import PipelineError
from scenario_engine.generation.client import GenerationClient
from scenario_engine.generation.prompt_templates import (
    MANUAL_BLOCK,
    MODULE_DEFAULT_COUNT,
    MODULE_LEVEL_PROMPT,
    MODULE_LEVEL_SYSTEM,
    PROJECT_DEFAULT_COUNT,
    PROJECT_LEVEL_PROMPT,
    PROJECT_LEVEL_SYSTEM,
)
from scenario_engine.models.domain import (
    LevelResult,
    ModuleRef,
    ProjectRef,
    PromptMessages,
    ScenarioWithSource,
    SourceGroup,
    SubJob,
    utc_now_iso,
)
from scenario_engine.models.schemas import Scenario
from scenario_engine.observability.logger import get_logger
from scenario_engine.observability.tracing import TraceContext
from scenario_engine.pipeline.coverage import apply_coverage_rule
from scenario_engine.pipeline.enrichment import enrich_outcome
from scenario_engine.pipeline.manual_context import (
    ManualContextResolver,
    requirements_from_scenarios,
)
from scenario_engine.protocols.store import JobStore

logger = get_logger("aggregator")


def group_by_source(scenarios: list[ScenarioWithSource]) -> list[SourceGroup]:
    """Regroup deduplicated scenarios by source, keeping first-seen source order."""
    groups: dict[str, SourceGroup] = {}
    for item in scenarios:
        group = groups.get(item.source_id)
        if group is None:
            group = SourceGroup(
                group_id=item.source_id, name=item.source_name or item.source_id, scenarios=[]
            )
            groups[item.source_id] = group
        group.scenarios.append(item)
    return list(groups.values())


def render_groups(groups: list[SourceGroup]) -> str:
    blocks = []
    for group in groups:
        lines = [f"## [{group.name}] ({len(group.scenarios)} scenarios)"]
        for item in group.scenarios:
            s = item.scenario
            lines.append(f"- {s.test_name} ({s.scenario_classification}, {s.priority})")
            for step in s.test_steps:
                lines.append(f"  {step.step_number}. {step.action}")
            if s.expected_result:
                lines.append(f"  Expected: {s.expected_result}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _count_text(max_scenarios: int | None, default: str) -> str:
    return f"at most {max_scenarios}" if max_scenarios else default


class HierarchicalAggregator:
    def __init__(
        self,
        settings: Settings,
        job_store: JobStore,
        client: GenerationClient,
        deduplicator: ScenarioDeduplicator,
        manual_resolver: ManualContextResolver,
    ) -> None:
        self._settings = settings
        self._store = job_store
        self._client = client
        self._deduplicator = deduplicator
        self._manual_resolver = manual_resolver

    # --- Module level ---------------------------------------------------------

    async def collect_module_sources(self, module: ModuleRef) -> list[ScenarioWithSource]:
        sources: list[ScenarioWithSource] = []
        for page in module.pages:
            sources += await self._collect_job(
                page.latest_job_id, page.page_id, page.name or page.page_id
            )
        return sources

    async def generate_module_level(
        self, module: ModuleRef, job_id: str, max_scenarios: int | None = None
    ) -> LevelResult:
        return await self._run_level_job(
            job_id,
            "module",
            {"module_id": module.module_id, "name": module.name},
            lambda: self._module_level(module, job_id, max_scenarios),
        )

    async def _module_level(
        self, module: ModuleRef, job_id: str, max_scenarios: int | None
    ) -> LevelResult:
        sources = await self.collect_module_sources(module)
        if not sources:
            logger.info("module_has_no_page_scenarios", module_id=module.module_id)
            return LevelResult()

        deduped = await self._deduplicator.deduplicate(sources, run_id=job_id)
        scenarios = await self.scenarios_from_sources(
            name=module.name,
            owner_id=module.module_id,
            sources=deduped.unique,
            trace_id=job_id,
            max_scenarios=max_scenarios,
        )
        return LevelResult(scenarios=scenarios)

    async def scenarios_from_sources(
        self,
        name: str,
        owner_id: str,
        sources: list[ScenarioWithSource],
        trace_id: str = "",
        max_scenarios: int | None = None,
    ) -> list[Scenario]:
        """Module-level generation over already deduplicated page scenarios."""
        if not sources:
            return []
        system = MODULE_LEVEL_SYSTEM.format(
            min_sources=self._settings.min_pages_per_module_scenario
        )
        prompt = PromptMessages(
            system=system,
            user=MODULE_LEVEL_PROMPT.format(
                module_name=name,
                grouped_sources=render_groups(group_by_source(sources)),
                count=_count_text(max_scenarios, MODULE_DEFAULT_COUNT),
            ),
        )
        outcome = await self._client.generate_scenarios(
            prompt, max_tokens=self._settings.module_max_tokens, trace_id=trace_id
        )
        scenarios = enrich_outcome(
            outcome, source_id=owner_id, tags=[SCENARIO_TAG_GENERATED, SCENARIO_TAG_MODULE]
        )
        limit = max_scenarios or self._settings.max_integration_tests
        scenarios = scenarios[:limit]
        return apply_coverage_rule(
            scenarios, self._settings.min_pages_per_module_scenario, unit="pages"
        )

    # --- Project level --------------------------------------------------------

    async def collect_project_sources(self, project: ProjectRef) -> list[ScenarioWithSource]:
        sources: list[ScenarioWithSource] = []
        for module in project.modules:
            sources += await self._collect_job(
                module.latest_job_id, module.module_id, module.name or module.module_id
            )
        return sources

    async def generate_project_level(
        self, project: ProjectRef, job_id: str, max_scenarios: int | None = None
    ) -> LevelResult:
        return await self._run_level_job(
            job_id,
            "project",
            {"project_id": project.project_id, "name": project.name},
            lambda: self._project_level(project, job_id, max_scenarios),
        )

    async def _project_level(
        self, project: ProjectRef, job_id: str, max_scenarios: int | None
    ) -> LevelResult:
        trace = TraceContext(job_id)
        sources = await self.collect_project_sources(project)
        if not sources:
            logger.info("project_has_no_module_scenarios", project_id=project.project_id)
            return LevelResult()

        deduped = await self._deduplicator.deduplicate(sources, run_id=job_id)
        groups = group_by_source(deduped.unique)

        with trace.span("manual_context"):
            requirements = requirements_from_scenarios(
                deduped.unique, self._settings.max_requirements_for_context
            )
            manual_context = await self._manual_resolver.resolve_first(
                [project.manual, project.linked_document_manual], requirements
            )

        prompt = PromptMessages(
            system=PROJECT_LEVEL_SYSTEM.format(
                min_sources=self._settings.min_modules_per_project_scenario
            ),
            user=PROJECT_LEVEL_PROMPT.format(
                project_name=project.name,
                grouped_sources=render_groups(groups),
                manual_block=(
                    MANUAL_BLOCK.format(manual_context=manual_context) if manual_context else ""
                ),
                count=_count_text(max_scenarios, PROJECT_DEFAULT_COUNT),
            ),
        )
        with trace.span("generation"):
            outcome = await self._client.generate_scenarios(
                prompt, max_tokens=self._settings.project_max_tokens, trace_id=job_id
            )

        scenarios = enrich_outcome(
            outcome,
            source_id=project.project_id,
            tags=[SCENARIO_TAG_GENERATED, SCENARIO_TAG_PROJECT],
        )
        scenarios = scenarios[: max_scenarios or self._settings.max_project_tests]
        apply_coverage_rule(
            scenarios, self._settings.min_modules_per_project_scenario, unit="modules"
        )
        return LevelResult(scenarios=scenarios)

    # --- Shared ---------------------------------------------------------------

    async def _collect_job(
        self, job_id: str | None, source_id: str, source_name: str
    ) -> list[ScenarioWithSource]:
        if not job_id:
            return []
        job = await self._store.get_job(job_id)
        if job is None or job.status != "completed" or job.results is None:
            logger.info("source_job_skipped", job_id=job_id, source_id=source_id)
            return []
        return [
            ScenarioWithSource(
                scenario=s, source_id=source_id, source_job_id=job_id, source_name=source_name
            )
            for s in job.results.scenarios
        ]

    async def _run_level_job(
        self,
        job_id: str,
        level: str,
        job_input: dict,
        body: Callable[[], Awaitable[LevelResult]],
    ) -> LevelResult:
        job = await self._store.get_job(job_id)
        if job is None:
            job = SubJob(job_id=job_id, status="processing", input=job_input, level=level)
        else:
            job.status = "processing"
            job.error = None
        await self._store.put_job(job)

        try:
            result = await body()
        except Exception as e:
            logger.exception(f"{level}_level_failed", job_id=job_id)
            job.status = "failed"
            job.error = str(e) or type(e).__name__
            job.completed_at = utc_now_iso()
            await self._store.put_job(job)
            raise PipelineError(f"{level}-level generation failed for job {job_id}: {e}") from e

        job.status = "completed"
        job.results = result
        job.completed_at = utc_now_iso()
        await self._store.put_job(job)
        logger.info(
            f"{level}_level_completed",
            job_id=job_id,
            total=result.total_scenarios,
            needs_review=result.needs_review_scenarios,
        )
        return result
