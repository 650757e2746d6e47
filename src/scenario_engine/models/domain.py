"""Core domain objects used throughout the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from scenario_engine.models.schemas import Scenario, ScenarioPayload

SubJobStatus = Literal["processing", "completed", "failed"]
BatchStatus = Literal["processing", "completed", "failed", "partial"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Reference documents ---------------------------------------------------


@dataclass
class DocumentSection:
    heading: str
    content: str
    subsections: list[DocumentSection] = field(default_factory=list)


@dataclass(frozen=True)
class Chunk:
    chunk_id: str
    document_id: str
    section_path: tuple[str, ...]
    heading: str
    content: str
    char_count: int
    estimated_tokens: int
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class ChunkedDocument:
    document_id: str
    filename: str
    chunks: tuple[Chunk, ...]
    total_chars: int
    total_tokens: int
    chunked_at: str

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)


@dataclass
class RequirementRecord:
    id: str
    title: str
    description: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    affected_areas: list[str] = field(default_factory=list)

    def as_text(self) -> str:
        return " ".join(
            [self.title, self.description, *self.acceptance_criteria, *self.affected_areas]
        )


@dataclass
class RelevanceScore:
    chunk_id: str
    score: float
    matched_keywords: list[str]
    heading_match: float
    content_match: float


@dataclass
class ScoredChunk:
    chunk: Chunk
    relevance: RelevanceScore


@dataclass
class ManualSource:
    """Reference manual attached to a page, project, or linked document."""

    document_key: str
    text: str | None = None
    sections: list[DocumentSection] | None = None
    filename: str = ""


# --- Generation ------------------------------------------------------------


@dataclass
class ChatMessage:
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass
class PromptMessages:
    system: str
    user: str

    def to_messages(self, system_suffix: str = "") -> list[ChatMessage]:
        return [
            ChatMessage(role="system", content=self.system + system_suffix),
            ChatMessage(role="user", content=self.user),
        ]


@dataclass
class GenerationOptions:
    temperature: float
    max_tokens: int
    model: str | None = None
    json_mode: bool = True


@dataclass
class TokenUsage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


@dataclass
class ProviderResult:
    content: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class GenerationProfile:
    name: str
    model: str
    temperature: float
    max_tokens: int
    json_mode: bool = True
    system_prompt_suffix: str = ""


@dataclass
class GenerationAttempt:
    profile: GenerationProfile
    provider: str
    success: bool
    scenarios: list[ScenarioPayload]
    duration_ms: float
    error: str | None = None
    model: str | None = None
    usage: TokenUsage | None = None


@dataclass
class GenerationOutcome:
    primary: GenerationAttempt
    fallback: GenerationAttempt | None = None

    @property
    def final_attempt(self) -> GenerationAttempt:
        if self.fallback is not None and self.fallback.success and self.fallback.scenarios:
            return self.fallback
        return self.primary

    @property
    def scenarios(self) -> list[ScenarioPayload]:
        return self.final_attempt.scenarios

    @property
    def attempt_type(self) -> str:
        return self.final_attempt.profile.name


# --- Scenarios and dedup ---------------------------------------------------


@dataclass
class ScenarioWithSource:
    scenario: Scenario
    source_id: str
    source_job_id: str
    source_name: str = ""


@dataclass
class DuplicateGroup:
    kept: ScenarioWithSource
    duplicates: list[ScenarioWithSource]
    similarity_score: float


@dataclass
class DedupResult:
    unique: list[ScenarioWithSource]
    groups: list[DuplicateGroup]

    @property
    def removed_count(self) -> int:
        return sum(len(g.duplicates) for g in self.groups)


# --- Jobs ------------------------------------------------------------------


@dataclass
class LevelResult:
    scenarios: list[Scenario] = field(default_factory=list)

    @property
    def total_scenarios(self) -> int:
        return len(self.scenarios)

    @property
    def validated_scenarios(self) -> int:
        return sum(1 for s in self.scenarios if s.validation_status == "validated")

    @property
    def needs_review_scenarios(self) -> int:
        return sum(1 for s in self.scenarios if s.validation_status == "needs_review")

    def to_dict(self) -> dict:
        return {
            "total_scenarios": self.total_scenarios,
            "validated_scenarios": self.validated_scenarios,
            "needs_review_scenarios": self.needs_review_scenarios,
            "scenarios": [s.model_dump(mode="json") for s in self.scenarios],
        }

    @classmethod
    def from_dict(cls, data: dict) -> LevelResult:
        return cls(scenarios=[Scenario.model_validate(s) for s in data.get("scenarios", [])])


@dataclass
class SubJob:
    job_id: str
    status: SubJobStatus
    input: dict
    created_at: str = field(default_factory=utc_now_iso)
    batch_id: str | None = None
    level: Literal["page", "module", "project"] = "page"
    results: LevelResult | None = None
    error: str | None = None
    completed_at: str | None = None


@dataclass
class BatchOptions:
    generate_page_level_tests: bool = True
    generate_module_level_tests: bool = False


@dataclass
class BatchSummary:
    pages_processed: list[str]
    coverage_stats: dict[str, int]
    feature_list: list[str]
    generated_at: str = field(default_factory=utc_now_iso)


@dataclass
class AggregationResults:
    total_pages: int
    total_scenarios: int
    deduplicated_count: int
    module_level_scenarios: list[Scenario]
    summary: BatchSummary

    def to_dict(self) -> dict:
        return {
            "total_pages": self.total_pages,
            "total_scenarios": self.total_scenarios,
            "deduplicated_count": self.deduplicated_count,
            "module_level_scenarios": [
                s.model_dump(mode="json") for s in self.module_level_scenarios
            ],
            "summary": {
                "pages_processed": self.summary.pages_processed,
                "coverage_stats": self.summary.coverage_stats,
                "feature_list": self.summary.feature_list,
                "generated_at": self.summary.generated_at,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> AggregationResults:
        summary = data["summary"]
        return cls(
            total_pages=data["total_pages"],
            total_scenarios=data["total_scenarios"],
            deduplicated_count=data["deduplicated_count"],
            module_level_scenarios=[
                Scenario.model_validate(s) for s in data["module_level_scenarios"]
            ],
            summary=BatchSummary(
                pages_processed=summary["pages_processed"],
                coverage_stats=summary["coverage_stats"],
                feature_list=summary["feature_list"],
                generated_at=summary["generated_at"],
            ),
        )


@dataclass
class BatchJob:
    batch_id: str
    status: BatchStatus
    options: BatchOptions
    sub_jobs: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None
    aggregation_results: AggregationResults | None = None
    error: str | None = None


# --- Hierarchy references (CRUD lives elsewhere) ---------------------------


@dataclass
class PageInput:
    page_id: str
    title: str
    name: str = ""
    description: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    parent_issue_id: str = ""
    version: str = "1"
    manual: ManualSource | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.title or self.page_id


@dataclass
class PageRef:
    page_id: str
    name: str = ""
    latest_job_id: str | None = None


@dataclass
class ModuleRef:
    module_id: str
    name: str
    pages: list[PageRef] = field(default_factory=list)
    latest_job_id: str | None = None


@dataclass
class ProjectRef:
    project_id: str
    name: str
    modules: list[ModuleRef] = field(default_factory=list)
    manual: ManualSource | None = None
    linked_document_manual: ManualSource | None = None


@dataclass
class SourceGroup:
    """Deduplicated scenarios of one page (module level) or one module (project level)."""

    group_id: str
    name: str
    scenarios: list[ScenarioWithSource]
