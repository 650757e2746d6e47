"""Pydantic models: generated scenarios, raw LLM payloads, and API request/response bodies."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ValidationStatus = Literal["validated", "needs_review", "failed", "dismissed"]


class TestStep(BaseModel):
    step_number: int
    action: str
    input: str = ""
    expected_result: str = ""


class Traceability(BaseModel):
    source_id: str
    source_version: str = "1"
    generated_at: str
    llm_model: str


class Scenario(BaseModel):
    test_id: str
    test_name: str
    description: str = ""
    test_type: str = "functional"
    scenario_classification: str = "happy_path"
    preconditions: list[str] = Field(default_factory=list)
    test_steps: list[TestStep] = Field(default_factory=list)
    expected_result: str = ""
    priority: str = "medium"
    tags: list[str] = Field(default_factory=list)
    parent_issue_id: str = ""
    traceability: Traceability
    validation_status: ValidationStatus = "validated"
    validation_notes: str | None = None


# --- Raw LLM payloads ----------------------------------------------------


class StrictStepPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step_number: int | None = None
    action: str
    input: str = ""
    expected_result: str = ""


class StrictScenarioPayload(BaseModel):
    """Exact shape requested from the provider. Anything else goes through alias mapping."""

    model_config = ConfigDict(extra="forbid")

    test_name: str
    description: str = ""
    test_type: Literal["functional", "regression", "smoke"]
    scenario_classification: Literal["happy_path", "negative", "edge_case"]
    preconditions: list[str] = Field(default_factory=list)
    test_steps: list[StrictStepPayload]
    expected_result: str = ""
    priority: Literal["critical", "high", "medium", "low"]


class StrictEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scenarios: list[dict]


class ScenarioPayload(BaseModel):
    """Decoded scenario before enrichment. Values are not enum-checked here."""

    test_name: str = ""
    description: str = ""
    test_type: str = ""
    scenario_classification: str = ""
    preconditions: list[str] = Field(default_factory=list)
    test_steps: list[TestStep] = Field(default_factory=list)
    expected_result: str = ""
    priority: str = ""


# --- API ------------------------------------------------------------------


class ManualSourceBody(BaseModel):
    document_key: str
    text: str | None = None
    filename: str = ""


class PageInputBody(BaseModel):
    page_id: str
    name: str = ""
    title: str
    description: str = ""
    acceptance_criteria: list[str] = Field(default_factory=list)
    parent_issue_id: str = ""
    version: str = "1"
    manual: ManualSourceBody | None = None


class BatchRequest(BaseModel):
    pages: list[PageInputBody]
    generate_page_level_tests: bool = True
    generate_module_level_tests: bool = False


class BatchAccepted(BaseModel):
    batch_id: str
    sub_jobs: list[str]
    status: str


class PageRefBody(BaseModel):
    page_id: str
    name: str = ""
    latest_job_id: str | None = None


class ModuleRefBody(BaseModel):
    module_id: str
    name: str
    pages: list[PageRefBody] = Field(default_factory=list)
    latest_job_id: str | None = None


class ModuleGenerateRequest(BaseModel):
    name: str
    pages: list[PageRefBody]
    max_tests: int | None = None


class ProjectGenerateRequest(BaseModel):
    name: str
    modules: list[ModuleRefBody]
    manual: ManualSourceBody | None = None
    linked_document_manual: ManualSourceBody | None = None
    max_tests: int | None = None


class CancelResponse(BaseModel):
    batch_id: str
    cancel_requested: bool


class LevelJobAccepted(BaseModel):
    job_id: str
    status: str


class Progress(BaseModel):
    total: int
    completed: int
    failed: int
    in_progress: int


class SubJobStatus(BaseModel):
    id: str
    status: str
    error: str | None = None
    results: dict | None = None


class BatchStatusResponse(BaseModel):
    batch_id: str
    status: str
    progress: Progress
    sub_jobs: list[SubJobStatus]
    aggregation_results: dict | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    provider: str
    provider_available: bool
    fallback_provider: str
