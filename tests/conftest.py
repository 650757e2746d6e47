"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import copy
import json
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest

from scenario_engine.config.constants import JSON_ONLY_SUFFIX
from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import GenerationError
from scenario_engine.models.domain import (
    BatchJob,
    ChatMessage,
    ChunkedDocument,
    GenerationOptions,
    GenerationProfile,
    ProviderResult,
    ScenarioWithSource,
    SubJob,
    TokenUsage,
)
from scenario_engine.models.schemas import Scenario, TestStep, Traceability
from scenario_engine.storage.sqlite_chunk_store import SQLiteChunkStore
from scenario_engine.storage.sqlite_job_store import SQLiteJobStore


class FakeProvider:
    """Scripted provider. Each call pops the next response (str or Exception)."""

    def __init__(
        self,
        responses: list | None = None,
        default: str | None = None,
        name: str = "fake",
        delay: float = 0.0,
        usage: TokenUsage | None = None,
    ) -> None:
        self.name = name
        self.responses = list(responses or [])
        self.default = default
        self.delay = delay
        self.usage = usage or TokenUsage()
        self.calls: list[tuple[list[ChatMessage], GenerationOptions]] = []

    @classmethod
    def is_available(cls, settings: Settings) -> bool:
        return True

    def primary_profile(self) -> GenerationProfile:
        return GenerationProfile(name="primary", model="fake-model", temperature=0.3, max_tokens=1000)

    def fallback_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="fallback",
            model="fake-model",
            temperature=0.0,
            max_tokens=1000,
            system_prompt_suffix=JSON_ONLY_SUFFIX,
        )

    async def generate(
        self, messages: list[ChatMessage], options: GenerationOptions
    ) -> ProviderResult:
        self.calls.append((messages, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default
        else:
            raise GenerationError("no scripted response left")
        if isinstance(response, Exception):
            raise response
        return ProviderResult(content=response, model="fake-model", usage=self.usage)


class InMemoryJobStore:
    def __init__(self) -> None:
        self.jobs: dict[str, SubJob] = {}
        self.batches: dict[str, BatchJob] = {}

    async def get_job(self, job_id: str) -> SubJob | None:
        job = self.jobs.get(job_id)
        return copy.deepcopy(job) if job is not None else None

    async def put_job(self, job: SubJob) -> None:
        self.jobs[job.job_id] = copy.deepcopy(job)

    async def get_batch(self, batch_id: str) -> BatchJob | None:
        batch = self.batches.get(batch_id)
        return copy.deepcopy(batch) if batch is not None else None

    async def put_batch(self, batch: BatchJob) -> None:
        self.batches[batch.batch_id] = copy.deepcopy(batch)


class InMemoryChunkStore:
    def __init__(self) -> None:
        self.documents: dict[str, ChunkedDocument] = {}
        self.puts = 0

    async def get_chunked_document(self, document_key: str) -> ChunkedDocument | None:
        return self.documents.get(document_key)

    async def put_chunked_document(self, document: ChunkedDocument) -> None:
        self.puts += 1
        self.documents[document.document_id] = document


def build_scenario(
    name: str = "Login with valid credentials",
    steps: list[str] | None = None,
    description: str = "",
    classification: str = "happy_path",
    source_id: str = "page-1",
) -> Scenario:
    steps = steps if steps is not None else ["Open the login page and enter valid credentials"]
    return Scenario(
        test_id=str(uuid4()),
        test_name=name,
        description=description,
        test_type="functional",
        scenario_classification=classification,
        preconditions=["User account exists"],
        test_steps=[TestStep(step_number=i, action=a) for i, a in enumerate(steps, 1)],
        expected_result="User sees the dashboard",
        priority="high",
        traceability=Traceability(
            source_id=source_id, generated_at="2026-01-01T00:00:00+00:00", llm_model="fake-model"
        ),
    )


def scenario_item(name: str, steps: list[str], classification: str = "happy_path") -> dict:
    return {
        "test_name": name,
        "description": f"{name} description",
        "test_type": "functional",
        "scenario_classification": classification,
        "preconditions": ["User is logged in"],
        "test_steps": [
            {"step_number": i, "action": a, "input": "", "expected_result": "ok"}
            for i, a in enumerate(steps, 1)
        ],
        "expected_result": "Flow completes",
        "priority": "high",
    }


def scenarios_json(*items: dict) -> str:
    return json.dumps({"scenarios": list(items)})


@pytest.fixture
def settings():
    """Test settings with temp paths and no retry delay."""
    tmp = tempfile.mkdtemp()
    return Settings(
        _env_file=None,
        sqlite_db_path=str(Path(tmp) / "test_scenarios.db"),
        reports_dir=str(Path(tmp) / "reports"),
        provider_retry_base_s=0.0,
        provider_timeout_s=5.0,
    )


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def make_scenario():
    return build_scenario


@pytest.fixture
def make_item():
    return scenario_item


@pytest.fixture
def to_json():
    return scenarios_json


@pytest.fixture
def make_sourced(make_scenario):
    def _make(name: str, source_id: str = "page-1", job_id: str = "job-1", **kwargs):
        return ScenarioWithSource(
            scenario=make_scenario(name, **kwargs),
            source_id=source_id,
            source_job_id=job_id,
            source_name=source_id,
        )

    return _make


@pytest.fixture
def memory_job_store():
    return InMemoryJobStore()


@pytest.fixture
def memory_chunk_store():
    return InMemoryChunkStore()


@pytest.fixture
async def job_store(settings):
    store = SQLiteJobStore(settings.sqlite_db_path)
    await store.initialize()
    return store


@pytest.fixture
async def chunk_store(settings):
    store = SQLiteChunkStore(settings.sqlite_db_path)
    await store.initialize()
    return store


@pytest.fixture
def tmp_dir():
    """Create a temporary directory."""
    return tempfile.mkdtemp()
