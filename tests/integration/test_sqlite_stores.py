"""Integration tests for SQLite job and chunk stores."""

import pytest

from scenario_engine.models.domain import (
    AggregationResults,
    BatchJob,
    BatchOptions,
    BatchSummary,
    Chunk,
    ChunkedDocument,
    LevelResult,
    SubJob,
)


def _chunk(index: int, document_id: str = "manual") -> Chunk:
    return Chunk(
        chunk_id=f"{document_id}_chunk_{index:04d}",
        document_id=document_id,
        section_path=("Users", f"part {index}"),
        heading=f"Users (part {index})",
        content=f"Content {index}",
        char_count=9,
        estimated_tokens=3,
        keywords=("users", "content"),
    )


@pytest.mark.asyncio
async def test_put_and_get_job(job_store, make_scenario):
    job = SubJob(
        job_id="job-1",
        status="completed",
        input={"page_id": "p1", "acceptance_criteria": ["a", "b"]},
        batch_id="batch-1",
        results=LevelResult(scenarios=[make_scenario("Login")]),
        completed_at="2026-01-01T00:00:00+00:00",
    )
    await job_store.put_job(job)

    retrieved = await job_store.get_job("job-1")

    assert retrieved is not None
    assert retrieved.input == job.input
    assert retrieved.batch_id == "batch-1"
    assert retrieved.level == "page"
    assert retrieved.results.scenarios[0].test_name == "Login"
    assert retrieved.results.scenarios[0].test_steps[0].step_number == 1


@pytest.mark.asyncio
async def test_put_job_replaces_record(job_store):
    await job_store.put_job(SubJob(job_id="job-1", status="processing", input={}))
    await job_store.put_job(
        SubJob(job_id="job-1", status="failed", input={}, error="provider down")
    )

    retrieved = await job_store.get_job("job-1")

    assert retrieved.status == "failed"
    assert retrieved.error == "provider down"
    assert retrieved.results is None


@pytest.mark.asyncio
async def test_get_missing_job(job_store):
    assert await job_store.get_job("missing") is None
    assert await job_store.get_batch("missing") is None


@pytest.mark.asyncio
async def test_put_and_get_batch(job_store, make_scenario):
    batch = BatchJob(
        batch_id="batch-1",
        status="completed",
        options=BatchOptions(generate_page_level_tests=True, generate_module_level_tests=True),
        sub_jobs=["job-1", "job-2"],
        aggregation_results=AggregationResults(
            total_pages=2,
            total_scenarios=3,
            deduplicated_count=1,
            module_level_scenarios=[make_scenario("Cross page")],
            summary=BatchSummary(
                pages_processed=["p1", "p2"],
                coverage_stats={"happy_path": 3},
                feature_list=["Login"],
            ),
        ),
    )
    await job_store.put_batch(batch)

    retrieved = await job_store.get_batch("batch-1")

    assert retrieved.options.generate_module_level_tests is True
    assert retrieved.sub_jobs == ["job-1", "job-2"]
    results = retrieved.aggregation_results
    assert results.deduplicated_count == 1
    assert results.module_level_scenarios[0].test_name == "Cross page"
    assert results.summary.pages_processed == ["p1", "p2"]
    assert results.summary.generated_at == batch.aggregation_results.summary.generated_at


@pytest.mark.asyncio
async def test_put_and_get_chunked_document(chunk_store):
    document = ChunkedDocument(
        document_id="manual",
        filename="manual.md",
        chunks=tuple(_chunk(i) for i in range(3)),
        total_chars=27,
        total_tokens=9,
        chunked_at="2026-01-01T00:00:00+00:00",
    )
    await chunk_store.put_chunked_document(document)

    retrieved = await chunk_store.get_chunked_document("manual")

    assert retrieved == document
    assert retrieved.total_chunks == 3


@pytest.mark.asyncio
async def test_rechunking_replaces_old_chunks(chunk_store):
    first = ChunkedDocument("manual", "", tuple(_chunk(i) for i in range(3)), 27, 9, "t1")
    second = ChunkedDocument("manual", "", (_chunk(0),), 9, 3, "t2")
    await chunk_store.put_chunked_document(first)
    await chunk_store.put_chunked_document(second)

    retrieved = await chunk_store.get_chunked_document("manual")

    assert retrieved.total_chunks == 1
    assert retrieved.chunked_at == "t2"


@pytest.mark.asyncio
async def test_missing_chunked_document(chunk_store):
    assert await chunk_store.get_chunked_document("nope") is None
