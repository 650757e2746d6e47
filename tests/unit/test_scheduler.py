"""Tests for the bounded-concurrency sub-job scheduler."""

import asyncio

import pytest

from scenario_engine.exceptions import ConfigurationError
from scenario_engine.models.domain import LevelResult, SubJob
from scenario_engine.pipeline.scheduler import CANCELLED_ERROR, SubJobScheduler


async def _seed(store, job_ids):
    for job_id in job_ids:
        await store.put_job(SubJob(job_id=job_id, status="processing", input={}))


def test_max_parallel_must_be_positive(memory_job_store):
    with pytest.raises(ConfigurationError):
        SubJobScheduler(memory_job_store, 0)


@pytest.mark.asyncio
async def test_failure_is_isolated_and_concurrency_bounded(memory_job_store, make_scenario):
    ids = [f"job-{i}" for i in range(5)]
    await _seed(memory_job_store, ids)
    running = 0
    peak = 0

    async def work(job: SubJob) -> LevelResult:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        if job.job_id == "job-2":
            raise RuntimeError("provider exploded")
        return LevelResult(scenarios=[make_scenario(job.job_id)])

    report = await SubJobScheduler(memory_job_store, 2).run(ids, work)

    assert sorted(report.completed) == ["job-0", "job-1", "job-3", "job-4"]
    assert report.failed == ["job-2"]
    assert peak <= 2
    assert report.peak_in_flight <= 2

    failed = await memory_job_store.get_job("job-2")
    assert failed.status == "failed"
    assert failed.error == "provider exploded"
    assert failed.completed_at is not None

    done = await memory_job_store.get_job("job-0")
    assert done.status == "completed"
    assert done.results.total_scenarios == 1
    assert done.results.scenarios[0].test_name == "job-0"


@pytest.mark.asyncio
async def test_limit_is_min_of_jobs_and_parallelism(memory_job_store):
    await _seed(memory_job_store, ["a", "b"])

    async def work(job: SubJob) -> LevelResult:
        await asyncio.sleep(0.01)
        return LevelResult()

    report = await SubJobScheduler(memory_job_store, 10).run(["a", "b"], work)
    assert report.peak_in_flight == 2
    assert sorted(report.completed) == ["a", "b"]


@pytest.mark.asyncio
async def test_missing_record_counts_as_failure(memory_job_store):
    calls = []

    async def work(job: SubJob) -> LevelResult:
        calls.append(job.job_id)
        return LevelResult()

    report = await SubJobScheduler(memory_job_store, 2).run(["ghost"], work)

    assert report.failed == ["ghost"]
    assert calls == []
    assert await memory_job_store.get_job("ghost") is None


@pytest.mark.asyncio
async def test_duplicate_ids_run_once(memory_job_store):
    await _seed(memory_job_store, ["a", "b"])
    calls = []

    async def work(job: SubJob) -> LevelResult:
        calls.append(job.job_id)
        return LevelResult()

    report = await SubJobScheduler(memory_job_store, 3).run(["a", "a", "b"], work)

    assert sorted(calls) == ["a", "b"]
    assert len(report.completed) == 2


@pytest.mark.asyncio
async def test_empty_run(memory_job_store):
    async def work(job: SubJob) -> LevelResult:
        raise AssertionError("no jobs to run")

    report = await SubJobScheduler(memory_job_store, 3).run([], work)
    assert report.completed == []
    assert report.failed == []


@pytest.mark.asyncio
async def test_cancel_stops_new_jobs(memory_job_store):
    ids = ["first", "second", "third"]
    await _seed(memory_job_store, ids)
    scheduler = SubJobScheduler(memory_job_store, 1)

    async def work(job: SubJob) -> LevelResult:
        scheduler.cancel()
        return LevelResult()

    report = await scheduler.run(ids, work)

    assert scheduler.cancel_requested
    assert report.completed == ["first"]
    assert report.cancelled == ["second", "third"]
    for job_id in ("second", "third"):
        job = await memory_job_store.get_job(job_id)
        assert job.status == "failed"
        assert job.error == CANCELLED_ERROR
