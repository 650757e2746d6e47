"""SQLite-backed sub-job and batch store."""

from __future__ import annotations

import json
from dataclasses import asdict

import aiosqlite

from scenario_engine.models.domain import (
    AggregationResults,
    BatchJob,
    BatchOptions,
    LevelResult,
    SubJob,
)
from scenario_engine.storage.migrations import initialize_job_db


class SQLiteJobStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_job_db(self._db_path)

    async def put_job(self, job: SubJob) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO sub_jobs (job_id, batch_id, level, status, input, results, "
                "error, created_at, completed_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    job.job_id,
                    job.batch_id,
                    job.level,
                    job.status,
                    json.dumps(job.input),
                    json.dumps(job.results.to_dict()) if job.results is not None else None,
                    job.error,
                    job.created_at,
                    job.completed_at,
                ),
            )
            await db.commit()

    async def get_job(self, job_id: str) -> SubJob | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM sub_jobs WHERE job_id = ?", (job_id,)) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                return SubJob(
                    job_id=row["job_id"],
                    status=row["status"],
                    input=json.loads(row["input"]),
                    created_at=row["created_at"],
                    batch_id=row["batch_id"],
                    level=row["level"],
                    results=(
                        LevelResult.from_dict(json.loads(row["results"]))
                        if row["results"]
                        else None
                    ),
                    error=row["error"],
                    completed_at=row["completed_at"],
                )

    async def put_batch(self, batch: BatchJob) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO batch_jobs (batch_id, status, options, sub_jobs, "
                "aggregation_results, error, created_at, completed_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    batch.batch_id,
                    batch.status,
                    json.dumps(asdict(batch.options)),
                    json.dumps(batch.sub_jobs),
                    (
                        json.dumps(batch.aggregation_results.to_dict())
                        if batch.aggregation_results is not None
                        else None
                    ),
                    batch.error,
                    batch.created_at,
                    batch.completed_at,
                ),
            )
            await db.commit()

    async def get_batch(self, batch_id: str) -> BatchJob | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM batch_jobs WHERE batch_id = ?", (batch_id,)
            ) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                return BatchJob(
                    batch_id=row["batch_id"],
                    status=row["status"],
                    options=BatchOptions(**json.loads(row["options"])),
                    sub_jobs=json.loads(row["sub_jobs"]),
                    created_at=row["created_at"],
                    completed_at=row["completed_at"],
                    aggregation_results=(
                        AggregationResults.from_dict(json.loads(row["aggregation_results"]))
                        if row["aggregation_results"]
                        else None
                    ),
                    error=row["error"],
                )
