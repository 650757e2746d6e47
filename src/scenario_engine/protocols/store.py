"""Protocols for the job and chunk stores. All writes are idempotent upserts."""

from __future__ import annotations

from typing import Protocol

from scenario_engine.models.domain import BatchJob, ChunkedDocument, SubJob


class JobStore(Protocol):
    async def get_job(self, job_id: str) -> SubJob | None: ...

    async def put_job(self, job: SubJob) -> None: ...

    async def get_batch(self, batch_id: str) -> BatchJob | None: ...

    async def put_batch(self, batch: BatchJob) -> None: ...


class ChunkStore(Protocol):
    async def get_chunked_document(self, document_key: str) -> ChunkedDocument | None: ...

    async def put_chunked_document(self, document: ChunkedDocument) -> None: ...
