"""Idempotent database schema creation."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

SUB_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS sub_jobs (
    job_id TEXT PRIMARY KEY,
    batch_id TEXT,
    level TEXT NOT NULL,
    status TEXT NOT NULL,
    input TEXT NOT NULL DEFAULT '{}',
    results TEXT,
    error TEXT,
    created_at TEXT NOT NULL,
    completed_at TEXT
)
"""

SUB_JOBS_BATCH_INDEX = """
CREATE INDEX IF NOT EXISTS idx_sub_jobs_batch_id ON sub_jobs(batch_id)
"""

BATCH_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS batch_jobs (
    batch_id TEXT PRIMARY KEY,
    status TEXT NOT NULL,
    options TEXT NOT NULL DEFAULT '{}',
    sub_jobs TEXT NOT NULL DEFAULT '[]',
    aggregation_results TEXT,
    error TEXT,
    created_at TEXT NOT NULL,
    completed_at TEXT
)
"""

CHUNKED_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS chunked_documents (
    document_id TEXT PRIMARY KEY,
    filename TEXT NOT NULL DEFAULT '',
    total_chars INTEGER NOT NULL,
    total_tokens INTEGER NOT NULL,
    chunked_at TEXT NOT NULL
)
"""

DOCUMENT_CHUNKS_TABLE = """
CREATE TABLE IF NOT EXISTS document_chunks (
    chunk_id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    section_path TEXT NOT NULL DEFAULT '[]',
    heading TEXT NOT NULL,
    content TEXT NOT NULL,
    char_count INTEGER NOT NULL,
    estimated_tokens INTEGER NOT NULL,
    keywords TEXT NOT NULL DEFAULT '[]',
    FOREIGN KEY (document_id) REFERENCES chunked_documents(document_id)
)
"""

DOCUMENT_CHUNKS_DOC_INDEX = """
CREATE INDEX IF NOT EXISTS idx_document_chunks_document_id ON document_chunks(document_id)
"""


def _ensure_parent(db_path: str) -> None:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)


async def initialize_job_db(db_path: str) -> None:
    _ensure_parent(db_path)
    async with aiosqlite.connect(db_path) as db:
        await db.execute(SUB_JOBS_TABLE)
        await db.execute(SUB_JOBS_BATCH_INDEX)
        await db.execute(BATCH_JOBS_TABLE)
        await db.commit()


async def initialize_chunk_db(db_path: str) -> None:
    _ensure_parent(db_path)
    async with aiosqlite.connect(db_path) as db:
        await db.execute(CHUNKED_DOCUMENTS_TABLE)
        await db.execute(DOCUMENT_CHUNKS_TABLE)
        await db.execute(DOCUMENT_CHUNKS_DOC_INDEX)
        await db.commit()
