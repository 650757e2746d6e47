"""SQLite-backed store for chunked reference documents."""

from __future__ import annotations

import json

import aiosqlite

from scenario_engine.models.domain import Chunk, ChunkedDocument
from scenario_engine.storage.migrations import initialize_chunk_db


class SQLiteChunkStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_chunk_db(self._db_path)

    async def put_chunked_document(self, document: ChunkedDocument) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO chunked_documents (document_id, filename, total_chars, "
                "total_tokens, chunked_at) VALUES (?, ?, ?, ?, ?)",
                (
                    document.document_id,
                    document.filename,
                    document.total_chars,
                    document.total_tokens,
                    document.chunked_at,
                ),
            )
            await db.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document.document_id,)
            )
            await db.executemany(
                "INSERT OR REPLACE INTO document_chunks (chunk_id, document_id, chunk_index, "
                "section_path, heading, content, char_count, estimated_tokens, keywords) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        c.chunk_id,
                        c.document_id,
                        i,
                        json.dumps(list(c.section_path)),
                        c.heading,
                        c.content,
                        c.char_count,
                        c.estimated_tokens,
                        json.dumps(list(c.keywords)),
                    )
                    for i, c in enumerate(document.chunks)
                ],
            )
            await db.commit()

    async def get_chunked_document(self, document_key: str) -> ChunkedDocument | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM chunked_documents WHERE document_id = ?", (document_key,)
            ) as cursor:
                doc_row = await cursor.fetchone()
                if doc_row is None:
                    return None
            async with db.execute(
                "SELECT * FROM document_chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_key,),
            ) as cursor:
                rows = await cursor.fetchall()

        return ChunkedDocument(
            document_id=doc_row["document_id"],
            filename=doc_row["filename"],
            chunks=tuple(self._row_to_chunk(row) for row in rows),
            total_chars=doc_row["total_chars"],
            total_tokens=doc_row["total_tokens"],
            chunked_at=doc_row["chunked_at"],
        )

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
        return Chunk(
            chunk_id=row["chunk_id"],
            document_id=row["document_id"],
            section_path=tuple(json.loads(row["section_path"])),
            heading=row["heading"],
            content=row["content"],
            char_count=row["char_count"],
            estimated_tokens=row["estimated_tokens"],
            keywords=tuple(json.loads(row["keywords"])),
        )
