"""Protocol for document chunking."""

from __future__ import annotations

from typing import Protocol

from scenario_engine.models.domain import ChunkedDocument, DocumentSection


class Chunker(Protocol):
    def chunk(
        self,
        text: str,
        document_key: str,
        sections: list[DocumentSection] | None = None,
        filename: str = "",
    ) -> ChunkedDocument: ...

    def should_chunk(self, text_length: int) -> bool: ...
