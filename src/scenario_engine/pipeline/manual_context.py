"""Reference-manual context for prompts.

Small manuals go in whole. Large ones are chunked once per document key and
only the most relevant chunks are used.
"""

from __future__ import annotations

import asyncio

from scenario_engine.config.settings import Settings
from scenario_engine.models.domain import (
    ChunkedDocument,
    ManualSource,
    RequirementRecord,
    ScenarioWithSource,
)
from scenario_engine.observability.logger import get_logger
from scenario_engine.protocols.chunker import Chunker
from scenario_engine.protocols.store import ChunkStore
from scenario_engine.scoring.relevance import RelevanceScorer

logger = get_logger("manual_context")


def requirements_from_scenarios(
    scenarios: list[ScenarioWithSource], limit: int
) -> list[RequirementRecord]:
    return [
        RequirementRecord(
            id=item.scenario.test_id,
            title=item.scenario.test_name,
            description=item.scenario.description,
            acceptance_criteria=[item.scenario.expected_result] if item.scenario.expected_result else [],
            affected_areas=[item.source_name] if item.source_name else [],
        )
        for item in scenarios[:limit]
    ]


class ManualContextResolver:
    def __init__(
        self,
        settings: Settings,
        chunker: Chunker,
        scorer: RelevanceScorer,
        chunk_store: ChunkStore,
    ) -> None:
        self._settings = settings
        self._chunker = chunker
        self._scorer = scorer
        self._chunk_store = chunk_store

    async def ensure_chunked(self, manual: ManualSource) -> ChunkedDocument | None:
        existing = await self._chunk_store.get_chunked_document(manual.document_key)
        if existing is not None:
            return existing
        if not manual.text and not manual.sections:
            return None
        document = await asyncio.to_thread(
            self._chunker.chunk,
            manual.text or "",
            manual.document_key,
            manual.sections,
            manual.filename,
        )
        await self._chunk_store.put_chunked_document(document)
        return document

    async def resolve(
        self, manual: ManualSource | None, requirements: list[RequirementRecord]
    ) -> str:
        if manual is None:
            return ""
        text = manual.text or ""
        if not manual.sections and not self._chunker.should_chunk(len(text)):
            return text

        document = await self.ensure_chunked(manual)
        if document is None:
            return ""
        selected = await self._scorer.select_for_document(
            manual.document_key, requirements, self._chunk_store
        )
        logger.info(
            "manual_context_selected",
            document_key=manual.document_key,
            chunks=len(selected),
            of=document.total_chunks,
        )
        return self._scorer.build_context(selected)

    async def resolve_first(
        self, manuals: list[ManualSource | None], requirements: list[RequirementRecord]
    ) -> str:
        """Context from the first manual that yields any, in the given order."""
        for manual in manuals:
            context = await self.resolve(manual, requirements)
            if context.strip():
                return context
        return ""
