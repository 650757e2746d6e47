"""Relevance scoring of manual chunks against target requirements.

score = w_heading * heading_match + w_content * content_match
content_match = w_keyword * keyword_overlap + w_text * text_similarity
"""

from __future__ import annotations

from scenario_engine.config.settings import Settings
from scenario_engine.models.domain import Chunk, RelevanceScore, RequirementRecord, ScoredChunk
from scenario_engine.observability.logger import get_logger
from scenario_engine.observability.metrics import log_chunk_selection
from scenario_engine.protocols.store import ChunkStore
from scenario_engine.text.keywords import extract_keywords
from scenario_engine.text.similarity import any_similar, calculate_similarity

logger = get_logger("relevance")


class RelevanceScorer:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self.w_heading = settings.relevance_w_heading
        self.w_content = settings.relevance_w_content
        self.w_keyword = settings.relevance_w_keyword
        self.w_text = settings.relevance_w_text
        self.keyword_threshold = settings.keyword_match_threshold
        self.prefix_chars = settings.relevance_text_prefix_chars

    def score_chunk(self, chunk: Chunk, requirement: RequirementRecord) -> RelevanceScore:
        requirement_text = requirement.as_text()
        requirement_keywords = extract_keywords(requirement_text)

        heading_keywords = extract_keywords(chunk.heading)
        heading_hits = self._matched(heading_keywords, requirement_keywords)
        heading_match = len(heading_hits) / len(heading_keywords) if heading_keywords else 0.0

        chunk_hits = self._matched(list(chunk.keywords), requirement_keywords)
        keyword_overlap = len(chunk_hits) / len(chunk.keywords) if chunk.keywords else 0.0

        text_similarity = calculate_similarity(
            chunk.content[: self.prefix_chars], requirement_text[: self.prefix_chars]
        )

        content_match = self.w_keyword * keyword_overlap + self.w_text * text_similarity
        score = self.w_heading * heading_match + self.w_content * content_match
        score = max(0.0, min(1.0, score))

        matched = list(dict.fromkeys(heading_hits + chunk_hits))
        return RelevanceScore(
            chunk_id=chunk.chunk_id,
            score=score,
            matched_keywords=matched,
            heading_match=heading_match,
            content_match=content_match,
        )

    def score_chunks(
        self, chunks: list[Chunk], requirements: list[RequirementRecord]
    ) -> list[ScoredChunk]:
        """Score each chunk against every requirement and keep the best."""
        scored: list[ScoredChunk] = []
        for chunk in chunks:
            best: RelevanceScore | None = None
            for requirement in requirements:
                current = self.score_chunk(chunk, requirement)
                if best is None or current.score > best.score:
                    best = current
            if best is None:
                best = RelevanceScore(
                    chunk_id=chunk.chunk_id,
                    score=0.0,
                    matched_keywords=[],
                    heading_match=0.0,
                    content_match=0.0,
                )
            scored.append(ScoredChunk(chunk=chunk, relevance=best))
        return scored

    @staticmethod
    def select(
        scored: list[ScoredChunk],
        max_tokens: int,
        min_score: float,
        max_chunks: int,
    ) -> list[ScoredChunk]:
        """Greedy budgeted selection; a chunk that would overflow is skipped, not a stop."""
        candidates = [s for s in scored if s.relevance.score >= min_score]
        candidates = sorted(candidates, key=lambda s: s.relevance.score, reverse=True)

        selected: list[ScoredChunk] = []
        total = 0
        for candidate in candidates:
            if len(selected) >= max_chunks:
                break
            tokens = candidate.chunk.estimated_tokens
            if total + tokens > max_tokens:
                continue
            selected.append(candidate)
            total += tokens
        return selected

    @staticmethod
    def build_context(selected: list[ScoredChunk]) -> str:
        parts = []
        for s in selected:
            percent = round(s.relevance.score * 100)
            parts.append(
                f"### {s.chunk.heading}\n[Relevance: {percent}%]\n\n{s.chunk.content}"
            )
        return "\n\n---\n\n".join(parts)

    async def select_for_document(
        self,
        document_key: str,
        requirements: list[RequirementRecord],
        chunk_store: ChunkStore,
    ) -> list[ScoredChunk]:
        document = await chunk_store.get_chunked_document(document_key)
        if document is None or not document.chunks:
            logger.warning("no_chunks_for_document", document_key=document_key)
            return []

        scored = self.score_chunks(list(document.chunks), requirements)
        selected = self.select(
            scored,
            max_tokens=self._settings.max_context_tokens,
            min_score=self._settings.min_relevance_score,
            max_chunks=self._settings.max_chunks_per_request,
        )
        log_chunk_selection(
            document_key=document_key,
            candidates=len(scored),
            selected=len(selected),
            total_tokens=sum(s.chunk.estimated_tokens for s in selected),
            top_scores=[s.relevance.score for s in selected],
        )
        return selected

    def _matched(self, words: list[str], requirement_keywords: list[str]) -> list[str]:
        return [w for w in words if any_similar(w, requirement_keywords, self.keyword_threshold)]
