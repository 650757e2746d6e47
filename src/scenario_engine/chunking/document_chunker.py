"""Heading-scoped, token-bounded chunker for large reference documents."""

from __future__ import annotations

import re

from scenario_engine.chunking.tokens import TokenCounter, create_token_counter
from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import ChunkingError
from scenario_engine.models.domain import Chunk, ChunkedDocument, DocumentSection, utc_now_iso
from scenario_engine.observability.logger import get_logger
from scenario_engine.text.keywords import extract_keywords

logger = get_logger("chunker")

_HEADING = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)
_SENTENCE_END = re.compile(r"[.!?]\s+")

# (section_path, heading, content)
_RawChunk = tuple[tuple[str, ...], str, str]


def make_chunk_id(document_key: str, index: int) -> str:
    return f"{document_key}_chunk_{index:04d}"


def split_at_boundaries(text: str, max_chars: int, overlap_chars: int) -> list[str]:
    """Split text into windows of at most max_chars, preferring natural breaks.

    Within the last 20% of a window, break at a paragraph, else at a sentence end
    followed by an uppercase letter, else at the last space past the window's midpoint.
    Consecutive windows overlap by overlap_chars.
    """
    if max_chars <= 0:
        raise ChunkingError("max_chars must be positive")

    pieces: list[str] = []
    pos = 0
    n = len(text)
    while pos < n:
        end = pos + max_chars
        if end >= n:
            pieces.append(text[pos:].strip())
            break

        break_point = end
        search_start = pos + int(max_chars * 0.8)
        window = text[search_start:end]

        paragraph = window.rfind("\n\n")
        if paragraph != -1:
            break_point = search_start + paragraph + 2
        else:
            sentence_end = None
            for match in _SENTENCE_END.finditer(window):
                nxt = search_start + match.end()
                if nxt < n and text[nxt].isupper():
                    sentence_end = nxt
            if sentence_end is not None:
                break_point = sentence_end
            else:
                last_space = text.rfind(" ", pos, end)
                if last_space != -1 and last_space - pos > max_chars * 0.5:
                    break_point = last_space + 1

        pieces.append(text[pos:break_point].strip())

        next_pos = break_point - overlap_chars
        pos = next_pos if next_pos > pos else break_point

    return [p for p in pieces if p]


class DocumentChunker:
    def __init__(self, settings: Settings, token_counter: TokenCounter | None = None) -> None:
        self._settings = settings
        self._counter = token_counter or create_token_counter(settings)

    def should_chunk(self, text_length: int) -> bool:
        return text_length > self._settings.max_direct_context_chars

    def chunk(
        self,
        text: str,
        document_key: str,
        sections: list[DocumentSection] | None = None,
        filename: str = "",
    ) -> ChunkedDocument:
        if not document_key:
            raise ChunkingError("document_key is required for deterministic chunk ids")

        raw: list[_RawChunk] = []
        if sections:
            for section in sections:
                self._walk(section, (), raw)
        else:
            derived = self._split_by_headings(text)
            if derived:
                for parent_path, section in derived:
                    self._walk(section, parent_path, raw)
            elif text.strip():
                self._window_raw_text(text, raw)

        chunks = tuple(
            self._make_chunk(document_key, i, path, heading, content)
            for i, (path, heading, content) in enumerate(raw)
        )
        chunked = ChunkedDocument(
            document_id=document_key,
            filename=filename,
            chunks=chunks,
            total_chars=sum(c.char_count for c in chunks),
            total_tokens=sum(c.estimated_tokens for c in chunks),
            chunked_at=utc_now_iso(),
        )
        logger.info(
            "document_chunked",
            document_id=document_key,
            chunks=len(chunks),
            total_tokens=chunked.total_tokens,
        )
        return chunked

    def _walk(
        self, section: DocumentSection, parent_path: tuple[str, ...], out: list[_RawChunk]
    ) -> None:
        path = (*parent_path, section.heading)
        content = section.content.strip()
        heading = section.heading or (parent_path[-1] if parent_path else "Untitled")

        if content:
            if self._counter.count(content) <= self._settings.chunk_max_tokens:
                out.append((path, heading, content))
            else:
                windows = self._fit_windows(content, self._settings.chunk_max_tokens)
                total = len(windows)
                for i, window in enumerate(windows, 1):
                    sub_heading = f"{heading} (part {i}/{total})" if total > 1 else heading
                    out.append(((*path, f"part {i}"), sub_heading, window))

        for sub in section.subsections:
            self._walk(sub, path, out)

    def _fit_windows(
        self, content: str, max_tokens: int, max_chars: int | None = None
    ) -> list[str]:
        """Window content so that no window counts more than max_tokens.

        Windows start at max_tokens * chars_per_token characters; any window the
        counter still puts over the limit is re-split at a proportionally smaller size.
        """
        overlap = self._settings.chunk_overlap_tokens * self._settings.chars_per_token
        if max_chars is None:
            max_chars = max_tokens * self._settings.chars_per_token
        else:
            overlap = min(overlap, max_chars // 4)
        fitted: list[str] = []
        for window in split_at_boundaries(content, max_chars, overlap):
            tokens = self._counter.count(window)
            if tokens <= max_tokens or len(window) <= 1:
                fitted.append(window)
                continue
            # Strictly smaller than the window so recursion terminates
            smaller = max(1, min(len(window) * max_tokens // tokens, len(window) - 1))
            fitted.extend(self._fit_windows(window, max_tokens, smaller))
        return fitted

    def _window_raw_text(self, text: str, out: list[_RawChunk]) -> None:
        windows = split_at_boundaries(
            text,
            self._settings.chunk_target_tokens * self._settings.chars_per_token,
            self._settings.chunk_overlap_tokens * self._settings.chars_per_token,
        )
        for i, window in enumerate(windows, 1):
            heading = f"Section {i}"
            out.append(((heading,), heading, window))

    def _make_chunk(
        self, document_key: str, index: int, path: tuple[str, ...], heading: str, content: str
    ) -> Chunk:
        return Chunk(
            chunk_id=make_chunk_id(document_key, index),
            document_id=document_key,
            section_path=path,
            heading=heading,
            content=content,
            char_count=len(content),
            estimated_tokens=self._counter.count(content),
            keywords=tuple(extract_keywords(heading + " " + content)),
        )

    @staticmethod
    def _split_by_headings(text: str) -> list[tuple[tuple[str, ...], DocumentSection]]:
        """Split text by markdown headings into (parent_path, section) pairs. Empty if no headings."""
        matches = list(_HEADING.finditer(text))
        if not matches:
            return []

        sections: list[tuple[tuple[str, ...], DocumentSection]] = []
        preamble = text[: matches[0].start()]
        if preamble.strip():
            sections.append(((), DocumentSection(heading="Overview", content=preamble)))

        heading_stack: list[str] = []
        for i, match in enumerate(matches):
            level = len(match.group(1))
            title = match.group(2).strip()
            heading_stack = heading_stack[: level - 1] + [title]
            body_end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            body = text[match.end() : body_end]
            if body.strip():
                sections.append(
                    (tuple(heading_stack[:-1]), DocumentSection(heading=title, content=body))
                )
        return sections
