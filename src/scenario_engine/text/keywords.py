"""Keyword extraction used for cheap chunk/requirement matching."""

from __future__ import annotations

import re

from scenario_engine.config.constants import MIN_KEYWORD_LENGTH, STOPWORDS


def extract_keywords(text: str) -> list[str]:
    """Lowercase, strip non-alphanumerics, drop short words and stopwords. Unique, first-seen order."""
    text = text.lower()
    text = re.sub(r"[^a-z0-9\s]", " ", text)
    tokens = text.split()
    seen: dict[str, None] = {}
    for t in tokens:
        if len(t) >= MIN_KEYWORD_LENGTH and t not in STOPWORDS:
            seen.setdefault(t, None)
    return list(seen)


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())
