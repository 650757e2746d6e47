"""Fuzzy string similarity (Sorensen-Dice over character bigrams).

Whitespace is ignored and comparison is case-insensitive, so the measure is
symmetric and sim(a, a) == 1 for any a.
"""

from __future__ import annotations

from collections import Counter

from scenario_engine.config.constants import ALLOWED_TESTING_TERMS
from scenario_engine.text.keywords import extract_keywords


def _bigrams(text: str) -> Counter[str]:
    return Counter(text[i : i + 2] for i in range(len(text) - 1))


def dice_coefficient(first: str, second: str) -> float:
    a = "".join(first.split())
    b = "".join(second.split())
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    a_grams = _bigrams(a)
    b_grams = _bigrams(b)
    overlap = sum((a_grams & b_grams).values())
    return (2.0 * overlap) / (len(a) - 1 + len(b) - 1)


def calculate_similarity(first: str, second: str) -> float:
    return dice_coefficient(first.lower(), second.lower())


def any_similar(word: str, candidates: list[str], threshold: float) -> bool:
    return any(calculate_similarity(word, c) > threshold for c in candidates)


def contains_new_concepts(source_text: str, target_text: str, threshold: float = 0.3) -> bool:
    """True when too many of target's keywords have no close match in source."""
    source_keywords = extract_keywords(source_text)
    source_set = set(source_keywords)
    target_keywords = extract_keywords(target_text)

    new_keywords = [
        kw
        for kw in target_keywords
        if kw not in ALLOWED_TESTING_TERMS
        and kw not in source_set
        and not any_similar(kw, source_keywords, 0.8)
    ]
    ratio = len(new_keywords) / max(len(target_keywords), 1)
    return ratio > threshold
