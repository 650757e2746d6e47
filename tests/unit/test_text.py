"""Tests for keyword extraction and bigram similarity."""

from scenario_engine.text.keywords import extract_keywords, normalize_whitespace
from scenario_engine.text.similarity import (
    any_similar,
    calculate_similarity,
    contains_new_concepts,
    dice_coefficient,
)


def test_extract_keywords_filters_short_and_stopwords():
    keywords = extract_keywords("The Login button, and User-Profile page! Should work.")
    assert keywords == ["login", "button", "user", "profile", "page", "work"]


def test_extract_keywords_unique_in_first_seen_order():
    assert extract_keywords("export report export summary report") == ["export", "report", "summary"]


def test_normalize_whitespace():
    assert normalize_whitespace("  a \n\t b  ") == "a b"


def test_similarity_identity():
    for text in ["", "a", "login page", "Invoice export with totals"]:
        assert calculate_similarity(text, text) == 1.0


def test_similarity_symmetric():
    pairs = [
        ("login page", "log in pages"),
        ("export invoices", "import invoices"),
        ("abc", "xyz"),
    ]
    for a, b in pairs:
        assert calculate_similarity(a, b) == calculate_similarity(b, a)


def test_similarity_ignores_whitespace_and_case():
    assert calculate_similarity("Open  The Page", "open the\npage") == 1.0


def test_similarity_bounds():
    assert calculate_similarity("night", "nacht") < 0.5
    assert 0.0 <= calculate_similarity("login", "logout") <= 1.0
    assert dice_coefficient("a", "b") == 0.0


def test_any_similar():
    assert any_similar("invoices", ["invoice", "report"], 0.7)
    assert not any_similar("weather", ["invoice", "report"], 0.7)


def test_contains_new_concepts():
    source = "Users can export invoices as PDF from the billing page."
    assert not contains_new_concepts(source, "Export invoices from billing page as PDF")
    assert contains_new_concepts(source, "Configure satellite telemetry uplink frequency")
