"""Tests for text normalization helpers used in admin listings."""

from sapsync.utils.text_normalizer import normalize_text, trim_words


def test_normalize_collapses_spaces_and_line_breaks():
    assert normalize_text("  a \t b\r\n\n\n\nc  ") == "a b\n\nc"


def test_trim_words_keeps_short_text():
    assert trim_words("Item not found", 15) == "Item not found"


def test_trim_words_cuts_and_appends_marker():
    text = "one two three four five"

    assert trim_words(text, 3) == "one two three…"
    assert trim_words(text, 3, more="...") == "one two three..."


def test_trim_words_flattens_multiline_errors():
    error = "SAP error -5002:\n\nItem 'A001'\r\nnot found"

    assert trim_words(error, 15) == "SAP error -5002: Item 'A001' not found"
