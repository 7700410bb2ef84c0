"""Tests for HTML document extraction from assistant text."""

import pytest
from sitesmith.html_extract import extract_html


PAGE = "<!DOCTYPE html>\n<html>\n<body><h1>Hi</h1></body>\n</html>"


def test_fenced_block_returns_inner_text():
    """Fenced html block content is returned without the fences."""
    text = f"Here is your site:\n```html\n{PAGE}\n```\nEnjoy!"
    assert extract_html(text) == PAGE


def test_fenced_block_ignores_surrounding_prose():
    """Prose before and after the block does not matter."""
    first = extract_html(f"```html\n{PAGE}\n```")
    second = extract_html(f"Sure! I made it blue.\n\n```html\n{PAGE}\n```\n\nLet me know.")
    assert first == second == PAGE


def test_fenced_block_takes_precedence_over_raw_span():
    """A fenced block wins even when a raw document appears earlier."""
    other = "<!DOCTYPE html><html><p>old</p></html>"
    text = f"Before: {other}\n```html\n{PAGE}\n```"
    assert extract_html(text) == PAGE


def test_raw_doctype_span_inclusive():
    """Without a fence, the DOCTYPE...</html> span is returned with both markers."""
    text = f"Sure thing! {PAGE} Hope you like it."
    assert extract_html(text) == PAGE


def test_raw_span_ends_at_first_closing_tag():
    text = "<!DOCTYPE html><html>a</html> trailing </html>"
    assert extract_html(text) == "<!DOCTYPE html><html>a</html>"


def test_other_language_fence_is_not_html():
    """Only a fence tagged exactly 'html' counts."""
    text = "```htmlx\n<div>nope</div>\n```"
    assert extract_html(text) == ""


def test_no_markers_returns_empty():
    assert extract_html("Just a friendly answer with no code.") == ""
    assert extract_html("") == ""


@pytest.mark.parametrize(
    "partial",
    [
        "```html\n<!DOCTYPE html>\n<html><body>",
        "```ht",
        "<!DOCTYPE html><html><body>still streaming",
        "<!DOCTY",
        "```html\n",
    ],
)
def test_incomplete_input_returns_empty(partial):
    """Truncated blocks and spans are a normal streaming state, not an error."""
    assert extract_html(partial) == ""


def test_unclosed_fence_falls_back_to_complete_raw_span():
    """A complete document inside a still-open fence is already usable."""
    text = f"```html\n{PAGE}\n"
    assert extract_html(text) == PAGE


def test_doctype_marker_is_case_sensitive():
    assert extract_html("<!doctype html><html></html>") == ""


def test_extraction_is_idempotent_on_growing_text():
    """Re-running on longer text keeps returning the same document."""
    text = f"Intro ```html\n{PAGE}\n```"
    assert extract_html(text) == extract_html(text + " more words") == PAGE
