"""Tests for web search result parsing."""

import json

from roundtable.services.search import UNTITLED, format_sources, parse_search_results
from roundtable.workflow.state import Citation


def test_parse_json_results():
    raw = json.dumps({"results": [
        {"title": "A", "url": "https://a.example"},
        {"title": "", "url": "https://b.example"},
        {"title": "dup", "url": "https://a.example"},
        {"title": "no url"},
    ]})
    assert parse_search_results(raw) == [
        Citation(title="A", uri="https://a.example"),
        Citation(title=UNTITLED, uri="https://b.example"),
    ]


def test_parse_plain_text_results():
    raw = (
        "Title: 火影忍者\n"
        "URL: https://naruto.example\n"
        "Text: ...\n\n"
        "Title: 台積電\n"
        "URL: https://tsmc.example\n"
        "URL: https://naruto.example\n"
    )
    assert parse_search_results(raw) == [
        Citation(title="火影忍者", uri="https://naruto.example"),
        Citation(title="台積電", uri="https://tsmc.example"),
    ]


def test_url_without_title():
    assert parse_search_results("URL: https://x.example") == [
        Citation(title=UNTITLED, uri="https://x.example"),
    ]


def test_nothing_found():
    assert parse_search_results("no results") == []


def test_format_sources_lists_citations():
    block = format_sources([Citation(title="A", uri="https://a.example")], "raw text")
    assert "1. A" in block
    assert "https://a.example" in block
    assert "raw text" in block
