import random

import pytest

from readflow_lib.api import (
    _parse_page_selection,
    analyze_document_structure,
    check_text_layer,
    page_indices,
    process_document,
    rank_pages,
    search_document,
)
from readflow_lib.config import ExtractionOptions
from readflow_lib.extractor import DocumentExtractor
from readflow_lib.sources import MemoryPageSource

from tests.helpers import block, line, page, paragraph


@pytest.mark.parametrize(
    "pages_str, expected",
    [("1,3,5-7", {1, 3, 5, 6, 7}), ("all", None), ("", None), ("two", None)],
)
def test_parse_page_selection(pages_str, expected):
    assert _parse_page_selection(pages_str) == expected


def test_page_indices_are_zero_based_and_sorted():
    assert page_indices("4,1-2") == [0, 1, 3]
    assert page_indices("all") is None


def test_process_document_from_json(book_json):
    result = process_document(book_json, pages_str="2-4", rng=random.Random(0))
    assert [p.number for p in result.pages] == [2, 3, 4]
    assert "The Tale of Readflow" not in result.full_text


def test_analyze_document_structure(book_json):
    summary = analyze_document_structure(book_json, pages_str="1")
    assert summary == [
        {
            "page": 1,
            "label": None,
            "columns": 1,
            "blocks": 2,
            "broken": False,
            "char_count": summary[0]["char_count"],
        }
    ]
    assert summary[0]["char_count"] > 0


def test_check_text_layer(book_json, blank_json):
    assert not check_text_layer(book_json).needs_ocr
    verdict = check_text_layer(blank_json)
    assert verdict.needs_ocr
    assert verdict.primary_reason == "missing_text_content"


def test_search_document_ranks_pages(book_json):
    scored = search_document(book_json, "sphinx")
    assert scored
    assert [s.score for s in scored] == sorted((s.score for s in scored), reverse=True)
    assert all(h.role == "body" for s in scored for h in s.hits)


def test_missing_document(tmp_path):
    with pytest.raises(FileNotFoundError):
        process_document(str(tmp_path / "missing.pdf"))


def test_rank_pages_uses_configured_style_ratios():
    pages = [
        page(
            block(line("The Obsidian Gate", 72, 100, 200, 16, 16, font="Times-Bold")),
            paragraph(72, 130, 468, 10),
            index=0,
        ),
        page(paragraph(72, 100, 468, 10, offset=3), index=1),
    ]
    options = ExtractionOptions()
    default_roles = rank_pages(DocumentExtractor(MemoryPageSource(pages), options), "obsidian")
    assert default_roles[0].hits[0].role == "heading"

    options.styles.heading_ratio = 1.7
    tuned = rank_pages(DocumentExtractor(MemoryPageSource(pages), options), "obsidian")
    assert tuned[0].hits[0].role == "body"
