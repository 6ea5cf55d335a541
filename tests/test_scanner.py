import pytest

from readflow_lib.config import MarginOptions
from readflow_lib.scanner import (
    REASON_PAGE_NUMBER,
    REASON_REPEAT,
    MarginScanner,
    is_page_number,
    margin_position,
    normalize_text,
    parse_page_number,
    parse_roman,
    to_roman,
)
from readflow_lib.geometry import Rect

from tests.helpers import block, image, line, page, paragraph


def _book(n, header=None, footer=None, skip_header=()):
    """n pages of body text; header/footer are callables of the page index."""
    pages = []
    for i in range(n):
        blocks = [paragraph(72, 100, 468, 10, offset=i)]
        if header and i not in skip_header:
            blocks.append(block(line(header(i), 200, 20, 200, 9, 9)))
        if footer:
            blocks.append(block(line(footer(i), 280, 760, 60, 9, 9)))
        pages.append(page(*blocks, index=i))
    return pages


def _texts(p):
    return [l.text for l in p.iter_lines()]


def test_header_on_most_pages_is_removed():
    pages = _book(50, header=lambda i: "Annual Report 2024", skip_header=(3, 17, 40))
    analysis, plan = MarginScanner().scan(pages)
    assert analysis.page_count == 50
    assert len(plan.candidates) == 1
    candidate = plan.candidates[0]
    assert candidate.reason == REASON_REPEAT
    assert candidate.position == "top"
    assert candidate.text == "annual report 2024"
    assert len(candidate.page_indices) == 47


def test_one_off_margin_line_is_never_removed():
    pages = _book(10)
    pages[3] = page(
        *pages[3].blocks, block(line("Errata: see insert", 72, 770, 120, 9, 9)), index=3
    )
    for threshold in (0.5, 0.0):
        scanner = MarginScanner(MarginOptions(repeat_threshold=threshold))
        _, plan = scanner.scan(pages)
        assert len(plan) == 0
        assert "Errata: see insert" in _texts(scanner.filter_page_with_plan(pages[3], plan))


def test_required_pages_never_below_two():
    assert MarginScanner(MarginOptions(repeat_threshold=0.0)).required_pages(10) == 2
    assert MarginScanner().required_pages(50) == 25
    assert MarginScanner().required_pages(7) == 4


def test_incrementing_folios_are_removed():
    pages = _book(10, footer=lambda i: str(i + 1))
    scanner = MarginScanner()
    _, plan = scanner.scan(pages)
    assert {c.reason for c in plan.candidates} == {REASON_PAGE_NUMBER}
    assert all(plan.removes(i, "bottom", str(i + 1)) for i in range(10))
    assert not plan.removes(0, "bottom", "2")

    filtered = scanner.filter_page_with_plan(pages[4], plan)
    assert "5" not in _texts(filtered)
    assert len(_texts(filtered)) == 10


def test_non_increasing_numbers_are_kept():
    pages = _book(6, footer=lambda i: str([3, 1, 4, 1, 5, 9][i]))
    _, plan = MarginScanner().scan(pages)
    assert len(plan) == 0


def test_running_sequence_with_changing_text_is_removed():
    pages = _book(8, header=lambda i: f"Chapter 2 - Section {i + 11}")
    scanner = MarginScanner()
    _, plan = scanner.scan(pages)
    assert len(plan) == 1
    assert plan.candidates[0].reason == REASON_PAGE_NUMBER
    assert plan.candidates[0].page_indices == list(range(8))
    for p in pages:
        assert not any("Chapter" in t for t in _texts(scanner.filter_page_with_plan(p, plan)))


def test_page_of_total_footer_is_removed():
    pages = _book(6, footer=lambda i: f"Page {i + 1} of 6")
    _, plan = MarginScanner().scan(pages)
    assert len(plan) > 0
    assert all(plan.removes(i, "bottom", f"page {i + 1} of 6") for i in range(6))


def test_strict_filter_drops_all_margin_lines():
    p = page(
        block(line("Unique header", 72, 10, 100, 9, 9)),
        block(line("Body line inside", 72, 100, 200), line("Footer part", 72, 770, 100, 9, 9)),
        image(0, 0, 612, 20),
    )
    filtered = MarginScanner().filter_page_by_margins(p)
    assert _texts(filtered) == ["Body line inside"]
    assert len(filtered.image_blocks()) == 1
    assert len(filtered.blocks) == 2
    # input page is left untouched
    assert len(_texts(p)) == 3


def test_smart_filter_keeps_non_repeating_margin_text():
    pages = _book(6, header=lambda i: "Running Title")
    pages[2] = page(
        *pages[2].blocks, block(line("Marginal note", 10, 300, 30, 9, 9)), index=2
    )
    scanner = MarginScanner()
    _, plan = scanner.scan(pages)
    texts = _texts(scanner.filter_page_with_plan(pages[2], plan))
    assert "Running Title" not in texts
    assert "Marginal note" in texts


def test_margin_position_priority():
    zone = MarginOptions().zone
    assert margin_position(Rect(10, 10, 20, 20), 612, 792, zone) == "top"
    assert margin_position(Rect(10, 760, 20, 20), 612, 792, zone) == "bottom"
    assert margin_position(Rect(10, 300, 20, 20), 612, 792, zone) == "left"
    assert margin_position(Rect(580, 300, 20, 20), 612, 792, zone) == "right"
    assert margin_position(Rect(100, 300, 20, 20), 612, 792, zone) is None


@pytest.mark.parametrize(
    "text, value",
    [("12", 12), ("Page 7", 7), ("p. 3", 3), ("4 of 20", 4), ("xiv", 14), ("IX", 9), ("iiii", None)],
)
def test_parse_page_number(text, value):
    assert parse_page_number(text) == value


def test_page_number_patterns_and_roman():
    assert is_page_number("  Page 12 ")
    assert is_page_number("3 / 10")
    assert not is_page_number("Chapter 3")
    assert parse_roman("mcmxc") == 1990
    assert to_roman(1990) == "mcmxc"
    assert normalize_text("  Two   Words\n") == "two words"
