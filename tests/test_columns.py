from readflow_lib.columns import (
    ColumnDetector,
    is_decorative_block,
    is_valid_line,
    page_is_broken,
)
from readflow_lib.config import ColumnOptions
from readflow_lib.geometry import Rect, contains, rects_intersect

from tests.helpers import block, line, page, paragraph


def _assert_disjoint(columns):
    for i, a in enumerate(columns):
        for b in columns[i + 1 :]:
            assert not rects_intersect(a, b)


def test_single_column_page_yields_one_column(single_column):
    layout = ColumnDetector().detect(single_column)
    assert layout.column_count == 1
    assert layout.columns[0] == Rect.from_ltrb(72, 100, 540, 478)
    assert not layout.is_broken
    assert layout.unassigned == []


def test_two_columns_read_left_then_right(two_columns):
    layout = ColumnDetector().detect(two_columns)
    assert [c.l for c in layout.columns] == [72, 320]
    _assert_disjoint(layout.columns)


def test_full_width_heading_precedes_columns():
    p = page(
        block(line("A Heading Spanning Both Columns", 72, 70, 468, 14, 14)),
        paragraph(72, 100, 220, 20, offset=1),
        paragraph(320, 100, 220, 20, offset=2),
    )
    layout = ColumnDetector().detect(p)
    assert [(c.l, c.t) for c in layout.columns] == [(72, 70), (72, 100), (320, 100)]
    _assert_disjoint(layout.columns)


def test_short_centered_heading_bridges_two_runs():
    p = page(
        paragraph(72, 100, 468, 5),
        block(line("Interlude", 200, 170, 200, 14, 14)),
        paragraph(72, 195, 468, 5, offset=3),
    )
    layout = ColumnDetector().detect(p)
    assert layout.columns == [Rect.from_ltrb(72, 100, 540, 253)]


def test_partially_overlapping_blocks_are_resolved():
    a = block(line("first block of body text", 72, 100, 300, 100))
    b = block(line("second block of body text", 200, 150, 300, 100))
    layout = ColumnDetector().detect(page(a, b))
    _assert_disjoint(layout.columns)
    for blk in (a, b):
        assert any(contains(c, blk.bbox, 1.0) for c in layout.columns)


def test_every_block_is_contained_or_reported(two_columns):
    layout = ColumnDetector().detect(two_columns)
    for blk in two_columns.blocks:
        contained = any(contains(c, blk.bbox, 1.0) for c in layout.columns)
        assert contained or blk.bbox in layout.unassigned


def test_margin_decorative_and_vertical_blocks_are_discarded():
    p = page(
        block(line("Running header text", 72, 10, 200, 9, 9)),
        block(line("●", 500, 300, 8)),
        block(line("Rotated sidebar text", 20, 200, 10, 200, wmode=1)),
        paragraph(72, 100, 400, 10),
    )
    layout = ColumnDetector().detect(p)
    assert len(layout.discarded) == 3
    assert layout.columns == [Rect.from_ltrb(72, 100, 472, 218)]


def test_page_without_text_has_no_columns():
    layout = ColumnDetector().detect(page())
    assert layout.columns == []
    assert not layout.is_broken


def test_broken_encoding_is_flagged():
    p = page(paragraph(72, 100, 468, 3), block(line("�" * 20, 72, 200, 200)))
    assert page_is_broken(p)
    layout = ColumnDetector().detect(p)
    assert layout.is_broken
    assert layout.column_count == 1


def test_line_validity_and_decoration():
    assert is_valid_line("ab")
    assert is_valid_line("a.b")
    assert not is_valid_line("a")
    assert not is_valid_line("---")
    assert not is_valid_line("   ")
    assert is_decorative_block(block(line("*****", 72, 100, 40)))
    assert is_decorative_block(block(line("x", 72, 100, 5, font="ZapfDingbats")))
    assert not is_decorative_block(block(line("Chapter One", 72, 100, 80)))


def test_long_stack_of_aligned_rects_joins_in_one_pass():
    stack = [Rect(72, 100 + i * 14, 200, 10) for i in range(25)]
    joined = ColumnDetector(ColumnOptions(max_passes=1))._join_adjacent(stack)
    assert joined == [Rect.from_ltrb(72, 100, 272, 446)]
