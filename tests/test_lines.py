from readflow_lib.config import LineOptions
from readflow_lib.geometry import Rect
from readflow_lib.lines import LineBuilder, clean_span_text

from tests.helpers import line, words


def test_empty_input_yields_no_lines():
    assert LineBuilder().build_lines([]) == []
    assert LineBuilder().build_lines([line("   ", 72, 100, 20)]) == []


def test_spans_on_the_same_baseline_form_one_line():
    spans = [
        line("world", 150, 100.5, 30),
        line("Hello", 72, 100, 30),
        line("brave", 110, 101, 30),
        line("Next line here", 72, 115, 90),
    ]
    lines = LineBuilder().build_lines(spans)
    assert [l.text for l in lines] == ["Hello brave world", "Next line here"]
    assert lines[0].bbox == Rect.from_ltrb(72, 100, 180, 111)
    assert lines[0].font_size == 10


def test_no_text_is_lost_or_duplicated(single_column):
    spans = list(single_column.iter_lines())
    lines = LineBuilder().build_lines(spans)
    assert [l.text for l in lines] == [s.text for s in spans]


def test_wide_gap_splits_a_line():
    spans = [
        line("alpha", 72, 100, 20),
        line("beta", 95, 100, 20),
        line("gamma", 118, 100, 20),
        line("delta", 400, 100, 20),
    ]
    lines = LineBuilder().build_lines(spans)
    assert [l.text for l in lines] == ["alpha beta gamma", "delta"]


def test_subscript_is_merged_into_its_line():
    spans = [
        line("CO", 72, 100, 14),
        line("gas", 95, 100, 20),
        line("2", 87, 104, 5, h=7, size=6),
    ]
    lines = LineBuilder().build_lines(spans)
    assert [l.text for l in lines] == ["CO 2 gas"]


def test_whitespace_is_normalized():
    assert clean_span_text("  spaced \t out\n") == "spaced out"
    lines = LineBuilder().build_lines([line("  two   words ", 72, 100, 60)])
    assert lines[0].text == "two words"


def test_column_restricts_spans(two_columns):
    builder = LineBuilder()
    left = Rect(72, 100, 220, 238)
    lines = builder.build_for_column(two_columns, left)
    assert len(lines) == 20
    assert all(l.bbox.r <= 292 for l in lines)

    per_column = builder.build_for_page(two_columns, [left, Rect(320, 100, 220, 238)])
    assert [len(c.lines) for c in per_column] == [20, 20]
    assert per_column[0].texts[0] == words(8, 1)
    assert per_column[1].texts[0] == words(8, 2)


def test_every_superscript_in_a_long_column_is_merged():
    spans = []
    for i in range(25):
        top = 100 + i * 14
        spans.append(line(words(6, i), 72, top, 200))
        spans.append(line(str(i + 1), 273, top - 4, 6, h=9, size=6))
    lines = LineBuilder().build_lines(spans)
    assert len(lines) == 25
    assert [l.text for l in lines] == [f"{words(6, i)} {i + 1}" for i in range(25)]

    single_pass = LineBuilder(LineOptions(max_merge_passes=1)).build_lines(spans)
    assert len(single_pass) == 25
