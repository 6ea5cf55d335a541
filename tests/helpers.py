"""Builders for synthetic raw pages used across the test suite."""
from readflow_lib.geometry import Rect, union_all
from readflow_lib.models import RawBlock, RawFont, RawLine, RawPage

LOREM = (
    "the quick brown fox jumps over the lazy dog while five wizards box "
    "and a sphinx of black quartz judges my vow"
).split()


def words(n, offset=0):
    return " ".join(LOREM[(offset + i) % len(LOREM)] for i in range(n))


def line(text, x, y, w, h=10.0, size=10.0, font="Times-Roman", wmode=0, weight="normal"):
    return RawLine(
        text=text,
        bbox=Rect(x, y, w, h),
        font=RawFont(name=font, family=font.split("-")[0], weight=weight, size=size),
        wmode=wmode,
    )


def block(*lines):
    return RawBlock("text", union_all(l.bbox for l in lines), tuple(lines))


def image(x, y, w, h):
    return RawBlock("image", Rect(x, y, w, h))


def paragraph(x, y, width, n_lines, size=10.0, leading=12.0, font="Times-Roman", offset=0):
    """A block of n full-width lines with fixed leading."""
    return block(
        *(
            line(words(8, offset + i), x, y + i * leading, width, size, size, font)
            for i in range(n_lines)
        )
    )


def page(*blocks, index=0, width=612.0, height=792.0, label=None):
    return RawPage(
        index=index,
        number=index + 1,
        width=width,
        height=height,
        blocks=tuple(blocks),
        label=label,
    )


def single_column_page(index=0, **kwargs):
    return page(
        paragraph(72, 100, 468, 10, offset=index),
        paragraph(72, 230, 468, 10, offset=index + 3),
        paragraph(72, 360, 468, 10, offset=index + 5),
        index=index,
        **kwargs,
    )


def two_column_page(index=0):
    return page(
        paragraph(72, 100, 220, 20, offset=1),
        paragraph(320, 100, 220, 20, offset=2),
        index=index,
    )
