# --- readflow_lib/paragraphs.py ---
"""
readflow_lib/paragraphs.py: Groups the lines of each column into paragraphs and headers.

Break decisions combine four visual signals measured against thresholds that
adapt to the page (line height, typical gap) and to each column (the usual
left and right edges and how much they wander):

  - a vertical gap noticeably larger than the usual one
  - an indented first line
  - a previous line that stopped well short of the right edge
  - a change in font size

Lines set in a non-body style that stands out from the primary body style
become headers.
"""
import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field

from .config import ParagraphOptions
from .geometry import Rect, median, union_all
from .styles import TextStyle, extract_style

log = logging.getLogger("readflow.paragraphs")

PARAGRAPH = "paragraph"
HEADER = "header"

_HYPHEN_BREAK_RE = re.compile(r"([a-zA-Z])-\n+([a-zA-Z])")
_LABEL_RE = re.compile(
    r"^\s*(?:fig(?:ure)?|tab(?:le)?|eq(?:uation)?)\s*\.?\s+[A-Z]?\d{1,3}[a-z]?", re.IGNORECASE
)


@dataclass
class ContentItem:
    """A paragraph or header with its place in the page content."""

    kind: str
    index: int
    page_index: int
    column_index: int
    text: str
    bbox: Rect
    start: int = 0
    end: int = 0
    doc_index: int = 0

    @property
    def is_header(self) -> bool:
        return self.kind == HEADER

    @property
    def item_id(self) -> str:
        prefix = "header" if self.is_header else "para"
        return f"{prefix}_p{self.page_index}_{self.index}"

    def to_dict(self) -> dict:
        return {
            "id": self.item_id,
            "type": self.kind,
            "idx": self.index,
            "docIdx": self.doc_index,
            "column": self.column_index,
            "start": self.start,
            "end": self.end,
            "bbox": self.bbox.to_dict(),
            "text": self.text,
        }


@dataclass
class PageParagraphs:
    page_index: int
    content: str = ""
    items: list[ContentItem] = field(default_factory=list)

    @property
    def paragraph_count(self) -> int:
        return sum(1 for item in self.items if not item.is_header)

    @property
    def header_count(self) -> int:
        return sum(1 for item in self.items if item.is_header)


@dataclass(frozen=True)
class PageThresholds:
    median_height: float
    median_gap: float
    gap_threshold: float
    bin_px: float


@dataclass(frozen=True)
class ColumnThresholds:
    left_mode: float
    right_mode: float
    left_mad: float
    right_mad: float
    indent_threshold: float
    early_end_threshold: float


# --- HELPERS ---
def mad(values) -> float:
    """Median absolute deviation; 0 for an empty input."""
    values = list(values)
    if not values:
        return 0.0
    center = median(values)
    return median(abs(v - center) for v in values) or 0.0


def edge_mode(values, bin_px: float) -> float:
    """The most populated edge position, as the median of its bin."""
    values = list(values)
    if not values:
        return 0.0

    def bin_of(v):
        return math.floor(v / bin_px + 0.5)

    mode_bin = Counter(bin_of(v) for v in values).most_common(1)[0][0]
    return median(v for v in values if bin_of(v) == mode_bin)


def is_mostly_numeric(text: str, threshold: float = 0.8) -> bool:
    letters = sum(1 for c in text if c.isascii() and c.isalpha())
    digits = sum(1 for c in text if c.isdigit())
    total = letters + digits
    return total > 0 and digits / total >= threshold


def join_lines(texts, remove_hyphenation: bool = True) -> str:
    """Joins line texts with spaces, optionally gluing words split by a line-end hyphen."""
    text = "\n".join(texts)
    if remove_hyphenation:
        text = _HYPHEN_BREAK_RE.sub(r"\1\2", text)
    text = re.sub(r"\n+", " ", text)
    return re.sub(r" +", " ", text).strip()


def line_style(line) -> TextStyle | None:
    """The style of a line's first span, which stands for the whole line."""
    if not line.spans:
        return None
    return extract_style(line.spans[0])


def style_dominance(line, style: TextStyle) -> float:
    if not line.spans:
        return 0.0
    return sum(1 for s in line.spans if extract_style(s) == style) / len(line.spans)


class ParagraphDetector:
    """Splits the lines of each column into paragraph and header items."""

    def __init__(self, options: ParagraphOptions | None = None):
        self.options = options or ParagraphOptions()

    # --- THRESHOLDS ---
    def page_thresholds(self, column_lines) -> PageThresholds:
        opts = self.options
        heights = [line.bbox.h for cl in column_lines for line in cl.lines if line.bbox.h > 0]
        median_height = median(heights, opts.fallback_line_height)
        bin_px = max(2.0, 0.15 * median_height)

        gaps = []
        for cl in column_lines:
            for prev, line in zip(cl.lines, cl.lines[1:]):
                gap = line.bbox.t - prev.bbox.b
                # Skip section breaks and overlapping lines.
                if -5 < gap < opts.max_line_gap:
                    gaps.append(gap)
        median_gap = median(gaps, 0.0)

        if gaps:
            increase = max(1.0, 0.08 * median_height)
            gap_threshold = max(
                opts.min_gap, median_gap + increase, median_gap * 1.25, 0.4 * median_height
            )
        else:
            gap_threshold = max(opts.min_gap, 0.6 * median_height)
        return PageThresholds(median_height, median_gap, gap_threshold, bin_px)

    def column_thresholds(self, lines, page_thr: PageThresholds) -> ColumnThresholds:
        opts = self.options
        lefts = [line.bbox.l for line in lines]
        rights = [line.bbox.r for line in lines]
        left_mode = edge_mode(lefts, page_thr.bin_px)
        right_mode = edge_mode(rights, page_thr.bin_px)
        left_mad, right_mad = mad(lefts), mad(rights)
        return ColumnThresholds(
            left_mode,
            right_mode,
            left_mad,
            right_mad,
            indent_threshold=max(
                opts.min_indent, opts.indent_sigma * left_mad, 0.35 * page_thr.median_height
            ),
            early_end_threshold=max(
                opts.min_excess,
                opts.early_end_sigma * right_mad,
                0.2 * (right_mode - left_mode),
            ),
        )

    # --- HEADERS ---
    def is_header_style(self, line, profile, preceded_by_gap: bool | None = None) -> bool:
        """
        Whether a line looks like a header against the document's body styles.

        Larger text always qualifies. Body-sized or smaller bold text, and
        body-sized italic text, qualify only in a different font and, when
        `preceded_by_gap` is given, only after a gap break.
        """
        body_styles = profile.body_styles if profile is not None else ()
        if not body_styles:
            return False
        style = line_style(line)
        if style is None or style in body_styles:
            return False
        if style_dominance(line, style) < 0.9:
            return False

        primary = profile.primary
        gap_ok = preceded_by_gap is None or preceded_by_gap
        other_font = style.font != primary.font
        if style.size > primary.size:
            candidate = True
        elif not (gap_ok and other_font):
            candidate = False
        elif style.size == primary.size:
            candidate = (style.bold and not primary.bold) or (style.italic and not primary.italic)
        else:
            candidate = style.bold and not primary.bold
        if not candidate:
            return False

        text = line.text.strip()
        if _LABEL_RE.match(text):
            return False
        if len(text) < self.options.min_header_length:
            return False
        # "(12)" is an equation number.
        if text.startswith("(") and text.endswith(")") and any(c.isdigit() for c in text):
            return False
        return not is_mostly_numeric(text)

    # --- BREAKS ---
    def starts_new_item(self, line, prev, col_thr, page_thr, profile) -> bool:
        if prev is None:
            return True
        opts = self.options
        gap_break = line.bbox.t - prev.bbox.b > page_thr.gap_threshold

        if self.is_header_style(line, profile, gap_break):
            # A run of same-styled header lines stays one header.
            if not self.is_header_style(prev, profile):
                return True
            return line_style(line) != line_style(prev)

        indent_break = (
            line.bbox.l - col_thr.left_mode > col_thr.indent_threshold
            and line.bbox.l - prev.bbox.l > col_thr.indent_threshold / 2
        )
        early_end_break = (
            col_thr.right_mode - prev.bbox.r > col_thr.early_end_threshold
            and col_thr.right_mode - line.bbox.r <= col_thr.early_end_threshold
        )
        size_break = False
        if line.font_size and prev.font_size:
            size_break = (
                abs(line.font_size - prev.font_size) > opts.font_size_tolerance
                and abs(line.bbox.h - prev.bbox.h) > opts.font_size_tolerance
            )
        return gap_break or indent_break or early_end_break or size_break

    # --- ITEMS ---
    def _build_item(self, lines, profile, page_index, column_index, counts):
        text = join_lines((line.text for line in lines), self.options.remove_hyphenation)
        is_header = (
            all(self.is_header_style(line, profile) for line in lines)
            and len(text) < self.options.max_header_length
        )
        kind = HEADER if is_header else PARAGRAPH
        item = ContentItem(
            kind=kind,
            index=counts[kind],
            page_index=page_index,
            column_index=column_index,
            text=f"## {text}" if is_header else text,
            bbox=union_all(line.bbox for line in lines),
        )
        counts[kind] += 1
        return item

    def detect(self, column_lines, profile, page_index: int = 0) -> PageParagraphs:
        """
        Builds the paragraph and header items of one page.

        `column_lines` holds the lines of each column in reading order. Items
        keep that order; the page content joins them with blank lines and
        prefixes headers with "## ".
        """
        result = PageParagraphs(page_index)
        page_thr = self.page_thresholds(column_lines)
        counts = Counter()
        items = []
        for column_index, cl in enumerate(column_lines):
            if not cl.lines:
                continue
            col_thr = self.column_thresholds(cl.lines, page_thr)
            current = []
            for i, line in enumerate(cl.lines):
                prev = cl.lines[i - 1] if i else None
                if current and self.starts_new_item(line, prev, col_thr, page_thr, profile):
                    items.append(
                        self._build_item(current, profile, page_index, column_index, counts)
                    )
                    current = []
                current.append(line)
            items.append(self._build_item(current, profile, page_index, column_index, counts))

        parts, offset = [], 0
        for item in items:
            if parts:
                offset += 2
            item.start, item.end = offset, offset + len(item.text)
            offset = item.end
            parts.append(item.text)
        result.content = "\n\n".join(parts)
        result.items = items
        log.debug(
            "  - Page %d: %d paragraph(s), %d header(s)",
            page_index + 1,
            result.paragraph_count,
            result.header_count,
        )
        return result


def assign_document_indices(pages):
    """Numbers the items of pages in reading order, per kind, across the document."""
    counts = Counter()
    for page in pages:
        for item in page.paragraphs:
            item.doc_index = counts[item.kind]
            counts[item.kind] += 1
