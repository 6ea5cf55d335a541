# --- readflow_lib/lines.py ---
"""
readflow_lib/lines.py: Groups the raw spans of one column into visual lines.
"""
import logging
import re
from dataclasses import dataclass, field, replace

from .config import LineOptions
from .geometry import Rect, median, overlap_ratio, sort_top_left, union_all, vertical_overlap

log = logging.getLogger("readflow.lines")

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class PageLine:
    """A visual line: spans left to right with their merged box and median size."""

    spans: list = field(default_factory=list)
    bbox: Rect | None = None
    text: str = ""
    font_size: float | None = None

    @classmethod
    def from_spans(cls, spans) -> "PageLine":
        ordered = sorted(spans, key=lambda s: s.bbox.l)
        return cls(
            spans=ordered,
            bbox=union_all(s.bbox for s in ordered),
            text=" ".join(s.text for s in ordered),
            font_size=median(s.size for s in ordered),
        )


@dataclass
class ColumnLines:
    column: Rect
    lines: list[PageLine]

    @property
    def texts(self):
        return [line.text for line in self.lines]


def clean_span_text(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


class LineBuilder:
    """Builds reading-order lines from the spans that fall inside a column."""

    def __init__(self, options: LineOptions | None = None):
        self.options = options or LineOptions()

    def build_for_page(self, page, columns) -> list[ColumnLines]:
        return [ColumnLines(col, self.build_for_column(page, col)) for col in columns]

    def build_for_column(self, page, column: Rect) -> list[PageLine]:
        spans = [
            line
            for line in page.iter_lines()
            if overlap_ratio(line.bbox, column) >= self.options.min_column_overlap
        ]
        return self.build_lines(spans)

    def build_lines(self, spans) -> list[PageLine]:
        """Groups spans into lines; an empty input yields an empty list."""
        cleaned = []
        for span in spans:
            text = clean_span_text(span.text)
            if text:
                cleaned.append(replace(span, text=text) if text != span.text else span)
        if not cleaned:
            return []

        ordered = sort_top_left(cleaned, lambda s: s.bbox)
        tolerance = self._vertical_tolerance(ordered)
        groups = self._group_by_top(ordered, tolerance)
        groups = self._split_wide_gaps(groups)
        lines = [PageLine.from_spans(g) for g in groups]
        lines = self._merge_overlapping(lines)
        log.debug(
            "  - %d spans -> %d lines (tolerance %.2f)", len(cleaned), len(lines), tolerance
        )
        return sort_top_left(lines, lambda line: line.bbox)

    def _vertical_tolerance(self, spans) -> float:
        base = self.options.base_tolerance
        size = median(s.size for s in spans if s.size)
        if not size:
            return base
        return min(max(0.25 * size, base), 2 * base)

    def _group_by_top(self, spans, tolerance):
        """Assigns each span to the closest line by median top, or starts a new one."""
        groups = []
        for span in spans:
            best, best_dist = None, None
            for group in groups:
                ref = median(s.bbox.t for s in group)
                dist = abs(span.bbox.t - ref)
                if dist <= tolerance and (best_dist is None or dist < best_dist):
                    best, best_dist = group, dist
            if best is None:
                groups.append([span])
            else:
                best.append(span)
        return groups

    def _split_wide_gaps(self, groups):
        result = []
        for group in groups:
            if len(group) <= 3:
                result.append(group)
                continue
            ordered = sorted(group, key=lambda s: s.bbox.l)
            gaps = [ordered[i + 1].bbox.l - ordered[i].bbox.r for i in range(len(ordered) - 1)]
            split_at = max(range(len(gaps)), key=lambda i: gaps[i])
            size = median(
                (s.size for s in ordered if s.size), self.options.fallback_font_size
            )
            if gaps[split_at] > self.options.gap_multiplier * size:
                log.debug("  - Splitting line at gap of %.1fpt", gaps[split_at])
                result.append(ordered[: split_at + 1])
                result.append(ordered[split_at + 1 :])
            else:
                result.append(group)
        return result

    def _merge_overlapping(self, lines):
        """Merges vertically overlapping lines (drop caps, sub/superscripts)."""
        lines = sorted(lines, key=lambda line: line.bbox.t)
        for n_pass in range(self.options.max_merge_passes):
            merged = self._merge_pass(lines)
            if len(merged) == len(lines):
                break
            log.debug("  - Merge pass %d: %d -> %d lines", n_pass + 1, len(lines), len(merged))
            lines = merged
        return lines

    def _merge_pass(self, lines):
        """One sweep that folds every overlapping later line into the current one."""
        used, result = set(), []
        for i, line in enumerate(lines):
            if i in used:
                continue
            current = line
            for j in range(i + 1, len(lines)):
                if j not in used and self._overlapping(current, lines[j]):
                    current = PageLine.from_spans(current.spans + lines[j].spans)
                    used.add(j)
            result.append(current)
        return result

    def _overlapping(self, a: PageLine, b: PageLine) -> bool:
        shorter = min(a.bbox.h, b.bbox.h)
        if shorter <= 0:
            return False
        if vertical_overlap(a.bbox, b.bbox) / shorter <= self.options.overlap_threshold:
            return False
        return self._gap_between(a, b) <= self._max_gap(a, b)

    @staticmethod
    def _gap_between(a: PageLine, b: PageLine) -> float:
        return max(a.bbox.l, b.bbox.l) - min(a.bbox.r, b.bbox.r)

    def _max_gap(self, a: PageLine, b: PageLine) -> float:
        # Halves produced by a gap split stay apart.
        size = median((a.font_size, b.font_size), self.options.fallback_font_size)
        return self.options.gap_multiplier * size
