# --- readflow_lib/columns.py ---
"""
readflow_lib/columns.py: Detects column rectangles on a page and sorts them into
reading order.

Detection runs in phases over an arena of rectangles (a plain list addressed
by index):
  1. filter text blocks (margins, vertical text, decorative content)
  2. merge blocks into column accumulators
  3. snap edges and join vertically adjacent accumulators
  4. collapse short "bridge" rectangles into the runs around them
  5. sort the result into reading order
Merges that would make the result intersect a third rectangle are rejected.
"""
import logging
import re
from dataclasses import dataclass, field

from .config import ColumnOptions
from .geometry import (
    Rect,
    contains,
    horizontally_contained,
    rects_equal,
    rects_intersect,
    same_edges,
    sort_top_left,
    union,
    union_all,
    x_overlap_ratio,
)

log = logging.getLogger("readflow.columns")

REPLACEMENT_CHAR = "�"
SYMBOL_FONTS = ("zapfdingbats", "symbol", "wingdings", "webdings")
PLOT_MARKERS = frozenset("●○◆◇■□▲△▼▽★☆+x*")
_ALNUM_RE = re.compile(r"[^\W_]")


@dataclass
class ColumnLayout:
    """Detected columns in reading order plus diagnostics."""

    columns: list[Rect] = field(default_factory=list)
    is_broken: bool = False
    discarded: list[Rect] = field(default_factory=list)
    unassigned: list[Rect] = field(default_factory=list)

    @property
    def column_count(self) -> int:
        return len(self.columns)


def page_is_broken(page, sample_len=2000, run_len=16, ratio=0.5) -> bool:
    """Flags pages whose text is mostly replacement characters (bad font encoding)."""
    text = "".join(line.text + " " for line in page.iter_lines())
    sample = text[:sample_len]
    if not sample:
        return False
    if sample.count(REPLACEMENT_CHAR) / len(sample) >= ratio:
        return True
    return REPLACEMENT_CHAR * run_len in sample


def count_alnum(text: str) -> int:
    return len(_ALNUM_RE.findall(text))


def is_valid_line(text: str) -> bool:
    """A line carries signal if it has 2+ alphanumerics, or 1 within 3+ chars."""
    if not text or text.isspace():
        return False
    alnum = count_alnum(text)
    return alnum >= 2 or (alnum >= 1 and len(text) >= 3)


def _is_decorative_line(line) -> bool:
    text = line.text or ""
    font = line.font
    if font and any(name in font.name.lower() for name in SYMBOL_FONTS):
        return True
    if text.strip() in PLOT_MARKERS:
        return True
    if font and font.size is not None and font.size < 8:
        if len(text) <= 3 and not count_alnum(text):
            return True
    if len(text) >= 2 and not count_alnum(text[0]) and text == text[0] * len(text):
        return True
    return False


def is_decorative_block(block) -> bool:
    """True when every line is a symbol, marker or other low-signal fragment."""
    return bool(block.lines) and all(_is_decorative_line(line) for line in block.lines)


class ColumnDetector:
    """Builds reading-order column rectangles for one margin-filtered page."""

    def __init__(self, options: ColumnOptions | None = None):
        self.options = options or ColumnOptions()

    def detect(self, page) -> ColumnLayout:
        opts = self.options
        is_broken = page_is_broken(
            page, opts.broken_sample_length, opts.broken_run_length, opts.broken_ratio
        )
        if is_broken:
            log.warning("Page %d appears broken (font encoding issues).", page.number)

        blocks, discarded = self._filter_blocks(page)
        if not blocks:
            return ColumnLayout(is_broken=is_broken, discarded=discarded)

        rects = self._merge_blocks(blocks)
        rects = self._join_adjacent(rects)
        log.debug("  - Page %d: %d rects after join", page.number, len(rects))
        rects = self._merge_bridges(rects)
        rects = self._resolve_overlaps(rects)
        columns = self._sort_reading_order(rects)

        unassigned = [
            b
            for b in blocks
            if not any(contains(c, b, opts.containment_tolerance) for c in columns)
        ]
        if unassigned:
            log.debug("  - Page %d: %d unassigned block(s)", page.number, len(unassigned))
        log.debug(
            "  - Page %d: %d column(s)%s",
            page.number,
            len(columns),
            " [BROKEN]" if is_broken else "",
        )
        for i, col in enumerate(columns):
            log.debug(
                "    Column %d: x=%.0f, y=%.0f, w=%.0f, h=%.0f", i + 1, col.x, col.y, col.w, col.h
            )
        return ColumnLayout(columns, is_broken, discarded, unassigned)

    # --- PHASE 1: FILTER ---
    def _filter_blocks(self, page):
        top = self.options.header_margin
        bottom = page.height - self.options.footer_margin
        kept, discarded = [], []
        for block in page.text_blocks():
            if not block.lines:
                continue
            rect = block.bbox
            if rect.b < top or rect.t > bottom:
                discarded.append(rect)
                continue
            if is_decorative_block(block) or block.lines[0].is_vertical:
                discarded.append(rect)
                continue
            valid = union_all(
                line.bbox
                for line in block.lines
                if is_valid_line(line.text) and line.bbox.b >= top and line.bbox.t <= bottom
            )
            if valid is None:
                discarded.append(rect)
                continue
            kept.append(valid)
        return sort_top_left(kept), discarded

    # --- PHASE 2: MERGE ---
    def _can_merge(self, a: Rect, b: Rect) -> bool:
        if a.r < b.l or b.r < a.l:
            return False
        if same_edges(a, b, self.options.edge_tolerance):
            return True
        contained = (a.l <= b.l and a.r >= b.r) or (b.l <= a.l and b.r >= a.r)
        widest = max(a.w, b.w)
        width_ratio = min(a.w, b.w) / widest if widest > 0 else 1.0
        return contained and width_ratio > 0.8

    def _merge_blocks(self, blocks):
        tol = self.options.edge_tolerance
        arena = [blocks[0]]
        merged_into = {0: 0}
        for idx, block in enumerate(blocks[1:], start=1):
            target = None
            for j, acc in enumerate(arena):
                if not self._can_merge(block, acc):
                    continue
                candidate = union(acc, block)
                if any(k != j and rects_intersect(candidate, o) for k, o in enumerate(arena)):
                    continue
                arena[j] = candidate
                target = j
                break
            if target is None:
                arena.append(block)
                target = len(arena) - 1
            merged_into[idx] = target
        sizes = [list(merged_into.values()).count(k) for k in range(len(arena))]
        log.debug("  - Merge: %d blocks -> %d accumulators %s", len(blocks), len(arena), sizes)

        unique = []
        for rect in arena:
            if not any(rects_equal(rect, u, tol) for u in unique):
                unique.append(rect)

        # Rectangles ending on the same baseline read left to right.
        result, i = [], 0
        while i < len(unique):
            j = i + 1
            while j < len(unique) and abs(unique[j].b - unique[i].b) <= tol:
                j += 1
            result.extend(sorted(unique[i:j], key=lambda r: r.l))
            i = j
        return result

    # --- PHASE 3: JOIN & NORMALIZE ---
    def _snap_edges(self, rects):
        tol = self.options.edge_tolerance
        rects = list(rects)
        for i in range(len(rects)):
            cur = rects[i]
            left = min([o.l for o in rects if abs(o.l - cur.l) <= tol] + [cur.l])
            right = max([o.r for o in rects if abs(o.r - cur.r) <= tol] + [cur.r])
            rects[i] = Rect(left, cur.y, right - left, cur.h)
        return rects

    def _vertically_adjacent(self, a: Rect, b: Rect) -> bool:
        gap_below = b.t - a.b
        gap_above = a.t - b.b
        max_gap = self.options.max_vertical_gap
        return 0 <= gap_below <= max_gap or 0 <= gap_above <= max_gap

    def _joinable(self, rects, i, j) -> bool:
        a, b = rects[i], rects[j]
        if not same_edges(a, b, self.options.edge_tolerance):
            return False
        if not self._vertically_adjacent(a, b):
            return False
        joined = union(a, b)
        return not any(
            k not in (i, j) and rects_intersect(joined, o) for k, o in enumerate(rects)
        )

    def _join_adjacent(self, rects):
        rects = self._snap_edges(rects)
        for n_pass in range(self.options.max_passes):
            joined = self._join_pass(rects)
            if len(joined) == len(rects):
                break
            log.debug("  - Join pass %d: %d -> %d rects", n_pass + 1, len(rects), len(joined))
            rects = joined
        return rects

    def _join_pass(self, rects):
        rects = list(rects)
        i = 0
        while i < len(rects):
            j = i + 1
            while j < len(rects):
                if self._joinable(rects, i, j):
                    rects[i] = union(rects[i], rects[j])
                    del rects[j]
                else:
                    j += 1
            i += 1
        return rects

    # --- PHASE 4: BRIDGES ---
    def _closest_above(self, ordered, index, used):
        block = ordered[index]
        for i in range(index - 1, -1, -1):
            if i in used:
                continue
            candidate = ordered[i]
            if candidate.b > block.t:
                continue
            if block.t - candidate.b > self.options.bridge_vertical_gap:
                return None
            return i
        return None

    def _closest_below(self, ordered, index, used):
        block = ordered[index]
        for i in range(index + 1, len(ordered)):
            if i in used:
                continue
            candidate = ordered[i]
            if candidate.t < block.b:
                continue
            if candidate.t - block.b > self.options.bridge_vertical_gap:
                return None
            return i
        return None

    def _is_bridge(self, bridge: Rect, above: Rect, below: Rect) -> bool:
        tol = self.options.edge_tolerance
        overlaps_both = (
            x_overlap_ratio(bridge, above) >= 0.5 and x_overlap_ratio(bridge, below) >= 0.5
        )
        wider = above if above.w >= below.w else below
        if not (overlaps_both or horizontally_contained(bridge, wider, tol)):
            return False
        same_left = abs(above.l - below.l) <= tol
        same_right = abs(above.r - below.r) <= tol
        return same_left or (same_right and x_overlap_ratio(above, below) >= 0.7)

    def _merge_bridges_once(self, rects):
        ordered = sorted(rects, key=lambda r: r.t)
        used, merged = set(), []
        for i, block in enumerate(ordered):
            if i in used or block.h > self.options.max_bridge_height:
                continue
            above = self._closest_above(ordered, i, used)
            below = self._closest_below(ordered, i, used)
            if above is None or below is None:
                continue
            if not self._is_bridge(block, ordered[above], ordered[below]):
                continue
            candidate = union(union(ordered[above], block), ordered[below])
            group = (i, above, below)
            if any(
                k not in group and k not in used and rects_intersect(candidate, o)
                for k, o in enumerate(ordered)
            ):
                continue
            used.update(group)
            merged.append(candidate)
        return [r for k, r in enumerate(ordered) if k not in used] + merged

    def _merge_bridges(self, rects):
        if len(rects) < 3:
            return rects
        for n_pass in range(self.options.max_passes):
            result = self._merge_bridges_once(rects)
            if len(result) == len(rects):
                break
            log.debug("  - Bridge pass %d: %d -> %d rects", n_pass + 1, len(rects), len(result))
            rects = result
        return rects

    # --- POST-CONDITION: NO OVERLAPS ---
    def _resolve_overlaps(self, rects):
        """Unions any intersecting pair until the set is pairwise disjoint."""
        rects = list(rects)
        while True:
            pair = next(
                (
                    (i, j)
                    for i in range(len(rects))
                    for j in range(i + 1, len(rects))
                    if rects_intersect(rects[i], rects[j])
                ),
                None,
            )
            if pair is None:
                return rects
            i, j = pair
            log.debug("  - Resolving overlap between column rects %d and %d", i, j)
            rects[i] = union(rects[i], rects[j])
            del rects[j]

    # --- PHASE 5: READING ORDER ---
    def _sort_key(self, block: Rect, rects):
        def is_left_neighbor(other):
            if other.r >= block.l:
                return False
            if block.b < other.t or other.b < block.t:
                return False
            return other.area >= block.area * 0.15 and other.w >= 50

        neighbors = [o for o in rects if o is not block and is_left_neighbor(o)]
        if neighbors:
            closest = max(neighbors, key=lambda o: o.r)
            return Rect(block.l, closest.t, 0, 0)
        return Rect(block.l, block.t, 0, 0)

    def _sort_reading_order(self, rects):
        keyed = [(self._sort_key(r, rects), r) for r in rects]
        return [r for _, r in sort_top_left(keyed, lambda item: item[0])]
