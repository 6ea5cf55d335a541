# --- readflow_lib/scorer.py ---
"""
readflow_lib/scorer.py: Ranks search results by where on the page each hit lands.

A hit in a heading counts for more than one in body text, which counts for
more than one in a caption or footnote.
"""
import logging
import math
from dataclasses import dataclass, field

from .config import ScoringOptions, StyleOptions
from .geometry import Rect, expand, intersection_area
from .styles import UNKNOWN, StyleProfiler

log = logging.getLogger("readflow.search")


@dataclass
class SearchHit:
    page_index: int
    bbox: Rect
    text: str = ""


@dataclass
class PageSearchResult:
    page_index: int
    hits: list[SearchHit] = field(default_factory=list)


@dataclass
class ScoredHit:
    hit: SearchHit
    role: str
    weight: float


@dataclass
class ScoredPage:
    page_index: int
    score: float
    raw_score: float
    text_length: int
    hits: list[ScoredHit] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "pageIndex": self.page_index,
            "score": round(self.score, 6),
            "rawScore": self.raw_score,
            "hits": [{"role": h.role, "weight": h.weight, "text": h.hit.text} for h in self.hits],
        }


def find_hits(pages, query: str) -> list[PageSearchResult]:
    """Case-insensitive line-level search producing one hit per matching line."""
    needle = (query or "").strip().lower()
    if not needle:
        return []
    results = []
    for page in pages:
        hits = [
            SearchHit(page.index, line.bbox, line.text)
            for line in page.iter_lines()
            if needle in (line.text or "").lower()
        ]
        if hits:
            results.append(PageSearchResult(page.index, hits))
    return results


class SearchScorer:
    """Scores per-page search results against a document's style profile."""

    def __init__(
        self,
        pages,
        profile=None,
        options: ScoringOptions | None = None,
        role_weights=None,
        styles: StyleOptions | None = None,
    ):
        self.options = options or ScoringOptions()
        self.pages = {p.index: p for p in pages}
        self.profiler = StyleProfiler(styles)
        self.profile = profile or self.profiler.build_profile(pages)
        self.weights = {**self.options.role_weights, **(role_weights or {})}
        self._text_lengths = {
            idx: sum(len(line.text or "") for line in page.iter_lines())
            for idx, page in self.pages.items()
        }

    def locate_line(self, hit: SearchHit):
        """The raw line overlapping the hit the most, within the match tolerance."""
        page = self.pages.get(hit.page_index)
        if page is None:
            return None
        reach = expand(hit.bbox, self.options.match_tolerance)
        best, best_area = None, 0.0
        for line in page.iter_lines():
            shared = intersection_area(reach, line.bbox)
            if shared > best_area:
                best, best_area = line, shared
        return best

    def score_hit(self, hit: SearchHit) -> ScoredHit:
        line = self.locate_line(hit)
        role = UNKNOWN if line is None else self.profiler.classify_line(line, self.profile)
        weight = self.weights.get(role, self.weights.get(UNKNOWN, 0.0))
        return ScoredHit(hit, role, weight)

    def score_page_result(self, result: PageSearchResult) -> ScoredPage:
        opts = self.options
        scored = [self.score_hit(hit) for hit in result.hits]
        raw = sum(h.weight for h in scored)
        length = self._text_lengths.get(result.page_index, 0)
        score = raw * opts.base_multiplier
        floor = max(length, opts.min_text_length)
        if opts.normalize_by_length and floor > 0:
            score /= math.sqrt(floor)
        return ScoredPage(result.page_index, score, raw, length, scored)

    def score_page_results(self, results) -> list[ScoredPage]:
        scored = [self.score_page_result(r) for r in results]
        scored.sort(key=lambda s: s.score, reverse=True)
        log.debug(
            "  - Scored %d page(s); best: %s",
            len(scored),
            f"page {scored[0].page_index} ({scored[0].score:.3f})" if scored else "none",
        )
        return scored
