# --- readflow_lib/scanner.py ---
"""
readflow_lib/scanner.py: Contains the MarginScanner for running header, footer
and folio detection.

Smart removal is a document-wide judgment: margin-zone lines are collected from
every page first, and only text that repeats (verbatim, or as an incrementing
number sequence) is removed afterwards.
"""
import logging
import math
import re
from collections import defaultdict
from dataclasses import dataclass, field

from .config import MarginOptions, Margins

log = logging.getLogger("readflow.margins")

POSITIONS = ("top", "bottom", "left", "right")
REASON_REPEAT = "repeat"
REASON_PAGE_NUMBER = "page_number"

PAGE_NUMBER_PATTERNS = [
    re.compile(r"^\d+$"),
    re.compile(r"^page\s*\d+$"),
    re.compile(r"^p\.?\s*\d+$"),
    re.compile(r"^\d+\s*(of|/|-)\s*\d+$"),
    re.compile(r"^[ivxlcdm]+$"),
]
_PAGE_PREFIX_RE = re.compile(r"^(?:page|p\.?)\s*(\d+)")
_LEADING_NUMBER_RE = re.compile(r"^(\d+)\s*(?:of|/|-)\s*\d+$")
_ROMAN_VALUES = {"i": 1, "v": 5, "x": 10, "l": 50, "c": 100, "d": 500, "m": 1000}
_DIGITS_RE = re.compile(r"\d+")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", (text or "").strip().lower())


def _levenshtein_distance(s1, s2):
    """Calculates the Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        return _levenshtein_distance(s2, s1)
    if len(s2) == 0:
        return len(s1)
    previous_row = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row
    return previous_row[-1]


def is_page_number(text: str) -> bool:
    normalized = normalize_text(text)
    return any(p.match(normalized) for p in PAGE_NUMBER_PATTERNS)


def parse_roman(text: str):
    """Value of a well-formed lowercase roman numeral, or None."""
    if not text or any(c not in _ROMAN_VALUES for c in text):
        return None
    total = 0
    for i, c in enumerate(text):
        value = _ROMAN_VALUES[c]
        if i + 1 < len(text) and value < _ROMAN_VALUES[text[i + 1]]:
            total -= value
        else:
            total += value
    return total if to_roman(total) == text else None


def to_roman(value: int) -> str:
    numerals = [
        (1000, "m"),
        (900, "cm"),
        (500, "d"),
        (400, "cd"),
        (100, "c"),
        (90, "xc"),
        (50, "l"),
        (40, "xl"),
        (10, "x"),
        (9, "ix"),
        (5, "v"),
        (4, "iv"),
        (1, "i"),
    ]
    out = []
    for n, numeral in numerals:
        while value >= n:
            out.append(numeral)
            value -= n
    return "".join(out)


def parse_page_number(text: str):
    """Numeric value of folio-like text ("12", "Page 12", "12 of 40", "xii")."""
    normalized = normalize_text(text)
    if normalized.isdigit():
        return int(normalized)
    for pattern in (_PAGE_PREFIX_RE, _LEADING_NUMBER_RE):
        match = pattern.match(normalized)
        if match:
            return int(match.group(1))
    return parse_roman(normalized)


def is_increasing(values) -> bool:
    values = list(values)
    return len(values) >= 2 and all(b > a for a, b in zip(values, values[1:]))


def margin_position(bbox, width, height, margins: Margins):
    """First zone (top, bottom, left, right) entirely containing the box."""
    if bbox.b <= margins.top:
        return "top"
    if bbox.t >= height - margins.bottom:
        return "bottom"
    if bbox.r <= margins.left:
        return "left"
    if bbox.l >= width - margins.right:
        return "right"
    return None


@dataclass
class MarginElement:
    text: str
    position: str
    bbox: object
    page_index: int
    line: object = None

    @property
    def normalized(self) -> str:
        return normalize_text(self.text)


@dataclass
class MarginAnalysis:
    elements: dict = field(default_factory=lambda: {p: [] for p in POSITIONS})
    page_count: int = 0

    @property
    def counts(self) -> dict:
        return {p: len(els) for p, els in self.elements.items()}


@dataclass
class RemovalCandidate:
    text: str
    original_text: str
    position: str
    page_indices: list[int]
    reason: str

    def to_dict(self) -> dict:
        return {
            "text": self.original_text,
            "position": self.position,
            "pages": self.page_indices,
            "reason": self.reason,
        }


@dataclass
class RemovalPlan:
    candidates: list[RemovalCandidate] = field(default_factory=list)
    by_page: dict = field(default_factory=lambda: defaultdict(set))

    def add(self, candidate: RemovalCandidate, page_texts=None):
        """Registers a candidate; `page_texts` maps page index to its own text."""
        self.candidates.append(candidate)
        for idx in candidate.page_indices:
            text = page_texts[idx] if page_texts else candidate.text
            self.by_page[idx].add((candidate.position, text))

    def removes(self, page_index: int, position: str, normalized: str) -> bool:
        return (position, normalized) in self.by_page.get(page_index, ())

    def __len__(self):
        return len(self.candidates)


class MarginScanner:
    """
    Collects margin-zone text across a document and decides what to remove.
    """

    def __init__(self, options: MarginOptions | None = None):
        self.options = options or MarginOptions()

    def required_pages(self, page_count: int) -> int:
        return max(2, math.ceil(self.options.repeat_threshold * page_count))

    def scan(self, pages) -> tuple[MarginAnalysis, RemovalPlan]:
        log.info("--- Margins: Detecting running headers and footers ---")
        analysis = self.collect_margin_elements(pages, self.options.zone)
        plan = self.identify_removals(analysis)
        if plan.candidates:
            for c in plan.candidates:
                log.info(
                    "  - Removing %s '%s' (%s) on %d page(s)",
                    c.position,
                    c.original_text,
                    c.reason,
                    len(c.page_indices),
                )
        else:
            log.info("  - No repeating margin text found.")
        return analysis, plan

    def collect_margin_elements(self, pages, zone: Margins) -> MarginAnalysis:
        analysis = MarginAnalysis()
        for page in pages:
            analysis.page_count += 1
            for line in page.iter_lines():
                text = (line.text or "").strip()
                if not text:
                    continue
                position = margin_position(line.bbox, page.width, page.height, zone)
                if position:
                    analysis.elements[position].append(
                        MarginElement(text, position, line.bbox, page.index, line)
                    )
        log.debug("  - Margin elements per zone: %s", analysis.counts)
        return analysis

    def identify_removals(self, analysis: MarginAnalysis) -> RemovalPlan:
        plan = RemovalPlan()
        required = self.required_pages(analysis.page_count)
        log.debug(
            "  - Repeat threshold: %d of %d pages", required, analysis.page_count
        )
        for position in POSITIONS:
            elements = analysis.elements.get(position, [])
            taken = self._find_repeats(position, elements, required, plan)
            taken |= self._find_page_numbers(position, elements, required, plan, taken)
            self._find_running_sequences(position, elements, required, plan, taken)
        return plan

    def _find_repeats(self, position, elements, required, plan):
        groups = {}
        for el in elements:
            original, pages = groups.setdefault(el.normalized, (el.text, set()))
            pages.add(el.page_index)
        taken = set()
        for text, (original, pages) in groups.items():
            if len(pages) >= required:
                plan.add(
                    RemovalCandidate(text, original, position, sorted(pages), REASON_REPEAT)
                )
                taken.add(text)
        return taken

    def _find_page_numbers(self, position, elements, required, plan, taken):
        folios = [
            (el, parse_page_number(el.text))
            for el in elements
            if el.normalized not in taken and is_page_number(el.text)
        ]
        folios = sorted(
            ((el, v) for el, v in folios if v is not None), key=lambda item: item[0].page_index
        )
        if len({el.page_index for el, _ in folios}) < required:
            return set()
        if not is_increasing(v for _, v in folios):
            return set()

        log.debug(
            "  - Page number sequence in %s zone: %s...",
            position,
            ", ".join(str(v) for _, v in folios[:5]),
        )
        found = set()
        for el, _ in folios:
            plan.add(
                RemovalCandidate(
                    el.normalized, el.text, position, [el.page_index], REASON_PAGE_NUMBER
                )
            )
            found.add(el.normalized)
        return found

    def _find_running_sequences(self, position, elements, required, plan, taken):
        """Lines such as "Chapter 3 - 12" whose embedded numbers advance per page."""
        clusters = []
        for el in elements:
            text = el.normalized
            if text in taken or not _DIGITS_RE.search(text):
                continue
            masked = _DIGITS_RE.sub("#", text)
            best, best_dist = None, None
            for cluster in clusters:
                dist = _levenshtein_distance(masked, cluster["key"])
                threshold = max(2, int(len(cluster["key"]) * 0.2))
                if dist < threshold and (best_dist is None or dist < best_dist):
                    best, best_dist = cluster, dist
            if best is None:
                clusters.append({"key": masked, "members": [el]})
            else:
                best["members"].append(el)

        for cluster in clusters:
            members = sorted(cluster["members"], key=lambda el: el.page_index)
            page_indices = [el.page_index for el in members]
            if len(set(page_indices)) != len(page_indices) or len(members) < required:
                continue
            numbers = [tuple(map(int, _DIGITS_RE.findall(el.normalized))) for el in members]
            if len({len(n) for n in numbers}) != 1:
                continue
            # "Page 3 of 40" advances in its first number, "Chapter 2 - 17" in its last.
            if not any(is_increasing(column) for column in zip(*numbers)):
                continue
            log.debug(
                "  - Running sequence '%s' in %s zone on %d pages",
                cluster["key"],
                position,
                len(members),
            )
            plan.add(
                RemovalCandidate(
                    cluster["key"],
                    members[0].text,
                    position,
                    page_indices,
                    REASON_PAGE_NUMBER,
                ),
                page_texts={el.page_index: el.normalized for el in members},
            )

    # --- PAGE FILTERS ---
    def filter_page_by_margins(self, page, margins: Margins | None = None):
        """Strict filter: drops every line lying entirely in a margin band."""
        margins = margins or self.options.margins
        return self._filter_lines(
            page,
            lambda line: margin_position(line.bbox, page.width, page.height, margins) is None,
        )

    def filter_page_with_plan(self, page, plan: RemovalPlan):
        """Smart filter: drops only margin-zone lines matching a removal candidate."""
        zone = self.options.zone
        strict = self.options.margins if self.options.strict_in_smart else None

        def keep(line):
            if strict and margin_position(line.bbox, page.width, page.height, strict):
                return False
            position = margin_position(line.bbox, page.width, page.height, zone)
            if position is None:
                return True
            return not plan.removes(page.index, position, normalize_text(line.text))

        return self._filter_lines(page, keep)

    @staticmethod
    def _filter_lines(page, keep):
        """Returns a new page holding only the kept lines; the input is untouched."""
        blocks = []
        for block in page.blocks:
            if not block.is_text:
                blocks.append(block)
                continue
            lines = tuple(line for line in block.lines if keep(line))
            if not lines:
                continue
            if len(lines) == len(block.lines):
                blocks.append(block)
            else:
                blocks.append(type(block)(block.kind, block.bbox, lines))
        return page.with_blocks(blocks)
