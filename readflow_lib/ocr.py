# --- readflow_lib/ocr.py ---
"""
readflow_lib/ocr.py: Decides whether a document carries a usable text layer or
needs OCR, by sampling pages and checking their text quality.

The verdict is advisory. Only `require_text_layer` turns it into an error.
"""
import logging
import unicodedata
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from .config import OCROptions
from .errors import TextLayerMissingError
from .geometry import intersection_area
from .models import validate_page

log = logging.getLogger("readflow.ocr")


class OCRIssue(str, Enum):
    NO_TEXT_BLOCKS = "no_text_blocks"
    INSUFFICIENT_TEXT = "insufficient_text"
    HIGH_WHITESPACE_RATIO = "high_whitespace_ratio"
    HIGH_NEWLINE_RATIO = "high_newline_ratio"
    LOW_ALPHANUMERIC_RATIO = "low_alphanumeric_ratio"
    INVALID_CHARACTERS = "invalid_characters"
    LARGE_IMAGE_COVERAGE = "large_image_coverage"
    BBOX_OVERFLOW = "bbox_overflow"
    EXCESSIVE_LINE_OVERLAP = "excessive_line_overlap"


TEXT_ABSENCE_ISSUES = {OCRIssue.NO_TEXT_BLOCKS, OCRIssue.INSUFFICIENT_TEXT}

SCANNED_WITHOUT_OCR = "scanned_without_ocr"
ISSUE_REASONS = {
    OCRIssue.NO_TEXT_BLOCKS: "missing_text_content",
    OCRIssue.INSUFFICIENT_TEXT: "missing_text_content",
    OCRIssue.LARGE_IMAGE_COVERAGE: "image_only_content",
    OCRIssue.HIGH_WHITESPACE_RATIO: "poor_text_quality",
    OCRIssue.HIGH_NEWLINE_RATIO: "poor_text_quality",
    OCRIssue.LOW_ALPHANUMERIC_RATIO: "poor_text_quality",
    OCRIssue.INVALID_CHARACTERS: "corrupted_text_encoding",
    OCRIssue.BBOX_OVERFLOW: "invalid_text_geometry",
    OCRIssue.EXCESSIVE_LINE_OVERLAP: "invalid_text_geometry",
}

_ALLOWED_CONTROL = {"\n", "\r", "\t"}


def is_invalid_char(c: str) -> bool:
    """Replacement, control, private-use or unassigned code points."""
    if c == "�":
        return True
    if c in _ALLOWED_CONTROL:
        return False
    return unicodedata.category(c) in ("Cc", "Co", "Cs", "Cn")


@dataclass
class PageQualityReport:
    page_index: int
    issues: list[OCRIssue] = field(default_factory=list)
    metrics: dict = field(default_factory=dict)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    def to_dict(self) -> dict:
        return {
            "pageIndex": self.page_index,
            "issues": [i.value for i in self.issues],
            "metrics": self.metrics,
        }


@dataclass
class OCRVerdict:
    needs_ocr: bool
    issue_ratio: float
    sampled_pages: list[int] = field(default_factory=list)
    issue_counts: dict = field(default_factory=dict)
    primary_reason: str | None = None
    page_reports: list[PageQualityReport] = field(default_factory=list)
    expanded: bool = False

    def to_dict(self) -> dict:
        return {
            "needsOCR": self.needs_ocr,
            "issueRatio": round(self.issue_ratio, 4),
            "sampledPages": self.sampled_pages,
            "issueCounts": {k.value: v for k, v in self.issue_counts.items()},
            "primaryReason": self.primary_reason,
            "expanded": self.expanded,
        }


def primary_reason(issue_counts: Counter) -> str | None:
    """Most frequent issue mapped to a reason, with scans reported as such."""
    if not issue_counts:
        return None
    present = {issue for issue, n in issue_counts.items() if n > 0}
    if OCRIssue.LARGE_IMAGE_COVERAGE in present and present & TEXT_ABSENCE_ISSUES:
        return SCANNED_WITHOUT_OCR
    top_issue, _ = issue_counts.most_common(1)[0]
    return ISSUE_REASONS[top_issue]


class OCRDetector:
    """Samples pages from a source and produces an OCRVerdict."""

    def __init__(self, options: OCROptions | None = None):
        self.options = options or OCROptions()

    # --- PER-PAGE ANALYSIS ---
    def analyze_page(self, page) -> PageQualityReport:
        opts = self.options
        report = PageQualityReport(page.index)
        text_blocks = page.text_blocks()
        text = page.text()
        non_ws = [c for c in text if not c.isspace()]
        coverage = self.image_coverage(page)
        report.metrics = {
            "textBlocks": len(text_blocks),
            "textLength": len(non_ws),
            "imageCoverage": round(coverage, 4),
        }

        if not text_blocks:
            report.issues.append(OCRIssue.NO_TEXT_BLOCKS)
        insufficient = len(non_ws) < opts.min_text_length
        if insufficient:
            report.issues.append(OCRIssue.INSUFFICIENT_TEXT)
            if coverage >= opts.image_coverage_threshold:
                report.issues.append(OCRIssue.LARGE_IMAGE_COVERAGE)

        if text:
            report.issues.extend(self._text_quality_issues(text, non_ws, report.metrics))
        if opts.validate_bboxes:
            report.issues.extend(self._bbox_issues(page, report.metrics))
        return report

    @staticmethod
    def image_coverage(page) -> float:
        page_area = page.width * page.height
        if page_area <= 0:
            return 0.0
        covered = sum(intersection_area(b.bbox, page.bbox) for b in page.image_blocks())
        return min(1.0, covered / page_area)

    def _text_quality_issues(self, text, non_ws, metrics):
        opts = self.options
        issues = []
        total = len(text)
        whitespace_ratio = sum(1 for c in text if c.isspace()) / total
        newline_ratio = text.count("\n") / total
        alnum_ratio = sum(1 for c in non_ws if c.isalnum()) / len(non_ws) if non_ws else 0.0
        invalid = sum(1 for c in non_ws if is_invalid_char(c))
        invalid_ratio = invalid / len(non_ws) if non_ws else 0.0
        valid = len(non_ws) - invalid
        metrics.update(
            {
                "whitespaceRatio": round(whitespace_ratio, 4),
                "newlineRatio": round(newline_ratio, 4),
                "alphanumericRatio": round(alnum_ratio, 4),
                "invalidRatio": round(invalid_ratio, 4),
            }
        )
        if whitespace_ratio > opts.whitespace_ratio:
            issues.append(OCRIssue.HIGH_WHITESPACE_RATIO)
        if newline_ratio > opts.newline_ratio:
            issues.append(OCRIssue.HIGH_NEWLINE_RATIO)
        if non_ws and alnum_ratio < opts.min_alphanumeric_ratio:
            issues.append(OCRIssue.LOW_ALPHANUMERIC_RATIO)
        # A long clean page with a few garbled glyphs is not penalized.
        if invalid_ratio > opts.invalid_char_ratio and valid < opts.valid_char_floor:
            issues.append(OCRIssue.INVALID_CHARACTERS)
        return issues

    def _bbox_issues(self, page, metrics):
        opts = self.options
        lines = list(page.iter_lines())[: opts.max_bbox_lines]
        if not lines:
            return []
        issues = []
        m = opts.bbox_margin
        overflow = sum(
            1
            for line in lines
            if line.bbox.l < -m
            or line.bbox.t < -m
            or line.bbox.r > page.width + m
            or line.bbox.b > page.height + m
        )
        involved = set()
        for i in range(len(lines)):
            for j in range(i + 1, len(lines)):
                a, b = lines[i].bbox, lines[j].bbox
                smaller = min(a.area, b.area)
                if smaller > 0 and intersection_area(a, b) / smaller > opts.line_overlap_ratio:
                    involved.update((i, j))
        metrics["overflowLines"] = overflow
        metrics["overlappingLines"] = len(involved)
        if overflow / len(lines) > opts.overflow_line_ratio:
            issues.append(OCRIssue.BBOX_OVERFLOW)
        if len(involved) / len(lines) > opts.overlapping_line_ratio:
            issues.append(OCRIssue.EXCESSIVE_LINE_OVERLAP)
        return issues

    # --- DOCUMENT SAMPLING ---
    def detect(self, source) -> OCRVerdict:
        opts = self.options
        page_count = source.page_count()
        log.info("--- OCR check: sampling %d page document ---", page_count)
        if page_count == 0:
            return OCRVerdict(needs_ocr=False, issue_ratio=0.0)

        start = 1 if opts.skip_first_page and page_count > 3 else 0
        end = min(page_count, start + opts.sample_size)
        reports = [self._analyze_index(source, i) for i in range(start, end)]
        ratio = self._issue_ratio(reports)
        expanded = False

        if opts.uncertain_low <= ratio <= opts.uncertain_high:
            new_end = min(page_count, start + opts.expanded_sample_size)
            if new_end > end:
                log.info("  - Issue ratio %.0f%% is uncertain; expanding sample.", ratio * 100)
                reports += [self._analyze_index(source, i) for i in range(end, new_end)]
                ratio = self._issue_ratio(reports)
                expanded = True

        counts = Counter(issue for r in reports for issue in r.issues)
        verdict = OCRVerdict(
            needs_ocr=ratio >= opts.confirmation_threshold,
            issue_ratio=ratio,
            sampled_pages=[r.page_index for r in reports],
            issue_counts=counts,
            primary_reason=primary_reason(counts),
            page_reports=reports,
            expanded=expanded,
        )
        log.info(
            "  - OCR verdict: needs_ocr=%s, ratio=%.2f over %d pages, reason=%s",
            verdict.needs_ocr,
            ratio,
            len(reports),
            verdict.primary_reason,
        )
        return verdict

    def _analyze_index(self, source, index):
        report = self.analyze_page(validate_page(source.extract_page(index)))
        if report.issues:
            log.debug(
                "  - Page %d issues: %s", index, ", ".join(i.value for i in report.issues)
            )
        return report

    @staticmethod
    def _issue_ratio(reports) -> float:
        if not reports:
            return 0.0
        return sum(1 for r in reports if r.has_issues) / len(reports)


def require_text_layer(verdict: OCRVerdict) -> OCRVerdict:
    """Raises TextLayerMissingError when the verdict says OCR is needed."""
    if verdict.needs_ocr:
        raise TextLayerMissingError(verdict)
    return verdict
