# --- readflow_lib/extractor.py ---
"""
readflow_lib/extractor.py: The two-stage document pipeline.

Stage one builds a DocumentContext from every page (style profile, margin
removal plan). Stage two processes pages independently against that context,
optionally on worker threads, and collects results in page order.
"""
import logging
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .composer import PageComposer
from .config import ExtractionOptions
from .errors import ErrorCode, ExtractionError, PageOutOfRangeError
from .models import DocumentAnalysis, ExtractionResult, validate_page
from .ocr import OCRDetector, require_text_layer
from .paragraphs import assign_document_indices
from .scanner import MarginAnalysis, MarginScanner, RemovalPlan
from .styles import StyleProfile, StyleProfiler

log = logging.getLogger("readflow.layout")


@dataclass(frozen=True)
class DocumentContext:
    """Everything per-page processing needs to know about the whole document."""

    page_count: int
    profile: StyleProfile
    margins: MarginAnalysis | None = None
    plan: RemovalPlan | None = None


class DocumentExtractor:
    """Runs style profiling and margin analysis once, then composes each page."""

    def __init__(self, source, options: ExtractionOptions | None = None, rng=None):
        self.source = source
        self.options = options or ExtractionOptions()
        self.rng = rng or random.Random()
        self.profiler = StyleProfiler(self.options.styles, self.rng)
        self.scanner = MarginScanner(self.options.margins)
        self.composer = PageComposer(self.options)
        self.ocr_detector = OCRDetector(self.options.ocr)

    def fetch_page(self, index: int):
        """Fetches and validates one page from the source."""
        count = self.source.page_count()
        if not 0 <= index < count:
            raise PageOutOfRangeError(index, count)
        page = validate_page(self.source.extract_page(index))
        if page.index != index:
            raise ExtractionError(
                ErrorCode.INVALID_SOURCE,
                f"Source returned page {page.index} when asked for page {index}.",
                {"requested": index, "returned": page.index},
            )
        return page

    def fetch_pages(self, indices=None):
        if indices is None:
            indices = range(self.source.page_count())
        return [self.fetch_page(i) for i in indices]

    def build_context(self, pages) -> DocumentContext:
        """Stage one: whole-document passes that must finish before any page is processed."""
        pages = list(pages)
        log.info("--- Analysis: Profiling %d page(s) ---", len(pages))
        profile = self.profiler.build_profile(pages)
        margins, plan = None, None
        if self.options.margins.smart:
            margins, plan = self.scanner.scan(pages)
        return DocumentContext(len(pages), profile, margins, plan)

    def process_page(self, context: DocumentContext, page, mode: str | None = None):
        """Stage two: pure per-page work against a finished context."""
        return self.composer.compose(context, page, mode)

    def check_ocr(self):
        verdict = self.ocr_detector.detect(self.source)
        if self.options.require_text_layer:
            require_text_layer(verdict)
        return verdict

    def extract(self, pages=None, mode: str | None = None) -> ExtractionResult:
        """
        Runs the full pipeline.

        `pages` is an optional iterable of 0-based page indices; the whole-document
        passes only see the selected pages.
        """
        verdict = None
        if self.options.check_ocr or self.options.require_text_layer:
            verdict = self.check_ocr()

        indices = sorted(set(pages)) if pages is not None else None
        raw_pages = self.fetch_pages(indices)
        context = self.build_context(raw_pages)

        log.info("--- Layout: Processing %d page(s) ---", len(raw_pages))
        workers = max(1, self.options.workers)
        if workers > 1 and len(raw_pages) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                processed = list(
                    pool.map(lambda p: self.process_page(context, p, mode), raw_pages)
                )
        else:
            processed = [self.process_page(context, p, mode) for p in raw_pages]

        assign_document_indices(processed)
        analysis = DocumentAnalysis(
            page_count=self.source.page_count(),
            profile=context.profile,
            margins=context.margins,
            plan=context.plan,
            ocr=verdict,
        )
        return ExtractionResult(processed, analysis)
