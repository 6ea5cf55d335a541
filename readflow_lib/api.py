# --- readflow_lib/api.py ---
"""
readflow_lib/api.py: High-level entry points used by the CLI and by callers
embedding the library.
"""
import logging
import os

from .config import ExtractionOptions
from .extractor import DocumentExtractor
from .models import ExtractionResult
from .ocr import OCRDetector
from .scorer import SearchScorer, find_hits
from .sources import open_source

log = logging.getLogger("readflow.api")


def _parse_page_selection(pages_str: str) -> set | None:
    """Parses a page selection string (e.g., '1,3,5-7') into a set of integers."""
    if not pages_str or pages_str.lower() == "all":
        return None
    pages = set()
    try:
        for p in pages_str.split(","):
            part = p.strip()
            if "-" in part:
                s, e = map(int, part.split("-"))
                pages.update(range(s, e + 1))
            else:
                pages.add(int(part))
        return pages
    except ValueError:
        log.error("Invalid page selection format: %s. Defaulting to 'all'.", pages_str)
        return None


def page_indices(pages_str: str) -> list[int] | None:
    """1-based page selection to sorted 0-based indices."""
    selection = _parse_page_selection(pages_str)
    if selection is None:
        return None
    return sorted(p - 1 for p in selection)


def _open(path: str):
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file not found: {path}")
    return open_source(path)


def process_document(
    path: str,
    options: ExtractionOptions | None = None,
    pages_str: str = "all",
    mode: str | None = None,
    rng=None,
) -> ExtractionResult:
    """
    Extracts reading-ordered, role-annotated text from a PDF or JSON page dump.
    """
    extractor = DocumentExtractor(_open(path), options, rng)
    return extractor.extract(page_indices(pages_str), mode)


def analyze_document_structure(path: str, pages_str: str = "all") -> list[dict]:
    """
    Performs a read-only layout analysis and returns a per-page summary.
    """
    result = process_document(path, pages_str=pages_str)
    return [
        {
            "page": p.number,
            "label": p.label,
            "columns": len(p.columns),
            "blocks": len(p.blocks),
            "broken": p.is_broken,
            "char_count": len(p.content),
        }
        for p in result.pages
    ]


def check_text_layer(path: str, options: ExtractionOptions | None = None):
    """Samples the document and returns an OCRVerdict."""
    options = options or ExtractionOptions()
    return OCRDetector(options.ocr).detect(_open(path))


def search_document(
    path: str,
    query: str,
    options: ExtractionOptions | None = None,
    pages_str: str = "all",
    rng=None,
):
    """Finds `query` line by line and ranks pages by where the hits land."""
    extractor = DocumentExtractor(_open(path), options, rng)
    return rank_pages(extractor, query, page_indices(pages_str))


def rank_pages(extractor, query: str, indices=None):
    """Scores the pages of an open extractor for `query`, best first."""
    pages = extractor.fetch_pages(indices)
    profile = extractor.profiler.build_profile(pages)
    results = find_hits(pages, query)
    log.info("Found hits for '%s' on %d page(s)", query, len(results))
    scorer = SearchScorer(
        pages, profile, extractor.options.scoring, styles=extractor.options.styles
    )
    return scorer.score_page_results(results)
