# --- readflow_lib/sources.py ---
"""
readflow_lib/sources.py: Page sources that deliver RawPage objects.

A page source answers two questions: how many pages there are, and what one
page looks like. `extract_page` must be idempotent; sources cache their pages.
"""
import json
import logging
import os
import re
import threading
from collections import Counter

from pdfminer.high_level import extract_pages
from pdfminer.layout import (
    LAParams,
    LTChar,
    LTFigure,
    LTImage,
    LTTextBox,
    LTTextLine,
    LTTextLineVertical,
)
from pdfminer.pdfdocument import PDFDocument, PDFNoPageLabels
from pdfminer.pdfpage import PDFPage
from pdfminer.pdfparser import PDFParser

from .errors import ErrorCode, ExtractionError, PageOutOfRangeError
from .geometry import Rect, union_all
from .models import IMAGE_BLOCK, TEXT_BLOCK, RawBlock, RawFont, RawLine, RawPage

log = logging.getLogger("readflow.source")

_SUBSET_PREFIX_RE = re.compile(r"^[A-Z]{6}\+")


class PageSource:
    """Interface for anything that can hand out raw pages."""

    name = "source"

    def page_count(self) -> int:
        raise NotImplementedError

    def extract_page(self, index: int) -> RawPage:
        raise NotImplementedError

    def _check_index(self, index: int):
        count = self.page_count()
        if not 0 <= index < count:
            raise PageOutOfRangeError(index, count)


class MemoryPageSource(PageSource):
    """Serves pages that are already in memory."""

    name = "memory"

    def __init__(self, pages):
        self.pages = list(pages)

    def page_count(self) -> int:
        return len(self.pages)

    def extract_page(self, index: int) -> RawPage:
        self._check_index(index)
        return self.pages[index]


class JsonPageSource(PageSource):
    """
    Reads a structured-text JSON dump: either {"pages": [...]} or a bare list
    of page objects shaped like RawPage.to/from_dict.
    """

    def __init__(self, path: str):
        if not os.path.exists(path):
            raise FileNotFoundError(f"JSON file not found: {path}")
        self.path = path
        self.name = os.path.basename(path)
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ExtractionError(
                    ErrorCode.INVALID_SOURCE, f"Invalid JSON in {path}: {e}", {"path": path}
                ) from e
        self._raw = data.get("pages", []) if isinstance(data, dict) else data
        if not isinstance(self._raw, list):
            raise ExtractionError(
                ErrorCode.INVALID_SOURCE, f"No page list found in {path}", {"path": path}
            )
        self._cache = {}
        log.info("Loaded %d page(s) from %s", len(self._raw), path)

    def page_count(self) -> int:
        return len(self._raw)

    def extract_page(self, index: int) -> RawPage:
        self._check_index(index)
        if index not in self._cache:
            try:
                self._cache[index] = RawPage.from_dict(self._raw[index], index=index)
            except (KeyError, TypeError, ValueError) as e:
                raise ExtractionError(
                    ErrorCode.INVALID_SOURCE,
                    f"Page {index}: malformed page data ({e})",
                    {"page_index": index},
                ) from e
        return self._cache[index]


class PdfMinerPageSource(PageSource):
    """Extracts raw pages from a PDF with pdfminer.six."""

    def __init__(self, pdf_path: str, laparams: LAParams | None = None):
        if not os.path.exists(pdf_path):
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")
        self.pdf_path = pdf_path
        self.name = os.path.basename(pdf_path)
        self.laparams = laparams or LAParams()
        self._count = None
        self._labels = None
        self._cache = {}
        self._lock = threading.Lock()

    def _load_document_info(self):
        with open(self.pdf_path, "rb") as fp:
            document = PDFDocument(PDFParser(fp))
            count = sum(1 for _ in PDFPage.create_pages(document))
            try:
                labels = [label for _, label in zip(range(count), document.get_page_labels())]
            except PDFNoPageLabels:
                labels = []
        self._count = count
        self._labels = labels
        log.debug("  - %s: %d pages, %d labels", self.name, count, len(labels))

    def page_count(self) -> int:
        if self._count is None:
            self._load_document_info()
        return self._count

    def page_label(self, index: int):
        if self._labels is None:
            self._load_document_info()
        return self._labels[index] if index < len(self._labels) else None

    def extract_page(self, index: int) -> RawPage:
        self._check_index(index)
        with self._lock:
            if index in self._cache:
                return self._cache[index]
            layout = next(
                iter(extract_pages(self.pdf_path, page_numbers=[index], laparams=self.laparams)),
                None,
            )
            if layout is None:
                raise ExtractionError(
                    ErrorCode.INVALID_SOURCE,
                    f"pdfminer returned no layout for page {index}",
                    {"page_index": index},
                )
            page = convert_layout(layout, index, self.page_label(index))
            self._cache[index] = page
        log.debug("  - Extracted page %d: %d block(s)", index + 1, len(page.blocks))
        return page


# --- PDFMINER LAYOUT CONVERSION ---
def _find_elements_by_type(obj, t):
    """Recursively finds all layout elements of a specific type."""
    e = []
    if isinstance(obj, t):
        e.append(obj)
    if hasattr(obj, "_objs"):
        for child in obj:
            e.extend(_find_elements_by_type(child, t))
    return e


def _font_from_line(line) -> RawFont | None:
    """Most common (font, size) among the line's characters."""
    chars = [c for c in line if isinstance(c, LTChar)]
    if not chars:
        return None
    fontname, size = Counter((c.fontname, round(c.size, 2)) for c in chars).most_common(1)[0][0]
    name = _SUBSET_PREFIX_RE.sub("", fontname or "")
    lowered = name.lower()
    return RawFont(
        name=name,
        family=re.split(r"[-,]", name)[0],
        weight="bold" if any(w in lowered for w in ("bold", "black", "heavy")) else "normal",
        style="italic" if any(w in lowered for w in ("italic", "oblique")) else "normal",
        size=size,
    )


class _Flipper:
    """Converts pdfminer's bottom-left boxes to top-left page coordinates."""

    def __init__(self, layout):
        self.left = layout.x0
        self.top = layout.y1

    def rect(self, element) -> Rect:
        x0, y0, x1, y1 = element.bbox
        return Rect.from_ltrb(x0 - self.left, self.top - y1, x1 - self.left, self.top - y0)


def _convert_line(line, flip: _Flipper) -> RawLine:
    return RawLine(
        text=line.get_text().rstrip("\n"),
        bbox=flip.rect(line),
        font=_font_from_line(line),
        wmode=1 if isinstance(line, LTTextLineVertical) else 0,
    )


def _text_block(lines, flip: _Flipper, bbox=None) -> RawBlock | None:
    raw = tuple(_convert_line(line, flip) for line in lines)
    raw = tuple(line for line in raw if line.text.strip())
    if not raw:
        return None
    return RawBlock(TEXT_BLOCK, bbox or union_all(line.bbox for line in raw), raw)


def convert_layout(layout, index: int, label=None) -> RawPage:
    """Turns one pdfminer LTPage into a RawPage, keeping pdfminer's element order."""
    flip = _Flipper(layout)
    blocks = []
    for element in layout:
        block = None
        if isinstance(element, LTTextBox):
            lines = [child for child in element if isinstance(child, LTTextLine)]
            block = _text_block(lines, flip, flip.rect(element))
        elif isinstance(element, LTTextLine):
            block = _text_block([element], flip)
        elif isinstance(element, LTImage):
            block = RawBlock(IMAGE_BLOCK, flip.rect(element))
        elif isinstance(element, LTFigure) and _find_elements_by_type(element, LTImage):
            block = RawBlock(IMAGE_BLOCK, flip.rect(element))
        if block is not None:
            blocks.append(block)
    return RawPage(
        index=index,
        number=index + 1,
        width=layout.width,
        height=layout.height,
        blocks=tuple(blocks),
        label=label,
    )


def open_source(path: str) -> PageSource:
    """Picks a page source from the file extension."""
    if path.lower().endswith(".json"):
        return JsonPageSource(path)
    return PdfMinerPageSource(path)
