# --- readflow_lib/composer.py ---
"""
readflow_lib/composer.py: Turns one raw page into a ProcessedPage.

Margin removal, column detection and block assignment, then line building in
line mode or paragraph detection in paragraph mode, using the document-wide
context built beforehand.
"""
import logging
import re

from .columns import ColumnDetector
from .config import ExtractionOptions
from .geometry import overlap_ratio, union_all
from .lines import LineBuilder
from .models import ProcessedBlock, ProcessedLine, ProcessedPage
from .paragraphs import ParagraphDetector
from .scanner import MarginScanner
from .styles import StyleProfiler, extract_style

log = logging.getLogger("readflow.compose")

MODE_BLOCKS = "blocks"
MODE_LINES = "lines"
MODE_PARAGRAPHS = "paragraphs"

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Strips control characters and collapses runs of whitespace."""
    return _WHITESPACE_RE.sub(" ", _CONTROL_RE.sub("", text or "")).strip()


def count_lines(page) -> int:
    return sum(len(b.lines) for b in page.text_blocks())


class PageComposer:
    def __init__(self, options: ExtractionOptions | None = None):
        self.options = options or ExtractionOptions()
        self.scanner = MarginScanner(self.options.margins)
        self.detector = ColumnDetector(self.options.columns)
        self.line_builder = LineBuilder(self.options.lines)
        self.profiler = StyleProfiler(self.options.styles)
        self.paragraph_detector = ParagraphDetector(self.options.paragraphs)

    def remove_margins(self, context, page):
        if self.options.margins.smart and context.plan is not None:
            return self.scanner.filter_page_with_plan(page, context.plan)
        return self.scanner.filter_page_by_margins(page)

    def compose(self, context, raw_page, mode: str | None = None) -> ProcessedPage:
        mode = mode or self.options.mode
        page = self.remove_margins(context, raw_page)
        removed = count_lines(raw_page) - count_lines(page)
        layout = self.detector.detect(page)

        result = ProcessedPage(
            index=raw_page.index,
            number=raw_page.number,
            width=raw_page.width,
            height=raw_page.height,
            label=raw_page.label,
            columns=list(layout.columns),
            is_broken=layout.is_broken,
            removed_lines=removed,
        )
        text_blocks = page.text_blocks()
        if not text_blocks:
            return result

        if layout.columns:
            result.blocks, result.unassigned_blocks = self._blocks_by_column(
                context, text_blocks, layout.columns
            )
        else:
            log.debug("  - Page %d: no columns, keeping source block order", page.number)
            result.blocks = [
                b for b in (self._build_block(context, tb, None) for tb in text_blocks) if b
            ]

        if mode in (MODE_LINES, MODE_PARAGRAPHS) and layout.columns:
            column_lines = self.line_builder.build_for_page(page, layout.columns)
            result.column_lines = [cl.texts for cl in column_lines]
            if mode == MODE_PARAGRAPHS:
                found = self.paragraph_detector.detect(
                    column_lines, context.profile, raw_page.index
                )
                result.paragraphs = found.items
                result.content = found.content
            else:
                result.content = "\n\n".join(
                    "\n".join(texts) for texts in result.column_lines if texts
                )
        else:
            result.content = "\n\n".join(b.text for b in result.blocks)

        if result.unassigned_blocks:
            log.debug(
                "  - Page %d: dropped %d unassigned block(s)",
                page.number,
                result.unassigned_blocks,
            )
        return result

    def _blocks_by_column(self, context, text_blocks, columns):
        min_overlap = self.options.min_block_overlap
        per_column = [[] for _ in columns]
        unassigned = 0
        for block in text_blocks:
            rect = union_all(line.bbox for line in block.lines) or block.bbox
            col_idx = next(
                (i for i, col in enumerate(columns) if overlap_ratio(rect, col) >= min_overlap),
                None,
            )
            if col_idx is None:
                unassigned += 1
            else:
                per_column[col_idx].append((rect, block))

        blocks = []
        for col_idx, members in enumerate(per_column):
            for _, block in sorted(members, key=lambda item: item[0].t):
                built = self._build_block(context, block, col_idx)
                if built:
                    blocks.append(built)
        return blocks, unassigned

    def _build_block(self, context, block, column_index):
        lines = []
        for raw in block.lines:
            text = clean_text(raw.text)
            if text:
                lines.append((raw, ProcessedLine(text, raw.bbox, raw.size)))
        if not lines:
            return None
        role = self.profiler.classify(extract_style(lines[0][0]), context.profile)
        return ProcessedBlock(
            bbox=union_all(line.bbox for _, line in lines),
            lines=[line for _, line in lines],
            text=" ".join(line.text for _, line in lines),
            role=role,
            column_index=column_index,
        )
