# --- readflow_lib/models.py ---
"""
readflow_lib/models.py: Data models for raw page geometry and processed output.

Raw models are produced by a page source and are never mutated afterwards;
every derived structure is built fresh from them.
"""
import math
from dataclasses import dataclass, field, replace

from .errors import ErrorCode, ExtractionError, InvalidGeometryError
from .geometry import Rect

TEXT_BLOCK = "text"
IMAGE_BLOCK = "image"


# --- RAW MODELS (produced by a page source) ---
@dataclass(frozen=True)
class RawFont:
    """Font descriptor attached to a raw line."""

    name: str = ""
    family: str = ""
    weight: str = "normal"
    style: str = "normal"
    size: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RawFont":
        size = data.get("size")
        return cls(
            name=data.get("name") or "",
            family=data.get("family") or "",
            weight=data.get("weight") or "normal",
            style=data.get("style") or "normal",
            size=float(size) if size is not None else None,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "family": self.family,
            "weight": self.weight,
            "style": self.style,
            "size": self.size,
        }


@dataclass(frozen=True)
class RawLine:
    """A run of text with uniform style, positioned on the page."""

    text: str
    bbox: Rect
    font: RawFont | None = None
    wmode: int = 0

    @property
    def is_vertical(self) -> bool:
        return self.wmode == 1

    @property
    def size(self):
        return self.font.size if self.font else None

    @classmethod
    def from_dict(cls, data: dict) -> "RawLine":
        font = data.get("font")
        return cls(
            text=data.get("text", ""),
            bbox=Rect.from_dict(data["bbox"]),
            font=RawFont.from_dict(font) if font else None,
            wmode=int(data.get("wmode", 0)),
        )

    def to_dict(self) -> dict:
        data = {"text": self.text, "bbox": self.bbox.to_dict(), "wmode": self.wmode}
        if self.font is not None:
            data["font"] = self.font.to_dict()
        return data


@dataclass(frozen=True)
class RawBlock:
    """A group of raw lines, or an image placeholder with no lines."""

    kind: str
    bbox: Rect
    lines: tuple[RawLine, ...] = ()

    @property
    def is_text(self) -> bool:
        return self.kind == TEXT_BLOCK

    @property
    def is_image(self) -> bool:
        return self.kind == IMAGE_BLOCK

    @classmethod
    def from_dict(cls, data: dict) -> "RawBlock":
        kind = data.get("type", data.get("kind", TEXT_BLOCK))
        lines = tuple(RawLine.from_dict(line) for line in data.get("lines", []))
        return cls(kind=kind, bbox=Rect.from_dict(data["bbox"]), lines=lines)

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "bbox": self.bbox.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class RawPage:
    """One page as delivered by the extractor: geometry plus blocks in source order."""

    index: int
    number: int
    width: float
    height: float
    blocks: tuple[RawBlock, ...] = ()
    label: str | None = None

    @property
    def bbox(self) -> Rect:
        return Rect(0, 0, self.width, self.height)

    def text_blocks(self):
        return [b for b in self.blocks if b.is_text]

    def image_blocks(self):
        return [b for b in self.blocks if b.is_image]

    def iter_lines(self):
        for block in self.blocks:
            if block.is_text:
                yield from block.lines

    def text(self) -> str:
        """Page text, one line per row; block boundaries add no extra breaks."""
        return "\n".join(line.text for line in self.iter_lines())

    def with_blocks(self, blocks) -> "RawPage":
        return replace(self, blocks=tuple(blocks))

    @classmethod
    def from_dict(cls, data: dict, index: int | None = None) -> "RawPage":
        page_index = int(data.get("pageIndex", data.get("index", index or 0)))
        return cls(
            index=page_index,
            number=int(data.get("pageNumber", data.get("number", page_index + 1))),
            width=float(data["width"]),
            height=float(data["height"]),
            blocks=tuple(RawBlock.from_dict(b) for b in data.get("blocks", [])),
            label=data.get("label"),
        )

    def to_dict(self) -> dict:
        return {
            "pageIndex": self.index,
            "pageNumber": self.number,
            "width": self.width,
            "height": self.height,
            "label": self.label,
            "blocks": [b.to_dict() for b in self.blocks],
        }


def _check_rect(page_index, field_name, rect: Rect):
    for name in ("x", "y", "w", "h"):
        value = getattr(rect, name)
        if not math.isfinite(value):
            raise InvalidGeometryError(page_index, f"{field_name}.{name}", value)
    if rect.w < 0:
        raise InvalidGeometryError(page_index, f"{field_name}.w", rect.w)
    if rect.h < 0:
        raise InvalidGeometryError(page_index, f"{field_name}.h", rect.h)


def validate_page(page: RawPage) -> RawPage:
    """Fails fast on malformed geometry, naming the offending page and field."""
    if not isinstance(page, RawPage):
        raise ExtractionError(
            ErrorCode.INVALID_SOURCE,
            f"Page source returned {type(page).__name__}, expected RawPage.",
        )
    for name in ("width", "height"):
        value = getattr(page, name)
        if not math.isfinite(value) or value < 0:
            raise InvalidGeometryError(page.index, name, value)
    for b_idx, block in enumerate(page.blocks):
        _check_rect(page.index, f"blocks[{b_idx}].bbox", block.bbox)
        for l_idx, line in enumerate(block.lines):
            _check_rect(page.index, f"blocks[{b_idx}].lines[{l_idx}].bbox", line.bbox)
    return page


# --- PROCESSED MODELS (pipeline output) ---
@dataclass
class ProcessedLine:
    text: str
    bbox: Rect
    font_size: float | None = None

    def to_dict(self) -> dict:
        return {"text": self.text, "bbox": self.bbox.to_dict(), "fontSize": self.font_size}


@dataclass
class ProcessedBlock:
    """A text block in reading order with its layout-level role."""

    bbox: Rect
    lines: list[ProcessedLine]
    text: str
    role: str
    column_index: int | None = None

    def to_dict(self) -> dict:
        return {
            "bbox": self.bbox.to_dict(),
            "role": self.role,
            "column": self.column_index,
            "text": self.text,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass
class ProcessedPage:
    index: int
    number: int
    width: float
    height: float
    label: str | None = None
    blocks: list[ProcessedBlock] = field(default_factory=list)
    content: str = ""
    columns: list[Rect] = field(default_factory=list)
    column_lines: list[list[str]] = field(default_factory=list)
    paragraphs: list = field(default_factory=list)
    is_broken: bool = False
    unassigned_blocks: int = 0
    removed_lines: int = 0

    def to_dict(self) -> dict:
        return {
            "pageIndex": self.index,
            "pageNumber": self.number,
            "label": self.label,
            "width": self.width,
            "height": self.height,
            "isBroken": self.is_broken,
            "columns": [c.to_dict() for c in self.columns],
            "blocks": [b.to_dict() for b in self.blocks],
            "columnLines": self.column_lines,
            "paragraphs": [p.to_dict() for p in self.paragraphs],
            "unassignedBlocks": self.unassigned_blocks,
            "removedLines": self.removed_lines,
            "content": self.content,
        }


@dataclass
class DocumentAnalysis:
    """Outcome of the whole-document passes, kept alongside the pages."""

    page_count: int
    profile: object
    margins: object = None
    plan: object = None
    ocr: object = None

    def to_dict(self) -> dict:
        data = {"pageCount": self.page_count, "profile": self.profile.to_dict()}
        if self.plan is not None:
            data["removals"] = [c.to_dict() for c in self.plan.candidates]
        if self.ocr is not None:
            data["ocr"] = self.ocr.to_dict()
        return data


@dataclass
class ExtractionResult:
    pages: list[ProcessedPage]
    analysis: DocumentAnalysis

    @property
    def full_text(self) -> str:
        return "\n\n".join(p.content for p in self.pages if p.content)

    def to_dict(self) -> dict:
        return {
            "analysis": self.analysis.to_dict(),
            "pages": [p.to_dict() for p in self.pages],
        }
