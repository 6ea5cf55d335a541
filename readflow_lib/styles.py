# --- readflow_lib/styles.py ---
"""
readflow_lib/styles.py: Document-wide typographic profiling and role classification.

The profile is built once per document from character-weighted style counts;
every role decision afterwards is relative to its primary body size.
"""
import logging
import random
from collections import Counter
from dataclasses import dataclass

from .config import StyleOptions

log = logging.getLogger("readflow.styles")

HEADING = "heading"
BODY = "body"
CAPTION = "caption"
FOOTNOTE = "footnote"
UNKNOWN = "unknown"
ROLES = (HEADING, BODY, CAPTION, FOOTNOTE)

DEFAULT_SIZE = 12
DEFAULT_FONT = "unknown"


@dataclass(frozen=True)
class TextStyle:
    """A coarse typographic class: rounded size, font name and emphasis flags."""

    size: int
    font: str
    bold: bool = False
    italic: bool = False

    @property
    def key(self) -> str:
        flags = ("b" if self.bold else "") + ("i" if self.italic else "")
        return f"{self.size}|{self.font}|{flags}"

    def to_dict(self) -> dict:
        return {"size": self.size, "font": self.font, "bold": self.bold, "italic": self.italic}


DEFAULT_STYLE = TextStyle(DEFAULT_SIZE, DEFAULT_FONT)


@dataclass(frozen=True)
class StyleProfile:
    primary: TextStyle
    body_styles: tuple[TextStyle, ...]
    counts: tuple[tuple[TextStyle, int], ...] = ()

    @property
    def primary_size(self) -> int:
        return self.primary.size

    def weight_of(self, style: TextStyle) -> int:
        return dict(self.counts).get(style, 0)

    def to_dict(self) -> dict:
        return {
            "primary": self.primary.to_dict(),
            "bodyStyles": [s.to_dict() for s in self.body_styles],
            "counts": {s.key: n for s, n in self.counts},
        }


DEFAULT_PROFILE = StyleProfile(DEFAULT_STYLE, (DEFAULT_STYLE,))


def extract_style(line) -> TextStyle:
    """Derives the TextStyle of a raw line from its font descriptor."""
    font = line.font
    if font is None:
        return DEFAULT_STYLE
    name = font.name or ""
    lowered = name.lower()
    bold = (font.weight or "").lower() == "bold" or any(
        w in lowered for w in ("bold", "black", "heavy")
    )
    italic = (font.style or "").lower() == "italic" or any(
        w in lowered for w in ("italic", "oblique")
    )
    size = round(font.size) if font.size else DEFAULT_SIZE
    return TextStyle(size, name or DEFAULT_FONT, bold, italic)


def classify_role(style: TextStyle, profile: StyleProfile, options: StyleOptions | None = None):
    """Maps a style to heading/body/caption/footnote relative to the body size."""
    opts = options or StyleOptions()
    body = profile.primary_size or DEFAULT_SIZE
    if style.size > body * opts.heading_ratio:
        return HEADING
    if style.size < body * opts.footnote_ratio:
        return FOOTNOTE
    if style.size < body * opts.caption_ratio:
        return CAPTION
    return BODY


class StyleProfiler:
    """Builds a StyleProfile and classifies lines against it."""

    def __init__(self, options: StyleOptions | None = None, rng: random.Random | None = None):
        self.options = options or StyleOptions()
        self.rng = rng or random.Random()

    def qualifies(self, text: str) -> bool:
        trimmed = (text or "").strip()
        return len(trimmed) >= self.options.min_chars and any(c.isalnum() for c in trimmed)

    def select_pages(self, pages):
        """Pages used for profiling, in document order."""
        pages = list(pages)
        if self.options.skip_first_page and len(pages) > 3:
            pages = pages[1:]
        size = self.options.sample_size
        if size > 0 and len(pages) > size:
            chosen = sorted(self.rng.sample(range(len(pages)), size))
            log.debug("  - Sampling %d of %d pages for style profile", size, len(pages))
            pages = [pages[i] for i in chosen]
        return pages

    def count_styles(self, pages) -> Counter:
        counts = Counter()
        for page in pages:
            for line in page.iter_lines():
                if self.qualifies(line.text):
                    counts[extract_style(line)] += len(line.text.strip())
        return counts

    def build_profile(self, pages) -> StyleProfile:
        counts = self.count_styles(self.select_pages(pages))
        if not counts:
            log.debug("  - No qualifying text; using default style profile")
            return DEFAULT_PROFILE

        primary, primary_weight = max(counts.items(), key=lambda item: item[1])
        cutoff = self.options.threshold_perc * primary_weight
        body = tuple(s for s, n in counts.items() if n >= cutoff)
        profile = StyleProfile(primary, body, tuple(counts.most_common()))

        log.debug(
            "  - Primary body style: %s (%d chars), %d body style(s)",
            primary.key,
            primary_weight,
            len(body),
        )
        for style, n in counts.most_common(5):
            log.debug("    %-40s %d", style.key, n)
        return profile

    def classify(self, style: TextStyle, profile: StyleProfile) -> str:
        return classify_role(style, profile, self.options)

    def classify_line(self, line, profile: StyleProfile) -> str:
        return self.classify(extract_style(line), profile)

    def is_body_style(self, style: TextStyle, profile: StyleProfile) -> bool:
        return style in profile.body_styles
