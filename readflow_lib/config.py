# --- readflow_lib/config.py ---
"""
readflow_lib/config.py: Named thresholds for every pipeline stage, plus an INI
loader/saver so they can be tuned without touching code.
"""
import configparser
import logging
from dataclasses import asdict, dataclass, field, fields

from .errors import ErrorCode, ExtractionError

log = logging.getLogger("readflow.config")


@dataclass
class LineOptions:
    base_tolerance: float = 3.0
    overlap_threshold: float = 0.5
    gap_multiplier: float = 5.0
    min_column_overlap: float = 0.5
    fallback_font_size: float = 12.0
    max_merge_passes: int = 20


@dataclass
class ColumnOptions:
    header_margin: float = 50.0
    footer_margin: float = 50.0
    edge_tolerance: float = 3.0
    max_vertical_gap: float = 10.0
    max_bridge_height: float = 50.0
    bridge_vertical_gap: float = 30.0
    max_passes: int = 20
    containment_tolerance: float = 1.0
    broken_sample_length: int = 2000
    broken_run_length: int = 16
    broken_ratio: float = 0.5


@dataclass
class StyleOptions:
    min_chars: int = 4
    threshold_perc: float = 0.15
    sample_size: int = 0
    skip_first_page: bool = True
    heading_ratio: float = 1.2
    footnote_ratio: float = 0.85
    caption_ratio: float = 0.95


@dataclass
class MarginOptions:
    smart: bool = True
    strict_in_smart: bool = False
    repeat_threshold: float = 0.5
    margin_left: float = 25.0
    margin_top: float = 40.0
    margin_right: float = 25.0
    margin_bottom: float = 40.0
    zone_left: float = 50.0
    zone_top: float = 72.0
    zone_right: float = 50.0
    zone_bottom: float = 72.0

    @property
    def margins(self) -> "Margins":
        return Margins(self.margin_left, self.margin_top, self.margin_right, self.margin_bottom)

    @property
    def zone(self) -> "Margins":
        return Margins(self.zone_left, self.zone_top, self.zone_right, self.zone_bottom)


@dataclass(frozen=True)
class Margins:
    left: float
    top: float
    right: float
    bottom: float


@dataclass
class OCROptions:
    min_text_length: int = 100
    image_coverage_threshold: float = 0.7
    whitespace_ratio: float = 0.5
    newline_ratio: float = 0.2
    min_alphanumeric_ratio: float = 0.5
    invalid_char_ratio: float = 0.1
    valid_char_floor: int = 500
    validate_bboxes: bool = False
    bbox_margin: float = 5.0
    overflow_line_ratio: float = 0.1
    line_overlap_ratio: float = 0.5
    overlapping_line_ratio: float = 0.3
    max_bbox_lines: int = 500
    sample_size: int = 6
    expanded_sample_size: int = 20
    uncertain_low: float = 0.1
    uncertain_high: float = 0.8
    confirmation_threshold: float = 0.9
    skip_first_page: bool = True


@dataclass
class ParagraphOptions:
    min_gap: float = 5.0
    min_indent: float = 5.0
    min_excess: float = 5.0
    indent_sigma: float = 2.0
    early_end_sigma: float = 2.0
    font_size_tolerance: float = 1.0
    min_header_length: int = 3
    max_header_length: int = 200
    remove_hyphenation: bool = True
    max_line_gap: float = 50.0
    fallback_line_height: float = 12.0


@dataclass
class ScoringOptions:
    weight_heading: float = 3.0
    weight_body: float = 1.0
    weight_caption: float = 0.75
    weight_footnote: float = 0.5
    weight_unknown: float = 0.25
    base_multiplier: float = 10.0
    normalize_by_length: bool = True
    min_text_length: int = 100
    match_tolerance: float = 2.0

    @property
    def role_weights(self) -> dict:
        return {
            "heading": self.weight_heading,
            "body": self.weight_body,
            "caption": self.weight_caption,
            "footnote": self.weight_footnote,
            "unknown": self.weight_unknown,
        }


@dataclass
class ExtractionOptions:
    mode: str = "blocks"
    min_block_overlap: float = 0.5
    workers: int = 1
    check_ocr: bool = False
    require_text_layer: bool = False
    lines: LineOptions = field(default_factory=LineOptions)
    columns: ColumnOptions = field(default_factory=ColumnOptions)
    styles: StyleOptions = field(default_factory=StyleOptions)
    margins: MarginOptions = field(default_factory=MarginOptions)
    ocr: OCROptions = field(default_factory=OCROptions)
    paragraphs: ParagraphOptions = field(default_factory=ParagraphOptions)
    scoring: ScoringOptions = field(default_factory=ScoringOptions)


SECTIONS = ("lines", "columns", "styles", "margins", "ocr", "paragraphs", "scoring")
MODES = ("blocks", "lines", "paragraphs")


def _coerce(parser, section, key, default):
    """Reads a value using the type of the field's default."""
    try:
        if isinstance(default, bool):
            return parser.getboolean(section, key)
        if isinstance(default, int):
            return parser.getint(section, key)
        if isinstance(default, float):
            return parser.getfloat(section, key)
        return parser.get(section, key)
    except ValueError as e:
        raise ExtractionError(
            ErrorCode.INVALID_CONFIG,
            f"Invalid value for [{section}] {key}: {e}",
            {"section": section, "key": key},
        ) from e


def _apply_section(parser, section, target):
    known = {f.name: f for f in fields(target) if f.name not in SECTIONS}
    for key in parser.options(section):
        if key in parser.defaults():
            continue
        if key not in known:
            log.warning("Ignoring unknown option [%s] %s", section, key)
            continue
        setattr(target, key, _coerce(parser, section, key, getattr(target, key)))


def load_options(path: str) -> ExtractionOptions:
    """Loads options from an INI file; missing sections keep their defaults."""
    parser = configparser.ConfigParser()
    if not parser.read(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    options = ExtractionOptions()
    for section in parser.sections():
        if section == "extraction":
            _apply_section(parser, section, options)
        elif section in SECTIONS:
            _apply_section(parser, section, getattr(options, section))
        else:
            log.warning("Ignoring unknown config section [%s]", section)

    if options.mode not in MODES:
        raise ExtractionError(
            ErrorCode.INVALID_CONFIG,
            f"Invalid mode '{options.mode}', expected one of {', '.join(MODES)}.",
            {"section": "extraction", "key": "mode"},
        )
    log.info("Loaded options from %s", path)
    return options


def save_options(options: ExtractionOptions, path: str):
    """Writes every option, grouped by section, to an INI file."""
    parser = configparser.ConfigParser()
    data = asdict(options)
    parser["extraction"] = {k: str(v) for k, v in data.items() if k not in SECTIONS}
    for section in SECTIONS:
        parser[section] = {k: str(v) for k, v in data[section].items()}
    with open(path, "w") as configfile:
        parser.write(configfile)
    log.info("Options saved to %s", path)
