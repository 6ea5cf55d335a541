# --- readflow_lib/errors.py ---
"""
readflow_lib/errors.py: Structured errors raised for input-contract violations.

Data-quality findings (broken encodings, OCR verdicts) are returned as results
and never raised, except when a caller explicitly requires a text layer.
"""
from enum import Enum


class ErrorCode(str, Enum):
    NO_TEXT_LAYER = "NO_TEXT_LAYER"
    PAGE_OUT_OF_RANGE = "PAGE_OUT_OF_RANGE"
    INVALID_GEOMETRY = "INVALID_GEOMETRY"
    INVALID_SOURCE = "INVALID_SOURCE"
    INVALID_CONFIG = "INVALID_CONFIG"


class ExtractionError(Exception):
    """Base error carrying a machine-readable code and diagnostic details."""

    def __init__(self, code: ErrorCode, message: str, details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class PageOutOfRangeError(ExtractionError):
    def __init__(self, index: int, page_count: int):
        super().__init__(
            ErrorCode.PAGE_OUT_OF_RANGE,
            f"Page index {index} is out of range (document has {page_count} pages).",
            {"index": index, "page_count": page_count},
        )


class InvalidGeometryError(ExtractionError):
    def __init__(self, page_index: int, field: str, value):
        super().__init__(
            ErrorCode.INVALID_GEOMETRY,
            f"Page {page_index}: invalid geometry in '{field}' ({value}).",
            {"page_index": page_index, "field": field, "value": value},
        )


class TextLayerMissingError(ExtractionError):
    """Raised only when the caller requires a usable text layer and none exists."""

    def __init__(self, verdict):
        super().__init__(
            ErrorCode.NO_TEXT_LAYER,
            (
                f"Document appears to need OCR ({verdict.primary_reason or 'unknown'}; "
                f"{verdict.issue_ratio:.0%} of {len(verdict.sampled_pages)} sampled "
                "pages have issues)."
            ),
            {
                "issue_ratio": verdict.issue_ratio,
                "issue_counts": {k.value: v for k, v in verdict.issue_counts.items()},
                "primary_reason": verdict.primary_reason,
                "sampled_pages": list(verdict.sampled_pages),
            },
        )
        self.verdict = verdict
