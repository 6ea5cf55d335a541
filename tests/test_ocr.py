from collections import Counter

import pytest

from readflow_lib.config import OCROptions
from readflow_lib.errors import ErrorCode, TextLayerMissingError
from readflow_lib.ocr import (
    SCANNED_WITHOUT_OCR,
    OCRDetector,
    OCRIssue,
    is_invalid_char,
    primary_reason,
    require_text_layer,
)
from readflow_lib.sources import MemoryPageSource

from tests.helpers import block, image, line, page, single_column_page


def _blank(i):
    return page(index=i)


def _scan(i):
    return page(image(0, 0, 612, 792), index=i)


def test_blank_document_needs_ocr():
    verdict = OCRDetector().detect(MemoryPageSource([_blank(i) for i in range(5)]))
    assert verdict.needs_ocr
    assert verdict.issue_ratio == 1.0
    assert verdict.sampled_pages == [1, 2, 3, 4]
    assert verdict.primary_reason == "missing_text_content"


def test_dense_text_document_is_fine():
    verdict = OCRDetector().detect(MemoryPageSource([single_column_page(i) for i in range(8)]))
    assert not verdict.needs_ocr
    assert verdict.issue_ratio == 0.0
    assert verdict.primary_reason is None
    assert not verdict.expanded


def test_scanned_pages_are_reported_as_such():
    verdict = OCRDetector().detect(MemoryPageSource([_scan(i) for i in range(4)]))
    assert verdict.needs_ocr
    assert verdict.primary_reason == SCANNED_WITHOUT_OCR
    assert verdict.issue_counts[OCRIssue.LARGE_IMAGE_COVERAGE] == 3


def test_image_with_enough_text_is_not_a_scan():
    p = single_column_page()
    p = page(*p.blocks, image(0, 0, 612, 792))
    report = OCRDetector().analyze_page(p)
    assert OCRIssue.LARGE_IMAGE_COVERAGE not in report.issues
    assert report.metrics["imageCoverage"] == 1.0


def test_uncertain_ratio_expands_the_sample():
    pages = [_blank(i) if i % 2 else single_column_page(i) for i in range(25)]
    verdict = OCRDetector().detect(MemoryPageSource(pages))
    assert verdict.expanded
    assert verdict.sampled_pages == list(range(1, 21))
    assert verdict.issue_ratio == pytest.approx(0.5)
    assert not verdict.needs_ocr


def test_first_page_is_skipped_when_sampling():
    pages = [_blank(0)] + [single_column_page(i) for i in range(1, 10)]
    verdict = OCRDetector().detect(MemoryPageSource(pages))
    assert verdict.sampled_pages[0] == 1
    assert not verdict.needs_ocr

    verdict = OCRDetector(OCROptions(skip_first_page=False)).detect(MemoryPageSource(pages))
    assert verdict.sampled_pages[0] == 0
    # one bad page in six is uncertain, so the whole short document is sampled
    assert verdict.expanded
    assert verdict.issue_ratio == pytest.approx(0.1)


def test_empty_document_does_not_need_ocr():
    verdict = OCRDetector().detect(MemoryPageSource([]))
    assert not verdict.needs_ocr
    assert verdict.sampled_pages == []


def test_invalid_characters_need_a_short_page():
    garbled = page(block(line("a" * 140 + "�" * 60, 72, 100, 400)))
    report = OCRDetector().analyze_page(garbled)
    assert OCRIssue.INVALID_CHARACTERS in report.issues

    long_page = page(block(line("a" * 2000 + "�" * 300, 72, 100, 400)))
    report = OCRDetector().analyze_page(long_page)
    assert OCRIssue.INVALID_CHARACTERS not in report.issues


def test_is_invalid_char():
    assert is_invalid_char("�")
    assert is_invalid_char("\x07")
    assert is_invalid_char("\ue000")
    assert not is_invalid_char("\n")
    assert not is_invalid_char("é")


def test_bbox_checks_only_when_enabled():
    p = page(
        block(
            line("x" * 120, 700, 100, 300),
            line("overlapping one", 72, 200, 200),
            line("overlapping two", 72, 201, 200),
        )
    )
    assert OCRIssue.BBOX_OVERFLOW not in OCRDetector().analyze_page(p).issues

    report = OCRDetector(OCROptions(validate_bboxes=True)).analyze_page(p)
    assert OCRIssue.BBOX_OVERFLOW in report.issues
    assert OCRIssue.EXCESSIVE_LINE_OVERLAP in report.issues
    assert report.metrics["overlappingLines"] == 2


def test_primary_reason_prefers_most_common_issue():
    assert primary_reason(Counter()) is None
    counts = Counter({OCRIssue.INVALID_CHARACTERS: 4, OCRIssue.HIGH_WHITESPACE_RATIO: 1})
    assert primary_reason(counts) == "corrupted_text_encoding"


def test_require_text_layer_raises_with_details():
    verdict = OCRDetector().detect(MemoryPageSource([_blank(i) for i in range(5)]))
    with pytest.raises(TextLayerMissingError) as excinfo:
        require_text_layer(verdict)
    err = excinfo.value
    assert err.code == ErrorCode.NO_TEXT_LAYER
    assert err.details["issue_ratio"] == 1.0
    assert err.details["primary_reason"] == "missing_text_content"
    assert err.verdict is verdict

    fine = OCRDetector().detect(MemoryPageSource([single_column_page()]))
    assert require_text_layer(fine) is fine


def test_table_of_small_cells_is_not_flagged_for_newlines():
    cells = [
        block(line(f"row {i:02d}", 72 + (i % 4) * 120, 100 + (i // 4) * 14, 40))
        for i in range(60)
    ]
    report = OCRDetector().analyze_page(page(*cells))
    assert report.metrics["newlineRatio"] == round(59 / 419, 4)
    assert report.issues == []
