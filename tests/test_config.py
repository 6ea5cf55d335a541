import logging

import pytest

from readflow_lib.config import ExtractionOptions, load_options, save_options
from readflow_lib.errors import ErrorCode, ExtractionError


def _write(tmp_path, text):
    path = tmp_path / "readflow.ini"
    path.write_text(text)
    return str(path)


def test_load_options_overrides_defaults(tmp_path):
    path = _write(
        tmp_path,
        "[extraction]\nmode = lines\nworkers = 4\n\n"
        "[lines]\nbase_tolerance = 4.5\n\n"
        "[margins]\nsmart = false\nrepeat_threshold = 0.6\n\n"
        "[scoring]\nweight_heading = 5\n",
    )
    options = load_options(path)
    assert options.mode == "lines"
    assert options.workers == 4
    assert options.lines.base_tolerance == 4.5
    assert options.margins.smart is False
    assert options.margins.repeat_threshold == 0.6
    assert options.scoring.role_weights["heading"] == 5.0
    # untouched sections keep their defaults
    assert options.columns == ExtractionOptions().columns


def test_unknown_keys_and_sections_are_ignored(tmp_path, caplog):
    path = _write(tmp_path, "[lines]\nbogus = 1\n\n[plugins]\nfoo = bar\n")
    with caplog.at_level(logging.WARNING, logger="readflow.config"):
        options = load_options(path)
    assert options == ExtractionOptions()
    assert "bogus" in caplog.text
    assert "plugins" in caplog.text


@pytest.mark.parametrize(
    "text",
    [
        "[columns]\nmax_passes = many\n",
        "[ocr]\nvalidate_bboxes = perhaps\n",
        "[extraction]\nmode = sentences\n",
    ],
)
def test_invalid_values_raise(tmp_path, text):
    with pytest.raises(ExtractionError) as excinfo:
        load_options(_write(tmp_path, text))
    assert excinfo.value.code == ErrorCode.INVALID_CONFIG


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_options(str(tmp_path / "nope.ini"))


def test_saved_options_load_back(tmp_path):
    options = ExtractionOptions(mode="lines")
    options.styles.sample_size = 8
    options.ocr.validate_bboxes = True
    path = str(tmp_path / "saved.ini")
    save_options(options, path)
    assert load_options(path) == options


def test_margin_bands():
    margins = ExtractionOptions().margins
    assert margins.margins.top == 40
    assert margins.zone.left == 50
