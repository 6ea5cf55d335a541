import io
import json
import sys

import pytest
from rich.console import Console

import readflow
from readflow import Application


@pytest.fixture(autouse=True)
def no_logging_setup(mocker):
    return mocker.patch("readflow.setup_logging")


def _app(argv):
    console = Console(file=io.StringIO(), width=120)
    return Application(Application.parse_arguments(argv), console=console)


def test_parse_arguments_defaults():
    args = Application.parse_arguments(["book.pdf"])
    assert args.document == "book.pdf"
    assert args.pages == "all"
    assert args.mode is None
    assert args.debug_topics is None
    assert not args.strict_margins
    assert args.seed is None

    args = Application.parse_arguments(["book.pdf", "-d", "-m", "lines", "-j", "out.json"])
    assert args.debug_topics == "all"
    assert args.mode == "lines"
    assert args.json_file == "out.json"


def test_command_line_overrides_config(tmp_path):
    config = tmp_path / "readflow.ini"
    config.write_text("[extraction]\nworkers = 2\n\n[styles]\nsample_size = 3\n")
    app = _app(
        ["book.pdf", "-c", str(config), "-m", "lines", "--strict-margins", "--require-text-layer"]
    )
    options = app.build_options()
    assert options.workers == 2
    assert options.styles.sample_size == 3
    assert options.mode == "lines"
    assert options.margins.smart is False
    assert options.require_text_layer is True
    assert options.check_ocr is False


def test_run_writes_extracted_text(book_json, tmp_path, no_logging_setup):
    out = tmp_path / "book.txt"
    _app([book_json, "-o", str(out), "-p", "1-3"]).run()
    text = out.read_text(encoding="utf-8")
    assert text
    assert "The Tale of Readflow" not in text
    assert no_logging_setup.call_args.kwargs["context"] == "book.json"


def test_run_summary_and_json(book_json, tmp_path):
    out = tmp_path / "layout.json"
    app = _app([book_json, "-S", "-j", str(out), "--check-ocr"])
    app.run()
    data = json.loads(out.read_text(encoding="utf-8"))
    assert len(data["pages"]) == 10
    assert data["analysis"]["ocr"]["needsOCR"] is False
    output = app.console.file.getvalue()
    assert "Layout Summary" in output
    assert "OCR check" in output


def test_run_search_prints_ranking(book_json):
    app = _app([book_json, "-s", "sphinx"])
    app.run()
    assert "Results for 'sphinx'" in app.console.file.getvalue()

    app = _app([book_json, "-s", "griffin"])
    app.run()
    assert "No matches" in app.console.file.getvalue()


def _run_main(monkeypatch, argv):
    monkeypatch.setattr(sys, "argv", ["readflow.py"] + argv)
    with pytest.raises(SystemExit) as excinfo:
        readflow.main()
    return excinfo.value.code


def test_main_exits_on_missing_file(monkeypatch, tmp_path):
    assert _run_main(monkeypatch, [str(tmp_path / "missing.pdf")]) == 1


def test_main_exits_when_text_layer_is_required(monkeypatch, blank_json, mocker):
    mocker.patch("readflow.Console", return_value=Console(file=io.StringIO()))
    assert _run_main(monkeypatch, [blank_json, "--require-text-layer"]) == 1
