#!/usr/bin/env python3
"""
readflow: Reading-order text extraction from PDFs and structured-text dumps.

Reconstructs columns, lines and block roles (heading, body, caption, footnote)
from positioned page text, removes running headers and footers, and can
check whether a document needs OCR before extracting it.
"""

import argparse
import json
import logging
import os
import random
import sys
import time

# --- Dependency Imports ---
try:
    from rich.console import Console
    from rich.table import Table
except ImportError as e:
    print(f"Error: Missing required library. -> {e}")
    print("Please install all core dependencies with:")
    print("pip install pdfminer.six rich")
    sys.exit(1)

# --- Local Application Imports ---
from core.log_utils import setup_logging
from readflow_lib.api import page_indices, rank_pages
from readflow_lib.config import MODES, ExtractionOptions, load_options
from readflow_lib.errors import ExtractionError, TextLayerMissingError
from readflow_lib.extractor import DocumentExtractor
from readflow_lib.sources import open_source

# --- LOGGING SETUP ---
log = logging.getLogger("readflow")


# --- CUSTOM ARGPARSE FORMATTER ---
class CustomHelpFormatter(
    argparse.ArgumentDefaultsHelpFormatter, argparse.RawTextHelpFormatter
):
    """
    A custom argparse formatter that combines showing default values with
    preserving newline formatting in help text.
    """

    pass


class Application:
    """Orchestrates the extraction workflow based on command-line arguments."""

    def __init__(self, args, console=None):
        self.args = args
        self.console = console or Console()
        self.stats = {}

    def run(self):
        """Main entry point for the application logic."""
        self.stats["start_time"] = time.monotonic()
        setup_logging(
            project_name="readflow",
            level=logging.INFO if self.args.verbose else logging.WARNING,
            color_logs=self.args.color_logs,
            debug_topics=self.args.debug_topics,
            log_file=self.args.log_file,
            context=os.path.basename(self.args.document),
        )
        options = self.build_options()
        source = open_source(self.args.document)
        rng = random.Random(self.args.seed) if self.args.seed is not None else None
        extractor = DocumentExtractor(source, options, rng)
        pages = page_indices(self.args.pages)

        if self.args.search:
            self._run_search(extractor, pages)
        else:
            self._run_extraction(extractor, pages)
        self._display_epilogue()

    def build_options(self) -> ExtractionOptions:
        """Loads the config file, then applies command-line overrides."""
        options = load_options(self.args.config) if self.args.config else ExtractionOptions()
        if self.args.mode:
            options.mode = self.args.mode
        if self.args.workers:
            options.workers = self.args.workers
        if self.args.strict_margins:
            options.margins.smart = False
        if self.args.check_ocr:
            options.check_ocr = True
        if self.args.require_text_layer:
            options.require_text_layer = True
        if self.args.sample_size is not None:
            options.styles.sample_size = self.args.sample_size
        return options

    def _run_extraction(self, extractor, pages):
        extract_start = time.monotonic()
        try:
            result = extractor.extract(pages)
        except TextLayerMissingError as e:
            self._display_ocr_verdict(e.verdict)
            raise
        self.stats["extract_duration"] = time.monotonic() - extract_start
        self.stats["pages_processed"] = len(result.pages)

        if result.analysis.ocr is not None:
            self._display_ocr_verdict(result.analysis.ocr)
        if self.args.summary:
            self._display_summary(result)
        if self.args.json_file:
            self._save_json(result.to_dict(), self.args.json_file)

        text = result.full_text
        if self.args.output_file:
            self._save_text(text, self.args.output_file)
        elif not self.args.summary:
            print(text)

    def _run_search(self, extractor, pages):
        scored = rank_pages(extractor, self.args.search, pages)
        self.stats["pages_processed"] = len(pages) if pages else extractor.source.page_count()

        if not scored:
            self.console.print(f"No matches for '{self.args.search}'.")
            return
        table = Table(title=f"Results for '{self.args.search}'")
        table.add_column("Page", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Hits", justify="right")
        table.add_column("Roles")
        for entry in scored:
            page = extractor.fetch_page(entry.page_index)
            roles = sorted({h.role for h in entry.hits})
            table.add_row(
                page.label or str(page.number),
                f"{entry.score:.3f}",
                str(len(entry.hits)),
                ", ".join(roles),
            )
        self.console.print(table)
        if self.args.json_file:
            self._save_json([s.to_dict() for s in scored], self.args.json_file)

    def _display_ocr_verdict(self, verdict):
        status = "[bold red]needs OCR[/]" if verdict.needs_ocr else "[green]text layer OK[/]"
        self.console.print(
            f"OCR check: {status} (issue ratio {verdict.issue_ratio:.0%} over "
            f"{len(verdict.sampled_pages)} page(s), reason: {verdict.primary_reason or 'none'})"
        )

    def _display_summary(self, result):
        """Prints a per-page table of the reconstructed layout."""
        table = Table(title="Layout Summary")
        for name in ("Page", "Columns", "Blocks", "Roles", "Removed", "Dropped", "Chars"):
            table.add_column(name, justify="left" if name == "Roles" else "right")
        for page in result.pages:
            roles = {}
            for block in page.blocks:
                roles[block.role] = roles.get(block.role, 0) + 1
            table.add_row(
                (page.label or str(page.number)) + (" [red](broken)[/]" if page.is_broken else ""),
                str(len(page.columns)),
                str(len(page.blocks)),
                ", ".join(f"{r}:{n}" for r, n in sorted(roles.items())),
                str(page.removed_lines),
                str(page.unassigned_blocks),
                f"{len(page.content):,}",
            )
        self.console.print(table)
        profile = result.analysis.profile
        self.console.print(
            f"Body style: {profile.primary.font} {profile.primary.size}pt "
            f"({len(profile.body_styles)} body style(s))"
        )
        plan = result.analysis.plan
        if plan is not None and plan.candidates:
            self.console.print(f"Removed {len(plan)} running header/footer pattern(s):")
            for c in plan.candidates[:10]:
                self.console.print(f"  - {c.position}: '{c.original_text}' ({c.reason})")

    def _display_epilogue(self):
        total = time.monotonic() - self.stats.get("start_time", time.monotonic())
        log.info(
            "--- Done: %d page(s) in %.1fs ---", self.stats.get("pages_processed", 0), total
        )

    def _save_text(self, text, path):
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(text)
            log.info("Extracted text saved to: '%s'", path)
        except IOError as e:
            log.error("Error saving text: %s", e)

    def _save_json(self, data, path):
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            log.info("JSON output saved to: '%s'", path)
        except IOError as e:
            log.error("Error saving JSON: %s", e)

    @staticmethod
    def parse_arguments(args=None):
        """Parses command-line arguments for the script."""
        examples = [
            "\nExamples:",
            "  python readflow.py document.pdf -o document.txt",
            "  python readflow.py document.pdf --mode lines --pages 1-5 --summary",
            "  python readflow.py dump.json --json layout.json",
            "  python readflow.py document.pdf --search 'dragon'",
            "  python readflow.py document.pdf --require-text-layer -d ocr,col",
        ]
        parser = argparse.ArgumentParser(
            description="Reading-order text extraction from PDFs and page dumps.",
            formatter_class=CustomHelpFormatter,
            add_help=False,
            epilog="\n".join(examples),
        )

        g_opts = parser.add_argument_group("Main Options")
        g_opts.add_argument("document", help="Path to the input PDF or JSON page dump.")
        g_opts.add_argument(
            "-h", "--help", action="help", help="Show this help message and exit."
        )
        g_opts.add_argument(
            "-c", "--config", metavar="FILE", default=None, help="INI file with options."
        )

        g_proc = parser.add_argument_group("Processing Control")
        g_proc.add_argument(
            "-p",
            "--pages",
            default="all",
            metavar="PAGES",
            help="Pages to process (e.g., '1,3,5-7').",
        )
        g_proc.add_argument(
            "-m",
            "--mode",
            choices=MODES,
            default=None,
            help="Compose pages from whole blocks, column lines or paragraphs. (default: blocks)",
        )
        g_proc.add_argument(
            "--strict-margins",
            action="store_true",
            help="Drop all margin-band text instead of only repeating headers/footers.",
        )
        g_proc.add_argument(
            "-w",
            "--workers",
            type=int,
            default=None,
            help="Worker threads for per-page processing. (default: 1)",
        )
        g_proc.add_argument(
            "--sample-size",
            type=int,
            default=None,
            metavar="N",
            help="Profile styles from N random pages instead of all pages.",
        )
        g_proc.add_argument(
            "--seed",
            type=int,
            default=None,
            help="Random seed for page sampling, for repeatable runs.",
        )

        g_ocr = parser.add_argument_group("Text Layer Check")
        g_ocr.add_argument(
            "--check-ocr",
            action="store_true",
            help="Report whether the document appears to need OCR.",
        )
        g_ocr.add_argument(
            "--require-text-layer",
            action="store_true",
            help="Abort with an error when the document needs OCR.",
        )

        g_out = parser.add_argument_group("Script Output & Actions")
        g_out.add_argument(
            "-s", "--search", metavar="QUERY", default=None, help="Rank pages by matches."
        )
        g_out.add_argument(
            "-o", "--output-file", metavar="FILE", default=None, help="Save extracted text."
        )
        g_out.add_argument(
            "-j",
            "--json",
            dest="json_file",
            metavar="FILE",
            default=None,
            help="Save the structured result as JSON.",
        )
        g_out.add_argument(
            "-S", "--summary", action="store_true", help="Print a per-page layout table."
        )
        g_out.add_argument(
            "--log-file",
            metavar="FILE",
            default=None,
            help="Redirect all logging output to a specified file.",
        )
        g_out.add_argument(
            "--color-logs",
            action="store_true",
            help="Enable colored logging output.",
        )
        g_out.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Enable INFO logging for detailed progress.",
        )
        g_out.add_argument(
            "-d",
            "--debug",
            nargs="?",
            const="all",
            dest="debug_topics",
            metavar="TOPICS",
            help="Enable DEBUG logging (all,columns,lines,paragraphs,styles,margins,ocr,...).",
        )

        return parser.parse_args(args)


def main():
    """Main entry point for the script."""
    # Basic logging config for early errors before full setup
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    try:
        args = Application.parse_arguments(sys.argv[1:])
        app = Application(args)
        app.run()
    except FileNotFoundError as e:
        log.critical(str(e))
        sys.exit(1)
    except ExtractionError as e:
        log.critical("%s", e)
        if e.details:
            log.critical(json.dumps(e.details, indent=2, default=str))
        sys.exit(1)
    except KeyboardInterrupt:
        log.info("\nProcess interrupted by user. Exiting.")
        sys.exit(0)
    except Exception as e:
        log.critical("\nAn unexpected error occurred: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
