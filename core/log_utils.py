#!/usr/bin/env python3
"""
core/log_utils.py: Logging setup shared by the readflow tools.
This module contains:
- setup_logging: installs console/file handlers and per-topic DEBUG levels.
- ContextFilter: tags every record with the document being processed.
- RichLogFormatter: colored, topic-aligned console output.
"""

import logging

PROJECT_TOPICS = {
    "readflow": {
        "api",
        "columns",
        "compose",
        "config",
        "layout",
        "lines",
        "margins",
        "ocr",
        "paragraphs",
        "search",
        "source",
        "styles",
    },
}

# Libraries whose INFO/DEBUG chatter drowns out our own topics.
NOISY_LOGGERS = ("pdfminer", "pdfminer.psparser", "pdfminer.pdfinterp", "pdfminer.cmapdb")


def resolve_topics(project_name: str, debug_topics: str | None) -> set[str]:
    """Expands a comma list of topic prefixes ('all', 'col,lin') to full topic names."""
    if not debug_topics:
        return set()
    valid_topics = PROJECT_TOPICS.get(project_name, set())
    user_topics = [t.strip() for t in debug_topics.split(",") if t.strip()]
    if "all" in user_topics:
        return set(valid_topics)
    return {full for u in user_topics for full in valid_topics if full.startswith(u)}


def setup_logging(
    project_name: str,
    level=logging.INFO,
    color_logs=False,
    debug_topics=None,
    log_file: str = None,
    context: str = "",
):
    """Configures logging for the application."""
    root_logger = logging.getLogger()
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)
        h.close()

    context_filter = ContextFilter(context)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(RichLogFormatter(use_color=color_logs))
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
            file_handler.setFormatter(RichLogFormatter(use_color=False))
            file_handler.addFilter(context_filter)
            root_logger.addHandler(file_handler)
            logging.getLogger(project_name).info("Logging to file: %s", log_file)
        except IOError as e:
            logging.getLogger(project_name).error(
                "Could not open log file %s: %s", log_file, e
            )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    topics = resolve_topics(project_name, debug_topics)
    if debug_topics and not topics:
        logging.getLogger(project_name).warning(
            "No debug topics match '%s'. Available: %s",
            debug_topics,
            ", ".join(sorted(PROJECT_TOPICS.get(project_name, ()))),
        )
    for topic in topics:
        logging.getLogger(f"{project_name}.{topic}").setLevel(logging.DEBUG)
    return context_filter


class ContextFilter(logging.Filter):
    """
    A logging filter that injects contextual information into log records.
    """

    def __init__(self, context_str=""):
        super().__init__()
        self.context_str = context_str

    def filter(self, record):
        record.context = self.context_str
        return True


# --- CUSTOM LOGGING FORMATTER ---
LEVEL_COLORS = {
    logging.DEBUG: "\033[38;5;252m",  # Light Grey
    logging.INFO: "\033[38;5;111m",  # Pastel Blue
    logging.WARNING: "\033[38;5;229m",  # Pale Yellow
    logging.ERROR: "\033[38;5;210m",  # Soft Red
    logging.CRITICAL: "\033[38;5;217m",  # Light Magenta
}


class RichLogFormatter(logging.Formatter):
    """Formats records as 'LEVEL:topic [context]: message', one prefix per line.

    Args:
        use_color (bool): If True, ANSI color codes are used. Defaults to False.
    """

    TOPIC_WIDTH = 7

    def __init__(self, use_color=False):
        super().__init__()
        self.use_color = use_color
        self.bold = "\033[1m" if use_color else ""
        self.reset = "\033[0m" if use_color else ""

    def format(self, record):
        color = LEVEL_COLORS.get(record.levelno, "") if self.use_color else ""
        level_name = record.levelname[:5]

        # Topic is the logger name after the project prefix.
        name_parts = record.name.split(".")
        topic = name_parts[1] if len(name_parts) > 1 else record.name
        topic = topic[: self.TOPIC_WIDTH]

        context = getattr(record, "context", "")
        context_str = f"[{context}]" if context else ""

        prefix = (
            f"{color}{level_name:<5}{self.reset}:"
            f"{self.bold}{topic:<{self.TOPIC_WIDTH}}{self.reset}{context_str}: "
        )
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return "\n".join(f"{prefix}{line}" for line in message.split("\n"))
