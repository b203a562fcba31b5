"""
Logging setup for the VisionScan API.

Console output is colored when stdout is a terminal. Model runtimes
(transformers, onnxruntime, ultralytics, insightface) log a lot during
weight downloads and session creation, so they are held at WARNING
unless the app itself runs at DEBUG.
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Third-party loggers that flood the console during model acquisition
MODEL_RUNTIME_LOGGERS = (
    "transformers",
    "huggingface_hub",
    "onnxruntime",
    "ultralytics",
    "insightface",
    "PIL",
)

TRANSPORT_LOGGERS = ("httpx", "httpcore", "urllib3", "uvicorn.access")


class ColoredFormatter(logging.Formatter):
    """Wraps the level name in an ANSI color."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if not color:
            return super().format(record)
        # Copy so other handlers see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    use_colors: Optional[bool] = None,
) -> None:
    """
    Configure the root logger with a single stdout handler.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string (optional)
        use_colors: Force colors on/off; by default colors follow isatty()
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    if use_colors is None:
        use_colors = sys.stdout.isatty()

    fmt = format_string or DEFAULT_FORMAT
    formatter_cls = ColoredFormatter if use_colors else logging.Formatter

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter_cls(fmt, datefmt="%H:%M:%S"))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = [handler]

    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    runtime_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in MODEL_RUNTIME_LOGGERS:
        logging.getLogger(name).setLevel(runtime_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_error(logger: logging.Logger, error: Exception, context: Optional[str] = None) -> None:
    """Log an exception with its traceback, prefixed by an optional context tag."""
    prefix = f"[{context}] " if context else ""
    logger.error(f"{prefix}{type(error).__name__}: {error}", exc_info=error)
