"""
Centralized logging configuration for Questline

Console output goes to stderr so command output on stdout stays parseable.
Quest context passed through ``extra`` (character, content, agent, tier) is
appended to each line.

Usage:
    from questline.utils.logger import get_logger, setup_logging

    # Setup logging at application start
    setup_logging(level="INFO")

    # In your module
    logger = get_logger(__name__)
    logger.info(
        "[QuestService] Quest stored",
        extra={"component": "QuestService", "character_id": "hero-1"},
    )
"""

import logging
import sys
from pathlib import Path
from typing import Literal, Optional

# Color codes for terminal output
COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# ``extra`` keys worth showing on the log line, in display order
CONTEXT_FIELDS = ("character_id", "content_id", "agent", "policy", "tier", "score")


def context_suffix(record: logging.LogRecord) -> str:
    """Render the quest context carried by a record, e.g. ``{character_id=hero-1}``"""
    parts = [
        f"{field}={getattr(record, field)}"
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    ]
    return f" {{{', '.join(parts)}}}" if parts else ""


class QuestContextFormatter(logging.Formatter):
    """Formatter that appends quest context fields to the message"""

    def format(self, record):
        return super().format(record) + context_suffix(record)


class ColoredFormatter(QuestContextFormatter):
    """Adds colors to level and logger name on top of the quest context"""

    def format(self, record):
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        record.name = f"\033[94m{record.name}\033[0m"  # Blue
        return super().format(record)


def setup_logging(
    level: LogLevel = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
    include_timestamp: bool = True,
) -> None:
    """
    Setup logging for the quest engine

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file; parent directories are created
        enable_colors: Whether to color console output (only on a TTY)
        include_timestamp: Whether to include timestamp in log messages
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if include_timestamp:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"
    else:
        fmt = "%(levelname)-8s | %(name)s | %(message)s"
        datefmt = None

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    if enable_colors and sys.stderr.isatty():
        console_handler.setFormatter(ColoredFormatter(fmt, datefmt=datefmt))
    else:
        console_handler.setFormatter(QuestContextFormatter(fmt, datefmt=datefmt))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(QuestContextFormatter(fmt, datefmt=datefmt))
        root_logger.addHandler(file_handler)

    # Provider and vector store clients log every request at INFO
    for noisy in ("httpx", "httpcore", "urllib3", "openai", "chromadb"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized at {level} level")
    if log_file:
        root_logger.info(f"Logging to file: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)
