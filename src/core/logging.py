"""
Logging infrastructure for Smart Audio.

Console output is human-readable; the log directory receives a rotating
text log and, optionally, a JSON-lines log for the monitor's transitions.
"""

import json
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.core.paths import LOG_DIR

CONSOLE_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s: %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Log rotation settings
MAX_LOG_SIZE_MB = 5
MAX_LOG_FILES = 3

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


class StructuredLogFormatter(logging.Formatter):
    """Formatter that emits one JSON object per record."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in _RESERVED_RECORD_ATTRS:
                    continue
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)

            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data)


class ColoredConsoleFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None, use_colors: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        original_levelname = record.levelname
        color = self.COLORS.get(record.levelno, "")
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


def setup_logging(
    console_level: int | str = DEFAULT_CONSOLE_LEVEL,
    file_level: int | str = DEFAULT_FILE_LEVEL,
    log_dir: Path | str | None = None,
    log_file: str | None = "smart_audio.log",
    structured_file: str | None = "smart_audio.jsonl",
    use_colors: bool = True,
) -> logging.Logger:
    """
    Set up logging for the Smart Audio monitor.

    Args:
        console_level: Log level for console output
        file_level: Log level for file output
        log_dir: Directory for log files (defaults to LOG_DIR)
        log_file: Name of the text log file (None to disable file logging)
        structured_file: Name of the JSON log file (None to disable)
        use_colors: Use colored output in console

    Returns:
        Root logger instance
    """
    if isinstance(console_level, str):
        console_level = getattr(logging, console_level.upper())
    if isinstance(file_level, str):
        file_level = getattr(logging, file_level.upper())

    log_dir = LOG_DIR if log_dir is None else Path(log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        ColoredConsoleFormatter(
            fmt=CONSOLE_FORMAT,
            datefmt=CONSOLE_DATE_FORMAT,
            use_colors=use_colors,
        )
    )
    root_logger.addHandler(console_handler)

    if log_file or structured_file:
        log_dir.mkdir(parents=True, exist_ok=True)

    if log_file:
        file_handler = RotatingFileHandler(
            log_dir / log_file,
            maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
            backupCount=MAX_LOG_FILES,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        root_logger.addHandler(file_handler)

    if structured_file:
        structured_handler = RotatingFileHandler(
            log_dir / structured_file,
            maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
            backupCount=MAX_LOG_FILES,
            encoding="utf-8",
        )
        structured_handler.setLevel(file_level)
        structured_handler.setFormatter(StructuredLogFormatter())
        root_logger.addHandler(structured_handler)

    # APScheduler logs every job execution at INFO; the poll runs every 2s
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialized (console: {logging.getLevelName(console_level)}, "
        f"file: {logging.getLevelName(file_level)})"
    )

    return root_logger


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: Exception,
    level: int = logging.ERROR,
    **extra: Any,
) -> None:
    """
    Log an exception with context.

    Args:
        logger: Logger to use
        message: Log message
        exc: Exception to log
        level: Log level
        **extra: Extra fields to include
    """
    logger.log(
        level,
        f"{message}: {type(exc).__name__}: {exc}",
        exc_info=True,
        extra=extra,
    )
