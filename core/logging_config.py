# core/logging_config.py
"""Route Galforge log records to the console and an optional rotating log file.

`setup_galforge_logging()` is called once by the CLI before the pipeline
starts. When the Rich progress panel is enabled, console records go through
a `RichHandler` bound to the panel's shared console so log lines scroll above
the live display instead of tearing it.
"""

import logging as stdlib_logging
import logging.handlers
import os

import structlog
from rich.logging import RichHandler

import config
from config import rich_formatter, simple_formatter
from ui.rich_display import RichDisplayManager

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Per-request chatter from the HTTP stack and graph runtime.
QUIET_LOGGERS = ("httpx", "httpcore", "langgraph")


def _file_handler(level: str) -> stdlib_logging.Handler | None:
    if not config.LOG_FILE:
        return None
    log_path = os.path.join(config.BASE_OUTPUT_DIR, config.LOG_FILE)
    os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
    handler = stdlib_logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(simple_formatter)
    return handler


def _console_handler(level: str) -> stdlib_logging.Handler:
    if config.ENABLE_RICH_PROGRESS and not config.SIMPLE_LOGGING_MODE:
        handler: stdlib_logging.Handler = RichHandler(
            level=level,
            console=RichDisplayManager.get_shared_console(),
            rich_tracebacks=True,
            markup=True,
            show_path=False,
            show_time=False,
            show_level=False,
        )
        handler.setFormatter(rich_formatter)
        return handler
    handler = stdlib_logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(simple_formatter)
    return handler


def setup_galforge_logging() -> None:
    """Replace the root handlers with Galforge's console and file handlers.

    Simple logging mode skips the log file and the Rich handler entirely.
    A log file that cannot be opened is reported and the run continues with
    console output only.
    """
    level = config.LOG_LEVEL_STR
    root_logger = stdlib_logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    root_logger.addHandler(_console_handler(level))

    log_file_error: OSError | None = None
    if not config.SIMPLE_LOGGING_MODE:
        try:
            file_handler = _file_handler(level)
        except OSError as e:
            log_file_error = e
        else:
            if file_handler is not None:
                root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        stdlib_logging.getLogger(name).setLevel(stdlib_logging.WARNING)

    logger = structlog.get_logger(__name__)
    if log_file_error is not None:
        logger.error("Could not open log file, logging to console only", error=str(log_file_error))
    logger.info(
        "Logging configured",
        level=level,
        log_file=None if config.SIMPLE_LOGGING_MODE else config.LOG_FILE,
        rich=config.ENABLE_RICH_PROGRESS and not config.SIMPLE_LOGGING_MODE,
    )
