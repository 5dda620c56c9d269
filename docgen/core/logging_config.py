"""
Logging setup for docgen.

The API server and the CLI crawl both write to one rotating file and,
optionally, the console:

    logs/docgen/system.log      (LOG_DIR overrides the directory)

Modules log through the standard library with a bracketed component prefix:

    logger = logging.getLogger(__name__)
    logger.info("[JobQueue] Started 4 workers for 'curl-generation'")

Call setup_logging() once per process; later calls are no-ops.

Debugging:
    tail -f logs/docgen/system.log
    grep "\\[CrawlLoop\\]" logs/docgen/system.log
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOG_DIR = "logs/docgen"
LOG_FILE_NAME = "system.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB per file
BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-30s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-20s | %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "sentence_transformers", "urllib3")

_log_file: Optional[Path] = None
_configured = False


def _file_handler(path: Path, level: int) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, FILE_DATE_FORMAT))
    return handler


def _console_handler(level: int) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, CONSOLE_DATE_FORMAT))
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    service_name: str = "docgen",
    log_dir: Optional[Union[str, Path]] = None,
) -> None:
    """
    Install the root handlers for this process.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Falls back to LOG_LEVEL, then INFO.
        log_to_console: Also log to stdout
        log_to_file: Write the rotating system.log
        service_name: Logger used for the startup banner ("docgen", "cli")
        log_dir: Directory for system.log. Falls back to LOG_DIR, then logs/docgen.
    """
    global _configured, _log_file

    if _configured:
        return

    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if log_to_file:
        _log_file = Path(log_dir or os.getenv("LOG_DIR") or DEFAULT_LOG_DIR) / LOG_FILE_NAME
        root.addHandler(_file_handler(_log_file, log_level))
    if log_to_console:
        root.addHandler(_console_handler(log_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True

    banner = logging.getLogger(service_name)
    banner.info("=" * 60)
    banner.info(f"LOGGING INITIALIZED - {service_name.upper()} ({level_name})")
    if _log_file is not None:
        banner.info(f"Log file: {_log_file.absolute()}")
    banner.info("=" * 60)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_crawl_step(
    logger: logging.Logger,
    run_id: str,
    step: int,
    action: str,
    elapsed_ms: Optional[float] = None,
) -> None:
    """One line per executed browser action."""
    elapsed = f" | elapsed={elapsed_ms:.0f}ms" if elapsed_ms else ""
    logger.info(f"[CrawlLoop] [{run_id}] STEP {step} | {action}{elapsed}")
