"""
Logging configuration.

Console output plus a rotating `storybook.log` under settings.logs_dir.

Usage:
    from config.logging_config import get_logger
    logger = get_logger(__name__)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_NAME = "storybook.log"
_LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
_LOG_FILE_BACKUPS = 3

_configured = False


def setup_logging(level: str | None = None, logs_dir: Path | None = None) -> None:
    """Configure the root logger once (console and file handlers, LOG_LEVEL env var)."""
    global _configured
    if _configured:
        return

    if logs_dir is None:
        from config.settings import settings
        logs_dir = settings.logs_dir

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    formatter = logging.Formatter(_LOG_FORMAT, _DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)

    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = RotatingFileHandler(
        logs_dir / LOG_FILE_NAME,
        maxBytes=_LOG_FILE_MAX_BYTES,
        backupCount=_LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    log_file.setFormatter(formatter)

    root = logging.getLogger()
    root.addHandler(console)
    root.addHandler(log_file)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # pdf2image / PIL are chatty at DEBUG
    logging.getLogger("PIL").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
