"""
Logging configuration for treemirror.

Library code only ever calls ``logging.getLogger(__name__)``; embedders
that want files on disk call ``setup_logging`` once at startup.

Logs go to: <log_dir>/treemirror-YYYY-MM-DD.log (rotated at midnight)
Console logging to stderr is opt-in via console=True.

Environment Variables:
- TREEMIRROR_LOG_DIR: default log directory (default: .treemirror/logs)
- TREEMIRROR_DEBUG: "1"/"true" makes DEBUG the default level, which
  includes a line per poll cycle
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "treemirror"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"


class FlushingHandler(logging.handlers.TimedRotatingFileHandler):
    """Handler that flushes after every emit for immediate visibility."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def default_log_dir() -> Path:
    configured = os.getenv("TREEMIRROR_LOG_DIR")
    if configured:
        return Path(configured)
    return Path.cwd() / ".treemirror" / "logs"


def default_level() -> int:
    if os.getenv("TREEMIRROR_DEBUG", "").lower() in ("1", "true", "yes", "on"):
        return logging.DEBUG
    return logging.INFO


def setup_logging(
    log_dir: Optional[Path] = None,
    level: Optional[int] = None,
    backup_count: int = 7,
    console: bool = False,
) -> logging.Logger:
    """
    Attach a daily-rotating file handler to the ``treemirror`` logger.

    Safe to call repeatedly: a second call only adjusts the level and adds
    the console handler if it is newly requested.

    Args:
        log_dir: Directory for log files (default: ``default_log_dir()``)
        level: Logging level (default: ``default_level()``)
        backup_count: Number of daily backup files to keep
        console: If True, also log to stderr

    Returns:
        The configured ``treemirror`` logger
    """
    log_dir = Path(log_dir) if log_dir is not None else default_log_dir()
    level = level if level is not None else default_level()
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    if not any(isinstance(h, FlushingHandler) for h in logger.handlers):
        log_file = log_dir / f"{LOGGER_NAME}-{datetime.now().strftime('%Y-%m-%d')}.log"
        file_handler = FlushingHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info(f"Logging initialized: {log_file} (level {logging.getLevelName(level)})")

    if console and not _has_console_handler(logger):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def _has_console_handler(logger: logging.Logger) -> bool:
    return any(
        type(h) is logging.StreamHandler and getattr(h, "stream", None) is sys.stderr
        for h in logger.handlers
    )


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)
