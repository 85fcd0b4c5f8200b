"""
Logging for portfolio-sync.

Every module logger writes coloured lines to stdout and, when a log file is
configured, plain lines to a size-rotated file.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

PACKAGE_LOGGER = "portfolio_sync"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

Level = Union[int, str, None]
LogPath = Union[str, Path, None]

_RESET = "\033[0m"
_LEVEL_STYLES = {
    logging.DEBUG: "\033[90m",            # gray
    logging.INFO: "\033[92m",             # green
    logging.WARNING: "\033[93m",          # yellow
    logging.ERROR: "\033[91m",            # red
    logging.CRITICAL: "\033[91m\033[1m",  # bold red
}


class ColoredFormatter(logging.Formatter):
    """Wraps each formatted line in the ANSI style of its level."""

    def format(self, record: logging.LogRecord) -> str:
        style = _LEVEL_STYLES.get(record.levelno)
        line = super().format(record)
        return f"{style}{line}{_RESET}" if style else line


def _resolve_level(level: Level) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _build_handlers(level: int, log_file: LogPath) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    handlers: List[logging.Handler] = [console]

    path = log_file or os.getenv("PORTFOLIO_SYNC_LOG_FILE")
    if path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        rotating.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handlers.append(rotating)

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _install(logger: logging.Logger, level: int, handlers: List[logging.Handler]) -> logging.Logger:
    logger.setLevel(level)
    for handler in handlers:
        logger.addHandler(handler)
    # Root handlers would print every line twice
    logger.propagate = False
    return logger


def setup_logger(name: str, level: Level = None, log_file: LogPath = None) -> logging.Logger:
    """
    Configure a named logger once and return it.

    Args:
        name: Logger name, usually ``__name__``
        level: Level name or number; LOG_LEVEL env var, then INFO, if omitted
        log_file: Rotating log file; PORTFOLIO_SYNC_LOG_FILE env var if omitted,
            console only when neither is set

    Example:
        >>> logger = setup_logger("portfolio_sync.cache", level="DEBUG")
        >>> logger.debug("Cache ready")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved = _resolve_level(level)
    return _install(logger, resolved, _build_handlers(resolved, log_file))


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, set up with environment defaults on first use."""
    return setup_logger(name)


def configure_logging(level: Level = None, log_file: LogPath = None) -> None:
    """
    Apply the loaded configuration to every portfolio_sync logger.

    Module loggers are created at import time with environment defaults. This
    swaps their handlers for one shared set so that a single rotating file
    handler owns the log file.
    """
    resolved = _resolve_level(level)
    handlers = _build_handlers(resolved, log_file)

    for name in list(logging.root.manager.loggerDict):
        if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
            continue
        logger = logging.getLogger(name)
        for old in list(logger.handlers):
            logger.removeHandler(old)
            old.close()
        _install(logger, resolved, handlers)
