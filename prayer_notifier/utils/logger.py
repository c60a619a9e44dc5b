"""Prayer Notifier — Logging Setup.

Provides a centralized logging configuration with colored console output
and a rotating file handler. All modules should use get_logger() to obtain
a named logger instance.
"""

from __future__ import annotations

import copy
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# ── Constants ─────────────────────────────────────────────
LOG_DIR = Path(
    os.environ.get(
        "PRAYER_NOTIFIER_LOG_DIR",
        Path(__file__).resolve().parent.parent.parent / "logs",
    )
)
LOG_FILE = LOG_DIR / "prayer_notifier.log"
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

# ── ANSI Color Codes ─────────────────────────────────────
COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[41m",  # Red background
}
RESET = "\033[0m"

_initialized = False


class ColoredFormatter(logging.Formatter):
    """Formatter that adds ANSI colors to the level name and timestamp.

    Works on a copy of the record so the file handler still sees the
    plain level name.
    """

    def format(self, record: logging.LogRecord) -> str:
        colored = copy.copy(record)
        color = COLORS.get(colored.levelname, "")
        colored.levelname = f"{color}{colored.levelname:<8}{RESET}"
        colored.asctime = f"{color}{self.formatTime(colored, self.datefmt)}{RESET}"
        return super().format(colored)


def _setup_logging() -> None:
    """Initialize the global logging configuration.

    Sets up two handlers on the package logger:
    - Console handler: INFO level with colored timestamps.
    - Rotating file handler: DEBUG level, 10MB max, 5 backups.

    Idempotent. If the log directory cannot be created the file handler
    is skipped and a warning goes to the console.
    """
    global _initialized
    if _initialized:
        return

    pkg_logger = logging.getLogger("prayer_notifier")
    pkg_logger.setLevel(logging.DEBUG)

    # ── Console Handler (INFO) ───────────────────────────
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(ColoredFormatter(
        fmt="%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    pkg_logger.addHandler(console_handler)

    # ── Rotating File Handler (DEBUG) ────────────────────
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(LOG_FILE),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        pkg_logger.warning("File logging disabled (%s): %s", LOG_DIR, e)
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        pkg_logger.addHandler(file_handler)

    _initialized = True


def set_console_level(level: str) -> None:
    """Change the console handler level (e.g. from config's log_level).

    Args:
        level: Level name such as "DEBUG" or "WARNING".
    """
    _setup_logging()
    for handler in logging.getLogger("prayer_notifier").handlers:
        if not isinstance(handler, RotatingFileHandler):
            handler.setLevel(level.upper())


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance with the global configuration applied.

    All package modules should use this function instead of calling
    logging.getLogger() directly.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        A configured logging.Logger instance.
    """
    _setup_logging()
    return logging.getLogger(name)


def mask_token(token: str, visible: int = 10) -> str:
    """Shorten a device token for log output.

    Args:
        token: Full device token.
        visible: Number of leading characters to keep.

    Returns:
        Truncated token like 'abcdef1234...'.
    """
    if not token:
        return ""
    if len(token) <= visible:
        return token
    return f"{token[:visible]}..."
