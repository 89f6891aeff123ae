"""
Logging for face_auth

Every module logs through a child of the "face_auth" logger:

    from face_auth.core.logger import get_logger
    logger = get_logger(__name__)

    logger.info("Face model ready")        # [OK] Face model ready
    logger.warning("No face detected")     # [WARNING] No face detected

Console lines carry an [OK] / [WARNING] / [ERROR] prefix; the optional
LOG_FILE gets the same lines with a timestamp and logger name. Both handlers
run the record through SecretFilter, so a password or salt that slips into a
message is masked before it is written.
"""

import os
import re
import sys
import logging
from typing import Optional, TextIO
from pathlib import Path


ROOT_LOGGER_NAME = "face_auth"

LEVEL_PREFIXES = {
    logging.DEBUG: "[DEBUG]",
    logging.INFO: "[OK]",
    logging.WARNING: "[WARNING]",
    logging.ERROR: "[ERROR]",
    logging.CRITICAL: "[CRITICAL]",
}

# key=value / key: value pairs whose value must never reach a log sink
_SECRET_PATTERN = re.compile(
    r"(?P<key>\b(?:password|secret|secret_hash|secret_salt|salt)\b\s*[=:]\s*)(?P<value>[^\s,;)]+)",
    re.IGNORECASE,
)
MASK = "***"


class SecretFilter(logging.Filter):
    """Masks credential values in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SECRET_PATTERN.sub(lambda m: m.group("key") + MASK, message)
        if masked != message:
            record.msg, record.args = masked, None
        return True


class PrefixFormatter(logging.Formatter):
    """
    "[OK] message" on the console, "[OK] 2024-01-01 12:00:00 - face_auth.gate - message"
    in files.
    """

    def __init__(self, timestamps: bool = False):
        super().__init__()
        self.timestamps = timestamps

    def format(self, record: logging.LogRecord) -> str:
        prefix = LEVEL_PREFIXES.get(record.levelno, "[INFO]")
        line = f"{prefix} {record.getMessage()}"
        if self.timestamps:
            timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
            line = f"{prefix} {timestamp} - {record.name} - {record.getMessage()}"

        if record.exc_info:
            if not record.exc_text:
                record.exc_text = self.formatException(record.exc_info)
            line = f"{line}\n{record.exc_text}"
        return line


def get_log_level(level_str: Optional[str] = None) -> int:
    """Resolve a level name, falling back to LOG_LEVEL and then INFO."""
    name = (level_str or os.environ.get("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _handler(level: int, stream: Optional[TextIO] = None, log_file: Optional[str] = None) -> logging.Handler:
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(PrefixFormatter(timestamps=True))
    else:
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(PrefixFormatter())
    handler.setLevel(level)
    handler.addFilter(SecretFilter())
    return handler


def _root() -> logging.Logger:
    """Return the face_auth logger, attaching the console handler the first time."""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    if root_logger.handlers:
        return root_logger

    level = get_log_level()
    root_logger.setLevel(level)
    root_logger.addHandler(_handler(level))

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        root_logger.addHandler(_handler(level, log_file=log_file))

    root_logger.propagate = False
    return root_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger for a module, e.g. get_logger(__name__) or get_logger("cli").

    "face_auth.flows.base" and "flows.base" name the same logger.
    """
    root_logger = _root()
    if name is None or name == ROOT_LOGGER_NAME:
        return root_logger
    if name.startswith(ROOT_LOGGER_NAME + "."):
        name = name[len(ROOT_LOGGER_NAME) + 1:]
    return root_logger.getChild(name)


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Re-apply level and log file after startup.

    The CLI calls this once arguments are parsed, so --log-level and the
    LOG_FILE setting win over the environment seen at import time.
    """
    root_logger = _root()
    log_level = get_log_level(level)

    root_logger.setLevel(log_level)
    for handler in root_logger.handlers:
        handler.setLevel(log_level)

    if log_file:
        # same normalisation FileHandler applies to baseFilename
        target = os.path.abspath(log_file)
        if not any(getattr(h, "baseFilename", None) == target for h in root_logger.handlers):
            root_logger.addHandler(_handler(log_level, log_file=log_file))

    return root_logger


logger = _root()


__all__ = [
    "logger",
    "get_logger",
    "configure_logging",
    "get_log_level",
    "PrefixFormatter",
    "SecretFilter",
]
