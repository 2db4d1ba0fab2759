"""
vizbeats - Logging
Tagged single-line records shared by every component, e.g.

    21:04:17.250 [WARNING][Scheduler] Loop thread did not stop within timeout | timeout=1.0

Components call log_event(level, tag, message, **fields); fields trail the
message as key=value pairs so a show log stays greppable.
"""

import logging
import sys
from typing import Any, Mapping

LOGGER_NAME = "vizbeats"
DEFAULT_TAG = "App"

_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


class TaggedFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s.%(msecs)03d [%(levelname)s][%(tag)s] %(message)s",
                         datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "tag"):
            record.tag = DEFAULT_TAG
        return super().format(record)


def format_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


def resolve_level(level) -> int:
    """Numeric level for a name such as "debug" or "WARN"; unknown names mean INFO."""
    name = str(level or "INFO").upper()
    name = _LEVEL_ALIASES.get(name, name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def _build_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(TaggedFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


_logger = _build_logger()


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    if fields:
        message = f"{message} | {format_fields(fields)}"
    _logger.log(resolve_level(level), message, extra={"tag": tag})


def set_log_level(level) -> str:
    """Apply a level to every vizbeats logger and return its canonical name."""
    value = resolve_level(level)
    _logger.setLevel(value)
    return logging.getLevelName(value)


def get_log_level() -> str:
    return logging.getLevelName(_logger.level)
