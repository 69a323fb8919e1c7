"""femtologging helpers for the delivery pipeline.

Messages are interpolated before they are handed to femtologging, whose
handlers run on a worker thread and only accept finished strings.

Example:
>>> from courier.logging import get_logger, log_warning
>>> logger = get_logger("courier.delivery")
>>> log_warning(logger, "Queue at %d of %d entries", 98, 100)

"""

from __future__ import annotations

import os
import typing as typ

from femtologging import basicConfig, get_logger

LOG_LEVEL_ENV_VAR = "COURIER_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

# Level names femtologging accepts; WARN and WARNING are aliases.
KNOWN_LOG_LEVELS = frozenset(
    {"TRACE", "DEBUG", "INFO", "WARN", "WARNING", "ERROR", "CRITICAL"}
)


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` for a raw level string.

    Unknown, empty, or missing levels normalize to ``INFO`` with ``invalid``
    set so callers can report the bad value once logging is configured.
    """
    candidate = (level or "").strip().upper()
    if candidate in KNOWN_LOG_LEVELS:
        return (candidate, False)
    return (DEFAULT_LOG_LEVEL, True)


def configure_logging(level: str | None = None, *, force: bool = False) -> tuple[str, bool]:
    """Configure femtologging from ``level`` or ``COURIER_LOG_LEVEL``."""
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL)
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Apply percent-style ``args`` to ``template``."""
    return template % args if args else template


class _SupportsLog(typ.Protocol):
    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def log_info(logger: _SupportsLog, template: str, *args: object) -> None:
    """Emit an INFO line."""
    logger.log("INFO", format_log_message(template, *args))


def log_warning(logger: _SupportsLog, template: str, *args: object) -> None:
    """Emit a WARNING line."""
    logger.log("WARNING", format_log_message(template, *args))


def log_error(logger: _SupportsLog, template: str, *args: object) -> None:
    """Emit an ERROR line."""
    logger.log("ERROR", format_log_message(template, *args))


def log_exception(
    logger: _SupportsLog,
    exc: BaseException,
    template: str,
    *args: object,
) -> None:
    """Emit an ERROR line with ``exc`` attached for traceback rendering."""
    logger.log("ERROR", format_log_message(template, *args), exc_info=exc)


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "KNOWN_LOG_LEVELS",
    "LOG_LEVEL_ENV_VAR",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
