"""
Centralized logging configuration for the storefront backend.

Usage:
    from core.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Cart synced")
    logger.error("Zone insert failed", exc_info=True)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Loggers of HTTP transports used by supabase-py and the mail client
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest")


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _is_production() -> bool:
    return os.environ.get("ENVIRONMENT", "development").lower() == "production"


def _configure_root_logger() -> None:
    """Attach a stdout handler to the root logger unless one already exists."""
    root = logging.getLogger()
    if root.handlers:
        return

    level = _get_log_level()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    # Platform log collectors add their own timestamps
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE if _is_production() else LOG_FORMAT))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    """Get or create a logger with the given name (typically ``__name__``)."""
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """Escape control characters that could forge log lines (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Shorten an identifier coming from a request before it reaches the logs.

    Keeps the first 8 characters, which is enough to correlate a UUID
    across log lines without echoing arbitrary client input.

    Args:
        id_value: User, cart or item id (can be None)

    Returns:
        Escaped prefix of the id or "N/A"
    """
    if not id_value:
        return "N/A"
    safe_value = _escape_log_injection(str(id_value))
    return safe_value[:8]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escape and truncate free text (emails, zone names) for logging."""
    if not value:
        return "N/A"
    safe_value = _escape_log_injection(str(value))
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
