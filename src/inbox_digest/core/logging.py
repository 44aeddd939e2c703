"""Logging setup for the digest service."""

from __future__ import annotations

import logging.config
from typing import Any

from .config import LoggingSettings

# Third-party loggers that log every request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore")

STRUCTURED_FORMAT = (
    "ts={asctime} level={levelname} logger={name} thread={threadName} msg={message!r}"
)
PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s %(message)s"


def build_logging_config(settings: LoggingSettings) -> dict[str, Any]:
    """Return the ``dictConfig`` mapping for ``settings``.

    Worker threads are named, so both formats include the thread name to tell
    concurrent fetches apart.
    """
    if settings.structured:
        formatter: dict[str, Any] = {"format": STRUCTURED_FORMAT, "style": "{"}
    else:
        formatter = {"format": PLAIN_FORMAT}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"digest": formatter},
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "digest",
                "level": settings.level,
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        "root": {"handlers": ["stderr"], "level": settings.level},
    }


def configure_logging(settings: LoggingSettings) -> None:
    """Install the process-wide logging configuration."""
    logging.config.dictConfig(build_logging_config(settings))


__all__ = ["build_logging_config", "configure_logging"]
