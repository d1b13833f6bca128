"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from .config import LoggingSettings

TRANSPORT_LOGGER = "inbox_poller.transport"


def _structured_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for key=value structured logs."""
    return {
        "format": "time={asctime} level={levelname} logger={name} msg={message!r}",
        "style": "{",
    }


def _plain_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for human readable logs."""
    return {
        "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
    }


def configure_logging(settings: LoggingSettings) -> None:
    """Configure application logging according to provided settings."""
    formatter = _structured_formatter() if settings.structured else _plain_formatter()

    dict_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": formatter,
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": settings.level,
        },
    }
    if settings.transport_level:
        # Propagates to the root handler; only the threshold differs.
        dict_config["loggers"] = {
            TRANSPORT_LOGGER: {"level": settings.transport_level},
        }

    logging.config.dictConfig(dict_config)


__all__ = ["TRANSPORT_LOGGER", "configure_logging"]
