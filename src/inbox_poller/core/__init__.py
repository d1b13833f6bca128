"""Core utilities for configuration, logging, and domain models."""

from .config import (
    DEFAULT_BODY_PART,
    AppSettings,
    ImapSettings,
    LoggingSettings,
    SyncSettings,
    load_app_settings,
)
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "DEFAULT_BODY_PART",
    "ImapSettings",
    "LoggingSettings",
    "SyncSettings",
    "configure_logging",
    "load_app_settings",
]
