"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BODY_PART = "2"


class ImapSettings(BaseModel):
    """Connection parameters for a single IMAP mailbox."""

    model_config = ConfigDict(frozen=True)

    host: str | None = Field(default="imap.gmail.com", description="IMAP hostname")
    port: int | None = Field(
        default=None, description="IMAP port; library default when unset"
    )
    username: str | None = Field(default=None, description="Account username")
    app_password: str | None = Field(default=None, description="Account password")
    mailbox: str = Field(default="INBOX", description="Mailbox to poll")
    use_ssl: bool = Field(default=True, description="Whether to enforce SSL")
    timeout_seconds: float | None = Field(
        default=30.0, gt=0, description="Socket timeout for IMAP commands"
    )

    def missing_fields(self) -> list[str]:
        """Return the names of required connection fields that are empty."""
        required = {
            "host": self.host,
            "username": self.username,
            "app_password": self.app_password,
        }
        return [name for name, value in required.items() if not value]


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle key=value structured logging"
    )
    transport_level: str | None = Field(
        default=None, description="Separate level for IMAP command logging"
    )


class SyncSettings(BaseModel):
    """Settings controlling how messages are mapped during a poll."""

    body_part: str = Field(
        default=DEFAULT_BODY_PART,
        min_length=1,
        description="MIME part section fetched as the message body",
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    imap: ImapSettings = Field(default_factory=ImapSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)


ENV_PREFIX = "INBOX_POLLER_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _normalize_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if value == "":
        return None
    lowercase_value = value.lower()
    if lowercase_value == "true":
        return True
    if lowercase_value == "false":
        return False
    return value


def _collect_env_values(
    env_file: Path | str | None, include_environment: bool
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values: dict[str, Any] = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values: dict[str, Any] = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        _merge_into_tree(collected, path, _normalize_value(value))

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "DEFAULT_BODY_PART",
    "ENV_PREFIX",
    "ImapSettings",
    "LoggingSettings",
    "SyncSettings",
    "load_app_settings",
]
