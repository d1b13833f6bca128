"""Transport adapters for external mailbox providers."""

from .imap_client import (
    ConfigurationError,
    ImapClient,
    ImapConnectionError,
    ImapError,
)

__all__ = ["ConfigurationError", "ImapClient", "ImapConnectionError", "ImapError"]
