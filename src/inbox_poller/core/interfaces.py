"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from .models import HeaderInfo, OverviewEntry, RawHeader


class MappingError(RuntimeError):
    """Raised when a required field cannot be derived for one message."""

    def __init__(self, message_id: int, reason: str) -> None:
        super().__init__(f"Cannot map message {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason


class MailboxSession(Protocol):
    """Open connection to one mailbox, as consumed by the synchronizer."""

    mailbox: str

    def message_count(self) -> int:
        """Return the number of messages currently in the mailbox."""
        raise NotImplementedError

    def fetch_header(self, message_id: int, *, by_uid: bool) -> RawHeader | None:
        """Return header fields, UID and flags for one message."""
        raise NotImplementedError

    def fetch_body_part(self, message_id: int, part: str, *, by_uid: bool) -> bytes:
        """Return the raw content of a single MIME body section."""
        raise NotImplementedError

    def search_since(self, since: date) -> list[int]:
        """Return UIDs of messages dated on or after ``since``."""
        raise NotImplementedError

    def fetch_overview(self, start_uid: int) -> list[OverviewEntry]:
        """Return overview entries for every UID from ``start_uid`` upwards."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any network resources."""
        raise NotImplementedError


class HeaderParserProtocol(Protocol):
    """Minimal protocol implemented by header parsers."""

    def parse(self, header: RawHeader) -> HeaderInfo:
        """Convert a raw header fetch into structured metadata."""
        raise NotImplementedError


__all__ = [
    "HeaderParserProtocol",
    "MailboxSession",
    "MappingError",
]
