"""Utilities for parsing fetched header fields into structured metadata."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses

from ..core.models import HeaderInfo, RawHeader, SenderAddress

SEEN_FLAG = "\\Seen"


class HeaderParser:
    """Convert raw header fetches into :class:`HeaderInfo` records."""

    def __init__(self) -> None:
        """Prepare internal parser instance."""
        self._parser = BytesParser(policy=policy.default)

    def parse(self, header: RawHeader) -> HeaderInfo:
        """Parse header bytes; absent fields become ``None``."""
        message = self._parser.parsebytes(header.payload, headersonly=True)
        from_values = _header_values(message, "From")
        # Sender falls back to From, matching the IMAP ENVELOPE rules.
        sender_values = _header_values(message, "Sender") or from_values

        return HeaderInfo(
            uid=header.uid,
            sequence=header.sequence,
            subject=_first_value(message, "Subject"),
            sent_date=_raw_value(message, "Date"),
            sender_name=_display_name(from_values),
            senders=tuple(_split_addresses(sender_values)),
            unseen=SEEN_FLAG not in header.flags,
        )


def _header_values(message: EmailMessage, name: str) -> list[str]:
    return [str(value) for value in message.get_all(name, []) if str(value).strip()]


def _first_value(message: EmailMessage, name: str) -> str | None:
    values = _header_values(message, name)
    return values[0] if values else None


def _raw_value(message: EmailMessage, name: str) -> str | None:
    """Return a header exactly as sent, only unfolded."""
    for key, value in message.raw_items():
        if key.lower() == name.lower():
            unfolded = " ".join(str(value).split())
            return unfolded or None
    return None


def _split_addresses(headers: Iterable[str]) -> Iterator[SenderAddress]:
    for _, email_address in getaddresses(list(headers)):
        if not email_address:
            continue
        local_part, _, host = email_address.rpartition("@")
        # Both parts are needed to rebuild a usable address.
        if not local_part or not host:
            continue
        yield SenderAddress(mailbox=local_part, host=host)


def _display_name(headers: list[str]) -> str | None:
    if not headers:
        return None
    for name, email_address in getaddresses(headers):
        if name:
            return name
        if email_address:
            return email_address
    return headers[0]


__all__ = ["HeaderParser", "SEEN_FLAG"]
