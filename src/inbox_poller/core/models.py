"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field

NO_TICKET = "n/a"


@dataclass(frozen=True, slots=True)
class RawHeader:
    """Header bytes and fetch attributes returned for a single message."""

    uid: int | None
    sequence: int | None
    flags: tuple[str, ...]
    payload: bytes


@dataclass(frozen=True, slots=True)
class OverviewEntry:
    """Summary attributes returned by a lightweight UID range fetch."""

    uid: int
    sequence: int | None
    flags: tuple[str, ...] = ()
    size: int | None = None


@dataclass(frozen=True, slots=True)
class SenderAddress:
    """Mailbox and host parts of a single address."""

    mailbox: str
    host: str

    def __str__(self) -> str:
        return f"{self.mailbox}@{self.host}"


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class HeaderInfo:
    """Parsed header metadata; every field may be absent."""

    uid: int | None
    sequence: int | None
    subject: str | None
    sent_date: str | None
    sender_name: str | None
    senders: tuple[SenderAddress, ...]
    unseen: bool


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class Message:
    """Normalized email returned by a poll cycle."""

    uid: int
    sequence: int | None
    subject: str
    sender_name: str
    sender_address: str
    sent_date: str
    body_text: str
    unread: bool
    ticket_id: str = NO_TICKET


@dataclass(frozen=True, slots=True)
class MessageFault:
    """A message that could not be mapped, with the reason."""

    message_id: int
    reason: str


@dataclass(frozen=True, slots=True)
class PollResult:
    """Outcome of a single poll cycle."""

    messages: tuple[Message, ...]
    count: int
    faults: tuple[MessageFault, ...] = field(default_factory=tuple)
    checkpoint: int | None = None


@dataclass(frozen=True, slots=True)
class NoOperation:
    """Non-error outcome signalling that nothing was retrieved."""

    MISSING_PARAMETER = "missing-parameter"
    NO_RESULTS = "no-results"

    reason: str


__all__ = [
    "HeaderInfo",
    "Message",
    "MessageFault",
    "NO_TICKET",
    "NoOperation",
    "OverviewEntry",
    "PollResult",
    "RawHeader",
    "SenderAddress",
]
