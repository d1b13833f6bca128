"""Ingestion pipeline components."""

from .parser import HeaderParser
from .poller import PollMode, poll_mailbox
from .synchronizer import MessageSynchronizer, coerce_since_date, extract_ticket_id

__all__ = [
    "HeaderParser",
    "MessageSynchronizer",
    "PollMode",
    "coerce_since_date",
    "extract_ticket_id",
    "poll_mailbox",
]
