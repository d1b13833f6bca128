"""Mailbox synchronization: retrieval strategies and message mapping."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime

from ..core.config import DEFAULT_BODY_PART
from ..core.interfaces import HeaderParserProtocol, MailboxSession, MappingError
from ..core.models import Message, MessageFault, NO_TICKET, NoOperation, PollResult
from .parser import HeaderParser

LOGGER = logging.getLogger(__name__)

TICKET_PATTERN = re.compile(r"#\d+")
SINCE_DATE_FORMATS = ("%d %b %Y", "%d %B %Y", "%d-%b-%Y")

SinceDate = date | datetime | str | None


def extract_ticket_id(subject: str | None) -> str:
    """Return the first ``#<digits>`` token in ``subject``, or ``"n/a"``."""
    if not subject:
        return NO_TICKET
    match = TICKET_PATTERN.search(subject)
    return match.group(0) if match else NO_TICKET


def coerce_since_date(value: SinceDate) -> date | None:
    """Normalise a calendar date argument; ``None`` when it is missing."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    for fmt in SINCE_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date {value!r}, expected e.g. '24 May 2024'")


class MessageSynchronizer:
    """Retrieve and normalise messages from an open mailbox session.

    Each call returns a fresh :class:`PollResult`; nothing accumulates on the
    instance between calls. A message that cannot be mapped is recorded as a
    :class:`MessageFault` and the rest of the batch is still processed.
    Protocol failures (:class:`~inbox_poller.transport.ImapError`) propagate.

    Only the MIME section named by ``body_part`` is fetched as the body. Mail
    with a different part layout yields an empty or unrelated body.
    """

    def __init__(
        self,
        session: MailboxSession,
        parser: HeaderParserProtocol | None = None,
        *,
        body_part: str = DEFAULT_BODY_PART,
    ) -> None:
        """Bind the synchronizer to an open session."""
        if not body_part:
            raise ValueError("body_part must be a non-empty section selector")
        self._session = session
        self._parser = parser or HeaderParser()
        self._body_part = body_part

    def fetch_all(self) -> PollResult:
        """Map every message by sequence number, in ascending order."""
        total = self._session.message_count()
        LOGGER.info("Fetching all %s message(s) from %s", total, self._session.mailbox)
        return self._collect(range(1, total + 1), by_uid=False, count=total)

    def fetch_since(self, since_date: SinceDate) -> PollResult | NoOperation:
        """Map messages dated on or after ``since_date`` (day granularity)."""
        since = coerce_since_date(since_date)
        if since is None:
            LOGGER.debug("No since date supplied; nothing to do")
            return NoOperation(NoOperation.MISSING_PARAMETER)

        uids = self._session.search_since(since)
        if not uids:
            LOGGER.info("No messages in %s since %s", self._session.mailbox, since)
            return NoOperation(NoOperation.NO_RESULTS)

        LOGGER.info("Found %s message(s) since %s", len(uids), since)
        return self._collect(uids, by_uid=True, count=len(uids))

    def fetch_since_checkpoint(self, last_uid: int | None) -> PollResult | NoOperation:
        """Map messages with UID >= ``last_uid``.

        The lower bound is inclusive, so the checkpoint message itself is
        returned again on every cycle. The returned checkpoint is the highest
        UID seen, never lower than ``last_uid``.
        """
        if last_uid is None or last_uid < 1:
            LOGGER.debug("No checkpoint supplied; nothing to do")
            return NoOperation(NoOperation.MISSING_PARAMETER)

        entries = self._session.fetch_overview(last_uid)
        if not entries:
            LOGGER.info(
                "No messages in %s from UID %s", self._session.mailbox, last_uid
            )
            return NoOperation(NoOperation.NO_RESULTS)

        LOGGER.info("Found %s message(s) from UID %s", len(entries), last_uid)
        return self._collect(
            [entry.uid for entry in entries],
            by_uid=True,
            count=len(entries),
            checkpoint=last_uid,
        )

    def map_message(self, message_id: int, *, by_uid: bool = True) -> Message:
        """Fetch headers and body for one message and build a :class:`Message`.

        Raises:
            MappingError: when no header data comes back, no UID can be
                determined, the header cannot be parsed, or the sender
                list is empty.
        """
        raw_header = self._session.fetch_header(message_id, by_uid=by_uid)
        if raw_header is None:
            raise MappingError(message_id, "no header data returned")
        try:
            header = self._parser.parse(raw_header)
        except Exception as exc:  # pylint: disable=broad-except
            raise MappingError(message_id, "unparseable header") from exc

        uid = header.uid if header.uid is not None else (message_id if by_uid else None)
        if uid is None:
            raise MappingError(message_id, "server did not report a UID")
        if not header.senders:
            raise MappingError(message_id, "sender address list is empty")

        sequence = header.sequence
        if sequence is None and not by_uid:
            sequence = message_id

        body = self._session.fetch_body_part(message_id, self._body_part, by_uid=by_uid)
        subject = header.subject or ""
        return Message(
            uid=uid,
            sequence=sequence,
            subject=subject,
            sender_name=header.sender_name or "",
            sender_address=str(header.senders[0]),
            sent_date=header.sent_date or "",
            body_text=body.decode("utf-8", errors="replace"),
            unread=header.unseen,
            ticket_id=extract_ticket_id(subject),
        )

    def _collect(
        self,
        message_ids: Iterable[int],
        *,
        by_uid: bool,
        count: int,
        checkpoint: int | None = None,
    ) -> PollResult:
        messages: list[Message] = []
        faults: list[MessageFault] = []
        highest = checkpoint

        for message_id in message_ids:
            if by_uid:
                highest = _running_max(highest, message_id)
            try:
                message = self.map_message(message_id, by_uid=by_uid)
            except MappingError as exc:
                LOGGER.warning("Skipping message %s: %s", message_id, exc.reason)
                faults.append(MessageFault(message_id=message_id, reason=exc.reason))
                continue
            highest = _running_max(highest, message.uid)
            messages.append(message)
            LOGGER.debug(
                "Mapped message UID %s (ticket %s)", message.uid, message.ticket_id
            )

        return PollResult(
            messages=tuple(messages),
            count=count,
            faults=tuple(faults),
            checkpoint=highest,
        )


def _running_max(current: int | None, candidate: int) -> int:
    return candidate if current is None else max(current, candidate)


__all__ = [
    "MessageSynchronizer",
    "SinceDate",
    "coerce_since_date",
    "extract_ticket_id",
]
