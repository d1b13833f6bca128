"""Single poll cycle: open a session, run one strategy, release the session."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from enum import Enum

from ..core.config import DEFAULT_BODY_PART, ImapSettings
from ..core.interfaces import MailboxSession
from ..core.models import NoOperation, PollResult
from ..transport import ImapClient
from .synchronizer import MessageSynchronizer, SinceDate, coerce_since_date

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[ImapSettings], AbstractContextManager[MailboxSession]]


class PollMode(str, Enum):
    """Retrieval strategy used for a poll cycle."""

    ALL = "all"
    SINCE_DATE = "since"
    SINCE_CHECKPOINT = "checkpoint"


def poll_mailbox(
    settings: ImapSettings,
    mode: PollMode,
    *,
    since: SinceDate = None,
    last_uid: int | None = None,
    body_part: str = DEFAULT_BODY_PART,
    session_factory: SessionFactory = ImapClient,
) -> PollResult | NoOperation:
    """Run one poll cycle; the session is closed on every exit path.

    Raises:
        ValueError: when ``since`` is not a recognisable date; checked before
            the session is opened.
    """
    since_date = coerce_since_date(since) if mode is PollMode.SINCE_DATE else None
    LOGGER.info("Starting %s poll of mailbox %s", mode.value, settings.mailbox)
    with session_factory(settings) as session:
        synchronizer = MessageSynchronizer(session, body_part=body_part)
        if mode is PollMode.SINCE_DATE:
            outcome = synchronizer.fetch_since(since_date)
        elif mode is PollMode.SINCE_CHECKPOINT:
            outcome = synchronizer.fetch_since_checkpoint(last_uid)
        else:
            outcome = synchronizer.fetch_all()

    if isinstance(outcome, NoOperation):
        LOGGER.info("Poll finished without retrieval (%s)", outcome.reason)
    else:
        LOGGER.info(
            "Poll completed: count=%s, mapped=%s, faults=%s, checkpoint=%s",
            outcome.count,
            len(outcome.messages),
            len(outcome.faults),
            outcome.checkpoint,
        )
    return outcome


__all__ = ["PollMode", "SessionFactory", "poll_mailbox"]
