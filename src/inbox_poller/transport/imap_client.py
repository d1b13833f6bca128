"""IMAP transport adapter providing mailbox access."""

from __future__ import annotations

import imaplib
import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from datetime import date
from types import TracebackType
from typing import Any

from ..core.config import ImapSettings
from ..core.interfaces import MailboxSession
from ..core.models import OverviewEntry, RawHeader

LOGGER = logging.getLogger(__name__)

HEADER_FIELDS = "BODY.PEEK[HEADER.FIELDS (DATE FROM SENDER SUBJECT)]"
OVERVIEW_ITEMS = "(UID FLAGS RFC822.SIZE)"

# SEARCH dates must use English month names regardless of locale.
_MONTHS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

_SEQUENCE_RE = re.compile(rb"^\s*(\d+)\s+\(")
_UID_RE = re.compile(rb"\bUID\s+(\d+)")
_SIZE_RE = re.compile(rb"\bRFC822\.SIZE\s+(\d+)")
_FLAGS_RE = re.compile(rb"\bFLAGS\s+\(([^)]*)\)")

_IMAP_ERROR = imaplib.IMAP4.error
_IMAP_FAILURES = (_IMAP_ERROR, OSError)


class ImapError(RuntimeError):
    """Wrap low level IMAP errors with additional context."""


class ConfigurationError(ImapError):
    """Raised before any network I/O when connection settings are incomplete."""


class ImapConnectionError(ImapError):
    """Raised when a session cannot be opened; carries server diagnostics."""

    def __init__(self, diagnostics: Sequence[str]) -> None:
        self.diagnostics = tuple(line for line in diagnostics if line)
        super().__init__("\n".join(self.diagnostics))


class ImapClient(MailboxSession):
    """Single read-only session against one mailbox, backed by ``imaplib``."""

    def __init__(self, settings: ImapSettings) -> None:
        """Validate settings; no connection is attempted until :meth:`connect`."""
        missing = settings.missing_fields()
        if missing:
            raise ConfigurationError(
                f"IMAP settings incomplete, missing: {', '.join(missing)}"
            )
        self._settings = settings
        self._connection: imaplib.IMAP4 | imaplib.IMAP4_SSL | None = None
        self.mailbox = settings.mailbox

    @classmethod
    def open(cls, settings: ImapSettings) -> ImapClient:
        """Validate settings and return a connected client."""
        client = cls(settings)
        client.connect()
        return client

    @property
    def address(self) -> str:
        """Server address as ``host`` or ``host:port``."""
        if self._settings.port:
            return f"{self._settings.host}:{self._settings.port}"
        return self._settings.host

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> ImapClient:
        """Connect on entering a context manager scope."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure resources are released on context exit."""
        self.close()

    # Public API ---------------------------------------------------------------
    def connect(self) -> None:
        """Establish the connection, log in and select the mailbox read-only."""
        if self._connection is not None:
            return

        try:
            connection = self._open_connection()
        except _IMAP_FAILURES as exc:
            raise ImapConnectionError(
                [f"Cannot connect to IMAP server {self.address}", *_error_lines(exc)]
            ) from exc

        try:
            LOGGER.debug("Authenticating as %s", self._settings.username)
            connection.login(
                self._settings.username or "", self._settings.app_password or ""
            )
            status, data = connection.select(self.mailbox, readonly=True)
        except _IMAP_FAILURES as exc:
            _shutdown(connection)
            raise ImapConnectionError(_error_lines(exc)) from exc

        if status != "OK":
            _shutdown(connection)
            raise ImapConnectionError(
                [f"Unable to select mailbox '{self.mailbox}'", *_decode_all(data)]
            )
        LOGGER.debug("Selected mailbox %s on %s", self.mailbox, self.address)
        self._connection = connection

    def message_count(self) -> int:
        """Return the number of messages the server reports for the mailbox."""
        connection = self._require_connection()
        try:
            status, data = connection.select(self.mailbox, readonly=True)
        except _IMAP_FAILURES as exc:
            raise ImapError(f"IMAP error while selecting '{self.mailbox}'") from exc
        if status != "OK" or not data or data[0] is None:
            raise ImapError(f"Unable to select mailbox '{self.mailbox}'")
        try:
            return int(data[0])
        except ValueError as exc:
            raise ImapError(f"Unexpected message count {data[0]!r}") from exc

    def fetch_header(self, message_id: int, *, by_uid: bool) -> RawHeader | None:
        """Fetch header fields together with the message UID and flags."""
        data = self._fetch(message_id, f"(UID FLAGS {HEADER_FIELDS})", by_uid=by_uid)
        meta, payload = _split_fetch_response(data)
        if not meta:
            LOGGER.debug("No header data returned for message %s", message_id)
            return None
        return RawHeader(
            uid=_match_int(_UID_RE, meta),
            sequence=_match_int(_SEQUENCE_RE, meta),
            flags=_parse_flags(meta),
            payload=payload or b"",
        )

    def fetch_body_part(self, message_id: int, part: str, *, by_uid: bool) -> bytes:
        """Fetch a single body section without setting the ``\\Seen`` flag."""
        data = self._fetch(message_id, f"(BODY.PEEK[{part}])", by_uid=by_uid)
        _, payload = _split_fetch_response(data)
        return payload or b""

    def search_since(self, since: date) -> list[int]:
        """Return UIDs of messages dated on or after ``since``."""
        criterion = format_search_date(since)
        LOGGER.debug("Searching for messages SINCE %s", criterion)
        status, data = self._uid("SEARCH", None, "SINCE", criterion)
        if status != "OK":
            raise ImapError(f"Search SINCE {criterion} was rejected by the server")
        raw_ids = data[0].split() if data and data[0] else []
        return [int(raw_id) for raw_id in raw_ids]

    def fetch_overview(self, start_uid: int) -> list[OverviewEntry]:
        """Return overview entries for messages with UID >= ``start_uid``."""
        LOGGER.debug("Fetching overview from UID %s", start_uid)
        status, data = self._uid("FETCH", f"{start_uid}:*", OVERVIEW_ITEMS)
        if status != "OK":
            raise ImapError(f"Failed to fetch overview from UID {start_uid}")

        entries: list[OverviewEntry] = []
        for line in _response_lines(data):
            uid = _match_int(_UID_RE, line)
            # "n:*" always includes the newest message, even below n.
            if uid is None or uid < start_uid:
                continue
            entries.append(
                OverviewEntry(
                    uid=uid,
                    sequence=_match_int(_SEQUENCE_RE, line),
                    flags=_parse_flags(line),
                    size=_match_int(_SIZE_RE, line),
                )
            )
        return entries

    def close(self) -> None:
        """Terminate the IMAP session cleanly."""
        if self._connection is None:
            return
        connection = self._connection
        self._connection = None
        LOGGER.debug("Closing IMAP connection to %s", self.address)
        _shutdown(connection)

    # Internal helpers ---------------------------------------------------------
    def _open_connection(self) -> imaplib.IMAP4 | imaplib.IMAP4_SSL:
        timeout = self._settings.timeout_seconds
        if self._settings.use_ssl:
            port = self._settings.port or imaplib.IMAP4_SSL_PORT
            LOGGER.debug(
                "Connecting to IMAP host %s:%s via SSL", self._settings.host, port
            )
            return imaplib.IMAP4_SSL(self._settings.host, port, timeout=timeout)
        port = self._settings.port or imaplib.IMAP4_PORT
        LOGGER.debug(
            "Connecting to IMAP host %s:%s without SSL", self._settings.host, port
        )
        return imaplib.IMAP4(self._settings.host, port, timeout=timeout)

    def _require_connection(self) -> imaplib.IMAP4 | imaplib.IMAP4_SSL:
        if self._connection is None:
            raise ImapError("IMAP connection has not been established")
        return self._connection

    def _uid(self, command: str, *args: Any) -> tuple[str, list[Any]]:
        connection = self._require_connection()
        try:
            return connection.uid(command, *args)
        except _IMAP_FAILURES as exc:
            raise ImapError(f"IMAP error during UID {command}") from exc

    def _fetch(self, message_id: int, items: str, *, by_uid: bool) -> list[Any]:
        if by_uid:
            status, data = self._uid("FETCH", str(message_id), items)
        else:
            connection = self._require_connection()
            try:
                status, data = connection.fetch(str(message_id), items)
            except _IMAP_FAILURES as exc:
                raise ImapError(
                    f"IMAP error while fetching message {message_id}"
                ) from exc
        if status != "OK":
            raise ImapError(f"Failed to fetch message {message_id}")
        return data


def format_search_date(value: date) -> str:
    """Render a date in the ``dd-Mon-yyyy`` form used by IMAP SEARCH."""
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year:04d}"


def _shutdown(connection: imaplib.IMAP4 | imaplib.IMAP4_SSL) -> None:
    try:
        if connection.state == "SELECTED":
            connection.close()
    except _IMAP_FAILURES:  # pragma: no cover - depends on server state
        LOGGER.debug("IMAP close raised; continuing with logout")
    finally:
        try:
            connection.logout()
        except _IMAP_FAILURES:  # pragma: no cover
            LOGGER.debug("IMAP logout raised; suppressing during shutdown")


def _decode(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _decode_all(values: Iterable[Any] | None) -> list[str]:
    return [_decode(value) for value in values or () if value is not None]


def _error_lines(exc: BaseException) -> list[str]:
    """Collect every diagnostic string carried by an ``imaplib``/socket error."""
    if isinstance(exc, _IMAP_ERROR):
        lines: list[str] = []
        for arg in exc.args:
            if isinstance(arg, (list, tuple)):
                lines.extend(_decode_all(arg))
            else:
                lines.append(_decode(arg))
        if lines:
            return lines
    return [str(exc) or type(exc).__name__]


def _response_lines(data: Iterable[Any] | None) -> Iterator[bytes]:
    for entry in data or ():
        if isinstance(entry, tuple) and entry:
            yield entry[0]
        elif isinstance(entry, (bytes, bytearray)):
            yield bytes(entry)


def _split_fetch_response(data: Iterable[Any] | None) -> tuple[bytes, bytes | None]:
    """Separate FETCH response metadata from its literal payload."""
    meta = b""
    payload: bytes | None = None
    for entry in data or ():
        if isinstance(entry, tuple) and len(entry) == 2:
            meta += entry[0] + b" "
            payload = (payload or b"") + entry[1]
        elif isinstance(entry, (bytes, bytearray)):
            meta += bytes(entry) + b" "
    return meta.strip(), payload


def _match_int(pattern: re.Pattern[bytes], text: bytes) -> int | None:
    match = pattern.search(text)
    return int(match.group(1)) if match else None


def _parse_flags(text: bytes) -> tuple[str, ...]:
    match = _FLAGS_RE.search(text)
    if match is None:
        return ()
    return tuple(
        flag.decode("ascii", errors="replace") for flag in match.group(1).split()
    )


__all__ = [
    "ConfigurationError",
    "ImapClient",
    "ImapConnectionError",
    "ImapError",
    "format_search_date",
]
