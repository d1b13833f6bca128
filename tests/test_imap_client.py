"""Tests for the IMAP transport adapter."""

# pylint: disable=protected-access

from __future__ import annotations

import imaplib
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from inbox_poller.core.config import ImapSettings
from inbox_poller.transport import (
    ConfigurationError,
    ImapClient,
    ImapConnectionError,
    ImapError,
)
from inbox_poller.transport.imap_client import HEADER_FIELDS, format_search_date


def _settings(**overrides) -> ImapSettings:
    values = {
        "host": "imap.test",
        "username": "user",
        "app_password": "password",
        "use_ssl": False,
    }
    values.update(overrides)
    return ImapSettings(**values)


def _connected_client(connection: MagicMock) -> ImapClient:
    client = ImapClient(_settings())
    client._connection = connection  # type: ignore[attr-defined]
    return client


@pytest.mark.parametrize("field", ["host", "username", "app_password"])
def test_missing_required_field_raises_before_connecting(field: str) -> None:
    with patch("inbox_poller.transport.imap_client.imaplib") as mocked:
        with pytest.raises(ConfigurationError) as excinfo:
            ImapClient.open(_settings(**{field: ""}))

    assert field in str(excinfo.value)
    mocked.IMAP4.assert_not_called()
    mocked.IMAP4_SSL.assert_not_called()


def test_address_appends_configured_port() -> None:
    assert ImapClient(_settings(port=1143)).address == "imap.test:1143"
    assert ImapClient(_settings()).address == "imap.test"


def test_connect_logs_in_and_selects_read_only() -> None:
    connection = MagicMock()
    connection.select.return_value = ("OK", [b"3"])
    with patch.object(imaplib, "IMAP4", return_value=connection) as factory:
        client = ImapClient.open(_settings(port=1143, mailbox="Support"))

    factory.assert_called_once_with("imap.test", 1143, timeout=30.0)
    connection.login.assert_called_once_with("user", "password")
    connection.select.assert_called_once_with("Support", readonly=True)
    assert client._connection is connection


def test_connect_failure_joins_all_diagnostics() -> None:
    connection = MagicMock()
    connection.login.side_effect = imaplib.IMAP4.error(
        [b"[AUTHENTICATIONFAILED] Invalid credentials", b"Too many attempts"]
    )
    with patch.object(imaplib, "IMAP4", return_value=connection):
        with pytest.raises(ImapConnectionError) as excinfo:
            ImapClient.open(_settings())

    assert str(excinfo.value) == (
        "[AUTHENTICATIONFAILED] Invalid credentials\nToo many attempts"
    )
    assert excinfo.value.diagnostics == (
        "[AUTHENTICATIONFAILED] Invalid credentials",
        "Too many attempts",
    )
    connection.logout.assert_called_once()


def test_connect_failure_when_server_unreachable() -> None:
    with patch.object(imaplib, "IMAP4", side_effect=OSError("Connection refused")):
        with pytest.raises(ImapConnectionError) as excinfo:
            ImapClient.open(_settings(port=1143))

    assert excinfo.value.diagnostics == (
        "Cannot connect to IMAP server imap.test:1143",
        "Connection refused",
    )


def test_connect_failure_when_mailbox_cannot_be_selected() -> None:
    connection = MagicMock()
    connection.select.return_value = ("NO", [b"Mailbox doesn't exist: Archive"])
    with patch.object(imaplib, "IMAP4", return_value=connection):
        with pytest.raises(ImapConnectionError) as excinfo:
            ImapClient.open(_settings(mailbox="Archive"))

    assert "Unable to select mailbox 'Archive'" in str(excinfo.value)
    assert "Mailbox doesn't exist: Archive" in str(excinfo.value)
    connection.logout.assert_called_once()


def test_context_manager_closes_session_once() -> None:
    connection = MagicMock()
    connection.state = "SELECTED"
    connection.select.return_value = ("OK", [b"0"])
    with patch.object(imaplib, "IMAP4", return_value=connection):
        with ImapClient(_settings()) as client:
            pass
        client.close()

    connection.close.assert_called_once()
    connection.logout.assert_called_once()


def test_message_count_reads_select_response() -> None:
    connection = MagicMock()
    connection.select.return_value = ("OK", [b"5"])
    client = _connected_client(connection)

    assert client.message_count() == 5


def test_fetch_header_by_sequence_parses_uid_and_flags() -> None:
    connection = MagicMock()
    connection.fetch.return_value = (
        "OK",
        [
            (
                b"2 (UID 11 FLAGS (\\Seen \\Answered) BODY[HEADER.FIELDS "
                b"(DATE FROM SENDER SUBJECT)] {24}",
                b"Subject: Hello\r\n\r\n",
            ),
            b")",
        ],
    )
    client = _connected_client(connection)

    header = client.fetch_header(2, by_uid=False)

    assert header is not None
    assert header.uid == 11
    assert header.sequence == 2
    assert header.flags == ("\\Seen", "\\Answered")
    assert header.payload == b"Subject: Hello\r\n\r\n"
    connection.fetch.assert_called_once_with("2", f"(UID FLAGS {HEADER_FIELDS})")


def test_fetch_header_reads_flags_after_literal() -> None:
    connection = MagicMock()
    connection.uid.return_value = (
        "OK",
        [
            (b"4 (UID 40 BODY[HEADER.FIELDS (DATE FROM SENDER SUBJECT)] {2}", b"\r\n"),
            b" FLAGS ())",
        ],
    )
    client = _connected_client(connection)

    header = client.fetch_header(40, by_uid=True)

    assert header is not None
    assert header.uid == 40
    assert header.flags == ()
    connection.uid.assert_called_once_with(
        "FETCH", "40", f"(UID FLAGS {HEADER_FIELDS})"
    )


def test_fetch_header_returns_none_for_missing_message() -> None:
    connection = MagicMock()
    connection.uid.return_value = ("OK", [None])
    client = _connected_client(connection)

    assert client.fetch_header(99, by_uid=True) is None


def test_fetch_body_part_uses_peek() -> None:
    connection = MagicMock()
    connection.uid.return_value = (
        "OK",
        [(b"1 (UID 10 BODY[2] {23}", b"Your order has shipped."), b")"],
    )
    client = _connected_client(connection)

    assert client.fetch_body_part(10, "2", by_uid=True) == b"Your order has shipped."
    connection.uid.assert_called_once_with("FETCH", "10", "(BODY.PEEK[2])")


def test_fetch_failure_status_raises() -> None:
    connection = MagicMock()
    connection.fetch.return_value = ("NO", [b"Invalid message sequence number"])
    client = _connected_client(connection)

    with pytest.raises(ImapError):
        client.fetch_body_part(7, "2", by_uid=False)


def test_search_since_returns_uids() -> None:
    connection = MagicMock()
    connection.uid.return_value = ("OK", [b"101 102 105"])
    client = _connected_client(connection)

    uids = client.search_since(date(2024, 5, 4))

    assert uids == [101, 102, 105]
    connection.uid.assert_called_once_with("SEARCH", None, "SINCE", "04-May-2024")


def test_search_since_with_no_matches_returns_empty_list() -> None:
    connection = MagicMock()
    connection.uid.return_value = ("OK", [b""])
    client = _connected_client(connection)

    assert client.search_since(date(2024, 5, 24)) == []


def test_search_since_rejected_by_server_raises() -> None:
    connection = MagicMock()
    connection.uid.return_value = ("NO", [b"SEARCH not allowed"])
    client = _connected_client(connection)

    with pytest.raises(ImapError):
        client.search_since(date(2024, 5, 24))


def test_fetch_overview_drops_entries_below_start_uid() -> None:
    connection = MagicMock()
    connection.uid.return_value = (
        "OK",
        [
            b"3 (UID 12 FLAGS (\\Seen) RFC822.SIZE 2048)",
            b"4 (UID 14 FLAGS () RFC822.SIZE 512)",
        ],
    )
    client = _connected_client(connection)

    entries = client.fetch_overview(12)

    assert [(entry.uid, entry.sequence, entry.size) for entry in entries] == [
        (12, 3, 2048),
        (14, 4, 512),
    ]
    assert entries[0].flags == ("\\Seen",)
    connection.uid.assert_called_once_with("FETCH", "12:*", "(UID FLAGS RFC822.SIZE)")

    connection.uid.return_value = ("OK", [b"4 (UID 14 FLAGS () RFC822.SIZE 512)"])
    assert client.fetch_overview(20) == []


def test_commands_require_connection() -> None:
    client = ImapClient(_settings())

    with pytest.raises(ImapError):
        client.message_count()


def test_format_search_date_ignores_locale() -> None:
    assert format_search_date(date(2024, 12, 1)) == "01-Dec-2024"
