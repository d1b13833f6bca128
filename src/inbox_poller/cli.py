"""Command-line entry point for Inbox Poller."""

from __future__ import annotations

import argparse
from pathlib import Path

from inbox_poller.core import AppSettings, configure_logging, load_app_settings
from inbox_poller.core.models import Message, NoOperation, PollResult
from inbox_poller.ingestion import PollMode, poll_mailbox
from inbox_poller.transport import ImapError


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Poll an IMAP mailbox")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", *(mode.value for mode in PollMode)],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--date",
        dest="since",
        default=None,
        help="Lower date bound for the 'since' command, e.g. '24 May 2024'.",
    )
    parser.add_argument(
        "--last-uid",
        dest="last_uid",
        type=int,
        default=None,
        help="Checkpoint UID from the previous run for the 'checkpoint' command.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> None:
    """Execute the requested CLI command."""
    command = args.command
    if command == "info":
        print("Inbox Poller is ready. Configure IMAP settings to get started.")
        print(f"IMAP host: {settings.imap.host}")
        print(f"Mailbox: {settings.imap.mailbox}")
        return
    _run_poll(
        settings,
        PollMode(command),
        since=args.since,
        last_uid=args.last_uid,
    )


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    execute(args, settings)


def _run_poll(
    settings: AppSettings,
    mode: PollMode,
    *,
    since: str | None,
    last_uid: int | None,
) -> None:
    """Run a single poll cycle and report the outcome."""
    try:
        outcome = poll_mailbox(
            settings.imap,
            mode,
            since=since,
            last_uid=last_uid,
            body_part=settings.sync.body_part,
        )
    except ImapError as exc:
        print(f"Poll failed: {exc}")
        return
    except ValueError as exc:
        print(f"Invalid argument: {exc}")
        return

    if isinstance(outcome, NoOperation):
        print("No messages found.")
        return
    _print_result(outcome)


def _print_result(result: PollResult) -> None:
    print(f"Emails found: {result.count}")
    for message in result.messages:
        print(_format_message(message))
    for fault in result.faults:
        print(f"Skipped message {fault.message_id}: {fault.reason}")
    if result.checkpoint is not None:
        print(f"The last UID was {result.checkpoint}")


def _format_message(message: Message) -> str:
    unread = "yes" if message.unread else "no"
    return "\n".join(
        [
            f"Message #{message.uid}",
            f"Ticket: {message.ticket_id}",
            f"Date: {message.sent_date}",
            f"From: {message.sender_name} ({message.sender_address})",
            f"Unread? {unread}",
            f"Subject: {message.subject}",
            "Body:",
            message.body_text,
            "",
        ]
    )


if __name__ == "__main__":
    main()
