"""Poll an IMAP mailbox and return normalized messages."""
