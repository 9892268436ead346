"""Mailbox host: scans a directory of stored messages."""

from .host import MailboxHost, MailboxPresenter
from .message import MailMessage, parse_bytes, parse_message

__all__ = [
    "MailboxHost",
    "MailboxPresenter",
    "MailMessage",
    "parse_bytes",
    "parse_message",
]
