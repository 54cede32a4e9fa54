# -*- coding: utf-8 -*-
"""
Config and message builders shared by the tests.
"""

import email
import email.message
import email.policy


def make_config():
    """Minimal config object for testing."""

    class Config:
        imap_server = "imap.example.com"
        imap_port = 993
        smtp_server = "smtp.example.com"
        smtp_port = 465
        inbox = "INBOX"

        mail_user = "alice"
        mail_domain = "example.com"
        mail_name = "Alice Example"

        noop_interval = 20
        max_filename_length = 150
        default_subject = "Test Subject"
        allowed_extensions = frozenset(["txt", "pdf", "png", "zip"])

    return Config()


def make_message(
    subject="Hello",
    from_addr="Test User <test@gmail.com>",
    to_addr="Bob <bob@example.com>",
    cc_addr=None,
    date="Mon, 15 Jan 2024 10:30:00 +0000",
    body="Plain body",
):
    msg = email.message.EmailMessage(policy=email.policy.default)
    msg["Subject"] = subject
    msg["From"] = from_addr
    if to_addr:
        msg["To"] = to_addr
    if cc_addr:
        msg["Cc"] = cc_addr
    if date:
        msg["Date"] = date
    msg.set_content(body)
    return msg


def make_fetch_item(number, message, flags=r"\Seen", size=None,
                    internaldate="15-Jan-2024 10:30:00 +0000"):
    """One message of a FETCH (FLAGS RFC822.SIZE INTERNALDATE BODY.PEEK[]) response"""
    raw = message.as_bytes()
    size = len(raw) if size is None else size
    meta = (
        f"{number} (FLAGS ({flags}) RFC822.SIZE {size} "
        f'INTERNALDATE "{internaldate}" BODY[] {{{len(raw)}}}'
    ).encode("ascii")
    return [(meta, raw), b")"]
