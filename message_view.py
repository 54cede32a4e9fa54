# -*- coding: utf-8 -*-
"""
Terminal rendering of fetched messages: header block, MIME body walk, attachment saving.
"""

import email.utils
import os
import re
import uuid

import email_utils
import html_utils

ANSI_RESET = "\033[0m"
ANSI_UNDERLINE = "\033[4m"
ANSI_RED = "\033[31m"

RULE = "-" * 82


# ============================================================================
# Formatting helpers
# ============================================================================


def format_size(size):
    """Bytes -> "12.5 kB" or "1.2 MB" """
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / 1024:.1f} kB"


def format_addresses(addresses):
    """[(name, addr), ...] -> '<"Name" <addr>> <addr>' """
    return " ".join(
        f'<"{name}" <{addr}>>' if name else f"<{addr}>" for name, addr in addresses
    )


def header_addresses(message, header):
    values = message.get_all(header) or []
    return [pair for pair in email.utils.getaddresses([str(v) for v in values]) if pair[1]]


def label(name):
    return f"{ANSI_UNDERLINE + name + ANSI_RESET:>16}"


def warning(text):
    return f"{ANSI_RED}[{text}]{ANSI_RESET}"


def make_mail_id(message, max_length=150):
    """
    Unique, filesystem-safe name for a message: <uuid>_<sender>_<subject slug>.
    """
    senders = header_addresses(message, "From")
    sender = senders[0][1].replace("@", "_at_") if senders else "unknown"

    slug = str(message.get("Subject", "") or "").strip().lower()
    slug = re.sub(r"\s+", "_", slug)
    slug = re.sub(r"[^a-zA-Z0-9\-_ ]", "", slug)
    slug = re.sub(r"_+", "_", slug)

    return f"{uuid.uuid4()}_{sender}_{slug}"[:max_length]


# ============================================================================
# Header block
# ============================================================================


def header_lines(fetched, position, own_address=None):
    """
    Header block of a message.

    Args:
        fetched: imap_utils.FetchedMessage
        position: Position of the message in the listing (1-based)
        own_address: (name, addr) shown as recipient when the message has no To header

    Returns:
        List of lines
    """
    message = fetched.message
    when = fetched.sent or fetched.received

    lines = [
        RULE,
        f"{label('Email No')}: {position}",
        f"{label('Size')}: {format_size(fetched.size)}",
        f"{label('Subject')}: {message.get('Subject', '')}",
        f"{label('Date')}: {email.utils.format_datetime(when) if when else ''}",
        f"{label('From')}: {format_addresses(header_addresses(message, 'From'))}",
    ]

    recipients = header_addresses(message, "To")
    if not recipients and own_address:
        recipients = [own_address]
    lines.append(f"{label('To')}: {format_addresses(recipients)}")

    carbon_copies = header_addresses(message, "Cc")
    if carbon_copies:
        lines.append(f"{label('Cc')}: {format_addresses(carbon_copies)}")

    reply_to = header_addresses(message, "Reply-To") or header_addresses(message, "From")
    lines.append(f"{label('Reply To')}: {format_addresses(reply_to)}")
    lines.append(RULE)
    return lines


# ============================================================================
# Body walk
# ============================================================================


def describe_attachment(part):
    """One-line summary of a non-text part"""
    size = len(part.get_payload(decode=False) or "")
    return (
        f"Content: {part.get_content_type()}; "
        f'name="{part.get_filename() or ""}" '
        f'encoding="{part.get("Content-Transfer-Encoding", "7bit")}" '
        f"({part.get_content_disposition() or 'inline'}) "
        f"[{format_size(size)}]"
    )


def AttachmentSaver(mail_dir, mail_id):
    """Factory: Create a function saving body parts under mail_dir"""

    def save(part, index, depth):
        os.makedirs(mail_dir, exist_ok=True)
        suffix = f"_{index}.html" if depth == 0 else f"_inner_{index}.html"
        filename = os.path.basename(part.get_filename() or mail_id + suffix)
        path = os.path.join(mail_dir, filename)
        with open(path, "wb") as f:
            f.write(part.get_payload(decode=True) or b"")
        return path

    return save


def _walk_multipart(multipart, depth, lines, save):
    has_plain_text = False
    nested = " nested" if depth else ""

    for index, part in enumerate(multipart.iter_parts()):
        content_type = part.get_content_type()
        maintype = part.get_content_maintype()

        if content_type == "text/plain":
            has_plain_text = True
            lines.append(f"Content: {email_utils.decode_part(part) or ''}")
        elif part.is_multipart():
            _walk_multipart(part, depth + 1, lines, save)
        elif content_type == "text/html" or maintype in ("application", "image"):
            if content_type == "text/html":
                if has_plain_text:
                    lines.append(warning(f'Skipping displaying{nested} "text/html" content type'))
                else:
                    html = email_utils.decode_part(part) or ""
                    lines.append(f"Content: {html_utils.html_to_text(html)}")
            lines.append(describe_attachment(part))
            if save:
                save(part, index, depth)
        elif depth:
            lines.append(warning(f'Skipping displaying nested "{content_type}" content type'))
        else:
            lines.append(f"Body Part Content-Type: {part.get('Content-Type', content_type)}")


def body_lines(message, save=None):
    """
    Describe a message body, descending into nested multiparts.

    Args:
        message: EmailMessage
        save: Optional function(part, index, depth) storing attachments

    Returns:
        List of lines
    """
    lines = []
    if message.is_multipart():
        _walk_multipart(message, 0, lines, save)
        return lines

    maintype = message.get_content_maintype()
    subtype = message.get_content_subtype()
    if maintype == "text" and subtype == "plain":
        lines.append(f"Content: {email_utils.decode_part(message) or ''}")
    elif maintype == "text" and subtype == "html":
        html = email_utils.decode_part(message) or ""
        lines.append(f"Content: {html_utils.html_to_text(html)}")
    elif maintype == "text":
        lines.append(f"Unable to display Content for text Sub-Type: {subtype}")
    else:
        lines.append(
            "Unable to get the Content of message with Content-Type: "
            f"{message.get_content_type()}"
        )
    return lines


def show(fetched, position, own_address=None, download_dir=None, max_filename_length=150):
    """
    Print a message; save its attachments under download_dir when given.

    Returns:
        Directory attachments were saved to, or None
    """
    for line in header_lines(fetched, position, own_address):
        print(line)

    save = None
    mail_dir = None
    if download_dir is not None:
        mail_dir = os.path.join(
            download_dir, make_mail_id(fetched.message, max_filename_length)
        )
        save = AttachmentSaver(mail_dir, os.path.basename(mail_dir))

    for line in body_lines(fetched.message, save):
        print(line)

    return mail_dir if mail_dir and os.path.isdir(mail_dir) else None
