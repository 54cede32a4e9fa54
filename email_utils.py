# -*- coding: utf-8 -*-
"""
Email utilities: address validation, message construction, SMTP sending, part decoding.
Uses the modern EmailMessage API (Python 3.6+).
"""

import email.message
import email.policy
import email.utils
import mimetypes
import os
import re
import smtplib

import config_data
from query_terms import EmailAddress

EMAIL_POLICY = email.policy.EmailPolicy(utf8=True)

ADDR_SPEC = re.compile(
    r"[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)*"
)

IMAGE_EXTENSIONS = ("jpg", "png", "gif", "bmp", "jpeg")


class InvalidAddress(ValueError):
    """Address (or address list) failed strict RFC822 validation"""

    def __init__(self, message, address=""):
        super().__init__(f"{message}: {address}" if address else message)
        self.address = address


# ============================================================================
# Address parsing
# ============================================================================


def parse_address(value):
    """
    Parse and validate exactly one RFC822 address.

    Args:
        value: "user@domain" or "Display Name <user@domain>"

    Returns:
        EmailAddress

    Raises:
        InvalidAddress: value is not a single valid address
    """
    addresses = email.utils.getaddresses([value])
    if len(addresses) != 1:
        raise InvalidAddress("Expected a single address", value)

    name, addr_spec = addresses[0]
    if not ADDR_SPEC.fullmatch(addr_spec):
        raise InvalidAddress("Invalid address", value)

    return EmailAddress(addr_spec, name.strip())


def parse_address_list(value, what="recipient"):
    """
    Parse a comma-separated address list, validating every entry.

    Args:
        value: e.g. "a@x.com, Bob <b@y.org>"
        what: Field description used in the error message

    Returns:
        List of EmailAddress (empty for an empty value)

    Raises:
        InvalidAddress: any entry is invalid
    """
    if not value or not value.strip():
        return []

    entries = [entry for entry in re.split(r"\s*,\s*", value.strip()) if entry]
    try:
        return [parse_address(entry) for entry in entries]
    except InvalidAddress:
        raise InvalidAddress(
            f"Invalid {what} address detected in {what} list", ", ".join(entries)
        ) from None


def format_address(address):
    """EmailAddress -> header value"""
    return email.utils.formataddr((address.display_name, address.addr_spec))


# ============================================================================
# Attachments and message bodies
# ============================================================================


def get_file_extension(path):
    """
    Extension without the dot; empty for "name", ".hidden" or a trailing dot.
    """
    name = os.path.basename(path)
    index = name.rfind(".")
    if index <= 0:
        return ""
    return name[index + 1 :]


def is_image(path):
    return get_file_extension(path).lower() in IMAGE_EXTENSIONS


def read_file_or_string(value):
    """
    Return the contents of the file at value, or value itself if it names no file.

    Returns:
        File contents, the input string, or None if the file cannot be read
    """
    if not os.path.isfile(value):
        return value

    try:
        with open(value, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError):
        return None


def check_attachment(path, allowed_extensions=None):
    """
    Validate an attachment path.

    Args:
        path: File path, "~" is expanded
        allowed_extensions: Allowed extensions, defaults to config_data.allowed_extensions

    Returns:
        (expanded_path, error) tuple; error is None when the file can be attached
    """
    allowed_extensions = allowed_extensions or config_data.allowed_extensions
    expanded = os.path.expanduser(path.strip())
    name = os.path.basename(expanded)
    extension = get_file_extension(expanded)

    if not os.path.exists(expanded):
        return expanded, f"File {name} does not exist"
    if os.path.isdir(expanded):
        return expanded, f"File {name} is a directory"
    if extension not in allowed_extensions:
        available = ", ".join(f'"{ext}"' for ext in sorted(allowed_extensions))
        return expanded, f'Invalid extension ".{extension}"; available extensions: [{available}]'

    return expanded, None


def split_attachments(value):
    """Comma-separated attachment paths -> list"""
    if not value:
        return []
    return [path for path in re.split(r"\s*,\s*", value.strip()) if path]


# ============================================================================
# Email construction
# ============================================================================


def build_message(*, subject, from_addr, to_addrs, body, cc_addrs=(), attachments=()):
    """
    Build a multipart/mixed message.

    Args:
        subject: Email subject
        from_addr: Sender header value
        to_addrs: List of recipient header values
        body: Text body
        cc_addrs: Optional list of CC header values
        attachments: Paths of files to attach; images are inlined

    Returns:
        EmailMessage object
    """
    msg = email.message.EmailMessage(policy=EMAIL_POLICY)
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = ", ".join(to_addrs)
    if cc_addrs:
        msg["Cc"] = ", ".join(cc_addrs)
    msg["Message-ID"] = email.utils.make_msgid()
    msg["Date"] = email.utils.formatdate(localtime=True)

    msg.set_content(body)
    msg.make_mixed()

    for path in attachments:
        mimetype, _ = mimetypes.guess_type(path)
        maintype, subtype = (mimetype or "application/octet-stream").split("/", 1)
        with open(path, "rb") as f:
            data = f.read()

        if is_image(path):
            msg.add_attachment(
                data,
                maintype=maintype,
                subtype=subtype,
                filename=os.path.basename(path),
                disposition="inline",
                cid="<image>",
            )
        else:
            msg.add_attachment(
                data,
                maintype=maintype,
                subtype=subtype,
                filename=os.path.basename(path),
            )

    return msg


# ============================================================================
# SMTP sending
# ============================================================================


def send_via_smtp(options, from_addr, to_addr, message):
    """
    Send message via SMTP with connection handling.

    Args:
        options: Dict with smtp_server, smtp_port, smtp_user, smtp_pass
        from_addr: Envelope sender address
        to_addr: Recipient address (or list, including BCC recipients)
        message: EmailMessage object or string or bytes
    """
    smtp_connection = smtplib.SMTP_SSL(options["smtp_server"], options.get("smtp_port", 0))
    smtp_connection.login(options["smtp_user"], options["smtp_pass"])
    try:
        match message:
            case str() | bytes():
                msg_data = message
            case _:
                msg_data = message.as_bytes()
        smtp_connection.sendmail(from_addr, to_addr, msg_data)
    finally:
        smtp_connection.quit()


# ============================================================================
# Email parsing
# ============================================================================


def decode_part(part):
    """
    Decode a single MIME part to string.

    Args:
        part: MIME part

    Returns:
        Decoded string or None on failure
    """
    try:
        payload = part.get_payload(decode=True)
        if payload is None:
            return None

        charset = part.get_content_charset() or "utf-8"

        for encoding in [charset, "utf-8", "iso-8859-1"]:
            try:
                return payload.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                continue

        return payload.decode("utf-8", errors="replace")
    except Exception:
        return None


def text_parts(msg):
    """Yield decoded text of every text/* leaf part"""
    for part in msg.walk():
        if part.get_content_maintype() == "text" and not part.is_multipart():
            text = decode_part(part)
            if text:
                yield text
