# -*- coding: utf-8 -*-
"""
Configuration data: servers, identity, folders, and limits.
Pure data only - no functions, no side effects at import time.
Server, identity and timing settings read environment overrides (IMAP_SERVER, MAIL_USER, ...).
"""

import os

# ============================================================================
# SERVER SETTINGS
# ============================================================================

imap_server = os.environ.get("IMAP_SERVER", "imap.provider.com")
imap_port = int(os.environ.get("IMAP_PORT", "993"))
smtp_server = os.environ.get("SMTP_SERVER", "smtp.provider.com")
smtp_port = int(os.environ.get("SMTP_PORT", "465"))

inbox = os.environ.get("INBOX", "INBOX")

# ============================================================================
# IDENTITY
# ============================================================================

# Login name; the password comes from $MAIL_PASSWORD, --password or a prompt
mail_user = os.environ.get("MAIL_USER", "")

# Sender is <mail_user>@<mail_domain>, shown as mail_name
mail_domain = os.environ.get("MAIL_DOMAIN", "provider.com")
mail_name = os.environ.get("MAIL_NAME", mail_user)

# ============================================================================
# READING
# ============================================================================

# Seconds between NOOPs while waiting for the user to page through messages
noop_interval = int(os.environ.get("NOOP_INTERVAL", "20"))

# Longest directory name used when saving attachments
max_filename_length = 150

# ============================================================================
# SENDING
# ============================================================================

default_subject = "Test Subject"

quote_api_url = os.environ.get("QUOTE_API_URL", "https://api.quotable.io/random")
default_fetch_timeout = 30

allowed_extensions = frozenset(
    [
        "zip", "jpeg", "jpg", "png", "gif", "bmp", "tar", "gz", "7z", "csv",
        "txt", "xls", "doc", "ppt", "jar", "py", "java", "yml", "mp4", "mp3",
        "pdf", "ogg", "sql", "toml", "tiff", "mov", "aac", "xml", "json",
    ]
)  # fmt: skip
