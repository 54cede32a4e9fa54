# -*- coding: utf-8 -*-
"""
IMAP protocol utilities: connection helpers, credentials, message fetching, keep-alive.
"""

import email
import email.message
import email.policy
import email.utils
import getpass
import imaplib
import os
import re
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime

FETCH_ITEMS = "(FLAGS RFC822.SIZE INTERNALDATE BODY.PEEK[])"
HEADER_ITEMS = "(FLAGS RFC822.SIZE INTERNALDATE BODY.PEEK[HEADER])"
SIZE_RE = re.compile(rb"RFC822\.SIZE (\d+)")


class FolderNotFound(Exception):
    """Selected folder does not exist in the store"""

    def __init__(self, folder, server=""):
        super().__init__(f'Folder "{folder}" not found in store ({server})')
        self.folder = folder
        self.server = server


def get_credential(env_var, arg_name, prompt, argv=None):
    """
    Get credential from environment, command line args, or prompt.

    Priority:
    1. Environment variable
    2. Command line --arg=value or --arg value
    3. Interactive prompt (masked input)
    """
    argv = sys.argv if argv is None else argv
    value = os.environ.get(env_var)
    if value:
        return value

    for i, arg in enumerate(argv):
        if arg.startswith(f"--{arg_name}="):
            return arg.split("=", 1)[1]
        elif arg == f"--{arg_name}" and i + 1 < len(argv):
            return argv[i + 1]

    return getpass.getpass(prompt)


def quote_mailbox(name):
    if name.startswith('"') or not re.search(r'[\s"\\]', name):
        return name
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


# ============================================================================
# Connection
# ============================================================================


def connect_and_select(config, user, password, folder=None):
    """
    Connect to IMAP server and open a folder read-only.

    Args:
        config: Configuration module with imap_server, imap_port, inbox
        user: Login name
        password: IMAP password
        folder: Folder name, defaults to config.inbox

    Returns:
        (connection, message_count) tuple

    Raises:
        imaplib.IMAP4.error on login failure, FolderNotFound for a missing folder
    """
    folder = (folder or config.inbox).strip()

    connection = imaplib.IMAP4_SSL(config.imap_server, config.imap_port)
    connection.login(user, password)

    typ, data = connection.select(quote_mailbox(folder), readonly=True)
    if typ != "OK":
        disconnect(connection)
        raise FolderNotFound(folder, f"imaps://{user}@{config.imap_server}/{folder}")

    return connection, int(data[0])


def disconnect(connection):
    """Cleanly close IMAP connection"""
    try:
        connection.close()
    except imaplib.IMAP4.error:
        pass
    try:
        connection.logout()
    except (imaplib.IMAP4.error, OSError):
        pass


def unseen_count(connection):
    typ, data = connection.search(None, "UNSEEN")
    if typ != "OK" or not data or not data[0]:
        return 0
    return len(data[0].split())


# ============================================================================
# Fetching
# ============================================================================


@dataclass
class FetchedMessage:
    """A message with the store attributes the filter language can test"""

    number: int
    flags: tuple = ()
    size: int = 0
    received: datetime | None = None
    message: email.message.EmailMessage = field(default_factory=email.message.EmailMessage)

    @property
    def sent(self):
        value = self.message["Date"]
        if not value:
            return None
        try:
            return email.utils.parsedate_to_datetime(str(value)).astimezone()
        except (TypeError, ValueError):
            return None


def parse_fetch_response(data):
    """
    Turn the response of FETCH FETCH_ITEMS into FetchedMessage objects.

    Items can come before or after the message literal, so the text following a
    literal is merged with the text that precedes it.
    """
    messages = []
    for index, item in enumerate(data):
        if not isinstance(item, tuple):
            continue

        meta, raw = item
        trailer = data[index + 1] if index + 1 < len(data) else None
        if isinstance(trailer, bytes):
            meta = meta + trailer

        number = int(meta.split(b" ", 1)[0])
        flags = tuple(flag.decode("ascii") for flag in imaplib.ParseFlags(meta))

        size_match = SIZE_RE.search(meta)
        size = int(size_match.group(1)) if size_match else len(raw)

        internaldate = imaplib.Internaldate2tuple(meta)
        received = (
            datetime.fromtimestamp(time.mktime(internaldate)).astimezone()
            if internaldate
            else None
        )

        message = email.message_from_bytes(raw, policy=email.policy.default)
        messages.append(FetchedMessage(number, flags, size, received, message))

    return messages


def fetch_messages(connection, message_set, items=FETCH_ITEMS):
    """
    Fetch messages without marking them seen.

    Args:
        connection: IMAP4 connection with a selected folder
        message_set: Sequence set, e.g. "1:*" or "3,5,8"
        items: FETCH data items, HEADER_ITEMS skips the message bodies

    Returns:
        List of FetchedMessage
    """
    typ, data = connection.fetch(message_set, items)
    if typ != "OK":
        raise imaplib.IMAP4.error(f"FETCH {message_set} failed: {data}")
    return parse_fetch_response(data)


# ============================================================================
# Keep-alive
# ============================================================================


class KeepAlive:
    """
    Background NOOP sender that keeps the connection open while the user reads.

    Usage:
        with KeepAlive(connection, 20):
            input("Press enter")
    """

    def __init__(self, connection, interval):
        self.connection = connection
        self.interval = interval
        self._stopped = threading.Event()
        self._thread = None

    def start(self):
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name="imap-keepalive", daemon=True)
        self._thread.start()
        return self

    def _run(self):
        while not self._stopped.wait(self.interval):
            try:
                self.connection.noop()
            except (imaplib.IMAP4.error, OSError) as e:
                print(f"==> Keep-alive failed: {e}")
                return

    def cancel(self):
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.cancel()
