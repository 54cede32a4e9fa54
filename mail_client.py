# -*- coding: utf-8 -*-
"""
Mail client operations: reading (listing and filtering) a folder, sending a message.
Transport functions are injectable so the operations can run against fakes.
"""

import os
from datetime import datetime

import email_utils
import imap_search
import imap_utils
import message_view
import query_dsl
import query_printer
from query_terms import EmailAddress

# ============================================================================
# Reading
# ============================================================================


def select_numbers(connection, message_count, tree=None, limit=None, oldest_first=False):
    """
    Pick the message numbers to show.

    Args:
        connection: IMAP4 connection with a selected folder
        message_count: Number of messages in the folder
        tree: Optional predicate tree
        limit: Maximum number of messages, None for all
        oldest_first: Take the oldest messages instead of the newest

    Returns:
        (numbers, matched) tuple; numbers ascending, matched is the number of
        messages satisfying the tree (message_count without a tree)
    """
    if message_count == 0:
        return [], 0

    if tree is None:
        numbers = list(range(1, message_count + 1))
    else:
        numbers = imap_search.search(connection, tree)

    matched = len(numbers)
    if limit is not None and limit < matched:
        numbers = numbers[:limit] if oldest_first else numbers[matched - limit :]

    return numbers, matched


def page(connection, numbers, *, reverse_order=False, own_address=None,
         download_dir=None, max_filename_length=150, noop_interval=20, prompt_fn=input):
    """
    Show messages one at a time, newest first unless reverse_order.

    Returns:
        Number of messages shown
    """
    ordered = list(numbers) if reverse_order else list(reversed(numbers))
    total = len(ordered)
    shown = 0

    for position, number in enumerate(ordered, start=1):
        fetched = imap_utils.fetch_messages(connection, str(number))[0]
        message_view.show(fetched, position, own_address, download_dir, max_filename_length)
        shown += 1

        if total <= 1:
            continue

        print(message_view.RULE)
        print(f"==> Showing message [{position}/{total}] ", end="")
        if position == total:
            print()
            break

        with imap_utils.KeepAlive(connection, noop_interval):
            while True:
                answer = prompt_fn("- Press enter to view next message (type 'q' to exit): ")
                if answer == "" or answer.lower() == "q":
                    break

        if answer.lower() == "q":
            break

    print(message_view.RULE)
    return shown


def review(connection, message_count, folder_name, *, mail_filter=None, limit=None,
           download=False, reverse_order=False, oldest_first=False, own_address=None,
           max_filename_length=150, noop_interval=20, prompt_fn=input):
    """
    List the messages of an open folder, optionally filtered.

    Args:
        connection: IMAP4 connection with folder_name selected
        message_count: Number of messages in the folder
        folder_name: Folder name, for display
        mail_filter: Optional filter expression, see query_dsl
        limit: Maximum number of messages, None for all
        download: Save attachments under the current directory
        reverse_order: Show oldest first
        oldest_first: Take the oldest messages instead of the newest
        own_address: (name, addr) shown for messages without To header
        max_filename_length: Longest name of a download directory
        noop_interval: Keep-alive interval while waiting for input
        prompt_fn: Function reading the user's answer

    Returns:
        Number of messages shown

    Raises:
        query_terms.FilterError: mail_filter does not compile
    """
    tree = query_dsl.compile_filter(mail_filter) if mail_filter is not None else None

    print(
        f"==> Found {message_count} mail(s) in '{folder_name}' folder "
        f"({imap_utils.unseen_count(connection)} unread)"
    )

    direction = "oldest" if oldest_first else "latest"
    numbers, matched = select_numbers(connection, message_count, tree, limit, oldest_first)

    if tree is not None:
        print(f"==> Filter: {query_printer.render(tree)}")
        print(f"==> Found {matched} mail(s) matching the criteria")
    print(f"==> Fetching {direction} {len(numbers)} mail(s)")

    if not numbers:
        return 0

    return page(
        connection,
        numbers,
        reverse_order=reverse_order,
        own_address=own_address,
        download_dir=os.getcwd() if download else None,
        max_filename_length=max_filename_length,
        noop_interval=noop_interval,
        prompt_fn=prompt_fn,
    )


def read(config, user, password, *, folder=None, **options):
    """
    Connect, open a folder read-only and review its messages.

    Args:
        config: Configuration module, see config_data
        user: Login name
        password: Password
        folder: Folder name, defaults to config.inbox
        options: Passed to review()

    Returns:
        Number of messages shown, None if the folder does not exist
    """
    try:
        connection, message_count = imap_utils.connect_and_select(
            config, user, password, folder
        )
    except imap_utils.FolderNotFound as e:
        print(f"==> {e}")
        return None

    try:
        return review(
            connection,
            message_count,
            (folder or config.inbox).strip(),
            own_address=(config.mail_name, f"{user}@{config.mail_domain}"),
            max_filename_length=config.max_filename_length,
            noop_interval=config.noop_interval,
            **options,
        )
    finally:
        imap_utils.disconnect(connection)


# ============================================================================
# Sending
# ============================================================================


def send(config, user, password, *, recipient, subject, message_text, cc="", bcc="",
         attachments="", send_fn=None):
    """
    Validate addresses, build and send a message.

    Args:
        config: Configuration module, see config_data
        user: Login name, also the local part of the sender address
        password: SMTP password
        recipient: Comma-separated To addresses
        subject: Subject line
        message_text: Body text, or path of a file holding it
        cc: Comma-separated CC addresses
        bcc: Comma-separated BCC addresses
        attachments: Comma-separated file paths
        send_fn: Optional (options, from_addr, to_addr, message) -> None
                 Defaults to email_utils.send_via_smtp

    Returns:
        The sent EmailMessage, None if an attachment was rejected

    Raises:
        email_utils.InvalidAddress: sender or any recipient is invalid
    """
    send_fn = send_fn or email_utils.send_via_smtp

    try:
        sender = email_utils.parse_address(f"{user}@{config.mail_domain}")
    except email_utils.InvalidAddress:
        raise email_utils.InvalidAddress(
            "Invalid sender address", f"{user}@{config.mail_domain}"
        ) from None
    sender = EmailAddress(sender.addr_spec, config.mail_name)

    to_addrs = email_utils.parse_address_list(recipient, "recipient")
    if not to_addrs:
        raise email_utils.InvalidAddress("`To` address field cannot be empty")
    cc_addrs = email_utils.parse_address_list(cc, "CC")
    bcc_addrs = email_utils.parse_address_list(bcc, "BCC")

    paths = []
    for path in email_utils.split_attachments(attachments):
        expanded, error = email_utils.check_attachment(path, config.allowed_extensions)
        if error:
            print(f"==> {error}")
            return None
        paths.append(expanded)

    message = email_utils.build_message(
        subject=subject,
        from_addr=email_utils.format_address(sender),
        to_addrs=[email_utils.format_address(a) for a in to_addrs],
        body=email_utils.read_file_or_string(message_text) or "",
        cc_addrs=[email_utils.format_address(a) for a in cc_addrs],
        attachments=paths,
    )

    options = {
        "smtp_server": config.smtp_server,
        "smtp_port": config.smtp_port,
        "smtp_user": user,
        "smtp_pass": password,
    }
    envelope = [a.addr_spec for a in to_addrs + cc_addrs + bcc_addrs]
    send_fn(options, sender.addr_spec, envelope, message)

    sent_to = " ".join(f"<{a.addr_spec}>" for a in to_addrs)
    print(f"==> Mail sent to {sent_to} at {datetime.now().astimezone().isoformat()}")
    return message
