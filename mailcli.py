#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Terminal mail client: send a message, or list and filter the messages of a folder.

Examples:
    mailcli.py -r bob@example.com -s "Hello" -m notes.txt -a ~/report.pdf
    mailcli.py -l 5
    mailcli.py -f "subject:invoice+from:billing@example.com|size_ge:1mb" -l all
"""

import argparse
import imaplib
import smtplib
import sys

import config_data
import email_utils
import http_utils
import imap_utils
import mail_client
import query_dsl
from query_terms import FilterError

VERSION = "0.1"

FILTER_HELP = """\
Expression-based message filtering: terms are field:value, '+' joins terms with AND,
'|' joins groups with OR (AND binds tighter), a leading '!' on the value negates it.
Fields: body subject from to cc bcc number received received_after received_before
sent sent_after sent_before (YYYY-MM-DDTHH.MM.SS) size_ge size_le (e.g. 4kb, 2.5mb)
flag (seen, flagged or a keyword)"""


def parse_limit(value):
    """-l argument: positive integer, or "all" (returned as 0)"""
    if value.lower() == "all":
        return 0
    try:
        limit = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid message limit {value}") from None
    return max(limit, 0)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="mailcli",
        description="Simple terminal-based email management wizard",
        epilog=f"Version: {VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-r", "--recipient", help="Email recipient(s), comma-separated")
    parser.add_argument("-c", "--cc", default="", help="Add CC recipients")
    parser.add_argument("-b", "--bcc", default="", help="Add BCC recipients")
    parser.add_argument(
        "-s", "--subject", default=config_data.default_subject, help="Email subject"
    )
    parser.add_argument(
        "-m", "--message", help="Email message or path to text file with message body"
    )
    parser.add_argument(
        "-a", "--attachment", default="", help="Attachment file(s), comma-separated"
    )
    parser.add_argument(
        "-d",
        "--download",
        action="store_true",
        help="Download all file attachments (combined with -l and/or -f)",
    )
    parser.add_argument("-f", "--filter", help=FILTER_HELP)
    parser.add_argument("-e", "--folder", help="Name of folder to open")
    parser.add_argument(
        "-o",
        "--from-oldest",
        action="store_true",
        help="Search messages from oldest to newest (combined with -l and/or -f)",
    )
    parser.add_argument(
        "-i",
        "--reverse",
        action="store_true",
        help="Reverse the order of messages displayed (combined with -l and/or -f)",
    )
    parser.add_argument(
        "-l",
        "--limit",
        type=parse_limit,
        metavar="N",
        help='Limit the number of emails displayed to N; "all" fetches all messages',
    )
    parser.add_argument("--password", help="Password (prefer $MAIL_PASSWORD)")
    return parser


def check_mode(args):
    """
    Returns:
        Error message for an invalid option combination, None otherwise
    """
    reading = args.filter is not None or args.limit is not None
    if args.recipient is not None:
        if reading:
            return "Error: If 'recipient' is present, neither 'filter' nor 'limit' should be present."
    elif not reading:
        return (
            "Error: If 'recipient' is not present, at least one of 'limit' or 'filter' "
            "must be present."
        )
    return None


def main(argv=None, config=config_data, send_fn=None, prompt_fn=input):
    """
    Run the client.

    Returns:
        Process exit code
    """
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        parser.print_help()
        return 0

    args = parser.parse_args(argv)
    error = check_mode(args)
    if error:
        print(error)
        parser.print_help()
        return 1

    if args.filter is not None:
        try:
            query_dsl.compile_filter(args.filter)
        except FilterError as e:
            print(f"==> Invalid filter: {e}")
            return 1

    user = config.mail_user
    if not user:
        print("==> $MAIL_USER has not been set")
        return 1
    password = imap_utils.get_credential(
        "MAIL_PASSWORD", "password", "Password: ", argv
    )

    try:
        if args.recipient is None:
            mail_client.read(
                config,
                user,
                password,
                folder=args.folder,
                mail_filter=args.filter,
                limit=args.limit or None,
                download=args.download,
                reverse_order=args.reverse,
                oldest_first=args.from_oldest,
                prompt_fn=prompt_fn,
            )
        else:
            message_text = args.message
            if message_text is None:
                message_text = http_utils.fetch_quote()
            mail_client.send(
                config,
                user,
                password,
                recipient=args.recipient,
                subject=args.subject,
                message_text=message_text,
                cc=args.cc,
                bcc=args.bcc,
                attachments=args.attachment,
                send_fn=send_fn,
            )
    except email_utils.InvalidAddress as e:
        print(f"==> {e}")
        return 1
    except (imaplib.IMAP4.error, smtplib.SMTPAuthenticationError) as e:
        print(f"==> ({user}) {e}")
        return 1
    except (smtplib.SMTPException, OSError) as e:
        print(f"==> {e.__class__.__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
