# -*- coding: utf-8 -*-
"""
Runs predicate trees against an IMAP folder.

Trees are translated to IMAP SEARCH syntax, one search key per leaf:
    ((SUBJECT "hello") (FROM "test@gmail.com"))  ->  AND
    (OR (FLAGGED) (UNSEEN))                      ->  OR
    (NOT (BODY "spam"))                          ->  NOT

Personal-name terms have no SEARCH equivalent; trees containing them are
evaluated client-side against every message of the folder.
"""

import email.utils
import imaplib

import email_utils
import imap_utils
from query_terms import (
    FLAGGED,
    SEEN,
    And,
    Body,
    Comparison,
    EmailAddress,
    Flag,
    From,
    MessageNumber,
    Not,
    Or,
    PersonalName,
    ReceivedDate,
    Recipient,
    RecipientType,
    SentDate,
    Size,
    Subject,
    has_personal_terms,
    walk,
)

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# (set, not set) search keys of the system flags the language names
SYSTEM_FLAG_KEYS = {
    SEEN: ("SEEN", "UNSEEN"),
    FLAGGED: ("FLAGGED", "UNFLAGGED"),
}

# (equal, before, since) search keys
DATE_KEYS = {
    ReceivedDate: ("ON", "BEFORE", "SINCE"),
    SentDate: ("SENTON", "SENTBEFORE", "SENTSINCE"),
}

RECIPIENT_HEADERS = {
    RecipientType.TO: "To",
    RecipientType.CC: "Cc",
    RecipientType.BCC: "Bcc",
}


# ============================================================================
# IMAP SEARCH translation
# ============================================================================


def quote(value):
    """Quote a string for IMAP SEARCH, escaping backslashes and quotes"""
    value = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{value}"'


def imap_date(when):
    """Local calendar day of when, e.g. 5-Mar-2024"""
    day = when.astimezone().date()
    return f"{day.day}-{MONTHS[day.month - 1]}-{day.year}"


def address_key(target):
    match target:
        case EmailAddress(addr_spec, _):
            return addr_spec
        case PersonalName(name):
            return name
        case _:
            raise AssertionError(f"Unknown address target: {target!r}")


def date_criteria(leaf):
    on, before, since = DATE_KEYS[type(leaf)]
    day = imap_date(leaf.when)
    match leaf.comparison:
        case Comparison.EQ:
            return f"({on} {day})"
        case Comparison.GE:
            return f"({since} {day})"
        case Comparison.LE:
            return f"(OR ({before} {day}) ({on} {day}))"
        case _:
            raise AssertionError(f"Unknown comparison: {leaf.comparison!r}")


def flag_criteria(name, is_set):
    if name in SYSTEM_FLAG_KEYS:
        set_key, unset_key = SYSTEM_FLAG_KEYS[name]
        return f"({set_key})" if is_set else f"({unset_key})"
    return f"(KEYWORD {name})" if is_set else f"(UNKEYWORD {name})"


def to_imap(tree):
    """
    Convert a predicate tree to an IMAP SEARCH criteria string.

    Personal-name leaves become a substring search on the name, which matches a
    superset of the messages the term selects; search() does not send such trees.
    """
    match tree:
        case And(left, right):
            return f"({to_imap(left)} {to_imap(right)})"
        case Or(left, right):
            return f"(OR {to_imap(left)} {to_imap(right)})"
        case Not(term):
            return f"(NOT {to_imap(term)})"
        case Body(pattern):
            return f"(BODY {quote(pattern)})"
        case Subject(pattern):
            return f"(SUBJECT {quote(pattern)})"
        case From(target):
            return f"(FROM {quote(address_key(target))})"
        case Recipient(kind, target):
            return f"({kind.name} {quote(address_key(target))})"
        case MessageNumber(number):
            # Sequence numbers start at 1
            return f"({number})" if number > 0 else "(NOT ALL)"
        case ReceivedDate() | SentDate():
            return date_criteria(tree)
        case Size(Comparison.GE, size):
            return f"(NOT SMALLER {size})"
        case Size(Comparison.LE, size):
            return f"(NOT LARGER {size})"
        case Flag(name, is_set):
            return flag_criteria(name, is_set)
        case _:
            raise AssertionError(f"Unknown term: {tree!r}")


# ============================================================================
# Client-side evaluation
# ============================================================================


def header_addresses(message, header):
    values = message.get_all(header) or []
    return email.utils.getaddresses([str(value) for value in values])


def address_matches(target, addresses):
    match target:
        case EmailAddress(addr_spec, _):
            wanted = addr_spec.lower()
            return any(wanted in addr.lower() for _, addr in addresses)
        case PersonalName(name):
            wanted = name.strip().lower()
            return any(personal.strip().lower() == wanted for personal, _ in addresses if personal)
        case _:
            raise AssertionError(f"Unknown address target: {target!r}")


def date_matches(comparison, actual, wanted):
    if actual is None:
        return False
    actual_day = actual.astimezone().date()
    wanted_day = wanted.astimezone().date()
    match comparison:
        case Comparison.EQ:
            return actual_day == wanted_day
        case Comparison.LE:
            return actual_day <= wanted_day
        case Comparison.GE:
            return actual_day >= wanted_day
        case _:
            raise AssertionError(f"Unknown comparison: {comparison!r}")


def matches(tree, fetched):
    """
    Evaluate a predicate tree against one message.

    Args:
        tree: Predicate tree
        fetched: imap_utils.FetchedMessage

    Returns:
        True if the message satisfies the tree
    """
    message = fetched.message
    match tree:
        case And(left, right):
            return matches(left, fetched) and matches(right, fetched)
        case Or(left, right):
            return matches(left, fetched) or matches(right, fetched)
        case Not(term):
            return not matches(term, fetched)
        case Body(pattern):
            wanted = pattern.lower()
            return any(wanted in text.lower() for text in email_utils.text_parts(message))
        case Subject(pattern):
            return pattern.lower() in str(message.get("Subject", "")).lower()
        case From(target):
            return address_matches(target, header_addresses(message, "From"))
        case Recipient(kind, target):
            addresses = header_addresses(message, RECIPIENT_HEADERS[kind])
            return address_matches(target, addresses)
        case MessageNumber(number):
            return fetched.number == number
        case ReceivedDate(comparison, when):
            return date_matches(comparison, fetched.received, when)
        case SentDate(comparison, when):
            return date_matches(comparison, fetched.sent, when)
        case Size(Comparison.GE, size):
            return fetched.size >= size
        case Size(Comparison.LE, size):
            return fetched.size <= size
        case Flag(name, is_set):
            return (name in fetched.flags) == is_set
        case _:
            raise AssertionError(f"Unknown term: {tree!r}")


# ============================================================================
# Search
# ============================================================================


def needs_body(tree):
    return any(isinstance(node, Body) for node in walk(tree))


def client_search(connection, tree):
    """Evaluate tree over every message, fetching bodies only when a body leaf needs them"""
    items = imap_utils.FETCH_ITEMS if needs_body(tree) else imap_utils.HEADER_ITEMS
    messages = imap_utils.fetch_messages(connection, "1:*", items)
    return sorted(fetched.number for fetched in messages if matches(tree, fetched))


def search(connection, tree):
    """
    Find the messages of the selected folder matching a predicate tree.

    Args:
        connection: IMAP4 connection with a selected folder
        tree: Predicate tree from query_dsl.compile_filter

    Returns:
        Ascending list of message sequence numbers
    """
    criteria = to_imap(tree)

    if has_personal_terms(tree):
        return client_search(connection, tree)

    if criteria.isascii():
        typ, data = connection.search(None, criteria)
    else:
        typ, data = connection.search("UTF-8", criteria.encode("utf-8"))
        if typ == "NO":
            # BADCHARSET
            return client_search(connection, tree)
    if typ != "OK":
        raise imaplib.IMAP4.error(f"SEARCH {criteria} failed: {data}")
    if not data or not data[0]:
        return []
    return sorted(int(number) for number in data[0].split())
