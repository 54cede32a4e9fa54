# -*- coding: utf-8 -*-
"""
Canonical description of a predicate tree.

The output is stable for a given tree and is shown to the user before a search:
    ((subject contains "hello" and sender is "test@gmail.com") or size less than "4096" bytes)
"""

from query_terms import (
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
)

# e.g. "Mon Jan 15 10:30:00 EET 2024"
DATE_FORMAT = "%a %b %d %H:%M:%S %Z %Y"

RECIPIENT_PREFIXES = {
    RecipientType.TO: "recipient is",
    RecipientType.CC: "cc sent to",
    RecipientType.BCC: "bcc sent to",
}


def format_target(target):
    """Address as typed by the user, or the personal name it fell back to"""
    match target:
        case EmailAddress(addr_spec, display_name):
            return f"{display_name} <{addr_spec}>" if display_name else addr_spec
        case PersonalName(name):
            return name
        case _:
            raise AssertionError(f"Unknown address target: {target!r}")


def format_date(when):
    return when.astimezone().strftime(DATE_FORMAT)


def format_dated(prefix, comparison, when):
    match comparison:
        case Comparison.EQ:
            return f'{prefix} date is "{format_date(when)}"'
        case Comparison.LE:
            return f'{prefix} before date "{format_date(when)}"'
        case Comparison.GE:
            return f'{prefix} after date "{format_date(when)}"'
        case _:
            raise AssertionError(f"Unknown comparison: {comparison!r}")


def render(tree):
    """
    Render a predicate tree as a natural-language description.

    Args:
        tree: Predicate tree from query_dsl.compile_filter

    Returns:
        Description string

    Raises:
        AssertionError: node is not part of the tree model
    """
    match tree:
        case And(left, right):
            return f"({render(left)} and {render(right)})"
        case Or(left, right):
            return f"({render(left)} or {render(right)})"
        case Not(term):
            return f"not {render(term)}"
        case Subject(pattern):
            return f'subject contains "{pattern}"'
        case Body(pattern):
            return f'body contains "{pattern}"'
        case From(target):
            return f'sender is "{format_target(target)}"'
        case MessageNumber(number):
            return f'message number is "{number}"'
        case ReceivedDate(comparison, when):
            return format_dated("received", comparison, when)
        case SentDate(comparison, when):
            return format_dated("sent", comparison, when)
        case Recipient(kind, target):
            return f'{RECIPIENT_PREFIXES[kind]} "{format_target(target)}"'
        case Size(Comparison.GE, size):
            return f'size greater than "{size}" bytes'
        case Size(Comparison.LE, size):
            return f'size less than "{size}" bytes'
        case Flag(name, is_set):
            state = "set" if is_set else "not set"
            display = name.replace("\\", "")
            return f'flag "{display}" {state}'
        case _:
            raise AssertionError(f"Unknown term: {tree!r}")
