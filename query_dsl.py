# -*- coding: utf-8 -*-
"""
Filter expression DSL: compiles a one-line filter into a predicate tree.

Grammar:
    expression := and_branch ("|" and_branch)*
    and_branch := term ("+" term)*
    term       := field ":" ["!"] value

AND binds tighter than OR, both fold to the left, there are no parentheses.

Usage:
    compile_filter("subject:hello+from:test@gmail.com|size_le:4kb")
    compile_filter("flag:starred|flag:!seen")
"""

import math
import re
from datetime import datetime

import email_utils
from query_terms import (
    FLAGGED,
    SEEN,
    And,
    Body,
    Comparison,
    Flag,
    From,
    InvalidExpression,
    InvalidValue,
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
    UnknownField,
)

OR_SEPARATOR = "|"
AND_SEPARATOR = "+"
FIELD_SEPARATOR = ":"
NEGATION = "!"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H.%M.%S"
TIMESTAMP_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}\.\d{2}\.\d{2}")
NUMBER_PATTERN = re.compile(r"[+-]?\d+")
SIZE_PATTERN = re.compile(r"\d+(\.\d*)?|\.\d+")
SIZE_UNITS = {"kb": 1024, "mb": 1024 * 1024}

BUILTIN_FLAGS = {"seen": SEEN, "flagged": FLAGGED}

# IMAP atom characters, the only ones a KEYWORD search key may use
KEYWORD_PATTERN = re.compile(r"[!#$&'+,\-./0-9:;<=>?@A-Z\[^_`a-z|}~]+")


# ============================================================================
# Value parsers
# ============================================================================


def parse_number(value):
    """Parse a message number, e.g. "42" """
    if not NUMBER_PATTERN.fullmatch(value):
        raise InvalidValue("Invalid number", value)
    return int(value)


def parse_timestamp(value):
    """
    Parse "YYYY-MM-DDTHH.MM.SS" as local time.

    Returns:
        Timezone-aware datetime carrying the local offset
    """
    if not TIMESTAMP_PATTERN.fullmatch(value):
        raise InvalidValue("Invalid date, expected YYYY-MM-DDTHH.MM.SS", value)
    try:
        naive = datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        raise InvalidValue("Invalid date", value) from None
    return naive.astimezone()


def parse_size(value):
    """
    Parse "<number>kb" or "<number>mb" into a byte count.

    Fractions are rounded half up to whole bytes: "2.5mb" -> 2621440.
    """
    if len(value) < 3:
        raise InvalidValue("Invalid file size format", value)

    number, unit = value[:-2], value[-2:].lower()
    if unit not in SIZE_UNITS:
        raise InvalidValue("Invalid unit, only 'kb' and 'mb' are supported", value)
    if not SIZE_PATTERN.fullmatch(number):
        raise InvalidValue("Invalid number format in file size", value)

    size = float(number) * SIZE_UNITS[unit]
    if math.isinf(size):
        raise InvalidValue("File size too large", value)
    return int(math.floor(size + 0.5))


def resolve_address(value):
    """
    Strict address first, personal name otherwise. Never raises on a bad address.

    Returns:
        EmailAddress or PersonalName
    """
    try:
        return email_utils.parse_address(value.replace(",", ""))
    except email_utils.InvalidAddress:
        return PersonalName(value.strip())


# ============================================================================
# Term resolver
# ============================================================================


def _received(comparison):
    return lambda value: ReceivedDate(comparison, parse_timestamp(value))


def _sent(comparison):
    return lambda value: SentDate(comparison, parse_timestamp(value))


def _size(comparison):
    return lambda value: Size(comparison, parse_size(value))


def _recipient(kind):
    return lambda value: Recipient(kind, resolve_address(value))


Fields = {
    "body": Body,
    "subject": Subject,
    "from": lambda value: From(resolve_address(value)),
    "to": _recipient(RecipientType.TO),
    "cc": _recipient(RecipientType.CC),
    "bcc": _recipient(RecipientType.BCC),
    "number": lambda value: MessageNumber(parse_number(value)),
    "received": _received(Comparison.EQ),
    "received_after": _received(Comparison.GE),
    "received_before": _received(Comparison.LE),
    "sent": _sent(Comparison.EQ),
    "sent_after": _sent(Comparison.GE),
    "sent_before": _sent(Comparison.LE),
    "size_ge": _size(Comparison.GE),
    "size_le": _size(Comparison.LE),
}


def resolve(field, value, negate=False):
    """
    Build the leaf for one field:value pair.

    Args:
        field: Field name, e.g. "subject"
        value: Raw value with any "!" prefix already removed
        negate: Whether the term was negated

    Returns:
        Leaf term, wrapped in Not when negated (flags fold negation into their state)

    Raises:
        UnknownField: field is not part of the language
        InvalidValue: value does not parse for the field
    """
    if field == "flag":
        if not value:
            raise InvalidValue("Missing flag name", value)
        name = BUILTIN_FLAGS.get(value)
        if name is None:
            if not KEYWORD_PATTERN.fullmatch(value):
                raise InvalidValue("Invalid flag name", value)
            name = value
        return Flag(name, not negate)

    try:
        builder = Fields[field]
    except KeyError:
        raise UnknownField("Unknown field", field) from None

    if field in ("from", "to", "cc", "bcc") and not value.strip():
        raise InvalidValue("Missing address", value)

    leaf = builder(value)
    return Not(leaf) if negate else leaf


# ============================================================================
# Expression parser
# ============================================================================


def parse_term(token):
    """Parse a single "field:value" token"""
    parts = token.split(FIELD_SEPARATOR)
    if len(parts) != 2:
        raise InvalidExpression("Invalid term", token)

    field, value = parts
    if not field or not value:
        raise InvalidExpression("Invalid term", token)

    negate = value.startswith(NEGATION)
    if negate:
        value = value[len(NEGATION) :]

    return resolve(field, value, negate)


def fold(terms, combinator):
    """Fold terms left to right: ((t1 op t2) op t3) ..."""
    result = terms[0]
    for term in terms[1:]:
        result = combinator(result, term)
    return result


def parse_and_branch(branch):
    terms = []
    for token in branch.split(AND_SEPARATOR):
        if not token:
            raise InvalidExpression("Empty term", branch)
        terms.append(parse_term(token))
    return fold(terms, And)


def compile_filter(expression):
    """
    Compile a filter expression into a predicate tree.

    Args:
        expression: Filter string, e.g. "subject:hello+from:a@b.com|size_le:4kb"

    Returns:
        Predicate tree

    Raises:
        InvalidExpression, UnknownField, InvalidValue
    """
    if not expression:
        raise InvalidExpression("Empty filter expression", expression)

    branches = []
    for branch in expression.split(OR_SEPARATOR):
        if not branch:
            raise InvalidExpression("Empty OR branch", expression)
        branches.append(parse_and_branch(branch))
    return fold(branches, Or)


compile = compile_filter
