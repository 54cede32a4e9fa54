# -*- coding: utf-8 -*-
"""
Predicate tree for message filter expressions.

Leaves are immutable value objects, one class per message attribute.
Combinators own their children; Not only ever wraps a leaf.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

# ============================================================================
# Errors
# ============================================================================


class FilterError(ValueError):
    """Base class for filter expression errors, carries the offending fragment"""

    def __init__(self, message, fragment):
        super().__init__(f"{message}: {fragment}")
        self.fragment = fragment


class InvalidExpression(FilterError):
    """Structural error: empty branch, missing or extra ':'"""


class UnknownField(FilterError):
    """Field name is not part of the filter language"""


class InvalidValue(FilterError):
    """Value cannot be parsed for the field's type"""


# ============================================================================
# Payload types
# ============================================================================


class Comparison(enum.Enum):
    EQ = "eq"
    LE = "le"
    GE = "ge"


class RecipientType(enum.Enum):
    TO = "To"
    CC = "Cc"
    BCC = "Bcc"


SEEN = "\\Seen"
FLAGGED = "\\Flagged"


@dataclass(frozen=True)
class EmailAddress:
    """A validated RFC822 address"""

    addr_spec: str
    display_name: str = ""


@dataclass(frozen=True)
class PersonalName:
    """Display name used when the value is not a valid address"""

    name: str


# ============================================================================
# Leaves
# ============================================================================


@dataclass(frozen=True)
class Body:
    pattern: str


@dataclass(frozen=True)
class Subject:
    pattern: str


@dataclass(frozen=True)
class MessageNumber:
    number: int


@dataclass(frozen=True)
class ReceivedDate:
    comparison: Comparison
    when: datetime


@dataclass(frozen=True)
class SentDate:
    comparison: Comparison
    when: datetime


@dataclass(frozen=True)
class From:
    target: EmailAddress | PersonalName


@dataclass(frozen=True)
class Recipient:
    kind: RecipientType
    target: EmailAddress | PersonalName


@dataclass(frozen=True)
class Size:
    comparison: Comparison
    size: int


@dataclass(frozen=True)
class Flag:
    """Flag test; name is an IMAP system flag (\\Seen) or a keyword"""

    name: str
    is_set: bool = True


LEAF_TYPES = (
    Body,
    Subject,
    MessageNumber,
    ReceivedDate,
    SentDate,
    From,
    Recipient,
    Size,
    Flag,
)


# ============================================================================
# Combinators
# ============================================================================


@dataclass(frozen=True)
class And:
    left: object
    right: object


@dataclass(frozen=True)
class Or:
    left: object
    right: object


@dataclass(frozen=True)
class Not:
    term: object

    def __post_init__(self):
        if not isinstance(self.term, LEAF_TYPES):
            raise TypeError(f"Not wraps leaf terms only, got {type(self.term).__name__}")


def walk(tree):
    """Yield every node of the tree, parents before children"""
    yield tree
    match tree:
        case And(left, right) | Or(left, right):
            yield from walk(left)
            yield from walk(right)
        case Not(term):
            yield from walk(term)


def has_personal_terms(tree):
    """True if any address leaf fell back to a personal name"""
    return any(
        isinstance(node, (From, Recipient)) and isinstance(node.target, PersonalName)
        for node in walk(tree)
    )
