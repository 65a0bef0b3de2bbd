"""
Failure classifier -- recognizes "unknown field" rejections.

Responsibility:
    Given the free-text message of a store rejection, decide whether the
    store refused the write because a payload field has no column, and if
    so extract that field's name.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Isolated adapter
    coupled to backend message wording; every shape below is unit-tested.

Recognized shapes (each anchored to the start of a message line):
    postgres         column "X" of relation "T" does not exist
    postgres         column "X" does not exist
    schema_cache     Could not find the 'X' column of 'T' in the schema cache
    sqlite           table T has no column named X
    sqlite           no such column: X

Anything else is ``NotClassified``.  Messages that merely mention a column
(constraint violations, type errors) never match because every pattern is
anchored and ends on the full "does not exist" / "schema cache" clause.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class UnknownField:
    """The store has no column named ``name``."""

    name: str
    shape: str


@dataclass(frozen=True)
class NotClassified:
    """The message is not a recognized unknown-field rejection."""


FailureClassification = UnknownField | NotClassified

NOT_CLASSIFIED = NotClassified()

# Optional severity prefix emitted by psql / libpq ("ERROR:  column ...").
_PREFIX = r"^(?:ERROR:\s+)?"

_SHAPES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "postgres",
        re.compile(
            _PREFIX
            + r'column "(?P<name>[^"]+)" of relation "[^"]+" does not exist\s*$',
            re.MULTILINE,
        ),
    ),
    (
        "postgres",
        re.compile(
            _PREFIX + r'column "(?P<name>[^"]+)" does not exist\s*$',
            re.MULTILINE,
        ),
    ),
    (
        "schema_cache",
        re.compile(
            r"^Could not find the '(?P<name>[^']+)' column of '[^']+' "
            r"in the schema cache\s*$",
            re.MULTILINE,
        ),
    ),
    (
        "sqlite",
        re.compile(
            r"^table \S+ has no column named (?P<name>\w+)\s*$",
            re.MULTILINE,
        ),
    ),
    (
        "sqlite",
        re.compile(
            r"^no such column: (?:\w+\.)?(?P<name>\w+)\s*$",
            re.MULTILINE,
        ),
    ),
)


def classify_failure(message: str | None) -> FailureClassification:
    """Classify a store rejection message.

    Args:
        message: Verbatim failure text from the backing store.

    Returns:
        ``UnknownField`` with the exact column name, or ``NOT_CLASSIFIED``.
    """
    if not message:
        return NOT_CLASSIFIED
    for shape, pattern in _SHAPES:
        match = pattern.search(message)
        if match is not None:
            return UnknownField(name=match.group("name"), shape=shape)
    return NOT_CLASSIFIED
