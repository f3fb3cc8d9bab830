"""
Free-text attribute filter for observation reads.

Grammar: ``<property> <op> <literal> [and <property> <op> <literal> ...]``

    value gt 5 and value le 10.5
    result_time ge 2024-01-01T00:00:00Z
    value eq 'calm'

Properties and operators are a closed set; anything else is rejected with
InvalidFilterError before a query is ever built.
"""

import re
from datetime import datetime
from typing import Any, NamedTuple

import pandas as pd

from series_service.errors import InvalidFilterError

PROPERTIES = {"value", "result_time", "sampling_time_start", "sampling_time_end"}
TIME_PROPERTIES = PROPERTIES - {"value"}
OPERATORS = {"eq", "ne", "gt", "ge", "lt", "le"}

_CLAUSE = re.compile(
    r"""\s*(?P<prop>[a-z_]+)\s+(?P<op>[a-z]+)\s+(?P<literal>'[^']*'|"[^"]*"|[^\s'"]+)"""
)
_AND = re.compile(r"\s+and\s+", re.IGNORECASE)


class FilterClause(NamedTuple):
    prop: str
    op: str
    value: Any


def to_utc_naive(value) -> datetime:
    """Parse an instant into a naive UTC datetime."""
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise InvalidFilterError(f"Invalid timestamp: {value!r}") from e
    if ts is pd.NaT:
        raise InvalidFilterError(f"Invalid timestamp: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def _parse_literal(prop: str, literal: str):
    if literal[:1] in ("'", '"'):
        if prop in TIME_PROPERTIES:
            return to_utc_naive(literal[1:-1])
        return literal[1:-1]
    if prop in TIME_PROPERTIES:
        return to_utc_naive(literal)
    lowered = literal.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(literal)
    except ValueError:
        pass
    try:
        return float(literal)
    except ValueError:
        raise InvalidFilterError(f"Unquoted literal is not a number: {literal!r}") from None


def parse_attribute_filter(expression: str | None) -> tuple[FilterClause, ...]:
    if expression is None or not expression.strip():
        return ()
    text = expression.strip()
    clauses = []
    pos = 0
    # scan clause by clause so an "and" inside a quoted literal stays part of it
    while True:
        match = _CLAUSE.match(text, pos)
        if not match:
            raise InvalidFilterError(f"Cannot parse filter clause: {text[pos:]!r}")
        prop, op = match.group("prop"), match.group("op").lower()
        if prop not in PROPERTIES:
            raise InvalidFilterError(f"Unknown filter property: {prop!r}")
        if op not in OPERATORS:
            raise InvalidFilterError(f"Unknown filter operator: {op!r}")
        clauses.append(FilterClause(prop, op, _parse_literal(prop, match.group("literal"))))
        pos = match.end()
        if pos == len(text):
            return tuple(clauses)
        connector = _AND.match(text, pos)
        if not connector:
            raise InvalidFilterError(f"Expected 'and' before: {text[pos:]!r}")
        pos = connector.end()
