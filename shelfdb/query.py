"""
Filter matching.

A filter maps field names to either a literal (strict equality) or an operator
object such as ``{"$gte": 3, "$lt": 10}``. Fields are AND-ed. Malformed filters
never raise: they simply match nothing.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Mapping

OPERATORS = frozenset({"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin"})

_MISSING = object()

_ORDERING: dict[str, Callable[[object, object], bool]] = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


def is_literal_condition(condition: object) -> bool:
    """Anything that is not an operator object compares by equality."""
    return not isinstance(condition, Mapping)


def strict_equals(left: object, right: object) -> bool:
    if left is _MISSING or right is _MISSING:
        return False
    # True == 1 in Python; a stored boolean only ever equals another boolean.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return left == right


def _comparable(value: object) -> bool:
    return value is not _MISSING and value is not None and not isinstance(value, bool)


def _compare(op: str, value: object, operand: object) -> bool:
    if not (_comparable(value) and _comparable(operand)):
        return False
    try:
        return bool(_ORDERING[op](value, operand))
    except TypeError:
        return False


def _contains(sequence: object, value: object) -> bool:
    return any(strict_equals(value, item) for item in sequence)


def _match_operator(op: str, value: object, operand: object) -> bool:
    if op == "$eq":
        return strict_equals(value, operand)
    if op == "$ne":
        return not strict_equals(value, operand)
    if op in _ORDERING:
        return _compare(op, value, operand)
    if op in ("$in", "$nin"):
        if not isinstance(operand, (list, tuple)):
            return False
        found = _contains(operand, value)
        return found if op == "$in" else not found
    return False


def match_condition(value: object, condition: object) -> bool:
    if is_literal_condition(condition):
        return strict_equals(value, condition)
    for op, operand in condition.items():
        if op not in OPERATORS:
            return False
        if not _match_operator(op, value, operand):
            return False
    return True


def matches(doc: Mapping[str, object], query: Mapping[str, object] | None) -> bool:
    """
    Return True when doc satisfies every clause of query.
    """
    if not query:
        return True
    if not isinstance(query, Mapping):
        return False
    for field, condition in query.items():
        if not match_condition(doc.get(field, _MISSING), condition):
            return False
    return True
