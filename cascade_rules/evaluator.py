"""Condition evaluator: clause tuples against a field-value snapshot."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .ast_nodes import (
    Clause,
    Condition,
    FieldPropertyCompare,
    StatusEquality,
    StatusInSet,
    UnrecognizedClause,
)
from .parser import parse_condition

logger = logging.getLogger(__name__)


def evaluate(condition: Condition, snapshot: Mapping[str, Any]) -> bool:
    """AND of every clause. The snapshot is only read.

    Raises ValueError for an empty condition (nothing to evaluate).
    """
    if not condition:
        raise ValueError("Cannot evaluate an empty condition")
    return all(evaluate_clause(clause, snapshot) for clause in condition)


def evaluate_text(text: str, snapshot: Mapping[str, Any]) -> bool:
    """Parse and evaluate condition text; empty or bad text is False."""
    condition = parse_condition(text)
    if not condition:
        return False
    return evaluate(condition, snapshot)


def evaluate_clause(clause: Clause, snapshot: Mapping[str, Any]) -> bool:
    if isinstance(clause, StatusInSet):
        current = _current_status(snapshot, clause.status_key)
        result = current in clause.values
        logger.debug("IN %s=%r in %r -> %s", clause.status_key, current, clause.values, result)
        return result

    if isinstance(clause, StatusEquality):
        current = _current_status(snapshot, clause.status_key)
        result = current == clause.value if clause.op == "==" else current != clause.value
        logger.debug("EQ %s=%r %s %r -> %s", clause.status_key, current, clause.op, clause.value, result)
        return result

    if isinstance(clause, FieldPropertyCompare):
        current = snapshot.get(clause.key)
        equal = values_equal(current, clause.value)
        result = equal if clause.op == "==" else not equal
        logger.debug("FIELD %s=%r %s %r -> %s", clause.key, current, clause.op, clause.value, result)
        return result

    if isinstance(clause, UnrecognizedClause):
        logger.debug("%s, evaluating as false: %s", clause.reason, clause.text)
        return False

    logger.warning("Unknown clause type %s", type(clause).__name__)
    return False


def values_equal(current: Any, expected: Any) -> bool:
    """Loose equality used by field comparisons.

    A bool current value is compared against the literal coerced to bool
    (True and "true" are true). A bool literal only matches a bool or the
    strings "true" / "false"; missing values never match. Otherwise values
    are equal if they compare equal or, when both are present, their
    string forms match.
    """
    if isinstance(current, bool):
        return current == _as_bool(expected)
    if isinstance(expected, bool):
        return current in ("true", "false") and _as_bool(current) == expected
    if current == expected:
        return True
    if current is None or expected is None:
        return False
    return str(current) == str(expected)


def _as_bool(value: Any) -> bool:
    return value is True or value == "true"


def _current_status(snapshot: Mapping[str, Any], key: str) -> str:
    value = snapshot.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
