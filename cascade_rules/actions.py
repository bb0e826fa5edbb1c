"""Action executor: apply field.property assignments to a snapshot."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .ast_nodes import Assignment
from .parser import parse_action

logger = logging.getLogger(__name__)


def apply(actions: Iterable[Assignment], snapshot: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new snapshot with every assignment applied in order."""
    updated = dict(snapshot)
    for assignment in actions:
        updated[assignment.key] = assignment.value
        logger.debug("Set %s = %r", assignment.key, assignment.value)
    return updated


def apply_text(text: str, snapshot: Mapping[str, Any]) -> dict[str, Any]:
    """Parse action text and apply it; unrecognized lines are skipped."""
    assignments, _ = parse_action(text)
    return apply(assignments, snapshot)


def changed_keys(before: Mapping[str, Any], after: Mapping[str, Any]) -> list[str]:
    """Keys whose value (or value type) differs between two snapshots."""
    changed = []
    for key, value in after.items():
        if key not in before or not same_value(before[key], value):
            changed.append(key)
    return changed


def same_value(a: Any, b: Any) -> bool:
    """Strict comparison: True and "true" are different values."""
    return type(a) is type(b) and a == b
