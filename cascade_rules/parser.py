"""Rule parser: stored validation/action text -> typed clauses and assignments.

The accepted grammar is a fixed table of patterns, searched (not anchored)
inside each clause with ``re.search``. The strict grammar in
``validator.py`` only reports; it never changes what is accepted here.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from .ast_nodes import (
    Assignment,
    Clause,
    Condition,
    FieldPropertyCompare,
    Rule,
    StatusEquality,
    StatusInSet,
    UnrecognizedClause,
    Value,
)
from .errors import ParseError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

LITERAL = r"""(true|false|["']([^"']+)["']|\d+)"""

STATUS_IN_RE = re.compile(r"(document)\.(\w+)\.status\s+in\s*\(([^)]+)\)")
STATUS_EQ_RE = re.compile(r"""(document)\.(\w+)\.status\s*([=!<>]+)\s*["']([^"']+)["']""")
FIELD_CMP_RE = re.compile(r"(\w+)\.(\w+)\s*([=!<>]+)\s*" + LITERAL)
ASSIGNMENT_RE = re.compile(r"(\w+)\.(\w+)\s*=\s*" + LITERAL)
PROCESS_RE = re.compile(r"process\.(\w+)")

AND_SEPARATOR = " and "

# "=" is the legacy spelling of "=="
_OPERATORS = {"==": "==", "=": "==", "!=": "!="}

PROCESS_STATUS = "queued"


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

def split_clauses(text: str) -> list[str]:
    """Split condition text into clause strings.

    Lines are ANDed, and so are the parts of a line joined by `` and ``;
    both spellings normalise to the same list.
    """
    parts: list[str] = []
    for line in (text or "").split("\n"):
        line = line.strip()
        if not line:
            continue
        parts.extend(p.strip() for p in line.split(AND_SEPARATOR) if p.strip())
    return parts


def parse_clause(text: str) -> Clause:
    """Parse one clause. Never raises; bad text becomes UnrecognizedClause."""
    match = STATUS_IN_RE.search(text)
    if match:
        _, doc_type, raw_values = match.groups()
        values = tuple(
            v.strip().replace("\"", "").replace("'", "") for v in raw_values.split(",")
        )
        return StatusInSet(doc_type=doc_type, values=values)

    match = STATUS_EQ_RE.search(text)
    if match:
        _, doc_type, op, value = match.groups()
        if op not in _OPERATORS:
            return UnrecognizedClause(text=text, reason=f"Unsupported operator '{op}'")
        return StatusEquality(doc_type=doc_type, op=_OPERATORS[op], value=value)

    match = FIELD_CMP_RE.search(text)
    if match:
        field_name, prop, op, raw, _ = match.groups()
        if op not in _OPERATORS:
            return UnrecognizedClause(text=text, reason=f"Unsupported operator '{op}'")
        return FieldPropertyCompare(
            field=field_name,
            property=prop,
            op=_OPERATORS[op],
            value=parse_literal(raw),
        )

    return UnrecognizedClause(text=text, reason="Unrecognized condition pattern")


def parse_condition(text: str) -> Condition:
    """Parse condition text into an ordered clause tuple (implicit AND)."""
    clauses = tuple(parse_clause(part) for part in split_clauses(text))
    for clause in clauses:
        if isinstance(clause, UnrecognizedClause):
            logger.info("%s: %s", clause.reason, clause.text)
    return clauses


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def parse_assignment(line: str) -> Assignment:
    """Parse one action line.

    Raises ParseError when the line is not ``field.property = value`` or
    the ``process.<Id>`` shorthand.
    """
    match = ASSIGNMENT_RE.search(line)
    if match:
        field_name, prop, raw, _ = match.groups()
        return Assignment(field=field_name, property=prop, value=parse_literal(raw))

    match = PROCESS_RE.search(line)
    if match:
        return Assignment(field=match.group(1), property="status", value=PROCESS_STATUS)

    raise ParseError(f"Unrecognized action format: {line}")


def parse_action(text: str) -> tuple[tuple[Assignment, ...], list[str]]:
    """Parse action text, one assignment per non-empty line.

    Returns the assignments and a diagnostic per skipped line.
    """
    assignments: list[Assignment] = []
    diagnostics: list[str] = []
    for line in (text or "").split("\n"):
        line = line.strip()
        if not line:
            continue
        try:
            assignments.append(parse_assignment(line))
        except ParseError as e:
            logger.warning("Skipping action line: %s", e.message)
            diagnostics.append(e.message)
    return tuple(assignments), diagnostics


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

def parse_literal(raw: str) -> Value:
    """Convert a matched literal into a typed value."""
    if raw in ("true", '"true"', "'true'"):
        return True
    if raw in ("false", '"false"', "'false'"):
        return False
    if raw.isdigit():
        return int(raw)
    return _strip_quotes(raw)


def _strip_quotes(s: str) -> str:
    if len(s) >= 2 and s[0] in "\"'" and s[-1] in "\"'":
        return s[1:-1]
    return s.replace('"', "").replace("'", "")


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def parse_rule(validation: str, action: str, rule_id: str = "") -> Rule:
    """Build a Rule from its two text halves."""
    condition = parse_condition(validation)
    assignments, diagnostics = parse_action(action)
    diagnostics = [
        f"{c.reason}: {c.text}" for c in condition if isinstance(c, UnrecognizedClause)
    ] + diagnostics
    return Rule(
        id=rule_id,
        validation=condition,
        action=assignments,
        validation_text=validation or "",
        action_text=action or "",
        diagnostics=tuple(diagnostics),
    )


def parse_rule_record(record: Any, index: int = 0) -> Rule | None:
    """Parse one ``Workflow.rules`` entry (a JSON string or a dict).

    Malformed entries are logged and return None.
    """
    if isinstance(record, str):
        try:
            record = json.loads(record)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse workflow rule %d: %s", index, e)
            return None
    if not isinstance(record, dict):
        logger.warning("Failed to parse workflow rule %d: not an object", index)
        return None

    rule_id = str(record.get("id") or f"rule-{index + 1}")
    return parse_rule(
        str(record.get("validation") or ""),
        str(record.get("action") or ""),
        rule_id=rule_id,
    )


def parse_workflow_rules(records: Iterable[Any] | None) -> list[Rule]:
    """Parse every rule entry, skipping the ones that fail."""
    rules: list[Rule] = []
    for i, record in enumerate(records or ()):
        rule = parse_rule_record(record, i)
        if rule is not None:
            rules.append(rule)
    return rules


def parse_validation_rules_text(text: str | None) -> list[Rule]:
    """Parse ``DocumentType.validationRules``.

    Each non-empty line reads ``validation: <condition> action: <action>``.
    """
    rules: list[Rule] = []
    lines = [line for line in (text or "").split("\n") if line.strip()]
    for i, line in enumerate(lines):
        parts = [p.strip() for p in line.split("action:")]
        if len(parts) != 2:
            logger.warning("Skipping validation rule line %d: expected one 'action:'", i + 1)
            continue
        validation = parts[0].replace("validation:", "", 1).strip()
        rules.append(parse_rule(validation, parts[1], rule_id=f"line-{i + 1}"))
    return rules
