"""Rule linter: report rule text the engine would ignore or only half read.

The evaluator searches clause text for known patterns, so ``x a.b == 1 y``
still counts as ``a.b == 1``. The linter parses each clause and action line
with a strict lark grammar and reports anything that is not exactly one
clause, along with unknown operators, unknown document types and rules
missing a half.
"""

from __future__ import annotations

from pathlib import Path as FilePath
from typing import Iterable

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput

from .ast_nodes import (
    Assignment,
    DocumentType,
    FieldPropertyCompare,
    Rule,
    StatusEquality,
    StatusInSet,
    UnrecognizedClause,
)
from .errors import ParseError, UnknownReferenceError, ValidationError
from .parser import (
    AND_SEPARATOR,
    PROCESS_STATUS,
    parse_assignment,
    parse_clause,
    parse_literal,
    parse_rule,
)
from .references import DOCUMENT_REF_RE, extract_references

# ---------------------------------------------------------------------------
# Grammar loading (cached)
# ---------------------------------------------------------------------------

_GRAMMAR_PATH = FilePath(__file__).parent / "grammar.lark"
_lark_parser: Lark | None = None

_OPERATORS = {"==": "==", "=": "==", "!=": "!="}


def _get_parser() -> Lark:
    global _lark_parser
    if _lark_parser is None:
        grammar_text = _GRAMMAR_PATH.read_text(encoding="utf-8")
        _lark_parser = Lark(
            grammar_text,
            parser="earley",
            start=["clause", "assignment"],
            propagate_positions=True,
        )
    return _lark_parser


class RuleTransformer(Transformer):
    """Converts strict parse trees into the same nodes parser.py builds."""

    def status_in(self, items):
        name, *values = items
        return StatusInSet(doc_type=str(name), values=tuple(_unquote(v) for v in values))

    def status_cmp(self, items):
        name, op, value = items
        return StatusEquality(doc_type=str(name), op=_OPERATORS.get(str(op), str(op)), value=_unquote(value))

    def field_cmp(self, items):
        field_name, prop, op, value = items
        return FieldPropertyCompare(
            field=str(field_name),
            property=str(prop),
            op=_OPERATORS.get(str(op), str(op)),
            value=value,
        )

    def set_property(self, items):
        field_name, prop, value = items
        return Assignment(field=str(field_name), property=str(prop), value=value)

    def process(self, items):
        return Assignment(field=str(items[0]), property="status", value=PROCESS_STATUS)

    def string_val(self, items):
        return parse_literal(str(items[0]))

    def true_val(self, _items):
        return True

    def false_val(self, _items):
        return False

    def int_val(self, items):
        return int(items[0])


def parse_strict(text: str, start: str = "clause"):
    """Parse one clause (or, with start="assignment", one action line).

    Raises ParseError with the column of the first unexpected character.
    """
    try:
        tree = _get_parser().parse(text, start=start)
        return RuleTransformer().transform(tree)
    except UnexpectedInput as e:
        raise ParseError(
            message=f"Unexpected input in {text!r}",
            line=getattr(e, "line", None),
            column=getattr(e, "column", None),
        ) from e


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class Validator:
    """Lints a rule set; an empty result means every rule reads cleanly."""

    def validate(
        self,
        rules: Iterable[Rule],
        document_types: Iterable[DocumentType] | None = None,
    ) -> list[ValidationError]:
        catalog = list(document_types) if document_types is not None else None
        errors: list[ValidationError] = []
        for rule in rules:
            errors += self._validate_completeness(rule)
            errors += self._validate_condition(rule)
            errors += self._validate_action(rule)
            if catalog is not None:
                errors += self._validate_references(rule, catalog)
        return errors

    def validate_text(
        self,
        validation: str,
        action: str,
        document_types: Iterable[DocumentType] | None = None,
    ) -> list[ValidationError]:
        return self.validate([parse_rule(validation, action, rule_id="rule")], document_types)

    def _validate_completeness(self, rule: Rule) -> list[ValidationError]:
        errors = []
        if not rule.validation_text.strip():
            errors.append(ValidationError(f"Rule '{rule.id}' has no validation"))
        if not rule.action_text.strip():
            errors.append(ValidationError(f"Rule '{rule.id}' has no action"))
        return errors

    def _validate_condition(self, rule: Rule) -> list[ValidationError]:
        errors = []
        for line_no, column, text in _clause_spans(rule.validation_text):
            clause = parse_clause(text)
            if isinstance(clause, UnrecognizedClause):
                errors.append(ValidationError(
                    f"Rule '{rule.id}': {clause.reason}: {text}",
                    line=line_no,
                    column=column,
                ))
                continue
            try:
                strict = parse_strict(text, start="clause")
            except ParseError as e:
                errors.append(ValidationError(
                    f"Rule '{rule.id}': clause only partly understood: {text}",
                    line=line_no,
                    column=column + (e.column or 1) - 1,
                ))
                continue
            if strict != clause:
                errors.append(ValidationError(
                    f"Rule '{rule.id}': clause reads differently than written: {text}",
                    line=line_no,
                    column=column,
                ))
        return errors

    def _validate_action(self, rule: Rule) -> list[ValidationError]:
        errors = []
        for line_no, line in enumerate(rule.action_text.split("\n"), start=1):
            text = line.strip()
            if not text:
                continue
            column = line.find(text) + 1
            try:
                lenient = parse_assignment(text)
            except ParseError as e:
                errors.append(ValidationError(f"Rule '{rule.id}': {e.message}", line=line_no, column=column))
                continue
            try:
                strict = parse_strict(text, start="assignment")
            except ParseError as e:
                errors.append(ValidationError(
                    f"Rule '{rule.id}': action only partly understood: {text}",
                    line=line_no,
                    column=column + (e.column or 1) - 1,
                ))
                continue
            if strict != lenient:
                errors.append(ValidationError(
                    f"Rule '{rule.id}': action reads differently than written: {text}",
                    line=line_no,
                    column=column,
                ))
        return errors

    def _validate_references(self, rule: Rule, catalog: list[DocumentType]) -> list[ValidationError]:
        errors: list[ValidationError] = []
        seen: set[str] = set()
        for text in (rule.validation_text, rule.action_text):
            invalid = set(extract_references(text, catalog).invalid_identifiers)
            for line_no, line in enumerate(text.split("\n"), start=1):
                for match in DOCUMENT_REF_RE.finditer(line):
                    identifier = match.group(1)
                    if identifier in invalid and identifier not in seen:
                        seen.add(identifier)
                        errors.append(UnknownReferenceError(identifier, line=line_no, column=match.start(1) + 1))
        return errors


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clause_spans(text: str) -> list[tuple[int, int, str]]:
    """(line, column, clause text) for each clause, 1-based positions."""
    spans = []
    for line_no, line in enumerate((text or "").split("\n"), start=1):
        offset = 0
        for part in line.split(AND_SEPARATOR):
            stripped = part.strip()
            if stripped:
                spans.append((line_no, offset + part.find(stripped) + 1, stripped))
            offset += len(part) + len(AND_SEPARATOR)
    return spans


def _unquote(token: Token) -> str:
    """Remove surrounding quotes from a STRING token."""
    s = str(token)
    if len(s) >= 2 and s[0] in "\"'" and s[-1] in "\"'":
        return s[1:-1]
    return s
