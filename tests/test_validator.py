"""Tests for the rule linter."""

import pytest

from cascade_rules.ast_nodes import StatusEquality, StatusInSet
from cascade_rules.errors import ParseError, UnknownReferenceError
from cascade_rules.parser import parse_rule
from cascade_rules.validator import parse_strict

from conftest import make_type

CATALOG = [make_type("Permit"), make_type("Inspection")]


class TestStrictGrammar:

    def test_status_clause(self):
        assert parse_strict('document.Permit.status == "completed"') == StatusEquality("Permit", "==", "completed")

    def test_in_clause(self):
        clause = parse_strict("document.Permit.status in ('completed', 'notrequired')")
        assert clause == StatusInSet("Permit", ("completed", "notrequired"))

    def test_assignment(self):
        assignment = parse_strict("notes.hidden = false", start="assignment")
        assert assignment.key == "notes.hidden"
        assert assignment.value is False

    def test_process_shorthand(self):
        assert parse_strict("process.Permit", start="assignment").value == "queued"

    def test_trailing_text_rejected(self):
        with pytest.raises(ParseError):
            parse_strict('document.Permit.status == "completed" please')


class TestValidator:

    def test_clean_rules(self, validator):
        rules = [
            parse_rule('document.Permit.status in ("completed","notrequired")', "notes.hidden = false"),
            parse_rule('document.Permit.status == "completed"\npaid.value = true', "process.Inspection"),
        ]
        assert validator.validate(rules, CATALOG) == []

    def test_missing_halves(self, validator):
        errors = validator.validate([parse_rule("", "", rule_id="r1")])
        assert [e.message for e in errors] == ["Rule 'r1' has no validation", "Rule 'r1' has no action"]

    def test_unsupported_operator(self, validator):
        errors = validator.validate_text("count.value >= 3", "a.value = 1")
        assert len(errors) == 1
        assert "Unsupported operator '>='" in errors[0].message

    def test_unrecognized_clause_position(self, validator):
        errors = validator.validate_text('paid.value == true and whatever', "a.value = 1")
        [error] = errors
        assert error.line == 1
        assert error.column == 24

    def test_partly_understood_clause(self, validator):
        errors = validator.validate_text('paid.value == true\nif document.Permit.status == "x"', "a.value = 1")
        [error] = errors
        assert "partly understood" in error.message
        assert error.line == 2

    def test_bad_action_line(self, validator):
        errors = validator.validate_text("paid.value == true", "a.value = 1\nmake it so")
        [error] = errors
        assert "Unrecognized action format" in error.message
        assert error.line == 2

    def test_partly_understood_action(self, validator):
        errors = validator.validate_text("paid.value == true", 'a.value = 1 or else')
        [error] = errors
        assert "action only partly understood" in error.message

    def test_unknown_reference(self, validator):
        errors = validator.validate_text('document.Ghost.status == "x"', "a.value = 1", CATALOG)
        [error] = errors
        assert isinstance(error, UnknownReferenceError)
        assert error.identifier == "Ghost"

    def test_unknown_reference_position(self, validator):
        errors = validator.validate_text('paid.value == true\n  document.Ghost.status == "x"', "a.value = 1", CATALOG)
        [error] = errors
        assert (error.line, error.column) == (2, 12)

    def test_references_skipped_without_catalog(self, validator):
        assert validator.validate_text('document.Ghost.status == "x"', "a.value = 1") == []
