"""Tests for the rule parser."""

import json

import pytest

from cascade_rules.ast_nodes import (
    Assignment,
    FieldPropertyCompare,
    StatusEquality,
    StatusInSet,
    UnrecognizedClause,
)
from cascade_rules.errors import ParseError
from cascade_rules.parser import (
    parse_action,
    parse_assignment,
    parse_clause,
    parse_condition,
    parse_literal,
    parse_rule,
    parse_rule_record,
    parse_validation_rules_text,
    parse_workflow_rules,
    split_clauses,
)


class TestClauses:

    def test_status_equality(self):
        clause = parse_clause('document.Permit.status == "completed"')
        assert clause == StatusEquality("Permit", "==", "completed")
        assert clause.status_key == "document.Permit.status"

    def test_status_inequality_single_quotes(self):
        clause = parse_clause("document.Permit.status != 'waiting'")
        assert clause == StatusEquality("Permit", "!=", "waiting")

    def test_legacy_single_equals(self):
        assert parse_clause('document.Permit.status = "completed"').op == "=="
        assert parse_clause("paid.value = true").op == "=="

    def test_status_in_set(self):
        clause = parse_clause('document.Permit.status in ("completed", "notrequired")')
        assert clause == StatusInSet("Permit", ("completed", "notrequired"))

    def test_status_in_set_strips_quotes(self):
        clause = parse_clause("document.Permit.status in ('a','b' ,c)")
        assert clause.values == ("a", "b", "c")

    def test_field_compare_bool(self):
        clause = parse_clause("notrequired.value == true")
        assert clause == FieldPropertyCompare("notrequired", "value", "==", True)

    def test_field_compare_int(self):
        assert parse_clause("count.value != 3").value == 3

    def test_field_compare_string(self):
        assert parse_clause('kind.value == "house"').value == "house"

    def test_search_not_anchored(self):
        clause = parse_clause('if document.Permit.status == "completed" then')
        assert isinstance(clause, StatusEquality)

    def test_unsupported_operator(self):
        clause = parse_clause("count.value >= 3")
        assert isinstance(clause, UnrecognizedClause)
        assert "'>='" in clause.reason

    def test_unrecognized_text(self):
        clause = parse_clause("whenever it rains")
        assert isinstance(clause, UnrecognizedClause)
        assert clause.text == "whenever it rains"


class TestConditions:

    def test_multiline_and_inline_forms_match(self):
        multi = parse_condition('a.x == "1"\nb.y == "2"')
        inline = parse_condition('a.x == "1" and b.y == "2"')
        assert multi == inline
        assert len(multi) == 2

    def test_blank_lines_ignored(self):
        assert split_clauses("\n  a.x == 1  \n\n") == ["a.x == 1"]

    def test_empty_condition(self):
        assert parse_condition("") == ()
        assert parse_condition(None) == ()

    def test_unrecognized_clause_kept(self):
        condition = parse_condition("a.x == 1 and nonsense")
        assert isinstance(condition[1], UnrecognizedClause)


class TestActions:

    def test_assignment(self):
        assert parse_assignment('Inspection.status = "queued"') == Assignment("Inspection", "status", "queued")

    def test_assignment_bool(self):
        assert parse_assignment("notes.hidden = false").value is False

    def test_process_shorthand(self):
        assert parse_assignment("process.Inspection") == Assignment("Inspection", "status", "queued")

    def test_unrecognized_action_raises(self):
        with pytest.raises(ParseError, match="Unrecognized action format"):
            parse_assignment("do something")

    def test_parse_action_skips_bad_lines(self):
        assignments, diagnostics = parse_action('a.status = "done"\nnonsense\nb.value = 2')
        assert [a.key for a in assignments] == ["a.status", "b.value"]
        assert diagnostics == ["Unrecognized action format: nonsense"]


class TestLiterals:

    def test_booleans(self):
        assert parse_literal("true") is True
        assert parse_literal("'false'") is False
        assert parse_literal('"true"') is True

    def test_int(self):
        assert parse_literal("42") == 42

    def test_quoted_string(self):
        assert parse_literal('"42"') == "42"
        assert parse_literal("'done'") == "done"


class TestRuleRecords:

    def test_json_string_record(self):
        rule = parse_rule_record(json.dumps({
            "id": "r1",
            "validation": 'document.Permit.status == "completed"',
            "action": 'Inspection.status = "queued"',
        }))
        assert rule.id == "r1"
        assert rule.is_complete
        assert rule.describe() == 'document.Permit.status == "completed" -> Inspection.status = "queued"'

    def test_default_id(self):
        rule = parse_rule_record({"validation": "a.x == 1", "action": "b.y = 2"}, index=2)
        assert rule.id == "rule-3"

    def test_malformed_json_skipped(self):
        assert parse_rule_record("{not json") is None
        assert parse_rule_record(["a", "b"]) is None

    def test_workflow_rules_skip_bad_entries(self):
        rules = parse_workflow_rules([
            "{broken",
            json.dumps({"id": "ok", "validation": "a.x == 1", "action": "b.y = 2"}),
        ])
        assert [r.id for r in rules] == ["ok"]

    def test_incomplete_rule(self):
        rule = parse_rule("a.x == 1", "   ")
        assert not rule.is_complete
        assert rule.action == ()

    def test_diagnostics_collected(self):
        rule = parse_rule("a.x >= 1", "junk")
        assert len(rule.diagnostics) == 2


class TestValidationRulesText:

    def test_lines_split_on_action(self):
        rules = parse_validation_rules_text(
            "validation: paid.value == true action: receipt.value = true\n"
            "\n"
            'validation: kind.value == "shed" action: Permit.status = "notrequired"'
        )
        assert [r.id for r in rules] == ["line-1", "line-2"]
        assert rules[0].validation == (FieldPropertyCompare("paid", "value", "==", True),)
        assert rules[1].action == (Assignment("Permit", "status", "notrequired"),)

    def test_line_without_action_skipped(self):
        assert parse_validation_rules_text("validation: paid.value == true") == []

    def test_empty(self):
        assert parse_validation_rules_text(None) == []
