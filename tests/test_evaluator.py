"""Tests for the condition evaluator and action executor."""

import pytest

from cascade_rules.actions import apply, apply_text, changed_keys, same_value
from cascade_rules.evaluator import evaluate, evaluate_text, values_equal
from cascade_rules.parser import parse_action, parse_condition

PERMIT_IN_SET = 'document.Permit.status in ("completed","notrequired")'


class TestStatusClauses:

    def test_in_set_false(self):
        snapshot = {"document.Permit.status": "waiting"}
        assert evaluate_text(PERMIT_IN_SET, snapshot) is False

    def test_in_set_true_then_action(self):
        snapshot = {"document.Permit.status": "notrequired"}
        assert evaluate_text(PERMIT_IN_SET, snapshot) is True
        updated = apply_text("notes.hidden = false", snapshot)
        assert updated["notes.hidden"] is False

    @pytest.mark.parametrize("status", ["completed", "notrequired"])
    def test_in_set_order_independent(self, status):
        reordered = 'document.Permit.status in ("notrequired", "completed")'
        snapshot = {"document.Permit.status": status}
        assert evaluate_text(PERMIT_IN_SET, snapshot) == evaluate_text(reordered, snapshot) is True

    def test_in_set_is_byte_equal(self):
        assert evaluate_text(PERMIT_IN_SET, {"document.Permit.status": "Completed"}) is False
        assert evaluate_text(PERMIT_IN_SET, {"document.Permit.status": "completed "}) is False

    def test_equality(self):
        snapshot = {"document.Permit.status": "completed"}
        assert evaluate_text('document.Permit.status == "completed"', snapshot)
        assert not evaluate_text('document.Permit.status != "completed"', snapshot)

    def test_missing_status_is_empty(self):
        assert evaluate_text('document.Permit.status != "completed"', {})
        assert not evaluate_text('document.Permit.status == "completed"', {})


class TestFieldClauses:

    def test_bool_coercion(self):
        assert evaluate_text("notrequired.value == true", {"notrequired.value": True})
        assert evaluate_text("notrequired.value == true", {"notrequired.value": "true"})
        assert evaluate_text("notrequired.value == false", {"notrequired.value": "false"})
        assert evaluate_text("notrequired.value == false", {"notrequired.value": False})

    def test_bool_literal_needs_a_bool_value(self):
        assert not evaluate_text("notrequired.value == false", {})
        assert evaluate_text("notrequired.value != false", {})
        assert not evaluate_text("notrequired.value == false", {"notrequired.value": "no"})
        assert not evaluate_text("notrequired.value == true", {"notrequired.value": 1})

    def test_string_and_int_forms_match(self):
        assert evaluate_text("count.value == 3", {"count.value": "3"})
        assert evaluate_text('count.value == "3"', {"count.value": 3})

    def test_missing_field(self):
        assert not evaluate_text('kind.value == "house"', {})
        assert evaluate_text('kind.value != "house"', {})

    def test_values_equal(self):
        assert values_equal(None, None)
        assert not values_equal(None, "x")
        assert values_equal(False, None)


class TestConditions:

    def test_multiline_equivalent_to_and(self):
        multi = 'a.x == "1"\nb.y == "2"'
        inline = 'a.x == "1" and b.y == "2"'
        for snapshot in ({}, {"a.x": "1"}, {"a.x": "1", "b.y": "2"}, {"a.x": 1, "b.y": "3"}):
            assert evaluate_text(multi, snapshot) == evaluate_text(inline, snapshot)

    def test_unrecognized_clause_is_false(self):
        assert not evaluate_text('a.x == "1" and who knows', {"a.x": "1"})

    def test_empty_condition_raises(self):
        with pytest.raises(ValueError):
            evaluate((), {})

    def test_empty_text_is_false(self):
        assert evaluate_text("", {}) is False

    def test_snapshot_not_mutated(self):
        snapshot = {"document.Permit.status": "waiting"}
        evaluate(parse_condition(PERMIT_IN_SET), snapshot)
        assert snapshot == {"document.Permit.status": "waiting"}


class TestActions:

    def test_apply_returns_new_snapshot(self):
        snapshot = {"a.status": "waiting"}
        assignments, _ = parse_action('a.status = "done"\nb.value = 2')
        updated = apply(assignments, snapshot)
        assert updated == {"a.status": "done", "b.value": 2}
        assert snapshot == {"a.status": "waiting"}

    def test_later_assignment_wins(self):
        updated = apply_text("a.value = 1\na.value = 2", {})
        assert updated["a.value"] == 2

    def test_changed_keys(self):
        before = {"a.value": 1, "b.value": "x"}
        after = {"a.value": 1, "b.value": "y", "c.value": None}
        assert changed_keys(before, after) == ["b.value", "c.value"]

    def test_type_change_counts(self):
        assert changed_keys({"a.value": "true"}, {"a.value": True}) == ["a.value"]
        assert not same_value(1, True)
        assert same_value("x", "x")
