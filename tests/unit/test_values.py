from __future__ import annotations

from datetime import date, datetime

import pytest

from vaultquery.errors import EvaluationError
from vaultquery.values import (
    CYCLE_MARKER,
    MISSING,
    PLACEHOLDER,
    ValueKind,
    compare,
    contains,
    equals,
    is_truthy,
    kind_of,
    parse_date,
    render_value,
    resolve_path,
    sort_key,
)


def test_kind_of_distinguishes_bool_from_number():
    assert kind_of(True) is ValueKind.BOOLEAN
    assert kind_of(3) is ValueKind.NUMBER
    assert kind_of(2.5) is ValueKind.NUMBER
    assert kind_of(None) is ValueKind.NULL
    assert kind_of(MISSING) is ValueKind.MISSING
    assert kind_of(date(2024, 1, 1)) is ValueKind.DATE
    assert kind_of(["a"]) is ValueKind.LIST
    assert kind_of({"a": 1}) is ValueKind.MAPPING


def test_resolve_path_walks_nested_mappings():
    data = {"project": {"owner": {"name": "Ada"}}, "a.b": "flat"}

    assert resolve_path(data, "project.owner.name") == "Ada"
    assert resolve_path(data, "a.b") == "flat"
    assert resolve_path(data, "project.missing") is MISSING
    assert resolve_path(None, "anything") is MISSING


def test_missing_never_compares_true():
    for op in ("=", "!=", ">", ">=", "<", "<="):
        assert compare(op, MISSING, 3) is False
        assert compare(op, 3, MISSING) is False


def test_null_equality_and_numeric_coercion():
    assert compare("=", None, None) is True
    assert compare("!=", None, "x") is True
    assert compare("=", 5, "5") is True
    assert compare(">", "10", 9) is True
    assert compare("=", True, "true") is True


def test_dates_compare_with_iso_strings():
    assert compare(">", date(2024, 5, 2), "2024-05-01") is True
    assert compare("<=", "2024-01-01", datetime(2024, 1, 1, 0, 0)) is True
    assert parse_date("2024-02-30") is None
    assert parse_date("not a date") is None


def test_date_against_non_date_is_a_type_mismatch():
    assert equals("2024-01-01", "open") is False
    assert compare("!=", date(2024, 1, 1), "someday") is True
    with pytest.raises(EvaluationError):
        compare(">", "open", "2024-01-01")
    with pytest.raises(EvaluationError):
        compare("<", date(2024, 1, 1), 5)


def test_cross_kind_equality_is_false_and_ordering_raises():
    assert equals("abc", 3) is False
    assert compare("!=", "abc", 3) is True
    with pytest.raises(EvaluationError):
        compare(">", "abc", 3)
    with pytest.raises(EvaluationError):
        compare("<", {"a": 1}, {"a": 2})


def test_contains_handles_lists_strings_and_mappings():
    assert contains(["a", "b"], "b") is True
    assert contains([1, 2], "2") is True
    assert contains("hello world", "lo w") is True
    assert contains({"key": 1}, "key") is True
    assert contains(MISSING, "x") is False
    with pytest.raises(EvaluationError):
        contains(3, 1)


def test_is_truthy_rules():
    assert is_truthy("x") is True
    assert is_truthy("  ") is False
    assert is_truthy([]) is False
    assert is_truthy(0) is False
    assert is_truthy(MISSING) is False
    assert is_truthy(None) is False


def test_render_value_formats_scalars_and_collections():
    assert render_value(None) == PLACEHOLDER
    assert render_value(MISSING, placeholder="n/a") == "n/a"
    assert render_value(True) == "true"
    assert render_value(3.0) == "3"
    assert render_value(date(2024, 3, 1)) == "2024-03-01"
    assert render_value(datetime(2024, 3, 1)) == "2024-03-01"
    assert render_value(["a", 1]) == "a, 1"
    assert render_value({"k": [1, 2]}) == "{k: 1, 2}"


def test_render_value_marks_cycles():
    node: dict = {"name": "loop"}
    node["self"] = node
    items: list = [1]
    items.append(items)

    assert render_value(node) == "{name: loop, self: " + CYCLE_MARKER + "}"
    assert render_value(items) == "1, " + CYCLE_MARKER


def test_render_value_repeats_shared_values_without_marking_cycles():
    shared = ["x"]
    assert render_value({"a": shared, "b": shared}) == "{a: x, b: x}"


def test_sort_key_orders_numbers_before_strings():
    values = ["b", 2, "A", 1.5]
    assert sorted(values, key=sort_key) == [1.5, 2, "A", "b"]
