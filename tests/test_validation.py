"""Tests for the ground-truth diff engine.

Tests cover each comparison rule, key-path prefixes for nested objects,
error ordering, and for-all properties (identity is valid, the inputs are
never mutated, any missing key is reported).
"""

from __future__ import annotations

import copy

from hypothesis import given
from hypothesis import strategies as st

from snapforge.validation import DiffResult, diff_against_ground_truth
from tests.strategies import keys, records, values


class TestStrings:
    def test_case_insensitive_match(self):
        result = diff_against_ground_truth({"a": "john doe"}, {"a": "John Doe"})
        assert result == DiffResult(valid=True, errors=[])

    def test_surrounding_whitespace_ignored(self):
        assert diff_against_ground_truth({"a": "  Ann \n"}, {"a": "ann"}).valid

    def test_containment_either_way(self):
        assert diff_against_ground_truth({"a": "Name: Ann Smith"}, {"a": "Ann Smith"}).valid
        assert diff_against_ground_truth({"a": "Ann"}, {"a": "Ann Smith"}).valid

    def test_mismatch_names_field_and_quotes_both(self):
        result = diff_against_ground_truth({"a": "Jane"}, {"a": "John Doe"})
        assert not result.valid
        assert result.errors == ['Field a: expected "John Doe", got "Jane"']


class TestMissingAndNull:
    def test_missing_field(self):
        result = diff_against_ground_truth({}, {"a": None})
        assert not result.valid
        assert result.errors == ["missing field: a"]

    def test_expected_null_accepts_null(self):
        assert diff_against_ground_truth({"a": None}, {"a": None}).valid

    def test_expected_null_rejects_value(self):
        result = diff_against_ground_truth({"a": "x"}, {"a": None})
        assert result.errors == ['Field a: expected null, got "x"']

    def test_null_where_string_expected(self):
        result = diff_against_ground_truth({"a": None}, {"a": "Ann"})
        assert result.errors == ['Field a: expected "Ann", got null']

    def test_extra_keys_ignored(self):
        assert diff_against_ground_truth({"a": 1, "b": 2}, {"a": 1}).valid


class TestSequences:
    def test_length_mismatch(self):
        result = diff_against_ground_truth({"a": [1, 2, 3]}, {"a": [1, 2]})
        assert not result.valid
        assert result.errors == ["Field a: expected 2 items, got 3"]

    def test_equal_length_contents_not_compared(self):
        assert diff_against_ground_truth({"a": ["x", "y"]}, {"a": [1, 2]}).valid

    def test_non_sequence(self):
        result = diff_against_ground_truth({"a": "12"}, {"a": [1, 2]})
        assert result.errors == ["Field a: expected array, got str"]


class TestNested:
    def test_recurses_with_key_path(self):
        truth = {"patient": {"name": "Ann", "ids": {"mrn": "123"}}}
        result = diff_against_ground_truth(
            {"patient": {"name": "Bob", "ids": {}}}, truth
        )
        assert result.errors == [
            'Field patient.name: expected "Ann", got "Bob"',
            "missing field: patient.ids.mrn",
        ]

    def test_object_expected(self):
        result = diff_against_ground_truth({"p": "Ann"}, {"p": {"name": "Ann"}})
        assert result.errors == ["Field p: expected object, got str"]


class TestStrictEquality:
    def test_numbers(self):
        assert diff_against_ground_truth({"n": 3}, {"n": 3}).valid
        assert diff_against_ground_truth({"n": 3.0}, {"n": 3}).valid
        assert diff_against_ground_truth({"n": 4}, {"n": 3}).errors == [
            "Field n: expected 3, got 4"
        ]

    def test_bool_is_not_int(self):
        assert not diff_against_ground_truth({"f": 1}, {"f": True}).valid
        assert not diff_against_ground_truth({"f": False}, {"f": 0}).valid
        assert diff_against_ground_truth({"f": True}, {"f": True}).valid

    def test_string_vs_number(self):
        assert diff_against_ground_truth({"n": "3"}, {"n": 3}).errors == [
            'Field n: expected 3, got "3"'
        ]


class TestResultShape:
    def test_non_dict_result(self):
        result = diff_against_ground_truth(None, {"a": 1})
        assert not result.valid
        assert len(result.errors) == 1

    def test_errors_follow_ground_truth_order(self):
        result = diff_against_ground_truth({}, {"z": 1, "a": 2, "m": 3})
        assert result.errors == ["missing field: z", "missing field: a", "missing field: m"]


class TestProperties:
    @given(records)
    def test_identity_is_valid(self, record):
        assert diff_against_ground_truth(copy.deepcopy(record), record).valid

    @given(records, records)
    def test_inputs_not_mutated(self, result, truth):
        before_result = copy.deepcopy(result)
        before_truth = copy.deepcopy(truth)
        diff_against_ground_truth(result, truth)
        assert result == before_result
        assert truth == before_truth

    @given(records, st.data())
    def test_removed_key_is_reported(self, record, data):
        key = data.draw(st.sampled_from(sorted(record)))
        actual = copy.deepcopy(record)
        del actual[key]
        result = diff_against_ground_truth(actual, record)
        assert not result.valid
        assert f"missing field: {key}" in result.errors

    @given(records, keys, values)
    def test_valid_iff_no_errors(self, record, key, value):
        actual = dict(record)
        actual[key] = value
        result = diff_against_ground_truth(actual, record)
        assert result.valid == (result.errors == [])
