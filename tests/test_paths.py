"""Tests for trove.paths."""

import pytest

from trove import ArgumentError
from trove.paths import ABSENT, assign, deep_merge, format_path, resolve, split_path, unassign


class TestSplitPath:
    """Tests for split_path and format_path."""

    def test_dotted_string(self):
        assert split_path("a.b.0") == ["a", "b", "0"]

    def test_empty_means_root(self):
        assert split_path(None) == []
        assert split_path("") == []

    def test_int_and_sequence(self):
        assert split_path(3) == [3]
        assert split_path(("a", 1)) == ["a", 1]

    def test_bool_rejected(self):
        with pytest.raises(ArgumentError):
            split_path(True)

    def test_format(self):
        assert format_path(("a", 1, "b")) == "a.1.b"
        assert format_path(None) == ""


class TestResolve:
    """Tests for resolve."""

    @pytest.fixture
    def value(self):
        return {"a": {"b": [10, 20, {"c": None}]}}

    def test_nested(self, value):
        assert resolve(value, "a.b.1") == 20
        assert resolve(value, ["a", "b", 0]) == 10

    def test_empty_path_is_root(self, value):
        assert resolve(value, None) is value

    def test_missing_segments(self, value):
        assert resolve(value, "a.x") is ABSENT
        assert resolve(value, "a.b.9") is ABSENT
        assert resolve(value, "a.b.first") is ABSENT

    def test_through_scalar_is_absent(self, value):
        """Walking through a scalar reports ABSENT instead of raising."""
        assert resolve(value, "a.b.0.c") is ABSENT

    def test_stored_none_is_not_absent(self, value):
        assert resolve(value, "a.b.2.c") is None

    def test_absent_is_falsy(self):
        assert not ABSENT
        assert repr(ABSENT) == "ABSENT"


class TestAssign:
    """Tests for assign."""

    def test_creates_dict_intermediates(self):
        assert assign({}, "a.b.c", 1) == {"a": {"b": {"c": 1}}}

    def test_numeric_segment_creates_dict(self):
        """Missing intermediates are always dicts, even for numeric segments."""
        assert assign({}, "a.0", 1) == {"a": {"0": 1}}

    def test_existing_list_index(self):
        root = {"l": [1, 2]}
        assert assign(root, "l.1", 9) == {"l": [1, 9]}

    def test_list_index_past_end_pads(self):
        assert assign({"l": []}, "l.2", "x") == {"l": [None, None, "x"]}

    def test_list_with_non_numeric_segment(self):
        with pytest.raises(ArgumentError):
            assign({"l": [1]}, "l.x", 1)

    def test_scalar_intermediate_replaced(self):
        assert assign({"a": 5}, "a.b", 1) == {"a": {"b": 1}}

    def test_none_root_becomes_dict(self):
        assert assign(None, "a", 1) == {"a": 1}

    def test_scalar_root_rejected(self):
        with pytest.raises(ArgumentError):
            assign(5, "a", 1)

    def test_empty_path_replaces_root(self):
        assert assign({"a": 1}, "", [1]) == [1]

    def test_mutates_in_place(self):
        root = {"a": {}}
        result = assign(root, "a.b", 2)
        assert result is root
        assert root == {"a": {"b": 2}}


class TestUnassign:
    """Tests for unassign."""

    def test_dict_property(self):
        assert unassign({"a": {"b": 1, "c": 2}}, "a.b") == {"a": {"c": 2}}

    def test_list_element_shifts(self):
        assert unassign({"l": [1, 2, 3]}, "l.1") == {"l": [1, 3]}

    def test_missing_leaf_is_noop(self):
        assert unassign({"a": 1}, "b.c") == {"a": 1}
        assert unassign({"l": [1]}, "l.5") == {"l": [1]}

    def test_empty_path_rejected(self):
        with pytest.raises(ArgumentError):
            unassign({"a": 1}, "")


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_dicts_merge(self):
        target = {"a": {"x": 1, "y": 2}, "b": 1}
        assert deep_merge(target, {"a": {"y": 3, "z": 4}}) == {
            "a": {"x": 1, "y": 3, "z": 4},
            "b": 1,
        }

    def test_lists_replace(self):
        assert deep_merge({"l": [1, 2, 3]}, {"l": [9]}) == {"l": [9]}

    def test_dict_replaces_scalar(self):
        assert deep_merge({"a": 1}, {"a": {"b": 2}}) == {"a": {"b": 2}}
