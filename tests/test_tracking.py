"""Tests for dependency records, tracked views and structural equality."""

import pytest

from tivity import DependencyRecord, TrackedState, is_equal


class TestIsEqual:
    def test_scalars(self):
        assert is_equal(1, 1)
        assert is_equal("a", "a")
        assert not is_equal(1, 2)
        assert is_equal(None, None)

    def test_bool_is_not_a_number(self):
        assert not is_equal(True, 1)
        assert not is_equal(0, False)

    def test_nested_mappings(self):
        assert is_equal({"a": {"b": [1, 2]}}, {"a": {"b": [1, 2]}})
        assert not is_equal({"a": {"b": [1, 2]}}, {"a": {"b": [1, 3]}})

    def test_mapping_keys_must_match(self):
        assert not is_equal({"a": 1}, {"a": 1, "b": 2})
        assert not is_equal({"a": 1, "b": 2}, {"a": 1})

    def test_sequences(self):
        assert is_equal([1, {"x": 2}], [1, {"x": 2}])
        assert not is_equal([1, 2], [1, 2, 3])
        assert is_equal((1, 2), [1, 2])

    def test_type_mismatch(self):
        assert not is_equal({"a": 1}, [1])
        assert not is_equal("1", 1)


class TestDependencyRecord:
    def test_grows_in_read_order(self):
        record = DependencyRecord()
        record.add("b")
        record.add("a")
        record.add("b")
        assert list(record) == ["b", "a"]
        assert len(record) == 2

    def test_changed_only_for_recorded_fields(self):
        record = DependencyRecord()
        record.add("count")
        assert not record.changed({"count": 1, "title": "a"}, {"count": 1, "title": "b"})
        assert record.changed({"count": 1, "title": "a"}, {"count": 2, "title": "a"})

    def test_structural_not_identity(self):
        record = DependencyRecord()
        record.add("user")
        assert not record.changed({"user": {"name": "ann"}}, {"user": {"name": "ann"}})

    def test_field_appearing_counts_as_change(self):
        record = DependencyRecord()
        record.add("late")
        assert record.changed({}, {"late": 1})
        assert not record.changed({}, {})


class TestTrackedState:
    def test_item_and_attribute_reads_record(self):
        record = DependencyRecord()
        state = TrackedState({"a": 1, "b": 2, "c": 3}, record)
        assert state["a"] == 1
        assert state.b == 2
        assert list(record) == ["a", "b"]

    def test_get_and_items_record(self):
        record = DependencyRecord()
        state = TrackedState({"a": 1, "b": 2}, record)
        assert state.get("a") == 1
        assert dict(state.items()) == {"a": 1, "b": 2}
        assert list(record) == ["a", "b"]

    def test_actions_are_not_recorded(self):
        record = DependencyRecord()
        action = lambda: None  # noqa: E731
        state = TrackedState({"inc": action, "count": 0}, record)
        assert state.inc is action
        assert list(record) == []

    def test_membership_and_keys_do_not_record(self):
        record = DependencyRecord()
        state = TrackedState({"a": 1}, record)
        assert "a" in state
        assert list(state) == ["a"]
        assert len(state) == 1
        assert list(record) == []

    def test_missing_field_is_recorded(self):
        record = DependencyRecord()
        state = TrackedState({}, record)
        with pytest.raises(KeyError):
            state["later"]
        with pytest.raises(AttributeError):
            state.other
        assert state.get("third") is None
        assert list(record) == ["later", "other", "third"]

    def test_snapshot_reads_untracked(self):
        record = DependencyRecord()
        snap = {"a": 1}
        state = TrackedState(snap, record)
        assert state.snapshot is snap
        assert list(record) == []
