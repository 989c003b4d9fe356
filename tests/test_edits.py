import pytest

from spritemotion.core import FrameOffset
from spritemotion.core.edits import FrameEditStore
from spritemotion.core.errors import ValidationError


def test_nudges_accumulate():
    store = FrameEditStore()
    store.set_offset(2, 3, -1)
    store.set_offset(2, 2, -1)
    assert store.offset(2) == FrameOffset(5, -2)


def test_missing_offset_is_zero():
    assert FrameEditStore().offset(7) == FrameOffset(0, 0)


def test_reset_offset_removes_entry():
    store = FrameEditStore()
    store.set_offset(0, 4, 4)
    store.reset_offset(0)
    assert 0 not in store.offsets
    assert store.offset(0).is_zero


def test_nudging_back_to_zero_drops_entry():
    store = FrameEditStore()
    store.set_offset(1, 2, 0)
    store.set_offset(1, -2, 0)
    assert dict(store.offsets) == {}


def test_toggle_twice_restores_membership():
    store = FrameEditStore(excluded=frozenset({4}))
    assert store.toggle_exclusion(1) is True
    assert store.toggle_exclusion(1) is False
    assert store.excluded == frozenset({4})
    assert store.toggle_exclusion(4) is False
    assert store.toggle_exclusion(4) is True
    assert store.excluded == frozenset({4})


def test_snapshots_are_not_changed_by_later_edits():
    store = FrameEditStore()
    store.set_offset(0, 1, 1)
    offsets_before = store.offsets
    excluded_before = store.excluded
    store.set_offset(0, 1, 1)
    store.toggle_exclusion(3)
    assert offsets_before[0] == FrameOffset(1, 1)
    assert excluded_before == frozenset()


def test_on_change_called_for_each_mutation():
    calls = []
    store = FrameEditStore(on_change=lambda: calls.append(1))
    store.set_offset(0, 1, 0)
    store.reset_offset(0)
    store.reset_offset(0)  # nothing to reset
    store.toggle_exclusion(2)
    assert len(calls) == 3


def test_prune_drops_entries_past_total():
    store = FrameEditStore()
    store.set_offset(1, 1, 1)
    store.set_offset(8, 1, 1)
    store.toggle_exclusion(9)
    store.toggle_exclusion(0)
    assert store.prune(4) == 2
    assert set(store.offsets) == {1}
    assert store.excluded == frozenset({0})


def test_negative_index_rejected():
    with pytest.raises(ValidationError):
        FrameEditStore().set_offset(-1, 1, 1)
