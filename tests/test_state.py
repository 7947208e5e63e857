import pytest

from hidremap.state import MAX_INPUT_STATES, OutOfStateSlots, StateStore


def test_assign_returns_same_slot_for_same_key():
    store = StateStore()
    first = store.assign(0x00070004, 0)
    second = store.assign(0x00070004, 0)
    assert first is second
    assert len(store) == 1


def test_different_ports_get_distinct_slots():
    store = StateStore()
    a = store.assign(0x00070004, 0)
    b = store.assign(0x00070004, 2)
    assert a is not b
    assert len(store) == 2


def test_capacity_exceeded_raises():
    store = StateStore(capacity=2)
    store.assign(1, 0)
    store.assign(2, 0)
    with pytest.raises(OutOfStateSlots):
        store.assign(3, 0)
    assert len(store) == 2


def test_existing_slot_available_when_full():
    store = StateStore(capacity=1)
    slot = store.assign(1, 0)
    assert store.assign(1, 0) is slot


def test_default_capacity():
    assert StateStore().capacity == MAX_INPUT_STATES


def test_get_without_assign_returns_none():
    store = StateStore()
    assert store.get(0x00010030, 0) is None
    assert store.new_slots_assigned is False
    assert len(store) == 0


def test_get_with_assign_creates_and_flags():
    store = StateStore()
    slot = store.get(0x00010030, 1, True)
    assert slot is store.get(0x00010030, 1)
    assert store.new_slots_assigned is True


def test_get_existing_does_not_flag():
    store = StateStore()
    store.assign(5, 0)
    store.get(5, 0, True)
    assert store.new_slots_assigned is False


def test_get_with_assign_when_full_returns_none():
    store = StateStore(capacity=1)
    store.assign(1, 0)
    assert store.get(2, 0, True) is None
    assert store.new_slots_assigned is False


def test_negative_usage_maps_to_unsigned_key():
    store = StateStore()
    slot = store.assign(0xFFFFFFFF, 0)
    assert store.get(-1, 0) is slot


def test_snapshot_previous_copies_values():
    store = StateStore()
    a = store.assign(1, 0)
    b = store.assign(2, 0)
    a.value = 7
    b.value = -3
    store.snapshot_previous()
    assert (a.prev, b.prev) == (7, -3)
    a.value = 0
    assert a.prev == 7


def test_clear_removes_everything():
    store = StateStore()
    store.assign(1, 0).value = 9
    store.clear()
    assert len(store) == 0
    assert store.get(1, 0) is None
    assert store.assign(1, 0).value == 0


def test_contains_and_iteration():
    store = StateStore()
    slot = store.assign(10, 3)
    assert (10, 3) in store
    assert (10, 4) not in store
    assert list(store) == [slot]