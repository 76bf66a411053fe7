import numpy as np
import pytest

from data.frame_store import FrameStore, ValueRange, stack_store


def _store_with(values, plane_size=4):
    store = FrameStore(np.float64, plane_size)
    for v in values:
        store.adopt(np.full(plane_size, v, dtype=np.float64))
    return store


def test_value_range_needs_refresh():
    assert ValueRange().needs_refresh
    assert not ValueRange([0.0], [1.0]).needs_refresh
    assert ValueRange([2.0], [1.0]).needs_refresh
    assert ValueRange([0.0, 1.0], [1.0]).needs_refresh

    rng = ValueRange([0.0], [1.0])
    rng.invalidate()
    assert rng.needs_refresh
    rng.set([5.0], [6.0])
    assert not rng.needs_refresh


def test_value_range_set_updates_in_place():
    rng = ValueRange()
    mins = rng.min_values
    rng.set([1.0], [2.0])
    assert mins == [1.0]


def test_adopt_does_not_copy_and_checks_shape():
    store = FrameStore(np.float32, 4)
    buf = np.arange(4, dtype=np.float32)
    store.adopt(buf)
    assert np.shares_memory(store.buffer_at(0), buf)

    with pytest.raises(ValueError):
        store.adopt(np.zeros(5, dtype=np.float32))
    with pytest.raises(ValueError):
        store.adopt(np.zeros(4, dtype=np.float64))


def test_seeded_statistics_are_valid():
    store = FrameStore(np.float64, 2)
    store.adopt(np.array([1.0, 2.0]), [-10.0], [10.0])
    assert store.range_at(0).is_valid
    assert store.range_at(0).min_values == [-10.0]


def test_alias_shares_buffer_and_statistics():
    store = _store_with([0.0, 1.0])
    sub = store.subset([1, 1, 0])

    assert sub.arena is store.arena
    assert sub.buffer_at(0) is store.buffer_at(1)
    assert sub.range_at(1) is store.range_at(1)
    assert sub.shares_buffer_with(store)
    assert len(sub.unique_handles()) == 2
    assert sub.first_index_of(store.handle_at(0)) == 2


def test_duplicate_owns_buffer_and_statistics():
    store = _store_with([0.0, 1.0])
    store.range_at(0).set([0.0], [0.0])
    deep = store.subset([0], deep=True)

    assert deep.arena is not store.arena
    assert not deep.shares_buffer_with(store)
    deep.buffer_at(0)[:] = 9.0
    deep.range_at(0).invalidate()

    assert store.buffer_at(0)[0] == 0.0
    assert store.range_at(0).is_valid


def test_arena_duplicate_copies_entry():
    store = _store_with([3.0])
    h = store.handle_at(0)
    dup = store.duplicate(h)
    assert dup != h
    assert store.alias(h) == h
    store.append(dup)
    store.buffer_at(1)[0] = -1.0
    assert store.buffer_at(0)[0] == 3.0


def test_clear_keeps_buffers_still_referenced_elsewhere():
    store = _store_with([0.0, 1.0])
    sub = store.subset([0])
    assert len(store.arena) == 2

    store.clear()

    assert store.frame_count == 0
    assert len(store.arena) == 1
    assert sub.buffer_at(0)[0] == 0.0


def test_replace_releases_old_handle():
    store = _store_with([0.0, 1.0])
    old = store.handle_at(0)
    store.replace(0, store.handle_at(1))
    store.arena.release_unreferenced()
    assert old not in store.arena
    assert store.buffer_at(0) is store.buffer_at(1)


def test_stack_and_estimated_bytes():
    store = _store_with([0.0, 1.0, 2.0], plane_size=6)
    stack = stack_store(store, (2, 3))
    assert stack.shape == (3, 2, 3)
    np.testing.assert_array_equal(stack[:, 0, 0], [0.0, 1.0, 2.0])
    assert store.estimated_bytes() == 3 * 6 * 8
    assert store.estimated_bytes(10) == 10 * 6 * 8
