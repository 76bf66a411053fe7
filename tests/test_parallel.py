import threading

import numpy as np
import pytest

from core.parallel import ScratchPool, parallel_for, partition_range


def test_partition_by_parts():
    ranges = list(partition_range(10, parts=3))
    assert [(r.start, r.stop) for r in ranges] == [(0, 4), (4, 8), (8, 10)]
    assert [r.part_id for r in ranges] == [0, 1, 2]
    assert sum(r.size for r in ranges) == 10


def test_partition_by_block_size_and_empty():
    ranges = list(partition_range(7, block_size=3))
    assert [list(r) for r in ranges] == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(partition_range(0, parts=4)) == []


def test_parallel_for_visits_every_item_once():
    hits = np.zeros(1000, dtype=np.int64)
    lock = threading.Lock()

    def body(work):
        for i in work:
            with lock:
                hits[i] += 1

    parallel_for(1000, body, max_workers=4)
    assert np.all(hits == 1)


def test_parallel_for_reraises_worker_errors():
    def body(work):
        if work.start > 0:
            raise KeyError("slab failed")

    with pytest.raises(KeyError):
        parallel_for(100, body, max_workers=4)


def test_scratch_pool_reuses_buffers():
    pool = ScratchPool(np.float64, max_buffers=1)
    a = pool.rent(8)
    assert pool.rented == 1
    pool.give_back(a)
    assert pool.free_count == 1

    b = pool.rent(4)
    assert b is a
    c = pool.rent(4)
    assert c is not a
    pool.give_back(b)
    pool.give_back(c)
    assert pool.rented == 0
    assert pool.free_count == 1
