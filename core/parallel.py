"""
Data-parallel helpers: contiguous work partitioning, a thread fan-out and a
scratch-buffer pool.

No cancellation: a started :func:`parallel_for` always runs to completion
and re-raises the first worker exception on the caller thread.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generator, List, Optional

import numpy as np

from config import PARALLEL_MAX_WORKERS, PARALLEL_MIN_ITEMS_PER_TASK, SCRATCH_POOL_MAX_BUFFERS


# ---------------------------------------------------------------------------
# Partitioning
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkRange:
    """Half-open ``[start, stop)`` slab of a 1-D iteration space."""

    part_id: int
    start:   int
    stop:    int

    @property
    def size(self) -> int:
        return self.stop - self.start

    def __iter__(self):
        return iter(range(self.start, self.stop))


def partition_range(
    count: int,
    parts: Optional[int] = None,
    block_size: Optional[int] = None,
) -> Generator[WorkRange, None, None]:
    """
    Split ``range(count)`` into contiguous slabs.

    Either ``block_size`` fixes the slab length (the last one may be
    shorter) or ``parts`` fixes the number of near-equal slabs.
    """
    if count <= 0:
        return
    if block_size is None:
        parts = max(1, min(int(parts or PARALLEL_MAX_WORKERS), count))
        block_size = -(-count // parts)
    block_size = max(1, int(block_size))

    part_id = 0
    for start in range(0, count, block_size):
        yield WorkRange(part_id, start, min(start + block_size, count))
        part_id += 1


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

def parallel_for(
    count: int,
    body: Callable[[WorkRange], None],
    max_workers: Optional[int] = None,
    block_size: Optional[int] = None,
    parallel: bool = True,
) -> None:
    """
    Run ``body`` over contiguous slabs of ``range(count)``.

    Slabs are independent; no ordering between them is observable.  Small
    workloads or ``parallel=False`` run inline on the caller thread.
    """
    workers = max(1, int(max_workers or PARALLEL_MAX_WORKERS))
    ranges: List[WorkRange] = list(
        partition_range(count, parts=workers, block_size=block_size)
    )
    if not ranges:
        return

    if not parallel or workers == 1 or len(ranges) == 1 or count < PARALLEL_MIN_ITEMS_PER_TASK:
        for work in ranges:
            body(work)
        return

    with ThreadPoolExecutor(max_workers=min(workers, len(ranges))) as executor:
        futures = [executor.submit(body, work) for work in ranges]
        for future in futures:
            future.result()


# ---------------------------------------------------------------------------
# Scratch pool
# ---------------------------------------------------------------------------

class ScratchPool:
    """
    Thread-safe pool of reusable 1-D scratch arrays.

    A task rents a buffer, uses it exclusively, and returns it before it
    finishes, so buffers are never shared between concurrent tasks.
    """

    def __init__(self, dtype=np.float64, max_buffers: int = SCRATCH_POOL_MAX_BUFFERS) -> None:
        self.dtype = np.dtype(dtype)
        self.max_buffers = int(max_buffers)
        self._free: List[np.ndarray] = []
        self._lock = threading.Lock()
        self.rented = 0

    def rent(self, length: int) -> np.ndarray:
        with self._lock:
            self.rented += 1
            for i, buf in enumerate(self._free):
                if buf.shape[0] >= length:
                    self._free.pop(i)
                    return buf
        return np.empty(length, dtype=self.dtype)

    def give_back(self, buffer: np.ndarray) -> None:
        with self._lock:
            self.rented -= 1
            if len(self._free) < self.max_buffers:
                self._free.append(buffer)

    @property
    def free_count(self) -> int:
        with self._lock:
            return len(self._free)


_shared_pool = ScratchPool()


def shared_scratch_pool() -> ScratchPool:
    """Process-wide float64 pool used by volume reductions."""
    return _shared_pool


__all__ = [
    "WorkRange",
    "partition_range",
    "parallel_for",
    "ScratchPool",
    "shared_scratch_pool",
]
