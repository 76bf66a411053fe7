"""
Frame buffers and their cached value-range statistics.

Buffers live in a :class:`FrameArena` and are referred to by
:class:`FrameHandle`.  The arena keeps exactly one :class:`ValueRange` per
handle, so every container that references the same handle sees the same
statistics entry.  Sharing intent is explicit:

* ``alias(h)`` returns ``h`` itself (zero-copy, shared statistics);
* ``duplicate(h)`` allocates a new buffer *and* a new statistics entry.

Mutating accessors mark a range invalid; the next statistics read rescans.
There is no locking around buffer contents: callers keep a single writer
per buffer at a time.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ValueRange
# ---------------------------------------------------------------------------

class ValueRange:
    """
    Per-mode min/max lists plus a validity flag.

    ``source`` records the finder that produced the values (``None`` for the
    dtype default or a caller-supplied seed).
    """

    __slots__ = ("min_values", "max_values", "is_valid", "source")

    def __init__(
        self,
        min_values: Optional[Sequence[float]] = None,
        max_values: Optional[Sequence[float]] = None,
    ) -> None:
        self.min_values: List[float] = [float(v) for v in min_values] if min_values is not None else []
        self.max_values: List[float] = [float(v) for v in max_values] if max_values is not None else []
        self.is_valid = min_values is not None and max_values is not None
        self.source = None

    def invalidate(self) -> None:
        self.is_valid = False

    def set(self, min_values: Sequence[float], max_values: Sequence[float], source=None) -> None:
        # In place so that every holder of this object observes the update.
        self.min_values[:] = [float(v) for v in min_values]
        self.max_values[:] = [float(v) for v in max_values]
        self.is_valid = True
        self.source = source

    def copy(self) -> "ValueRange":
        clone = ValueRange(self.min_values, self.max_values)
        clone.is_valid = self.is_valid
        clone.source = self.source
        return clone

    @property
    def needs_refresh(self) -> bool:
        """Invalid, empty, length-mismatched, or holding an inverted pair."""
        if not self.is_valid:
            return True
        mins, maxs = self.min_values, self.max_values
        if not mins or not maxs or len(mins) != len(maxs):
            return True
        return any(lo > hi for lo, hi in zip(mins, maxs))

    def __repr__(self) -> str:
        return f"ValueRange(min={self.min_values}, max={self.max_values}, valid={self.is_valid})"


# ---------------------------------------------------------------------------
# Arena
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FrameHandle:
    """Opaque reference to one arena slot."""

    slot: int


@dataclass
class _Entry:
    buffer:    np.ndarray
    range:     ValueRange
    refcount:  int = 0


class FrameArena:
    """
    Owner of frame buffers.  Handles are unique per arena for its lifetime.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, _Entry] = {}
        self._next = itertools.count()
        self._lock = threading.Lock()

    def insert(self, buffer: np.ndarray, value_range: ValueRange) -> FrameHandle:
        with self._lock:
            handle = FrameHandle(next(self._next))
            self._entries[handle.slot] = _Entry(buffer, value_range)
        return handle

    def allocate(self, plane_size: int, dtype) -> FrameHandle:
        return self.insert(np.zeros(plane_size, dtype=dtype), ValueRange())

    def adopt(
        self,
        buffer: np.ndarray,
        min_values: Optional[Sequence[float]] = None,
        max_values: Optional[Sequence[float]] = None,
    ) -> FrameHandle:
        """Take ownership of ``buffer`` as-is (no copy); optional stats seed the range."""
        if min_values is not None and max_values is not None:
            rng = ValueRange(min_values, max_values)
        else:
            rng = ValueRange()
        return self.insert(buffer, rng)

    def _entry(self, handle: FrameHandle) -> _Entry:
        try:
            return self._entries[handle.slot]
        except KeyError:
            raise KeyError(f"{handle} is not live in this arena") from None

    def buffer(self, handle: FrameHandle) -> np.ndarray:
        return self._entry(handle).buffer

    def value_range(self, handle: FrameHandle) -> ValueRange:
        return self._entry(handle).range

    def alias(self, handle: FrameHandle) -> FrameHandle:
        self._entry(handle)
        return handle

    def duplicate(self, handle: FrameHandle) -> FrameHandle:
        entry = self._entry(handle)
        return self.insert(entry.buffer.copy(), entry.range.copy())

    def retain(self, handle: FrameHandle) -> None:
        self._entry(handle).refcount += 1

    def release(self, handle: FrameHandle) -> None:
        entry = self._entries.get(handle.slot)
        if entry is not None and entry.refcount > 0:
            entry.refcount -= 1

    def release_unreferenced(self) -> int:
        """Drop entries no store references any more; returns how many were dropped."""
        with self._lock:
            dead = [slot for slot, e in self._entries.items() if e.refcount <= 0]
            for slot in dead:
                del self._entries[slot]
        if dead:
            logger.debug("Released %d unreferenced frame buffers", len(dead))
        return len(dead)

    def __contains__(self, handle: FrameHandle) -> bool:
        return handle.slot in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# FrameStore
# ---------------------------------------------------------------------------

class FrameStore:
    """
    Ordered list of frame handles over a (possibly shared) arena.

    Parameters
    ----------
    dtype : numpy dtype
        Element type of every buffer.
    plane_size : int
        Buffer length (``x_count * y_count``).
    arena : FrameArena, optional
        Arena to allocate from.  Stores created by ``subset(..., deep=False)``
        share their parent's arena.
    """

    def __init__(self, dtype, plane_size: int, arena: Optional[FrameArena] = None) -> None:
        self.dtype = np.dtype(dtype)
        self.plane_size = int(plane_size)
        self.arena = arena if arena is not None else FrameArena()
        self._handles: List[FrameHandle] = []

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def append(self, handle: FrameHandle) -> FrameHandle:
        self.arena.retain(handle)
        self._handles.append(handle)
        return handle

    def allocate(self, count: int = 1) -> List[FrameHandle]:
        return [self.append(self.arena.allocate(self.plane_size, self.dtype)) for _ in range(count)]

    def adopt(
        self,
        buffer: np.ndarray,
        min_values: Optional[Sequence[float]] = None,
        max_values: Optional[Sequence[float]] = None,
    ) -> FrameHandle:
        """Append an existing flat buffer (not copied) with optional seeded statistics."""
        flat = np.asarray(buffer)
        if flat.dtype != self.dtype:
            raise ValueError(f"Buffer dtype {flat.dtype} does not match store dtype {self.dtype}")
        flat = flat.reshape(-1)
        if flat.shape[0] != self.plane_size:
            raise ValueError(f"Buffer length {flat.shape[0]} does not match plane size {self.plane_size}")
        return self.append(self.arena.adopt(flat, min_values, max_values))

    def alias(self, handle: FrameHandle) -> FrameHandle:
        return self.arena.alias(handle)

    def duplicate(self, handle: FrameHandle) -> FrameHandle:
        return self.arena.duplicate(handle)

    def replace(self, index: int, handle: FrameHandle) -> None:
        old = self._handles[index]
        self.arena.retain(handle)
        self._handles[index] = handle
        self.arena.release(old)

    def clear(self) -> None:
        for handle in self._handles:
            self.arena.release(handle)
        self._handles = []
        self.arena.release_unreferenced()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def frame_count(self) -> int:
        return len(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    @property
    def handles(self) -> List[FrameHandle]:
        return list(self._handles)

    def handle_at(self, index: int) -> FrameHandle:
        return self._handles[index]

    def buffer_at(self, index: int) -> np.ndarray:
        return self.arena.buffer(self._handles[index])

    def range_at(self, index: int) -> ValueRange:
        return self.arena.value_range(self._handles[index])

    def buffers(self) -> List[np.ndarray]:
        return [self.arena.buffer(h) for h in self._handles]

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.buffers())

    def unique_handles(self) -> List[FrameHandle]:
        """Handles in first-seen order, each listed once."""
        seen = set()
        out = []
        for h in self._handles:
            if h not in seen:
                seen.add(h)
                out.append(h)
        return out

    def first_index_of(self, handle: FrameHandle) -> int:
        return self._handles.index(handle)

    def shares_buffer_with(self, other: "FrameStore") -> bool:
        if self.arena is not other.arena:
            return False
        return bool(set(self._handles) & set(other._handles))

    # ------------------------------------------------------------------
    # Derived stores
    # ------------------------------------------------------------------

    def subset(self, indices: Iterable[int], deep: bool = False) -> "FrameStore":
        """
        New store holding the frames at ``indices`` (repeats allowed).

        ``deep=False`` aliases handles in the same arena; ``deep=True``
        duplicates each selected frame into a fresh arena.
        """
        if deep:
            store = FrameStore(self.dtype, self.plane_size)
            for i in indices:
                src = self._handles[i]
                buf = self.arena.buffer(src).copy()
                rng = self.arena.value_range(src).copy()
                store.append(store.arena.insert(buf, rng))
            return store

        store = FrameStore(self.dtype, self.plane_size, arena=self.arena)
        for i in indices:
            store.append(self.alias(self._handles[i]))
        logger.debug("Aliased %d frames into a shared store", store.frame_count)
        return store

    def copy(self, deep: bool = True) -> "FrameStore":
        return self.subset(range(self.frame_count), deep=deep)

    def estimated_bytes(self, frame_count: Optional[int] = None) -> int:
        n = self.frame_count if frame_count is None else frame_count
        return int(n) * self.plane_size * self.dtype.itemsize

    def __repr__(self) -> str:
        return (
            f"FrameStore(dtype={self.dtype}, plane_size={self.plane_size}, "
            f"frames={self.frame_count}, unique={len(self.unique_handles())})"
        )


def stack_store(store: FrameStore, shape: Tuple[int, int]) -> np.ndarray:
    """Copy of every frame as an array of shape ``(frames, *shape)``."""
    if store.frame_count == 0:
        return np.empty((0,) + tuple(shape), dtype=store.dtype)
    return np.stack([b.reshape(shape) for b in store.buffers()])


__all__ = [
    "ValueRange",
    "FrameHandle",
    "FrameArena",
    "FrameStore",
    "stack_store",
]
