"""
Axis-to-stride mapping over a flat frame sequence.

Memory convention
-----------------
The *first* declared axis is the fastest-varying one::

    strides[0] = 1
    strides[i] = strides[i-1] * axes[i-1].count
    frame_index = sum(axis_index[i] * strides[i])

A :class:`DimensionStructure` also keeps its host container's active frame
index and every axis's current index in lock-step, in both directions.
Feedback loops are cut by a three-state guard (:class:`SyncState`): a
notification arriving while a sync pass is already running is the echo of
that pass and is dropped.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Dict, Iterator, List, Optional, Protocol, Sequence, Tuple, Union

from core.axis import Axis
from core.events import ChangeEvent, EventBus

logger = logging.getLogger(__name__)


class FrameHost(Protocol):
    """What a :class:`DimensionStructure` needs from the container it describes."""

    frame_count: int
    active_index: int
    active_index_changed: EventBus


class SyncState(Enum):
    IDLE = "idle"
    SYNCING_FROM_HOST = "syncing_from_host"
    SYNCING_FROM_AXIS = "syncing_from_axis"


AxisRef = Union[Axis, str]


class DimensionStructure:
    """
    Ordered list of axes, their strides and the live index synchronisation.

    Parameters
    ----------
    host : FrameHost
        Container whose ``frame_count`` must equal the product of the axis
        counts.
    *axes : Axis
        Frame axes, fastest-varying first.  When omitted and the host holds
        more than one frame, a single "Frame" axis is created.

    Raises
    ------
    ValueError
        Duplicate (case-insensitive) axis names or an axis-count product
        that differs from ``host.frame_count``.
    """

    def __init__(self, host: FrameHost, *axes: Axis) -> None:
        self._host = host
        frame_count = int(host.frame_count)

        axis_list = list(axes)
        if not axis_list and frame_count > 1:
            axis_list = [Axis.frame(frame_count)]

        seen: Dict[str, Axis] = {}
        for axis in axis_list:
            key = axis.name.casefold()
            if key in seen:
                raise ValueError(f"Duplicate axis name '{axis.name}' (names are case-insensitive)")
            seen[key] = axis

        strides: List[int] = []
        product = 1
        for axis in axis_list:
            strides.append(product)
            product *= axis.count
        if product != frame_count:
            counts = " x ".join(str(a.count) for a in axis_list) or "1"
            raise ValueError(
                f"Axis count product {counts} = {product} does not match frame count {frame_count}"
            )

        self._axes: List[Axis] = axis_list
        self._strides: List[int] = strides
        self._state = SyncState.IDLE
        self._state_lock = threading.Lock()
        self._closed = False

        for axis in self._axes:
            axis.index_changed.subscribe(self._on_axis_index_changed)
        host.active_index_changed.subscribe(self._on_host_index_changed)

        self._sync_from_host()
        logger.debug("Defined dimensions %s with strides %s", [a.name for a in self._axes], self._strides)

    # ------------------------------------------------------------------
    # Sync state machine
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    def _try_enter(self, target: SyncState) -> bool:
        """Compare-and-swap IDLE -> ``target``; False when a pass is already running."""
        with self._state_lock:
            if self._state is not SyncState.IDLE:
                return False
            self._state = target
            return True

    def _leave(self) -> None:
        with self._state_lock:
            self._state = SyncState.IDLE

    def _on_host_index_changed(self, _event: ChangeEvent) -> None:
        self._sync_from_host()

    def _sync_from_host(self) -> None:
        if not self._try_enter(SyncState.SYNCING_FROM_HOST):
            return
        try:
            frame_index = int(self._host.active_index)
            for axis, stride in zip(self._axes, self._strides):
                axis.index = (frame_index // stride) % axis.count
        finally:
            self._leave()

    def _on_axis_index_changed(self, _event: ChangeEvent) -> None:
        if not self._try_enter(SyncState.SYNCING_FROM_AXIS):
            return
        try:
            self._host.active_index = self.get_frame_index_from([a.index for a in self._axes])
        finally:
            self._leave()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release every subscription. Safe to call more than once."""
        if self._closed:
            return
        for axis in self._axes:
            axis.index_changed.unsubscribe(self._on_axis_index_changed)
        self._host.active_index_changed.unsubscribe(self._on_host_index_changed)
        self._closed = True

    dispose = close

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "DimensionStructure":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Axis queries
    # ------------------------------------------------------------------

    @property
    def axes(self) -> List[Axis]:
        return list(self._axes)

    @property
    def axis_count(self) -> int:
        return len(self._axes)

    @property
    def strides(self) -> List[int]:
        return list(self._strides)

    @property
    def frame_count(self) -> int:
        return int(self._host.frame_count)

    def __len__(self) -> int:
        return len(self._axes)

    def __iter__(self) -> Iterator[Axis]:
        return iter(list(self._axes))

    def __getitem__(self, key: Union[int, str]) -> Optional[Axis]:
        """Axis by position, or by case-insensitive name (None when absent)."""
        if isinstance(key, str):
            folded = key.casefold()
            for axis in self._axes:
                if axis.name.casefold() == folded:
                    return axis
            return None
        return self._axes[key]

    def contains(self, ref: AxisRef) -> bool:
        return self.get_axis_order(ref) >= 0

    __contains__ = contains

    def get_axis_order(self, ref: AxisRef) -> int:
        """Position of an axis (by identity or case-insensitive name), -1 if absent."""
        if isinstance(ref, Axis):
            for i, axis in enumerate(self._axes):
                if axis is ref:
                    return i
            ref = ref.name
        folded = str(ref).casefold()
        for i, axis in enumerate(self._axes):
            if axis.name.casefold() == folded:
                return i
        return -1

    def get_length(self, name: str) -> int:
        axis = self[name]
        return axis.count if axis is not None else 1

    def get_stride(self, ref: AxisRef) -> int:
        order = self._require_order(ref)
        return self._strides[order]

    def _require_order(self, ref: AxisRef) -> int:
        order = self.get_axis_order(ref)
        if order < 0:
            name = ref.name if isinstance(ref, Axis) else ref
            raise ValueError(f"Axis '{name}' is not part of this dimension structure")
        return order

    # ------------------------------------------------------------------
    # Index conversion
    # ------------------------------------------------------------------

    def get_frame_index_from(self, indices: Sequence[int]) -> int:
        """Flat frame index for a full per-axis index vector (0 when there are no axes)."""
        if len(indices) != len(self._axes):
            raise ValueError(f"Expected {len(self._axes)} axis indices, got {len(indices)}")
        frame_index = 0
        for axis, stride, idx in zip(self._axes, self._strides, indices):
            if idx < 0 or idx >= axis.count:
                raise IndexError(f"Index {idx} out of range for axis '{axis.name}' (count={axis.count})")
            frame_index += int(idx) * stride
        return frame_index

    get_frame_index_at = get_frame_index_from

    def copy_axis_indices_to(self, buffer, frame_index: int = -1) -> None:
        """Write the per-axis decomposition of ``frame_index`` into ``buffer``; -1 means the host's active index."""
        if frame_index < 0:
            frame_index = int(self._host.active_index)
        elif frame_index >= self.frame_count:
            raise IndexError(f"Frame index {frame_index} out of range (frame_count={self.frame_count})")
        if len(buffer) < len(self._axes):
            raise ValueError(f"Buffer too small: need {len(self._axes)}, got {len(buffer)}")
        for i, (axis, stride) in enumerate(zip(self._axes, self._strides)):
            buffer[i] = (frame_index // stride) % axis.count

    def get_axis_indices(self, frame_index: int = -1) -> List[int]:
        buffer = [0] * len(self._axes)
        self.copy_axis_indices_to(buffer, frame_index)
        return buffer

    def copy_axis_values_to(self, buffer) -> None:
        if len(buffer) < len(self._axes):
            raise ValueError(f"Buffer too small: need {len(self._axes)}, got {len(buffer)}")
        for i, axis in enumerate(self._axes):
            buffer[i] = axis.value

    def get_axis_values(self) -> List[float]:
        return [axis.value for axis in self._axes]

    def get_frame_index_for(self, ref: AxisRef, index: int) -> int:
        """Frame index with ``ref`` at ``index`` and every other axis at its current position."""
        order = self._require_order(ref)
        indices = [axis.index for axis in self._axes]
        indices[order] = index
        return self.get_frame_index_from(indices)

    def at(self, *indices: int, **named: int) -> int:
        """
        Frame index from positional indices (all axes) or keyword ones.

        Keyword form starts from the current indices and overrides the named
        axes, e.g. ``dims.at(Z=3, Time=0)``.
        """
        if indices and named:
            raise ValueError("Use either positional or keyword axis indices, not both")
        if indices:
            return self.get_frame_index_from(indices)
        current = [axis.index for axis in self._axes]
        for name, idx in named.items():
            current[self._require_order(name)] = idx
        return self.get_frame_index_from(current)

    def set_indices(self, *indices: int) -> None:
        """Move the host's active index to the given axis position."""
        self._host.active_index = self.get_frame_index_from(indices)

    # ------------------------------------------------------------------
    # Slicing helpers
    # ------------------------------------------------------------------

    def get_indices_for_slice(self, name: str, fixed_index: int) -> List[int]:
        """All frame indices whose coordinate on ``name`` equals ``fixed_index`` (linear scan)."""
        order = self._require_order(name)
        axis = self._axes[order]
        if fixed_index < 0 or fixed_index >= axis.count:
            raise IndexError(f"Index {fixed_index} out of range for axis '{axis.name}' (count={axis.count})")
        stride = self._strides[order]
        return [
            f for f in range(self.frame_count)
            if (f // stride) % axis.count == fixed_index
        ]

    def get_indices_along(self, name: str, base_indices: Optional[Sequence[int]] = None) -> List[int]:
        """
        Frame indices walking ``name`` from 0 to count-1 with every other
        axis fixed.

        ``base_indices`` holds either one entry per axis (the walked entry is
        ignored) or one per other axis; None uses the current positions.
        """
        order = self.get_axis_order(name)
        if order < 0:
            raise ValueError(f"Axis '{name}' is not found in dimensions")
        if base_indices is None:
            position = [axis.index for axis in self._axes]
        else:
            position = list(base_indices)
            if len(position) == len(self._axes) - 1:
                position.insert(order, 0)
            if len(position) != len(self._axes):
                raise ValueError(
                    f"base_indices must have {len(self._axes)} or {len(self._axes) - 1} entries, "
                    f"got {len(base_indices)}"
                )
        frames = []
        for i in range(self._axes[order].count):
            position[order] = i
            frames.append(self.get_frame_index_from(position))
        return frames

    def create_axes_without(self, name: str) -> List[Axis]:
        order = self._require_order(name)
        return [axis.clone() for i, axis in enumerate(self._axes) if i != order]

    def to_description(self) -> Tuple[List[tuple], List[int]]:
        """``([(name, count, min, max, unit, is_index_based), ...], strides)``."""
        return [axis.describe() for axis in self._axes], list(self._strides)

    def __repr__(self) -> str:
        parts = ", ".join(f"{a.name}:{a.count}" for a in self._axes)
        return f"DimensionStructure([{parts}], strides={self._strides})"


__all__ = ["DimensionStructure", "FrameHost", "SyncState"]
