"""
Multi-frame 2-D matrix container.

``MatrixData`` holds an X/Y pixel plane replicated over a flat frame
sequence.  Frames are addressed either by flat index or by per-axis
coordinates through its :class:`core.dimensions.DimensionStructure`, and
their buffers live in a :class:`data.frame_store.FrameStore` whose cached
value ranges are shared with every container aliasing the same handle.

Buffer layout: each frame is a flat, row-major array of length
``x_count * y_count``; pixel ``(ix, iy)`` sits at ``iy * x_count + ix``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import MutableMapping
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import ndimage

from core.axis import Axis
from core.dimensions import DimensionStructure
from core.events import EventBus
from core.numeric import MinMaxFinder, find_min_max, get_traits, is_supported_primitive
from core.parallel import parallel_for
from core.scale import Scale2D
from data.frame_store import FrameStore, ValueRange, stack_store

logger = logging.getLogger(__name__)

_NAN_PAIR: Tuple[List[float], List[float]] = ([math.nan], [math.nan])


class CaseInsensitiveDict(MutableMapping):
    """String-keyed mapping that compares keys case-insensitively but remembers the original spelling."""

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._store: Dict[str, Tuple[str, Any]] = {}
        if data:
            self.update(data)

    def __setitem__(self, key: str, value: Any) -> None:
        self._store[key.casefold()] = (key, value)

    def __getitem__(self, key: str) -> Any:
        return self._store[key.casefold()][1]

    def __delitem__(self, key: str) -> None:
        del self._store[key.casefold()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def copy(self) -> "CaseInsensitiveDict":
        return CaseInsensitiveDict(dict(self.items()))

    def __repr__(self) -> str:
        return f"CaseInsensitiveDict({dict(self.items())!r})"


class MatrixData:
    """
    Multi-frame 2-D data container.

    Parameters
    ----------
    x_count, y_count : int
        Plane size in pixels.
    frame_count : int
        Number of frames to allocate (zero-filled).
    dtype : numpy dtype
        Element type shared by every frame.
    axes : sequence of Axis, optional
        Frame axes (fastest-varying first).  Their count product must equal
        ``frame_count``.

    Raises
    ------
    ValueError
        Non-positive plane size or frame count.
    MemoryError
        Buffer allocation failed; the message carries the attempted size.
    """

    def __init__(
        self,
        x_count: int,
        y_count: int,
        frame_count: int = 1,
        dtype=np.float64,
        axes: Sequence[Axis] = (),
    ) -> None:
        x_count, y_count, frame_count = int(x_count), int(y_count), int(frame_count)
        _check_sizes(x_count, y_count, frame_count)

        store = FrameStore(dtype, x_count * y_count)
        try:
            store.allocate(frame_count)
        except MemoryError as exc:
            mb = store.estimated_bytes(frame_count) / (1024 * 1024)
            store.clear()
            raise MemoryError(
                f"Failed to allocate {frame_count} frame(s) of {x_count}x{y_count} "
                f"{np.dtype(dtype)} (~{mb:.1f} MB)"
            ) from exc

        self._init_from_store(store, Scale2D.pixels(x_count, y_count), axes)

    # ------------------------------------------------------------------
    # Alternative constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_store(
        cls,
        store: FrameStore,
        scale: Scale2D,
        axes: Sequence[Axis] = (),
    ) -> "MatrixData":
        """Wrap an existing store (its handles stay shared)."""
        if store.plane_size != scale.plane_size:
            raise ValueError(
                f"Store plane size {store.plane_size} does not match scale {scale.x_count}x{scale.y_count}"
            )
        _check_sizes(scale.x_count, scale.y_count, store.frame_count)
        obj = cls.__new__(cls)
        obj._init_from_store(store, scale, axes)
        return obj

    @classmethod
    def from_frames(
        cls,
        frames: Sequence[np.ndarray],
        x_count: Optional[int] = None,
        y_count: Optional[int] = None,
        min_values: Optional[Sequence[Sequence[float]]] = None,
        max_values: Optional[Sequence[Sequence[float]]] = None,
        axes: Sequence[Axis] = (),
        scale: Optional[Scale2D] = None,
    ) -> "MatrixData":
        """
        Build a container around existing buffers without copying them.

        2-D arrays supply their own ``(y, x)`` shape; flat arrays need
        ``x_count``/``y_count`` (or ``scale``).  Per-frame ``min_values`` /
        ``max_values`` seed the statistics cache so no rescan is needed.
        """
        frames = list(frames)
        if not frames:
            raise ValueError("At least one frame is required")
        first = np.asarray(frames[0])
        if scale is not None:
            x_count, y_count = scale.x_count, scale.y_count
        elif x_count is None or y_count is None:
            if first.ndim != 2:
                raise ValueError("x_count/y_count are required for flat buffers")
            y_count, x_count = first.shape
        _check_sizes(int(x_count), int(y_count), len(frames))
        if (min_values is None) != (max_values is None):
            raise ValueError("min_values and max_values must be given together")
        if min_values is not None and (len(min_values) != len(frames) or len(max_values) != len(frames)):
            raise ValueError("min_values/max_values must have one entry per frame")

        store = FrameStore(first.dtype, int(x_count) * int(y_count))
        for i, frame in enumerate(frames):
            mins = min_values[i] if min_values is not None else None
            maxs = max_values[i] if max_values is not None else None
            store.adopt(np.ascontiguousarray(frame), mins, maxs)

        if scale is None:
            scale = Scale2D.pixels(int(x_count), int(y_count))
        return cls.from_store(store, scale, axes)

    @classmethod
    def from_ndarray(cls, stack: np.ndarray, axes: Sequence[Axis] = (), scale: Optional[Scale2D] = None) -> "MatrixData":
        """Copy a ``(frames, y, x)`` or ``(y, x)`` array into a new container."""
        arr = np.array(stack, copy=True)
        if arr.ndim == 2:
            arr = arr[np.newaxis]
        if arr.ndim != 3:
            raise ValueError(f"Expected a 2-D or 3-D array, got shape {arr.shape}")
        return cls.from_frames(list(arr), axes=axes, scale=scale)

    @classmethod
    def from_scale(cls, scale: Scale2D, axes: Sequence[Axis] = (), dtype=np.float64) -> "MatrixData":
        frame_count = 1
        for axis in axes:
            frame_count *= axis.count
        md = cls(scale.x_count, scale.y_count, frame_count, dtype=dtype, axes=axes)
        md.set_xy_scale(scale.x_min, scale.x_max, scale.y_min, scale.y_max)
        md.x_unit, md.y_unit = scale.x_unit, scale.y_unit
        return md

    def _init_from_store(self, store: FrameStore, scale: Scale2D, axes: Sequence[Axis]) -> None:
        self._store = store
        self._x_count = scale.x_count
        self._y_count = scale.y_count
        self._x_min, self._x_max = scale.x_min, scale.x_max
        self._y_min, self._y_max = scale.y_min, scale.y_max
        self.x_unit = scale.x_unit
        self.y_unit = scale.y_unit
        self._active_index = 0
        self._min_max_finder: Optional[MinMaxFinder] = None
        self.metadata = CaseInsensitiveDict()
        self.active_index_changed = EventBus("active_index")
        self.dimensions_changed = EventBus("dimensions")
        self._dimensions = DimensionStructure(self, *axes)

    # ------------------------------------------------------------------
    # Shape / element type
    # ------------------------------------------------------------------

    @property
    def x_count(self) -> int:
        return self._x_count

    @property
    def y_count(self) -> int:
        return self._y_count

    @property
    def frame_count(self) -> int:
        return self._store.frame_count

    @property
    def dtype(self) -> np.dtype:
        return self._store.dtype

    @property
    def store(self) -> FrameStore:
        return self._store

    @property
    def value_mode_count(self) -> int:
        traits = get_traits(self.dtype)
        return traits.value_mode_count if traits is not None else 1

    # ------------------------------------------------------------------
    # Scale
    # ------------------------------------------------------------------

    @property
    def x_min(self) -> float:
        return self._x_min

    @x_min.setter
    def x_min(self, value: float) -> None:
        self._x_min = float(value)

    @property
    def x_max(self) -> float:
        return self._x_max

    @x_max.setter
    def x_max(self, value: float) -> None:
        self._x_max = float(value)

    @property
    def y_min(self) -> float:
        return self._y_min

    @y_min.setter
    def y_min(self, value: float) -> None:
        self._y_min = float(value)

    @property
    def y_max(self) -> float:
        return self._y_max

    @y_max.setter
    def y_max(self, value: float) -> None:
        self._y_max = float(value)

    @property
    def x_range(self) -> float:
        return self._x_max - self._x_min

    @property
    def y_range(self) -> float:
        return self._y_max - self._y_min

    @property
    def x_step(self) -> float:
        return 0.0 if self._x_count == 1 else self.x_range / (self._x_count - 1)

    @property
    def y_step(self) -> float:
        return 0.0 if self._y_count == 1 else self.y_range / (self._y_count - 1)

    def set_xy_scale(self, x_min: float, x_max: float, y_min: float, y_max: float) -> "MatrixData":
        self._x_min, self._x_max = float(x_min), float(x_max)
        self._y_min, self._y_max = float(y_min), float(y_max)
        return self

    def get_scale(self) -> Scale2D:
        return Scale2D(
            self._x_count, self._x_min, self._x_max,
            self._y_count, self._y_min, self._y_max,
            self.x_unit, self.y_unit,
        )

    def x_value(self, ix: int) -> float:
        return self.x_step * ix + self._x_min

    def y_value(self, iy: int) -> float:
        return self.y_step * iy + self._y_min

    def x_index_of(self, x: float, extend_range: bool = False) -> int:
        return _grid_index("x", x, self._x_min, self.x_step, self._x_count, extend_range)

    def y_index_of(self, y: float, extend_range: bool = False) -> int:
        return _grid_index("y", y, self._y_min, self.y_step, self._y_count, extend_range)

    # ------------------------------------------------------------------
    # Active frame / dimensions
    # ------------------------------------------------------------------

    @property
    def active_index(self) -> int:
        return self._active_index

    @active_index.setter
    def active_index(self, value: int) -> None:
        value = int(value)
        if value < 0 or value >= self.frame_count:
            raise IndexError(f"Active index {value} out of range (frame_count={self.frame_count})")
        if value == self._active_index:
            return
        old, self._active_index = self._active_index, value
        self.active_index_changed.fire(self, old, value)

    @property
    def dimensions(self) -> DimensionStructure:
        return self._dimensions

    @property
    def axes(self) -> List[Axis]:
        return self._dimensions.axes

    def define_dimensions(self, *axes: Axis) -> DimensionStructure:
        """
        Replace the frame axes.

        The previous structure's subscriptions are released before the new
        one is validated; if validation fails the previous axes are restored
        and the error propagates.
        """
        old = self._dimensions
        old_axes = old.axes
        old.close()
        try:
            self._dimensions = DimensionStructure(self, *axes)
        except ValueError:
            self._dimensions = DimensionStructure(self, *old_axes)
            raise
        self.dimensions_changed.fire(self, old, self._dimensions)
        return self._dimensions

    def _resolve_frame(self, frame_index: int) -> int:
        if frame_index is None or frame_index < 0:
            return self._active_index
        if frame_index >= self.frame_count:
            raise IndexError(f"Frame index {frame_index} out of range (frame_count={self.frame_count})")
        return frame_index

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def set_min_max_finder(self, finder: Optional[MinMaxFinder]) -> None:
        """
        Override the dtype's registered finder for this instance; ``None`` restores the default.

        Aliased frames share one statistics record, so a range produced by
        another finder is rescanned on read rather than trusted.
        """
        self._min_max_finder = finder

    def _find(self, buffer: np.ndarray):
        if self._min_max_finder is not None:
            return self._min_max_finder(buffer)
        return find_min_max(self.dtype, buffer)

    def _refreshed_range(self, frame_index: int) -> Optional[ValueRange]:
        """Range for a frame, rescanned if needed; ``None`` when no finder exists."""
        rng = self._store.range_at(frame_index)
        if rng.needs_refresh or rng.source is not self._min_max_finder:
            result = self._find(self._store.buffer_at(frame_index))
            if result is None:
                return None
            rng.set(*result, source=self._min_max_finder)
        return rng

    def get_value_range_list(self, frame_index: int = -1) -> Tuple[List[float], List[float]]:
        """All per-mode ``(mins, maxs)`` of a frame; ``([nan], [nan])`` when statistics are unavailable."""
        f = self._resolve_frame(frame_index)
        rng = self._refreshed_range(f)
        if rng is None:
            return list(_NAN_PAIR[0]), list(_NAN_PAIR[1])
        return list(rng.min_values), list(rng.max_values)

    def get_value_range(self, frame_index: int = -1, value_mode: int = 0) -> Tuple[float, float]:
        mins, maxs = self.get_value_range_list(frame_index)
        if value_mode < 0 or value_mode >= len(mins):
            if math.isnan(mins[0]):
                return math.nan, math.nan
            raise IndexError(f"Value mode {value_mode} out of range ({len(mins)} modes)")
        return mins[value_mode], maxs[value_mode]

    def get_min_value(self) -> float:
        return self.get_value_range_list(self._active_index)[0][0]

    def get_max_value(self) -> float:
        return self.get_value_range_list(self._active_index)[1][0]

    def get_value_range_along(
        self,
        axis: Union[Axis, str],
        fixed_coordinates: Optional[Sequence[int]] = None,
        value_mode: int = 0,
    ) -> Tuple[float, float]:
        """
        Min/max over every frame along ``axis``.

        Without ``fixed_coordinates`` the other axes stay at their current
        positions.  ``fixed_coordinates`` is either a full per-axis vector
        (the entry at ``axis`` is ignored) or one entry per *other* axis.
        """
        if self.frame_count == 1:
            return self.get_value_range(0, value_mode)

        dims = self._dimensions
        order = dims.get_axis_order(axis)
        if order < 0:
            name = axis.name if isinstance(axis, Axis) else axis
            raise ValueError(f"Axis '{name}' is not found in dimensions")
        frames = dims.get_indices_along(dims[order].name, fixed_coordinates)
        return self._reduce_ranges(frames, value_mode)

    def get_global_value_range(self, value_mode: int = 0) -> Tuple[float, float]:
        """Min/max across all frames; aliased frames are scanned once."""
        if self.frame_count == 0:
            raise ValueError("No frames available to calculate global min/max")
        frames = [self._store.first_index_of(h) for h in self._store.unique_handles()]
        return self._reduce_ranges(frames, value_mode)

    def _reduce_ranges(self, frames: Sequence[int], value_mode: int) -> Tuple[float, float]:
        lo, hi = math.inf, -math.inf
        for f in frames:
            rng = self._refreshed_range(f)
            if rng is None:
                return math.nan, math.nan
            lo = min(lo, rng.min_values[value_mode])
            hi = max(hi, rng.max_values[value_mode])
        return lo, hi

    def get_min_max_arrays(self) -> Tuple[List[List[float]], List[List[float]]]:
        """Per-frame ``(mins, maxs)`` side-channel for serializers."""
        mins, maxs = [], []
        for f in range(self.frame_count):
            lo, hi = self.get_value_range_list(f)
            mins.append(lo)
            maxs.append(hi)
        return mins, maxs

    def invalidate(self, frame_index: int = -1) -> None:
        self._store.range_at(self._resolve_frame(frame_index)).invalidate()

    def invalidate_all_frames(self) -> None:
        for handle in self._store.unique_handles():
            self._store.arena.value_range(handle).invalidate()

    # ------------------------------------------------------------------
    # Buffer access (every mutation-capable accessor invalidates)
    # ------------------------------------------------------------------

    def get_array(self, frame_index: int = -1) -> np.ndarray:
        """The live flat buffer of a frame; its statistics are marked stale."""
        f = self._resolve_frame(frame_index)
        self._store.range_at(f).invalidate()
        return self._store.buffer_at(f)

    def get_plane(self, frame_index: int = -1) -> np.ndarray:
        """Live ``(y_count, x_count)`` view of a frame buffer."""
        return self.get_array(frame_index).reshape(self._y_count, self._x_count)

    def set_array(
        self,
        src: np.ndarray,
        frame_index: int = -1,
        min_values: Optional[Sequence[float]] = None,
        max_values: Optional[Sequence[float]] = None,
    ) -> None:
        """Copy ``src`` into a frame; statistics are seeded when both lists are given, else invalidated."""
        f = self._resolve_frame(frame_index)
        flat = np.asarray(src).reshape(-1)
        if flat.shape[0] != self._store.plane_size:
            raise ValueError(f"Source length {flat.shape[0]} does not match plane size {self._store.plane_size}")
        np.copyto(self._store.buffer_at(f), flat, casting="same_kind")
        rng = self._store.range_at(f)
        if min_values is not None and max_values is not None:
            rng.set(min_values, max_values, source=self._min_max_finder)
        else:
            rng.invalidate()

    def get_raw_bytes(self, frame_index: int = -1) -> np.ndarray:
        """Writable ``uint8`` view over a frame's bytes."""
        return self.get_array(frame_index).view(np.uint8)

    def set_from_raw_bytes(self, data, frame_index: int = -1) -> None:
        f = self._resolve_frame(frame_index)
        buffer = self._store.buffer_at(f)
        raw = np.frombuffer(data, dtype=np.uint8)
        if raw.shape[0] != buffer.nbytes:
            raise ValueError(f"Expected {buffer.nbytes} bytes, got {raw.shape[0]}")
        buffer.view(np.uint8)[:] = raw
        self._store.range_at(f).invalidate()

    def as_ndarray(self) -> np.ndarray:
        """Copy of all frames as ``(frame_count, y_count, x_count)``."""
        return stack_store(self._store, (self._y_count, self._x_count))

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------

    def _offset(self, ix: int, iy: int) -> int:
        if ix < 0 or ix >= self._x_count or iy < 0 or iy >= self._y_count:
            raise IndexError(f"Pixel ({ix}, {iy}) outside {self._x_count}x{self._y_count}")
        return iy * self._x_count + ix

    def get_value_at_typed(self, ix: int, iy: int, frame_index: int = -1):
        f = self._resolve_frame(frame_index)
        return self._store.buffer_at(f)[self._offset(ix, iy)]

    def get_value_at(self, ix: int, iy: int, frame_index: int = -1) -> float:
        traits = get_traits(self.dtype)
        if traits is None:
            raise TypeError(f"No numeric conversion for dtype {self.dtype}")
        return traits.to_double(self.get_value_at_typed(ix, iy, frame_index))

    def set_value_at(self, ix: int, iy: int, value, frame_index: int = -1) -> None:
        f = self._resolve_frame(frame_index)
        self._store.buffer_at(f)[self._offset(ix, iy)] = value
        self._store.range_at(f).invalidate()

    def _frame_from_key(self, key: tuple) -> Tuple[int, int, int]:
        if not isinstance(key, tuple) or len(key) < 2:
            raise IndexError("Index with (ix, iy), (ix, iy, frame) or (ix, iy, *axis_indices)")
        ix, iy, *rest = key
        if not rest:
            frame = self._active_index
        elif len(rest) == 1:
            frame = self._resolve_frame(int(rest[0]))
        else:
            frame = self._dimensions.get_frame_index_from(rest)
        return int(ix), int(iy), frame

    def __getitem__(self, key: tuple):
        ix, iy, f = self._frame_from_key(key)
        return self.get_value_at_typed(ix, iy, f)

    def __setitem__(self, key: tuple, value) -> None:
        ix, iy, f = self._frame_from_key(key)
        self.set_value_at(ix, iy, value, f)

    def get_value(self, x: float, y: float, frame_index: int = -1, interpolate: bool = False):
        """
        Value at physical ``(x, y)``.

        Nearest-neighbour by default (raises ``IndexError`` outside the
        plane).  With ``interpolate=True`` the position is clamped to the
        plane and sampled bilinearly; complex data interpolates the real and
        imaginary parts independently.
        """
        f = self._resolve_frame(frame_index)
        if not interpolate:
            return self._store.buffer_at(f)[self.x_index_of(x) + self.y_index_of(y) * self._x_count]

        traits = get_traits(self.dtype)
        if traits is None or not (traits.is_complex or is_supported_primitive(self.dtype)):
            raise TypeError(f"Interpolation is not supported for dtype {self.dtype}")

        plane = self._store.buffer_at(f).reshape(self._y_count, self._x_count)
        iix = 0.0 if self.x_step == 0 else (x - self._x_min) / self.x_step
        iiy = 0.0 if self.y_step == 0 else (y - self._y_min) / self.y_step
        coords = np.array(
            [[min(max(iiy, 0.0), self._y_count - 1.0)], [min(max(iix, 0.0), self._x_count - 1.0)]]
        )
        if traits.is_complex:
            re = ndimage.map_coordinates(plane.real.astype(np.float64), coords, order=1, mode="nearest")[0]
            im = ndimage.map_coordinates(plane.imag.astype(np.float64), coords, order=1, mode="nearest")[0]
            return self.dtype.type(complex(re, im))
        v = ndimage.map_coordinates(plane.astype(np.float64), coords, order=1, mode="nearest")[0]
        return traits.from_double(float(v))

    def get_value_as_double(self, x: float, y: float, frame_index: int = -1, interpolate: bool = False) -> float:
        if not is_supported_primitive(self.dtype):
            raise TypeError(f"get_value_as_double needs a primitive numeric dtype, not {self.dtype}")
        if not interpolate:
            return float(self.get_value(x, y, frame_index))
        f = self._resolve_frame(frame_index)
        plane = self._store.buffer_at(f).reshape(self._y_count, self._x_count).astype(np.float64)
        iix = 0.0 if self.x_step == 0 else (x - self._x_min) / self.x_step
        iiy = 0.0 if self.y_step == 0 else (y - self._y_min) / self.y_step
        coords = np.array(
            [[min(max(iiy, 0.0), self._y_count - 1.0)], [min(max(iix, 0.0), self._x_count - 1.0)]]
        )
        return float(ndimage.map_coordinates(plane, coords, order=1, mode="nearest")[0])

    def set_value(self, x: float, y: float, frame_index: int, value) -> None:
        self.set_value_at(self.x_index_of(x), self.y_index_of(y), value, frame_index)

    # ------------------------------------------------------------------
    # Bulk helpers
    # ------------------------------------------------------------------

    def set(self, func: Callable[[np.ndarray, np.ndarray, np.ndarray, np.ndarray], Any], frame_index: int = -1) -> "MatrixData":
        """
        Fill a frame from ``func(ix, iy, x, y)``.

        ``func`` is evaluated once on ``(y_count, x_count)`` coordinate
        grids and must return something broadcastable to that shape.
        """
        iy, ix = np.indices((self._y_count, self._x_count))
        x = self._x_min + ix * self.x_step
        y = self._y_min + iy * self.y_step
        values = np.broadcast_to(np.asarray(func(ix, iy, x, y)), (self._y_count, self._x_count))
        plane = self.get_plane(frame_index)
        plane[...] = values
        return self

    def for_each(self, action: Callable[[int, np.ndarray], None], parallel: bool = True) -> "MatrixData":
        """
        Call ``action(frame_index, buffer)`` for every frame and refresh its
        statistics afterwards.  Parallel calls must not touch the same buffer
        from two frames (aliased frames are visited once per reference).
        """
        def body(work):
            for f in work:
                action(f, self.get_array(f))
                self._refreshed_range(f)

        parallel_for(self.frame_count, body, parallel=parallel and self.frame_count > 1)
        return self

    # ------------------------------------------------------------------
    # Copies, views, operations
    # ------------------------------------------------------------------

    def clone(self) -> "MatrixData":
        """Deep copy: fresh buffers and statistics, cloned axes, copied metadata."""
        store = self._store.copy(deep=True)
        md = MatrixData.from_store(store, self.get_scale(), Axis.create_from(self.axes))
        md.metadata = self.metadata.copy()
        md._min_max_finder = self._min_max_finder
        md.active_index = self._active_index
        return md

    duplicate = clone

    def as_volume(self, axis_name: str = "", base_indices: Optional[Sequence[int]] = None):
        """
        Zero-copy 3-D view along ``axis_name`` (first axis when empty) with
        the other axes fixed at ``base_indices`` (current positions when None).
        """
        from processors.volume import VolumeAccessor

        dims = self._dimensions
        if dims.axis_count == 0:
            return VolumeAccessor(self._store.buffers(), self.get_scale(), Axis.frame(self.frame_count))
        if not axis_name:
            axis_name = dims[0].name
        frames = dims.get_indices_along(axis_name, base_indices)
        axis = dims[dims.get_axis_order(axis_name)].clone()
        return VolumeAccessor([self._store.buffer_at(f) for f in frames], self.get_scale(), axis)

    def apply(self, operation) -> Any:
        """Run an operation record (see :mod:`processors.operations`) against this container."""
        return operation.execute(self)

    def dispose(self) -> None:
        """Release dimension subscriptions and this container's buffer references."""
        self._dimensions.close()
        self._store.clear()

    def __repr__(self) -> str:
        return (
            f"MatrixData({self._x_count}x{self._y_count}, frames={self.frame_count}, "
            f"dtype={self.dtype}, dims={self._dimensions!r})"
        )


def _check_sizes(x_count: int, y_count: int, frame_count: int) -> None:
    if x_count <= 0 or y_count <= 0:
        raise ValueError(f"Plane size must be positive, got {x_count}x{y_count}")
    if frame_count <= 0:
        raise ValueError(f"Frame count must be positive, got {frame_count}")


def _grid_index(label: str, value: float, vmin: float, step: float, count: int, extend_range: bool) -> int:
    """
    Nearest pixel index for a physical coordinate.

    With ``extend_range`` an infinite coordinate maps to -1 or ``count``,
    just past the matching edge.
    """
    value = float(value)
    if math.isnan(value):
        raise ValueError(f"Cannot map NaN to a pixel index along {label}")
    if step == 0:
        return 0
    pos = (value - vmin) / step
    if math.isinf(pos):
        idx = -1 if pos < 0 else count
    else:
        idx = int(round(pos))
    if not extend_range and (idx < 0 or idx >= count):
        raise IndexError(f"{label}={value} maps to i{label}={idx}, outside [0, {count})")
    return idx


__all__ = ["MatrixData", "CaseInsensitiveDict"]
