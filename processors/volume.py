"""
3-D view over a list of frame buffers.

A :class:`VolumeAccessor` binds ``(frames, 2-D scale, depth axis)`` into an
``(x, y, z)`` addressable volume and produces brand-new
:class:`data.matrix.MatrixData` results:

* ``restack``        - full-copy reorientation around X, Y or Z
* ``slice_at``       - one plane orthogonal to an axis
* ``reduce_along``   - user reduction over a gathered, contiguous vector
* ``create_projection`` - vectorised max / min / average fast path

The accessor borrows the buffers; it never mutates them and keeps no state
between calls.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from config import RESTACK_BLOCK_SIZE
from core.axis import Axis
from core.parallel import ScratchPool, WorkRange, parallel_for
from core.scale import Scale2D


class ViewFrom(Enum):
    X = "x"
    Y = "y"
    Z = "z"


class ProjectionMode(Enum):
    MAXIMUM = "max"
    MINIMUM = "min"
    AVERAGE = "avg"


ReduceFn = Callable[[int, int, float, float, Axis, np.ndarray], float]


_pools: Dict[np.dtype, ScratchPool] = {}
_pools_lock = threading.Lock()


def _scratch_pool(dtype) -> ScratchPool:
    dt = np.dtype(dtype)
    with _pools_lock:
        pool = _pools.get(dt)
        if pool is None:
            pool = _pools[dt] = ScratchPool(dt)
        return pool


def _as_view(view) -> ViewFrom:
    if isinstance(view, ViewFrom):
        return view
    try:
        return ViewFrom(str(view).lower())
    except ValueError:
        raise ValueError(f"Unknown view direction: {view!r}") from None


def _as_mode(mode) -> ProjectionMode:
    if isinstance(mode, ProjectionMode):
        return mode
    try:
        return ProjectionMode(str(mode).lower())
    except ValueError:
        raise ValueError(f"Unknown projection mode: {mode!r}") from None


class VolumeAccessor:
    """
    Read-only 3-D view.

    Parameters
    ----------
    frames : sequence of ndarray
        Flat row-major buffers of length ``scale.x_count * scale.y_count``.
    scale : Scale2D
        X/Y scale; gives ``width`` and ``height``.
    axis : Axis
        Descriptor of the depth direction (``depth == len(frames)``).
    """

    def __init__(self, frames: Sequence[np.ndarray], scale: Scale2D, axis: Axis) -> None:
        self._frames: List[np.ndarray] = list(frames)
        if not self._frames:
            raise ValueError("A volume needs at least one frame")
        plane = scale.plane_size
        for i, frame in enumerate(self._frames):
            if frame.shape[0] != plane:
                raise ValueError(f"Frame {i} has length {frame.shape[0]}, expected {plane}")
        self._scale = scale
        self._axis = axis
        self.width = scale.x_count
        self.height = scale.y_count
        self.depth = len(self._frames)

    @property
    def scale(self) -> Scale2D:
        return self._scale

    @property
    def axis(self) -> Axis:
        return self._axis

    @property
    def dtype(self) -> np.dtype:
        return self._frames[0].dtype

    def __getitem__(self, key):
        # Precondition: indices are in range.  Unchecked on purpose.
        ix, iy, iz = key
        return self._frames[iz][iy * self.width + ix]

    def to_ndarray(self) -> np.ndarray:
        """Copy as ``(depth, height, width)``."""
        return np.stack([f.reshape(self.height, self.width) for f in self._frames])

    # ------------------------------------------------------------------
    # Scale helpers
    # ------------------------------------------------------------------

    def _x_axis(self) -> Axis:
        s = self._scale
        return Axis(self.width, s.x_min, s.x_max, name="X", unit=s.x_unit)

    def _y_axis(self) -> Axis:
        s = self._scale
        return Axis(self.height, s.y_min, s.y_max, name="Y", unit=s.y_unit)

    def _plane_scale(self, view: ViewFrom) -> Scale2D:
        """Scale of a plane orthogonal to ``view``."""
        s, a = self._scale, self._axis
        if view is ViewFrom.X:
            return Scale2D(self.height, s.y_min, s.y_max, self.depth, a.min, a.max, s.y_unit, a.unit)
        if view is ViewFrom.Y:
            return Scale2D(self.width, s.x_min, s.x_max, self.depth, a.min, a.max, s.x_unit, a.unit)
        return s

    @staticmethod
    def _build(planes: np.ndarray, scale: Scale2D, axes: Sequence[Axis] = ()):
        from data.matrix import MatrixData

        flat = planes.reshape(planes.shape[0], -1)
        return MatrixData.from_frames(list(flat), scale=scale, axes=axes)

    # ------------------------------------------------------------------
    # Restack
    # ------------------------------------------------------------------

    def restack(self, view) -> "MatrixData":
        """
        Reorient so that ``view`` becomes the new depth direction.

        Always a full copy: X and Y change element adjacency, Z duplicates
        the frames as they are.
        """
        view = _as_view(view)
        w, h, d = self.width, self.height, self.depth

        if view is ViewFrom.Z:
            out = self.to_ndarray()
            return self._build(out, self._scale, [self._axis.clone()])

        if view is ViewFrom.X:
            out = np.empty((w, d, h), dtype=self.dtype)

            def body(work: WorkRange) -> None:
                for z, frame in enumerate(self._frames):
                    plane = frame.reshape(h, w)
                    out[work.start:work.stop, z, :] = plane[:, work.start:work.stop].T

            parallel_for(w, body, block_size=RESTACK_BLOCK_SIZE)
            return self._build(out, self._plane_scale(ViewFrom.X), [self._x_axis()])

        out = np.empty((h, d, w), dtype=self.dtype)

        def body_y(work: WorkRange) -> None:
            for z, frame in enumerate(self._frames):
                plane = frame.reshape(h, w)
                out[work.start:work.stop, z, :] = plane[work.start:work.stop, :]

        parallel_for(h, body_y, block_size=RESTACK_BLOCK_SIZE)
        return self._build(out, self._plane_scale(ViewFrom.Y), [self._y_axis()])

    # ------------------------------------------------------------------
    # Slice
    # ------------------------------------------------------------------

    def slice_at(self, view, index: int) -> "MatrixData":
        """
        Single plane orthogonal to ``view`` at ``index``.

        Raises ``IndexError`` when ``index`` is outside ``[0, width)``,
        ``[0, height)`` or ``[0, depth)`` respectively.
        """
        view = _as_view(view)
        w, h, d = self.width, self.height, self.depth
        limit = {ViewFrom.X: w, ViewFrom.Y: h, ViewFrom.Z: d}[view]
        if index < 0 or index >= limit:
            raise IndexError(f"Slice index {index} out of range for {view.name} (size={limit})")

        if view is ViewFrom.Z:
            plane = self._frames[index].copy()
            return self._build(plane[np.newaxis], self._scale)

        out = np.empty((d, h if view is ViewFrom.X else w), dtype=self.dtype)
        for z, frame in enumerate(self._frames):
            plane = frame.reshape(h, w)
            out[z] = plane[:, index] if view is ViewFrom.X else plane[index, :]
        return self._build(out[np.newaxis], self._plane_scale(view))

    # ------------------------------------------------------------------
    # Reductions
    # ------------------------------------------------------------------

    def reduce_along(
        self,
        view,
        fn: ReduceFn,
        dtype=None,
        parallel: bool = True,
        work_dtype=None,
    ) -> "MatrixData":
        """
        Collapse ``view`` with ``fn(ix, iy, x, y, axis, values)``.

        ``values`` is a contiguous scratch vector rented from a pool for the
        duration of one output row and returned afterwards; ``fn`` must not
        keep a reference to it.  It holds the frames' own element type unless
        ``work_dtype`` requests a conversion such as ``np.float64``.  ``(ix, iy)`` and ``(x, y)`` are the output
        pixel's grid and physical coordinates; ``axis`` describes the
        collapsed direction.  Rows run in parallel unless ``parallel=False``.
        """
        view = _as_view(view)
        w, h, d = self.width, self.height, self.depth
        out_scale = self._plane_scale(view)
        out_w, out_h = out_scale.x_count, out_scale.y_count
        out = np.empty((out_h, out_w), dtype=dtype or self.dtype)
        pool = _scratch_pool(self.dtype if work_dtype is None else work_dtype)

        if view is ViewFrom.X:
            collapsed, n = self._x_axis(), w
        elif view is ViewFrom.Y:
            collapsed, n = self._y_axis(), h
        else:
            collapsed, n = self._axis, d

        def body(work: WorkRange) -> None:
            vec = pool.rent(n)
            row = pool.rent(d * w) if view is ViewFrom.Z else None
            try:
                values = vec[:n]
                for oy in work:
                    y = out_scale.y_value(oy)
                    if view is ViewFrom.Z:
                        block = row[: d * w].reshape(d, w)
                        for z, frame in enumerate(self._frames):
                            block[z] = frame[oy * w:(oy + 1) * w]
                    else:
                        plane = self._frames[oy].reshape(h, w)
                    for ox in range(out_w):
                        if view is ViewFrom.X:
                            values[:] = plane[ox, :]
                        elif view is ViewFrom.Y:
                            values[:] = plane[:, ox]
                        else:
                            values[:] = block[:, ox]
                        out[oy, ox] = fn(ox, oy, out_scale.x_value(ox), y, collapsed, values)
            finally:
                pool.give_back(vec)
                if row is not None:
                    pool.give_back(row)

        parallel_for(out_h, body, parallel=parallel)
        return self._build(out[np.newaxis], out_scale)

    def create_projection(self, view, mode=ProjectionMode.MAXIMUM) -> "MatrixData":
        """
        Built-in max / min / average projection along ``view``.

        Averages accumulate in float64 and are cast back to the element
        type (integers truncate toward zero).
        """
        view = _as_view(view)
        mode = _as_mode(mode)
        if self.dtype.kind == "c" and mode is not ProjectionMode.AVERAGE:
            raise TypeError("Maximum/minimum projections are undefined for complex data")

        w, h, d = self.width, self.height, self.depth
        out_scale = self._plane_scale(view)

        if view is ViewFrom.Z:
            if mode is ProjectionMode.AVERAGE:
                acc = np.zeros(h * w, dtype=np.complex128 if self.dtype.kind == "c" else np.float64)
                for frame in self._frames:
                    acc += frame
                result = (acc / d).astype(self.dtype)
            else:
                op = np.maximum if mode is ProjectionMode.MAXIMUM else np.minimum
                result = self._frames[0].copy()
                for frame in self._frames[1:]:
                    op(result, frame, out=result)
            return self._build(result[np.newaxis], out_scale)

        out = np.empty((d, h if view is ViewFrom.X else w), dtype=self.dtype)
        reduce_axis = 1 if view is ViewFrom.X else 0

        def body(work: WorkRange) -> None:
            for z in work:
                plane = self._frames[z].reshape(h, w)
                if mode is ProjectionMode.MAXIMUM:
                    out[z] = plane.max(axis=reduce_axis)
                elif mode is ProjectionMode.MINIMUM:
                    out[z] = plane.min(axis=reduce_axis)
                else:
                    out[z] = plane.mean(axis=reduce_axis, dtype=np.float64 if self.dtype.kind != "c" else None).astype(self.dtype)

        parallel_for(d, body)
        return self._build(out[np.newaxis], out_scale)

    def __repr__(self) -> str:
        return f"VolumeAccessor({self.width}x{self.height}x{self.depth}, axis={self._axis.name!r})"


__all__ = ["VolumeAccessor", "ViewFrom", "ProjectionMode"]
