"""
Frame-level reshaping of :class:`data.matrix.MatrixData` containers.

Reshaping functions return a new container.  With ``deep_copy=False`` results
alias the source buffers (and therefore share their cached statistics);
with ``deep_copy=True`` they own fresh copies.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from scipy import ndimage

from core.axis import Axis
from core.scale import Scale2D
from data.frame_store import FrameStore
from data.matrix import MatrixData

logger = logging.getLogger(__name__)


def _derive(
    src: MatrixData,
    store: FrameStore,
    axes: Sequence[Axis] = (),
    scale: Optional[Scale2D] = None,
) -> MatrixData:
    result = MatrixData.from_store(store, scale or src.get_scale(), axes)
    result.metadata = src.metadata.copy()
    return result


def _from_planes(src: MatrixData, planes: List[np.ndarray], scale: Scale2D, axes: Sequence[Axis] = ()) -> MatrixData:
    result = MatrixData.from_frames([np.ascontiguousarray(p) for p in planes], scale=scale, axes=axes)
    result.metadata = src.metadata.copy()
    return result


# ---------------------------------------------------------------------------
# Frame selection
# ---------------------------------------------------------------------------

def reorder(src: MatrixData, order: Sequence[int], deep_copy: bool = False) -> MatrixData:
    """
    New container whose frame ``i`` is ``src`` frame ``order[i]``.

    Entries may repeat.  The result has a single "Frame" axis.
    """
    order = [int(i) for i in order]
    if not order:
        raise ValueError("Reorder list is empty")
    for i in order:
        if i < 0 or i >= src.frame_count:
            raise IndexError(f"Frame index {i} out of range (frame_count={src.frame_count})")
    store = src.store.subset(order, deep=deep_copy)
    return _derive(src, store)


def reorder_axes(src: MatrixData, axis_names: Sequence[str], deep_copy: bool = False) -> MatrixData:
    """
    Permute the axis order; the first name becomes the fastest-varying axis
    and frames are re-sorted to match.
    """
    dims = src.dimensions
    orders = []
    for name in axis_names:
        order = dims.get_axis_order(name)
        if order < 0:
            raise ValueError(f"Axis '{name}' is not found in dimensions")
        orders.append(order)
    if sorted(orders) != list(range(dims.axis_count)):
        raise ValueError(f"Axis order {list(axis_names)} must name every axis exactly once")

    new_axes = Axis.create_from(dims[o] for o in orders)
    new_strides = []
    product = 1
    for axis in new_axes:
        new_strides.append(product)
        product *= axis.count

    frame_order = []
    old_indices = [0] * dims.axis_count
    for f in range(src.frame_count):
        for k, (axis, stride) in enumerate(zip(new_axes, new_strides)):
            old_indices[orders[k]] = (f // stride) % axis.count
        frame_order.append(dims.get_frame_index_from(old_indices))

    store = src.store.subset(frame_order, deep=deep_copy)
    return _derive(src, store, new_axes)


def select_by(src: MatrixData, axis_name: str, index: int, deep_copy: bool = False) -> MatrixData:
    """Frames where ``axis_name == index``; that axis is dropped from the result."""
    dims = src.dimensions
    frames = dims.get_indices_for_slice(axis_name, index)
    store = src.store.subset(frames, deep=deep_copy)
    return _derive(src, store, dims.create_axes_without(axis_name))


def slice_at(src: MatrixData, frame_index: int) -> MatrixData:
    """Deep copy of a single frame."""
    if frame_index < 0 or frame_index >= src.frame_count:
        raise IndexError(f"Frame index {frame_index} out of range (frame_count={src.frame_count})")
    return _derive(src, src.store.subset([frame_index], deep=True))


def slice_at_coords(src: MatrixData, **coords: int) -> MatrixData:
    """Deep copy of the frame at the given axis coordinates (others at their current index)."""
    return slice_at(src, src.dimensions.at(**coords))


def extract_along(
    src: MatrixData,
    axis_name: str,
    base_indices: Optional[Sequence[int]] = None,
    deep_copy: bool = False,
) -> MatrixData:
    """Frames along one axis with every other axis fixed at ``base_indices``."""
    dims = src.dimensions
    frames = dims.get_indices_along(axis_name, base_indices)
    target = dims[dims.get_axis_order(axis_name)]
    store = src.store.subset(frames, deep=deep_copy)
    return _derive(src, store, [target.clone()])


# ---------------------------------------------------------------------------
# Pixel transforms
# ---------------------------------------------------------------------------

def transpose(src: MatrixData) -> MatrixData:
    """Swap X and Y in every frame (deep), including scale and units."""
    s = src.get_scale()
    scale = Scale2D(s.y_count, s.y_min, s.y_max, s.x_count, s.x_min, s.x_max, s.y_unit, s.x_unit)
    planes = [
        src.store.buffer_at(f).reshape(src.y_count, src.x_count).T
        for f in range(src.frame_count)
    ]
    return _from_planes(src, planes, scale, Axis.create_from(src.axes))


def map(
    src: MatrixData,
    converter: Callable[[np.ndarray, np.ndarray, np.ndarray, int], np.ndarray],
    dtype=None,
) -> MatrixData:
    """
    Element-wise conversion ``converter(values, ix, iy, frame_index)``.

    ``values``, ``ix`` and ``iy`` are ``(y_count, x_count)`` arrays; the
    returned array's dtype (or ``dtype``) becomes the result's element type.
    """
    iy, ix = np.indices((src.y_count, src.x_count))
    planes = []
    for f in range(src.frame_count):
        values = src.store.buffer_at(f).reshape(src.y_count, src.x_count)
        out = np.broadcast_to(np.asarray(converter(values, ix, iy, f)), values.shape)
        planes.append(np.array(out, dtype=dtype or out.dtype))
    return _from_planes(src, planes, src.get_scale(), Axis.create_from(src.axes))


def reduce(src: MatrixData, reducer: Callable[[np.ndarray], np.ndarray]) -> MatrixData:
    """Collapse all frames: ``reducer(stack)`` with ``stack`` shaped ``(frames, y, x)``."""
    plane = np.asarray(reducer(src.as_ndarray()))
    if plane.shape != (src.y_count, src.x_count):
        raise ValueError(f"Reducer returned shape {plane.shape}, expected {(src.y_count, src.x_count)}")
    return _from_planes(src, [plane], src.get_scale())


def reduce_axis(src: MatrixData, axis_name: str, reducer: Callable[[np.ndarray], np.ndarray]) -> MatrixData:
    """Collapse one axis; the remaining axes are kept."""
    dims = src.dimensions
    order = dims.get_axis_order(axis_name)
    if order < 0:
        raise ValueError(f"Axis '{axis_name}' is not found in dimensions")
    axis = dims[order]
    stride = dims.strides[order]
    shape = (src.y_count, src.x_count)

    planes = []
    for base in dims.get_indices_for_slice(axis_name, 0):
        stack = np.stack([src.store.buffer_at(base + i * stride).reshape(shape) for i in range(axis.count)])
        plane = np.asarray(reducer(stack))
        if plane.shape != shape:
            raise ValueError(f"Reducer returned shape {plane.shape}, expected {shape}")
        planes.append(plane)
    return _from_planes(src, planes, src.get_scale(), dims.create_axes_without(axis_name))


# ---------------------------------------------------------------------------
# Cropping
# ---------------------------------------------------------------------------

def crop(src: MatrixData, x: int, y: int, width: int, height: int) -> MatrixData:
    """Deep copy of the pixel rectangle ``[x, x+width) x [y, y+height)``."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Crop size must be positive, got {width}x{height}")
    if x < 0 or y < 0 or x + width > src.x_count or y + height > src.y_count:
        raise IndexError(
            f"Crop rectangle ({x}, {y}, {width}, {height}) exceeds {src.x_count}x{src.y_count}"
        )
    s = src.get_scale()
    scale = Scale2D(
        width, src.x_value(x), src.x_value(x + width - 1),
        height, src.y_value(y), src.y_value(y + height - 1),
        s.x_unit, s.y_unit,
    )
    planes = [
        src.store.buffer_at(f).reshape(src.y_count, src.x_count)[y:y + height, x:x + width]
        for f in range(src.frame_count)
    ]
    return _from_planes(src, planes, scale, Axis.create_from(src.axes))


def crop_by_coordinates(src: MatrixData, x_min: float, x_max: float, y_min: float, y_max: float) -> MatrixData:
    """Crop by physical bounds; bounds outside the plane are clamped to its edge."""
    ix0, ix1 = sorted((src.x_index_of(x_min, True), src.x_index_of(x_max, True)))
    iy0, iy1 = sorted((src.y_index_of(y_min, True), src.y_index_of(y_max, True)))
    ix0, iy0 = max(ix0, 0), max(iy0, 0)
    ix1, iy1 = min(ix1, src.x_count - 1), min(iy1, src.y_count - 1)
    if ix0 > ix1 or iy0 > iy1:
        raise ValueError("Crop bounds do not overlap the data")
    return crop(src, ix0, iy0, ix1 - ix0 + 1, iy1 - iy0 + 1)


def crop_center(src: MatrixData, width: int, height: int) -> MatrixData:
    return crop(src, (src.x_count - width) // 2, (src.y_count - height) // 2, width, height)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

class ProfileMode(Enum):
    NEAREST = "nearest"
    BILINEAR = "bilinear"


def line_profile(
    src: MatrixData,
    start: Tuple[float, float],
    end: Tuple[float, float],
    frame_index: int = -1,
    mode=ProfileMode.BILINEAR,
    samples: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Values along the segment ``start -> end`` (physical coordinates).

    Returns ``(positions, values)`` as float64 arrays, where ``positions``
    is the physical distance from ``start``.  ``samples`` defaults to one per
    pixel crossed along the longer direction.  Points outside the plane are
    clamped to its edge.
    """
    mode = mode if isinstance(mode, ProfileMode) else ProfileMode(str(mode).lower())
    if src.dtype.kind not in "biuf":
        raise TypeError(f"Line profiles need real numeric data, not {src.dtype}")
    f = src.active_index if frame_index < 0 else frame_index
    plane = src.store.buffer_at(f).reshape(src.y_count, src.x_count)

    (x0, y0), (x1, y1) = start, end
    px0 = 0.0 if src.x_step == 0 else (x0 - src.x_min) / src.x_step
    px1 = 0.0 if src.x_step == 0 else (x1 - src.x_min) / src.x_step
    py0 = 0.0 if src.y_step == 0 else (y0 - src.y_min) / src.y_step
    py1 = 0.0 if src.y_step == 0 else (y1 - src.y_min) / src.y_step
    if samples is None:
        samples = int(np.ceil(max(abs(px1 - px0), abs(py1 - py0)))) + 1
    if samples < 1:
        raise ValueError(f"samples must be positive, got {samples}")

    t = np.linspace(0.0, 1.0, samples) if samples > 1 else np.zeros(1)
    ix = np.clip(px0 + t * (px1 - px0), 0.0, src.x_count - 1.0)
    iy = np.clip(py0 + t * (py1 - py0), 0.0, src.y_count - 1.0)
    if mode is ProfileMode.NEAREST:
        values = plane[np.rint(iy).astype(np.intp), np.rint(ix).astype(np.intp)].astype(np.float64)
    else:
        values = ndimage.map_coordinates(plane.astype(np.float64), np.vstack([iy, ix]), order=1, mode="nearest")
    positions = t * float(np.hypot(x1 - x0, y1 - y0))
    return positions, values


__all__ = [
    "reorder",
    "reorder_axes",
    "select_by",
    "slice_at",
    "slice_at_coords",
    "extract_along",
    "transpose",
    "map",
    "reduce",
    "reduce_axis",
    "crop",
    "crop_by_coordinates",
    "crop_center",
    "ProfileMode",
    "line_profile",
]
