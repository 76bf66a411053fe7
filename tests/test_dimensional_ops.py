import numpy as np
import pytest

from core.axis import Axis
from core.scale import Scale2D
from data.matrix import MatrixData
from processors import dimensional
from processors.operations import (
    CropOperation,
    ProjectionOperation,
    ReorderOperation,
    SelectByOperation,
    TransposeOperation,
    operation_from_dict,
    operation_to_dict,
)
from processors.volume import ProjectionMode, ViewFrom


def _zt_counting(x_count=2, y_count=2):
    """Z(2) x T(3) container whose frame f is filled with the value f."""
    md = MatrixData(x_count, y_count, 6, axes=[Axis.z(2, 0.0, 1.0), Axis.time(3, 0.0, 2.0)])
    md.for_each(lambda f, buf: buf.fill(f))
    return md


def _frame_values(md):
    return [md.get_value_at(0, 0, f) for f in range(md.frame_count)]


# ---------------------------------------------------------------------------
# reorder / aliasing
# ---------------------------------------------------------------------------

def test_reorder_aliases_buffers():
    frames = [np.zeros((2, 2)), np.ones((2, 2)), np.full((2, 2), 2.0)]
    src = MatrixData.from_frames(frames)
    r = dimensional.reorder(src, [0, 0, 1])

    r.set_value_at(0, 0, 42.0, 0)

    assert src.get_value_at(0, 0, 0) == 42.0
    assert r.get_value_at(0, 0, 1) == 42.0
    assert r.frame_count == 3
    assert [a.name for a in r.axes] == ["Frame"]


def test_aliased_frames_share_statistics():
    src = MatrixData.from_frames([np.zeros((2, 2)), np.ones((2, 2))])
    assert src.get_value_range(0) == (0.0, 0.0)
    r = dimensional.reorder(src, [0, 0, 1])
    assert r.store.range_at(0) is src.store.range_at(0)

    r.get_array(1)[:] = 5.0
    assert not src.store.range_at(0).is_valid
    assert src.get_value_range(0) == (5.0, 5.0)
    assert r.get_global_value_range() == (1.0, 5.0)


def test_deep_reorder_is_independent():
    src = MatrixData.from_frames([np.zeros((2, 2)), np.ones((2, 2))])
    assert src.get_value_range(0) == (0.0, 0.0)
    d = dimensional.reorder(src, [0], deep_copy=True)

    d.get_array(0)[:] = -1.0

    assert src.get_value_at(0, 0, 0) == 0.0
    assert src.store.range_at(0).is_valid
    assert d.get_value_range(0) == (-1.0, -1.0)


def test_reorder_errors():
    src = MatrixData(1, 1, 3)
    with pytest.raises(IndexError):
        dimensional.reorder(src, [0, 3])
    with pytest.raises(ValueError):
        dimensional.reorder(src, [])


def test_reorder_axes_resorts_frames():
    md = _zt_counting()
    r = dimensional.reorder_axes(md, ["Time", "Z"])
    assert [a.name for a in r.axes] == ["Time", "Z"]
    assert r.dimensions.strides == [1, 3]
    assert _frame_values(r) == [0.0, 2.0, 4.0, 1.0, 3.0, 5.0]

    with pytest.raises(ValueError):
        dimensional.reorder_axes(md, ["Time", "Q"])
    with pytest.raises(ValueError):
        dimensional.reorder_axes(md, ["Time"])


def test_select_by_drops_axis():
    md = _zt_counting()
    sel = dimensional.select_by(md, "z", 1)
    assert [a.name for a in sel.axes] == ["Time"]
    assert _frame_values(sel) == [1.0, 3.0, 5.0]
    assert sel.store.shares_buffer_with(md.store)


def test_extract_along_with_partial_base_indices():
    md = _zt_counting()
    line = dimensional.extract_along(md, "Time", [1])
    assert [a.name for a in line.axes] == ["Time"]
    assert _frame_values(line) == [1.0, 3.0, 5.0]

    md.active_index = 4
    assert _frame_values(dimensional.extract_along(md, "Z")) == [4.0, 5.0]
    with pytest.raises(ValueError):
        dimensional.extract_along(md, "Q")


def test_slice_at_copies_one_frame():
    md = _zt_counting()
    one = dimensional.slice_at(md, 4)
    assert one.frame_count == 1
    assert one.get_value_at(1, 1) == 4.0
    one.set_value_at(0, 0, -1.0)
    assert md.get_value_at(0, 0, 4) == 4.0
    with pytest.raises(IndexError):
        dimensional.slice_at(md, 6)

    assert dimensional.slice_at_coords(md, Z=1, Time=2).get_value_at(0, 0) == 5.0


# ---------------------------------------------------------------------------
# Pixel transforms
# ---------------------------------------------------------------------------

def test_transpose_swaps_axes_and_scale():
    src = MatrixData.from_ndarray(np.arange(6, dtype=np.float64).reshape(2, 3))
    src.set_xy_scale(0.0, 2.0, 10.0, 20.0)
    src.x_unit, src.y_unit = "mm", "s"

    t = dimensional.transpose(src)

    assert (t.x_count, t.y_count) == (2, 3)
    np.testing.assert_array_equal(t.as_ndarray()[0], src.as_ndarray()[0].T)
    assert (t.x_min, t.x_max, t.y_min, t.y_max) == (10.0, 20.0, 0.0, 2.0)
    assert (t.x_unit, t.y_unit) == ("s", "mm")


def test_map_converts_values_and_dtype():
    md = _zt_counting()
    doubled = dimensional.map(md, lambda v, ix, iy, f: v * 2 + ix, dtype=np.float32)
    assert doubled.dtype == np.float32
    assert doubled.get_value_at(1, 0, 3) == 7.0
    assert [a.name for a in doubled.axes] == ["Z", "Time"]


def test_reduce_and_reduce_axis():
    md = _zt_counting()
    total = dimensional.reduce(md, lambda stack: stack.sum(axis=0))
    assert total.frame_count == 1
    assert total.get_value_at(0, 0) == 15.0

    per_time = dimensional.reduce_axis(md, "Z", lambda stack: stack.max(axis=0))
    assert [a.name for a in per_time.axes] == ["Time"]
    assert _frame_values(per_time) == [1.0, 3.0, 5.0]

    with pytest.raises(ValueError):
        dimensional.reduce(md, lambda stack: stack.sum())


# ---------------------------------------------------------------------------
# Cropping
# ---------------------------------------------------------------------------

def _grid(x_count=4, y_count=3):
    src = MatrixData.from_ndarray(np.arange(x_count * y_count, dtype=np.float64).reshape(y_count, x_count))
    return src.set_xy_scale(0.0, 0.3 * (x_count - 1), 0.0, 0.5 * (y_count - 1))


def test_crop_copies_rectangle_and_scale():
    src = _grid()
    c = dimensional.crop(src, 1, 1, 2, 2)
    np.testing.assert_array_equal(c.as_ndarray()[0], [[5.0, 6.0], [9.0, 10.0]])
    assert c.x_min == pytest.approx(0.3)
    assert c.y_min == pytest.approx(0.5)
    assert c.x_step == pytest.approx(0.3)

    with pytest.raises(IndexError):
        dimensional.crop(src, 3, 0, 2, 1)
    with pytest.raises(ValueError):
        dimensional.crop(src, 0, 0, 0, 1)


def test_crop_center_and_by_coordinates():
    src = _grid()
    center = dimensional.crop_center(src, 2, 1)
    np.testing.assert_array_equal(center.as_ndarray()[0], [[5.0, 6.0]])

    clamped = dimensional.crop_by_coordinates(src, 0.6, 5.0, -1.0, 0.5)
    np.testing.assert_array_equal(clamped.as_ndarray()[0], [[2.0, 3.0], [6.0, 7.0]])

    whole = dimensional.crop_by_coordinates(src, float("-inf"), float("inf"), float("-inf"), float("inf"))
    np.testing.assert_array_equal(whole.as_ndarray(), src.as_ndarray())


# ---------------------------------------------------------------------------
# Line profiles
# ---------------------------------------------------------------------------

def test_line_profile_along_a_row():
    src = _grid(4, 3).set_xy_scale(0.0, 6.0, 0.0, 4.0)
    positions, values = dimensional.line_profile(src, (0.0, 2.0), (6.0, 2.0))
    np.testing.assert_allclose(positions, [0.0, 2.0, 4.0, 6.0])
    np.testing.assert_allclose(values, [4.0, 5.0, 6.0, 7.0])
    assert values.dtype == np.float64


def test_line_profile_bilinear_and_nearest():
    src = _grid(4, 3).set_xy_scale(0.0, 3.0, 0.0, 2.0)
    positions, values = dimensional.line_profile(src, (0.0, 0.0), (1.0, 1.0), samples=3)
    np.testing.assert_allclose(positions, [0.0, np.sqrt(2) / 2, np.sqrt(2)])
    np.testing.assert_allclose(values, [0.0, 2.5, 5.0])

    _, nearest = dimensional.line_profile(src, (0.0, 0.0), (1.0, 1.0), mode="nearest", samples=3)
    np.testing.assert_allclose(nearest, [0.0, 0.0, 5.0])


def test_line_profile_clamps_and_reads_requested_frame():
    planes = np.stack([np.arange(12.0).reshape(3, 4), np.arange(12.0).reshape(3, 4) + 100.0])
    src = MatrixData.from_ndarray(planes)
    _, values = dimensional.line_profile(src, (-2.0, 0.0), (5.0, 0.0), mode=dimensional.ProfileMode.NEAREST)
    np.testing.assert_allclose(values, [0.0, 0.0, 0.0, 1.0, 2.0, 3.0, 3.0, 3.0])

    _, second = dimensional.line_profile(src, (0.0, 1.0), (3.0, 1.0), frame_index=1)
    np.testing.assert_allclose(second, [104.0, 105.0, 106.0, 107.0])


def test_line_profile_rejects_complex_data():
    src = MatrixData(2, 2, dtype=np.complex128)
    with pytest.raises(TypeError):
        dimensional.line_profile(src, (0.0, 0.0), (1.0, 1.0))


# ---------------------------------------------------------------------------
# Operation records
# ---------------------------------------------------------------------------

def test_operations_run_through_apply():
    md = _zt_counting()
    assert _frame_values(md.apply(SelectByOperation("Z", 0))) == [0.0, 2.0, 4.0]
    assert md.apply(ReorderOperation((5, 0))).get_value_at(0, 0, 0) == 5.0
    assert md.apply(CropOperation(0, 0, 1, 2)).x_count == 1
    assert md.apply(TransposeOperation()).frame_count == 6

    projected = md.apply(ProjectionOperation(axis_name="Time", view=ViewFrom.Z, mode=ProjectionMode.MAXIMUM))
    assert projected.get_value_at(0, 0) == 4.0


def test_operation_dict_form():
    op = operation_from_dict(
        {"type": "ProjectionOperation", "axis_name": "Z", "base_indices": [2], "view": "Z", "mode": "avg"}
    )
    assert op == ProjectionOperation("Z", (2,), ViewFrom.Z, ProjectionMode.AVERAGE)
    assert operation_to_dict(op) == {
        "type": "ProjectionOperation",
        "axis_name": "Z",
        "base_indices": [2],
        "view": "z",
        "mode": "avg",
    }
    assert op.name == "ProjectionOperation"

    md = _zt_counting()
    assert md.apply(op).get_value_at(0, 0) == 4.5

    with pytest.raises(ValueError):
        operation_from_dict({"type": "Nope"})
