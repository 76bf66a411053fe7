"""
Tests for the axis-to-stride mapping and the two-way index synchronisation
between a container's active frame and its axes.
"""

import pytest

from core.axis import Axis
from core.dimensions import SyncState
from core.events import EventRecorder
from data.matrix import MatrixData


def _zt_matrix():
    z = Axis.z(4, 0.0, 3.0, "um")
    t = Axis.time(3, 0.0, 2.0, "s")
    return MatrixData(2, 2, 12, axes=[z, t]), z, t


def test_first_axis_is_fastest_varying():
    md, z, t = _zt_matrix()
    dims = md.dimensions
    assert dims.strides == [1, 4]
    assert dims.get_axis_indices(9) == [1, 2]
    assert dims.get_frame_index_from([3, 0]) == 3
    assert dims.get_frame_index_from([1, 2]) == 9


def test_frame_index_round_trip_over_every_frame():
    md, _, _ = _zt_matrix()
    dims = md.dimensions
    for f in range(md.frame_count):
        assert dims.get_frame_index_from(dims.get_axis_indices(f)) == f


def test_index_vector_errors():
    md, _, _ = _zt_matrix()
    dims = md.dimensions
    with pytest.raises(ValueError):
        dims.get_frame_index_from([1])
    with pytest.raises(IndexError):
        dims.get_frame_index_from([4, 0])
    with pytest.raises(IndexError):
        dims.get_axis_indices(12)


def test_count_product_must_match_frame_count():
    with pytest.raises(ValueError):
        MatrixData(2, 2, 12, axes=[Axis(4, name="A"), Axis(4, name="B")])


def test_duplicate_names_are_case_insensitive():
    with pytest.raises(ValueError):
        MatrixData(2, 2, 12, axes=[Axis(3, name="z"), Axis(4, name="Z")])


def test_default_frame_axis_and_single_frame():
    md = MatrixData(2, 2, 5)
    assert md.dimensions.axis_count == 1
    assert md.dimensions[0].name == "Frame"
    assert md.dimensions[0].count == 5

    single = MatrixData(2, 2, 1)
    assert single.dimensions.axis_count == 0
    assert single.dimensions.get_frame_index_from([]) == 0


def test_lookup_by_name():
    md, z, t = _zt_matrix()
    dims = md.dimensions
    assert dims["z"] is z
    assert dims["TIME"] is t
    assert dims["missing"] is None
    assert "time" in dims
    assert dims.get_axis_order(t) == 1
    assert dims.get_axis_order("nope") == -1
    assert dims.get_length("nope") == 1
    assert dims.get_stride("Time") == 4


def test_axis_change_moves_active_index_once():
    md, z, t = _zt_matrix()
    host_events = EventRecorder()
    z_events = EventRecorder()
    md.active_index_changed.subscribe(host_events)
    z.index_changed.subscribe(z_events)

    t.index = 2
    z.index = 1

    assert md.active_index == 9
    assert len(host_events.events) == 2
    assert len(z_events.events) == 1
    assert md.dimensions.state is SyncState.IDLE


def test_host_change_moves_every_axis_once():
    md, z, t = _zt_matrix()
    host_events = EventRecorder()
    z_events = EventRecorder()
    t_events = EventRecorder()
    md.active_index_changed.subscribe(host_events)
    z.index_changed.subscribe(z_events)
    t.index_changed.subscribe(t_events)

    md.active_index = 7

    assert (z.index, t.index) == (3, 1)
    assert len(host_events.events) == 1
    assert len(z_events.events) == 1
    assert len(t_events.events) == 1
    assert md.dimensions.state is SyncState.IDLE


def test_sync_state_resets_when_an_observer_raises():
    md, z, _ = _zt_matrix()

    def boom(_event):
        raise RuntimeError("observer failed")

    md.active_index_changed.subscribe(boom)
    with pytest.raises(RuntimeError):
        z.index = 1
    assert md.dimensions.state is SyncState.IDLE

    md.active_index_changed.unsubscribe(boom)
    z.index = 2
    assert md.active_index == 2


def test_indices_for_slice():
    md, _, _ = _zt_matrix()
    dims = md.dimensions
    assert dims.get_indices_for_slice("Time", 1) == [4, 5, 6, 7]
    assert dims.get_indices_for_slice("z", 2) == [2, 6, 10]
    with pytest.raises(IndexError):
        dims.get_indices_for_slice("Z", 4)
    with pytest.raises(ValueError):
        dims.get_indices_for_slice("Channel", 0)


def test_indices_along_an_axis():
    md, z, t = _zt_matrix()
    dims = md.dimensions
    t.index = 2
    assert dims.get_indices_along("Z") == [8, 9, 10, 11]
    assert dims.get_indices_along("time", [3]) == [3, 7, 11]
    assert dims.get_indices_along("Time", [1, 0]) == [1, 5, 9]
    with pytest.raises(ValueError):
        dims.get_indices_along("Z", [0, 0, 0])
    with pytest.raises(ValueError):
        dims.get_indices_along("Channel")


def test_at_and_set_indices():
    md, z, t = _zt_matrix()
    dims = md.dimensions
    assert dims.at(1, 2) == 9
    t.index = 1
    assert dims.at(Z=3) == 7
    assert dims.at(Z=3, Time=0) == 3
    with pytest.raises(ValueError):
        dims.at(1, Time=0)

    dims.set_indices(2, 2)
    assert md.active_index == 10
    assert (z.index, t.index) == (2, 2)


def test_frame_index_for_keeps_other_axes():
    md, z, t = _zt_matrix()
    t.index = 2
    assert md.dimensions.get_frame_index_for("Z", 3) == 11
    assert md.dimensions.get_frame_index_for(t, 0) == 0


def test_axis_values_follow_indices():
    md, _, _ = _zt_matrix()
    md.active_index = 6
    buffer = [0.0, 0.0]
    md.dimensions.copy_axis_values_to(buffer)
    assert buffer == [2.0, 1.0]
    assert md.dimensions.get_axis_values() == [2.0, 1.0]


def test_create_axes_without_and_description():
    md, z, _ = _zt_matrix()
    remaining = md.dimensions.create_axes_without("Z")
    assert [a.name for a in remaining] == ["Time"]
    assert remaining[0] is not md.dimensions["Time"]

    records, strides = md.dimensions.to_description()
    assert records[0] == ("Z", 4, 0.0, 3.0, "um", False)
    assert strides == [1, 4]


def test_failed_redefinition_keeps_previous_axes():
    md, z, t = _zt_matrix()
    with pytest.raises(ValueError):
        md.define_dimensions(Axis(5, name="Bad"))

    assert [a.name for a in md.axes] == ["Z", "Time"]
    md.active_index = 9
    assert (z.index, t.index) == (1, 2)


def test_redefinition_detaches_old_axes():
    md, z, _ = _zt_matrix()
    changes = EventRecorder()
    md.dimensions_changed.subscribe(changes)

    a, b = Axis(3, name="A"), Axis(4, name="B")
    md.define_dimensions(a, b)

    assert changes.kinds() == ["dimensions"]
    assert z.index_changed.observer_count == 0
    md.active_index = 5
    assert (a.index, b.index) == (2, 1)
    assert z.index == 0


def test_close_is_idempotent():
    md, z, _ = _zt_matrix()
    dims = md.dimensions
    with dims:
        pass
    dims.close()
    assert dims.closed
    assert z.index_changed.observer_count == 0
    md.active_index = 3
    assert z.index == 0
