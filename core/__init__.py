"""
Core module containing axes, dimension structures and shared utilities.
"""

from core.axis import Axis
from core.tagged_axis import TaggedAxis, ColorChannel
from core.fov_axis import FovAxis, GlobalPoint, TileOverlap
from core.scale import Scale2D
from core.events import ChangeEvent, ChangeObserver, EventBus, EventRecorder
from core.dimensions import DimensionStructure, FrameHost, SyncState
from core.numeric import (
    NumericTraits,
    register_min_max_finder,
    unregister_min_max_finder,
    get_traits,
    find_min_max,
    is_supported_primitive,
)
from core.parallel import WorkRange, partition_range, parallel_for, ScratchPool, shared_scratch_pool
from core.base import BaseOperation, VolumeOperation
from core.dto import AxisDTO, DimensionDTO, MatrixConfigDTO

__all__ = [
    'Axis', 'TaggedAxis', 'ColorChannel', 'FovAxis', 'GlobalPoint', 'TileOverlap', 'Scale2D',
    'ChangeEvent', 'ChangeObserver', 'EventBus', 'EventRecorder',
    'DimensionStructure', 'FrameHost', 'SyncState',
    'NumericTraits', 'register_min_max_finder', 'unregister_min_max_finder',
    'get_traits', 'find_min_max', 'is_supported_primitive',
    'WorkRange', 'partition_range', 'parallel_for', 'ScratchPool', 'shared_scratch_pool',
    'BaseOperation', 'VolumeOperation',
    'AxisDTO', 'DimensionDTO', 'MatrixConfigDTO',
]
