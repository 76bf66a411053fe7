"""
Processors package for volumetric and dimensional operations.

Modules:
- volume: 3-D views (restack, slice, projection, custom reduction)
- dimensional: frame reorder / select / extract / crop / map / reduce
- operations: replayable operation records
"""

from processors.volume import VolumeAccessor, ViewFrom, ProjectionMode
from processors import dimensional
from processors.operations import (
    TransposeOperation,
    ReorderOperation,
    ReorderAxesOperation,
    SelectByOperation,
    CropOperation,
    CropByCoordinatesOperation,
    ExtractAlongOperation,
    ProjectionOperation,
    operation_from_dict,
    operation_to_dict,
)

__all__ = [
    'VolumeAccessor',
    'ViewFrom',
    'ProjectionMode',
    'dimensional',
    'TransposeOperation',
    'ReorderOperation',
    'ReorderAxesOperation',
    'SelectByOperation',
    'CropOperation',
    'CropByCoordinatesOperation',
    'ExtractAlongOperation',
    'ProjectionOperation',
    'operation_from_dict',
    'operation_to_dict',
]
