"""
Replayable operation records.

Each record is an immutable description of a transform; ``execute`` (or
``MatrixData.apply``) runs it against a container.  Records can be built
from plain dictionaries so pipelines can be stored in YAML/JSON.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

from core.base import BaseOperation, VolumeOperation
from processors import dimensional
from processors.volume import ProjectionMode, ViewFrom


@dataclass(frozen=True)
class TransposeOperation(BaseOperation):
    def execute(self, matrix):
        return dimensional.transpose(matrix)


@dataclass(frozen=True)
class ReorderOperation(BaseOperation):
    order:     Tuple[int, ...]
    deep_copy: bool = False

    def execute(self, matrix):
        return dimensional.reorder(matrix, self.order, self.deep_copy)


@dataclass(frozen=True)
class ReorderAxesOperation(BaseOperation):
    axis_names: Tuple[str, ...]
    deep_copy:  bool = False

    def execute(self, matrix):
        return dimensional.reorder_axes(matrix, self.axis_names, self.deep_copy)


@dataclass(frozen=True)
class SelectByOperation(BaseOperation):
    axis_name: str
    index:     int
    deep_copy: bool = False

    def execute(self, matrix):
        return dimensional.select_by(matrix, self.axis_name, self.index, self.deep_copy)


@dataclass(frozen=True)
class CropOperation(BaseOperation):
    x:      int
    y:      int
    width:  int
    height: int

    def execute(self, matrix):
        return dimensional.crop(matrix, self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class CropByCoordinatesOperation(BaseOperation):
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def execute(self, matrix):
        return dimensional.crop_by_coordinates(matrix, self.x_min, self.x_max, self.y_min, self.y_max)


@dataclass(frozen=True)
class ExtractAlongOperation(VolumeOperation):
    axis_name:    str = ""
    base_indices: Optional[Tuple[int, ...]] = None
    deep_copy:    bool = False

    def execute(self, matrix):
        name = self.axis_name or matrix.dimensions[0].name
        return dimensional.extract_along(matrix, name, self.base_indices, self.deep_copy)


@dataclass(frozen=True)
class ProjectionOperation(VolumeOperation):
    axis_name:    str = ""
    base_indices: Optional[Tuple[int, ...]] = None
    view:         ViewFrom = ViewFrom.Z
    mode:         ProjectionMode = ProjectionMode.MAXIMUM

    def execute(self, matrix):
        return self.volume(matrix).create_projection(self.view, self.mode)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

OPERATION_TYPES: Dict[str, type] = {
    cls.__name__: cls
    for cls in (
        TransposeOperation,
        ReorderOperation,
        ReorderAxesOperation,
        SelectByOperation,
        CropOperation,
        CropByCoordinatesOperation,
        ExtractAlongOperation,
        ProjectionOperation,
    )
}


def operation_to_dict(op: BaseOperation) -> Dict[str, Any]:
    d = asdict(op)
    for key, value in list(d.items()):
        if isinstance(value, (ViewFrom, ProjectionMode)):
            d[key] = value.value
        elif isinstance(value, tuple):
            d[key] = list(value)
    d["type"] = type(op).__name__
    return d


def operation_from_dict(d: Dict[str, Any]) -> BaseOperation:
    """Build an operation record from ``{"type": <class name>, **fields}``."""
    d = dict(d)
    type_name = d.pop("type", None)
    cls = OPERATION_TYPES.get(type_name)
    if cls is None:
        raise ValueError(f"Unknown operation type: {type_name!r}")
    for key in ("order", "axis_names", "base_indices"):
        if d.get(key) is not None:
            d[key] = tuple(d[key])
    if "view" in d:
        d["view"] = ViewFrom(str(d["view"]).lower())
    if "mode" in d:
        d["mode"] = ProjectionMode(str(d["mode"]).lower())
    return cls(**d)


__all__ = [
    "TransposeOperation",
    "ReorderOperation",
    "ReorderAxesOperation",
    "SelectByOperation",
    "CropOperation",
    "CropByCoordinatesOperation",
    "ExtractAlongOperation",
    "ProjectionOperation",
    "OPERATION_TYPES",
    "operation_to_dict",
    "operation_from_dict",
]
