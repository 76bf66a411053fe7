"""
Data Transfer Objects (DTOs) describing containers and their dimensions.

Design rules
------------
* All DTOs are immutable (frozen=True).
* ``from_dict`` / ``to_dict`` keep serialisation in one place; YAML and JSON
  files go through ``from_yaml`` / ``from_json``.
* ``DimensionDTO`` is the dimension-description contract handed to codecs:
  ordered ``(name, count, min, max, unit, is_index_based)`` records plus the
  stride table, so axis semantics can be rebuilt without re-deriving strides.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from core.axis import Axis


# ---------------------------------------------------------------------------
# Axis DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AxisDTO:
    """Immutable description of one frame axis."""

    name:            str   = "Series"
    count:           int   = 1
    min:             float = 0.0
    max:             Optional[float] = None
    unit:            str   = ""
    is_index_based:  bool  = False

    @staticmethod
    def from_axis(axis: Axis) -> "AxisDTO":
        return AxisDTO(
            name           = axis.name,
            count          = axis.count,
            min            = axis.min,
            max            = axis.max,
            unit           = axis.unit,
            is_index_based = axis.is_index_based,
        )

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "AxisDTO":
        raw_max = d.get("max")
        return AxisDTO(
            name           = str(d.get("name",  "Series")),
            count          = int(d.get("count", 1)),
            min            = float(d.get("min", 0.0)),
            max            = None if raw_max is None else float(raw_max),
            unit           = str(d.get("unit",  "")),
            is_index_based = bool(d.get("is_index_based", False)),
        )

    @staticmethod
    def parse(text: str) -> "AxisDTO":
        """Parse ``NAME:COUNT[:MIN:MAX[:UNIT]]`` (CLI shorthand)."""
        parts = text.split(":")
        if len(parts) not in (2, 4, 5):
            raise ValueError(f"Axis shorthand must be NAME:COUNT[:MIN:MAX[:UNIT]], got {text!r}")
        if len(parts) == 2:
            return AxisDTO(name=parts[0], count=int(parts[1]))
        return AxisDTO(
            name  = parts[0],
            count = int(parts[1]),
            min   = float(parts[2]),
            max   = float(parts[3]),
            unit  = parts[4] if len(parts) == 5 else "",
        )

    def build(self) -> Axis:
        return Axis(self.count, self.min, self.max, name=self.name, unit=self.unit,
                    is_index_based=self.is_index_based)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name":           self.name,
            "count":          self.count,
            "min":            self.min,
            "max":            self.max,
            "unit":           self.unit,
            "is_index_based": self.is_index_based,
        }


# ---------------------------------------------------------------------------
# Dimension description DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DimensionDTO:
    """Axis records plus strides (first axis fastest-varying)."""

    axes:     Tuple[AxisDTO, ...] = ()
    strides:  Tuple[int, ...]     = ()

    @staticmethod
    def from_structure(dims) -> "DimensionDTO":
        return DimensionDTO(
            axes    = tuple(AxisDTO.from_axis(a) for a in dims.axes),
            strides = tuple(dims.strides),
        )

    @property
    def frame_count(self) -> int:
        n = 1
        for a in self.axes:
            n *= a.count
        return n

    def build_axes(self) -> List[Axis]:
        return [a.build() for a in self.axes]

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "DimensionDTO":
        axes = tuple(AxisDTO.from_dict(a) for a in d.get("axes", []))
        strides = tuple(int(s) for s in d.get("strides", []))
        expected = []
        product = 1
        for a in axes:
            expected.append(product)
            product *= a.count
        if strides and strides != tuple(expected):
            raise ValueError(f"Stride table {list(strides)} does not match axis counts (expected {expected})")
        return DimensionDTO(axes=axes, strides=tuple(expected))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "axes":    [a.to_dict() for a in self.axes],
            "strides": list(self.strides),
        }


# ---------------------------------------------------------------------------
# Matrix configuration DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatrixConfigDTO:
    """
    Immutable recipe for an empty container.

    Used by the CLI and by tests that build containers from config files.
    """

    x_count:  int                   = 64
    y_count:  int                   = 64
    x_range:  Tuple[float, float]   = (0.0, 63.0)
    y_range:  Tuple[float, float]   = (0.0, 63.0)
    x_unit:   str                   = ""
    y_unit:   str                   = ""
    dtype:    str                   = "float64"
    axes:     Tuple[AxisDTO, ...]   = field(default_factory=tuple)

    @property
    def frame_count(self) -> int:
        n = 1
        for a in self.axes:
            n *= a.count
        return n

    def build(self):
        """Allocate a zero-filled :class:`data.matrix.MatrixData` from this recipe."""
        from data.matrix import MatrixData

        md = MatrixData(
            self.x_count, self.y_count, self.frame_count,
            dtype=np.dtype(self.dtype),
            axes=[a.build() for a in self.axes],
        )
        md.set_xy_scale(self.x_range[0], self.x_range[1], self.y_range[0], self.y_range[1])
        md.x_unit, md.y_unit = self.x_unit, self.y_unit
        return md

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MatrixConfigDTO":
        x_count = int(d.get("x_count", 64))
        y_count = int(d.get("y_count", 64))
        xr = d.get("x_range", [0.0, x_count - 1.0])
        yr = d.get("y_range", [0.0, y_count - 1.0])
        return MatrixConfigDTO(
            x_count = x_count,
            y_count = y_count,
            x_range = (float(xr[0]), float(xr[1])),
            y_range = (float(yr[0]), float(yr[1])),
            x_unit  = str(d.get("x_unit", "")),
            y_unit  = str(d.get("y_unit", "")),
            dtype   = str(np.dtype(d.get("dtype", "float64"))),
            axes    = tuple(AxisDTO.from_dict(a) for a in d.get("axes", [])),
        )

    @staticmethod
    def from_yaml(path: str) -> "MatrixConfigDTO":
        """Load a config from a YAML file."""
        import yaml
        with open(path, encoding="utf-8") as fh:
            d = yaml.safe_load(fh)
        return MatrixConfigDTO.from_dict(d or {})

    @staticmethod
    def from_json(path: str) -> "MatrixConfigDTO":
        """Load a config from a JSON file."""
        import json
        with open(path, encoding="utf-8") as fh:
            d = json.load(fh)
        return MatrixConfigDTO.from_dict(d)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x_count": self.x_count,
            "y_count": self.y_count,
            "x_range": list(self.x_range),
            "y_range": list(self.y_range),
            "x_unit":  self.x_unit,
            "y_unit":  self.y_unit,
            "dtype":   self.dtype,
            "axes":    [a.to_dict() for a in self.axes],
        }


__all__ = ["AxisDTO", "DimensionDTO", "MatrixConfigDTO"]
