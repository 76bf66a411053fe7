"""
Named frame axis with a physical scale and a live "current index".

An :class:`Axis` describes one dimension of the frame sequence held by a
matrix container (Z depth, time, channel, ...).  It maps grid indices to
physical values and back, and publishes change notifications through
:class:`core.events.EventBus` instances.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional

from config import (
    DEFAULT_AXIS_NAME,
    DEFAULT_CHANNEL_AXIS_NAME,
    DEFAULT_FRAME_AXIS_NAME,
)
from core.events import EventBus

logger = logging.getLogger(__name__)


class Axis:
    """
    One named dimension of a frame sequence.

    Parameters
    ----------
    count : int
        Number of grid positions; must be positive and never changes.
    min, max : float
        Physical range.  ``max`` defaults to ``count - 1``.  Both are pinned
        to ``[0, count-1]`` while the axis is index-based.
    name, unit : str
        Display label and physical unit.
    is_index_based : bool
        When True the physical value equals the grid index.
    """

    def __init__(
        self,
        count: int,
        min: float = 0.0,
        max: Optional[float] = None,
        name: str = DEFAULT_AXIS_NAME,
        unit: str = "",
        is_index_based: bool = False,
    ) -> None:
        count = int(count)
        if count <= 0:
            raise ValueError(f"Axis count must be positive, got {count}")

        self._count = count
        self._name = str(name)
        self._unit = str(unit)
        self._index = 0
        self._is_index_based = bool(is_index_based)
        if self._is_index_based:
            self._min = 0.0
            self._max = float(count - 1)
        else:
            self._min = float(min)
            self._max = float(count - 1) if max is None else float(max)

        self.name_changed = EventBus("name")
        self.index_changed = EventBus("index")
        self.scale_changed = EventBus("scale")
        self.unit_changed = EventBus("unit")

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def z(cls, count: int, min: float, max: float, unit: str = "") -> "Axis":
        return cls(count, min, max, name="Z", unit=unit)

    @classmethod
    def time(cls, count: int, min: float, max: float, unit: str = "") -> "Axis":
        return cls(count, min, max, name="Time", unit=unit)

    @classmethod
    def channel(cls, count: int, unit: str = "") -> "Axis":
        return cls(count, name=DEFAULT_CHANNEL_AXIS_NAME, unit=unit, is_index_based=True)

    @classmethod
    def frame(cls, count: int, min: float = 0.0, max: Optional[float] = None) -> "Axis":
        return cls(count, min, max, name=DEFAULT_FRAME_AXIS_NAME)

    @classmethod
    def index_based(cls, name: str, count: int) -> "Axis":
        return cls(count, name=name, is_index_based=True)

    @staticmethod
    def create_from(axes: Iterable["Axis"]) -> List["Axis"]:
        """Deep-copy a list of axes; indices start at 0 and no subscribers carry over."""
        return [axis.clone() for axis in axes]

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def count(self) -> int:
        return self._count

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        value = str(value)
        if value == self._name:
            return
        old, self._name = self._name, value
        self.name_changed.fire(self, old, value)

    @property
    def unit(self) -> str:
        return self._unit

    @unit.setter
    def unit(self, value: str) -> None:
        value = str(value)
        if value == self._unit:
            return
        old, self._unit = self._unit, value
        self.unit_changed.fire(self, old, value)

    @property
    def min(self) -> float:
        return self._min

    @min.setter
    def min(self, value: float) -> None:
        if self._is_index_based:
            return
        value = float(value)
        if value == self._min:
            return
        old, self._min = self._min, value
        self.scale_changed.fire(self, (old, self._max), (self._min, self._max))

    @property
    def max(self) -> float:
        return self._max

    @max.setter
    def max(self, value: float) -> None:
        if self._is_index_based:
            return
        value = float(value)
        if value == self._max:
            return
        old, self._max = self._max, value
        self.scale_changed.fire(self, (self._min, old), (self._min, self._max))

    @property
    def is_index_based(self) -> bool:
        return self._is_index_based

    @is_index_based.setter
    def is_index_based(self, value: bool) -> None:
        value = bool(value)
        if value == self._is_index_based:
            return
        self._is_index_based = value
        if value:
            old = (self._min, self._max)
            self._min = 0.0
            self._max = float(self._count - 1)
            self.scale_changed.fire(self, old, (self._min, self._max))

    @property
    def index(self) -> int:
        return self._index

    @index.setter
    def index(self, value: int) -> None:
        value = int(value)
        if value < 0 or value >= self._count:
            raise IndexError(f"Index {value} is out of range for axis '{self._name}' (count={self._count})")
        if value == self._index:
            return
        old, self._index = self._index, value
        self.index_changed.fire(self, old, value)

    @property
    def step(self) -> float:
        if self._count == 1:
            return 0.0
        return (self._max - self._min) / (self._count - 1)

    @step.setter
    def step(self, value: float) -> None:
        self.max = self._min + float(value) * (self._count - 1)

    @property
    def size(self) -> float:
        return self._max - self._min

    @property
    def value(self) -> float:
        """Physical value at the current index."""
        return self.value_at(self._index)

    @value.setter
    def value(self, v: float) -> None:
        self.index = self.index_of(v)

    # ------------------------------------------------------------------
    # Index <-> value
    # ------------------------------------------------------------------

    def index_of(self, value: float) -> int:
        """
        Nearest grid index for a physical value.

        Out-of-range values are clamped to ``[0, count-1]`` and logged rather
        than raised, since lookups at the edges routinely land a hair outside
        after floating-point rounding.  Infinities clamp the same way; NaN
        raises ``ValueError``.
        """
        value = float(value)
        if math.isnan(value):
            raise ValueError(f"Cannot map NaN to an index on axis '{self._name}'")
        if self._count == 1 or self._max == self._min:
            return 0
        pos = (value - self._min) * (self._count - 1) / (self._max - self._min)
        if math.isinf(pos):
            clamped = 0 if pos < 0 else self._count - 1
            logger.warning(
                "Value %s lies outside axis '%s' [0, %d]; clamped to %d",
                value, self._name, self._count - 1, clamped,
            )
            return clamped
        idx = round(pos)
        if idx < 0 or idx >= self._count:
            clamped = 0 if idx < 0 else self._count - 1
            logger.warning(
                "Value %s maps to index %d outside axis '%s' [0, %d]; clamped to %d",
                value, idx, self._name, self._count - 1, clamped,
            )
            return clamped
        return int(idx)

    def value_at(self, index: int) -> float:
        if index < 0 or index >= self._count:
            raise IndexError(f"Index {index} is out of range for axis '{self._name}' (count={self._count})")
        return index * self.step + self._min

    def values(self) -> List[float]:
        return [self.value_at(i) for i in range(self._count)]

    # ------------------------------------------------------------------
    # Copy / repr
    # ------------------------------------------------------------------

    def clone(self) -> "Axis":
        """Copy scale, name, unit and the index-based flag. Index and subscribers are not copied."""
        return Axis(
            self._count,
            self._min,
            self._max,
            name=self._name,
            unit=self._unit,
            is_index_based=self._is_index_based,
        )

    def describe(self) -> tuple:
        """``(name, count, min, max, unit, is_index_based)`` tuple for codecs."""
        return (self._name, self._count, self._min, self._max, self._unit, self._is_index_based)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self._name!r}, count={self._count}, "
            f"min={self._min}, max={self._max}, unit={self._unit!r}, "
            f"index={self._index}, is_index_based={self._is_index_based})"
        )

    def __str__(self) -> str:
        unit = f" {self._unit}" if self._unit else ""
        return f"{self._name}[{self._index}/{self._count}] ({self._min}..{self._max}{unit})"


__all__ = ["Axis"]
