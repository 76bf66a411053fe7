"""
Immutable 2-D pixel-grid scale (X/Y counts, physical ranges and units).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

import numpy as np

from core.parallel import parallel_for


@dataclass(frozen=True)
class Scale2D:
    """
    Physical scale of an ``x_count`` by ``y_count`` pixel plane.

    Equality compares counts and ranges only; units are labels.
    """

    x_count: int
    x_min:   float
    x_max:   float
    y_count: int
    y_min:   float
    y_max:   float
    x_unit:  str = ""
    y_unit:  str = ""

    def __post_init__(self) -> None:
        if self.x_count <= 0 or self.y_count <= 0:
            raise ValueError(f"Scale counts must be positive, got ({self.x_count}, {self.y_count})")

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def pixels(x_count: int, y_count: int) -> "Scale2D":
        """Index-valued scale: pixel (i, j) sits at (i, j)."""
        return Scale2D(x_count, 0.0, float(x_count - 1), y_count, 0.0, float(y_count - 1))

    @staticmethod
    def centered(x_count: int, y_count: int, width: float, height: float) -> "Scale2D":
        """Scale of a ``width`` by ``height`` field centred on the origin."""
        return Scale2D(
            x_count, -width / 2.0, width / 2.0,
            y_count, -height / 2.0, height / 2.0,
        )

    def with_units(self, x_unit: str, y_unit: str) -> "Scale2D":
        return replace(self, x_unit=x_unit, y_unit=y_unit)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def x_range(self) -> float:
        return self.x_max - self.x_min

    @property
    def y_range(self) -> float:
        return self.y_max - self.y_min

    @property
    def x_step(self) -> float:
        return 0.0 if self.x_count == 1 else self.x_range / (self.x_count - 1)

    @property
    def y_step(self) -> float:
        return 0.0 if self.y_count == 1 else self.y_range / (self.y_count - 1)

    @property
    def x_length(self) -> float:
        return self.x_range + self.x_step

    @property
    def y_length(self) -> float:
        return self.y_range + self.y_step

    @property
    def plane_size(self) -> int:
        return self.x_count * self.y_count

    def x_value(self, ix: int) -> float:
        return self.x_min + ix * self.x_step

    def y_value(self, iy: int) -> float:
        return self.y_min + iy * self.y_step

    def x_values(self) -> np.ndarray:
        return self.x_min + np.arange(self.x_count) * self.x_step

    def y_values(self) -> np.ndarray:
        return self.y_min + np.arange(self.y_count) * self.y_step

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def for_each(self, fn: Callable[[int, int, float, float], None]) -> None:
        """Call ``fn(ix, iy, x, y)`` for every pixel, row by row."""
        for iy in range(self.y_count):
            y = self.y_value(iy)
            for ix in range(self.x_count):
                fn(ix, iy, self.x_value(ix), y)

    def parallel_for_each(self, fn: Callable[[int, int, float, float], None]) -> None:
        """Like :meth:`for_each` but rows are fanned out across worker threads."""
        def body(rows):
            for iy in rows:
                y = self.y_value(iy)
                for ix in range(self.x_count):
                    fn(ix, iy, self.x_value(ix), y)

        parallel_for(self.y_count, body)

    # ------------------------------------------------------------------
    # Equality ignores units
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scale2D):
            return NotImplemented
        return (
            self.x_count == other.x_count and self.y_count == other.y_count
            and self.x_min == other.x_min and self.x_max == other.x_max
            and self.y_min == other.y_min and self.y_max == other.y_max
        )

    def __hash__(self) -> int:
        return hash((self.x_count, self.x_min, self.x_max, self.y_count, self.y_min, self.y_max))


__all__ = ["Scale2D"]
