"""
Abstract base classes for operations applied to matrix containers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence


class BaseOperation(ABC):
    """An operation record that can be replayed against a container via ``MatrixData.apply``."""

    @abstractmethod
    def execute(self, matrix) -> Any:
        """
        Run the operation.

        Args:
            matrix (MatrixData): Source container (left untouched).

        Returns:
            The operation's result, usually a new MatrixData.
        """
        pass

    @property
    def name(self) -> str:
        return type(self).__name__


class VolumeOperation(BaseOperation):
    """Operation that works on a 3-D view taken along one axis."""

    axis_name: str = ""
    base_indices: Optional[Sequence[int]] = None

    def volume(self, matrix):
        """The :class:`processors.volume.VolumeAccessor` this operation reads from."""
        return matrix.as_volume(self.axis_name, self.base_indices)


__all__ = ["BaseOperation", "VolumeOperation"]
