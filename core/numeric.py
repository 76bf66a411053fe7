"""
Per-element-type numeric traits and min/max finders.

Each supported numpy dtype maps to a :class:`NumericTraits` entry that knows
how to scan a flat buffer for per-mode ``(min, max)`` statistics and how to
convert single elements to and from ``float``.  Dispatch is a dictionary
lookup on the dtype; nothing branches on element type at the call sites.

Unregistered dtypes (structured records, ``object``) have no traits:
:func:`find_min_max` returns ``None`` so callers can fall back to a NaN
sentinel instead of failing.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from config import COMPLEX_VALUE_MODES

logger = logging.getLogger(__name__)

MinMax = Tuple[List[float], List[float]]
MinMaxFinder = Callable[[np.ndarray], MinMax]


# ---------------------------------------------------------------------------
# Finders
# ---------------------------------------------------------------------------

def _find_real(buffer: np.ndarray) -> MinMax:
    if buffer.size == 0:
        return [0.0], [0.0]
    return [float(np.min(buffer))], [float(np.max(buffer))]


def _find_float(buffer: np.ndarray) -> MinMax:
    """NaN entries are skipped; an all-NaN buffer yields NaN."""
    if buffer.size == 0:
        return [0.0], [0.0]
    finite = buffer[~np.isnan(buffer)]
    if finite.size == 0:
        return [float("nan")], [float("nan")]
    return [float(finite.min())], [float(finite.max())]


def _find_complex(buffer: np.ndarray) -> MinMax:
    """Modes: magnitude, real, imaginary, phase, power (``|z|**2``)."""
    n_modes = len(COMPLEX_VALUE_MODES)
    if buffer.size == 0:
        return [0.0] * n_modes, [0.0] * n_modes
    power = buffer.real * buffer.real + buffer.imag * buffer.imag
    channels = (
        np.sqrt(power),
        buffer.real,
        buffer.imag,
        np.angle(buffer),
        power,
    )
    mins = [float(np.min(c)) for c in channels]
    maxs = [float(np.max(c)) for c in channels]
    return mins, maxs


# ---------------------------------------------------------------------------
# Traits
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NumericTraits:
    """
    Element-type behaviour bundle.

    Attributes
    ----------
    dtype : np.dtype
    finder : callable(buffer) -> (mins, maxs)
    mode_names : tuple of str
        Label of each statistics mode, in finder order.
    """

    dtype:      np.dtype
    finder:     MinMaxFinder
    mode_names: Tuple[str, ...] = ("value",)

    @property
    def value_mode_count(self) -> int:
        return len(self.mode_names)

    @property
    def is_complex(self) -> bool:
        return self.dtype.kind == "c"

    def find_min_max(self, buffer: np.ndarray) -> MinMax:
        return self.finder(buffer)

    def to_double(self, value) -> float:
        if self.is_complex:
            return float(abs(value))
        return float(value)

    def from_double(self, value: float):
        if self.dtype.kind in "iu":
            info = np.iinfo(self.dtype)
            value = min(max(round(value), info.min), info.max)
        return self.dtype.type(value)


_registry: Dict[np.dtype, NumericTraits] = {}
_registry_lock = threading.Lock()
_missing_reported: set = set()


def register_min_max_finder(
    dtype,
    finder: MinMaxFinder,
    mode_names: Tuple[str, ...] = ("value",),
) -> NumericTraits:
    """Register (or replace) the default finder for ``dtype``."""
    dt = np.dtype(dtype)
    traits = NumericTraits(dtype=dt, finder=finder, mode_names=tuple(mode_names))
    with _registry_lock:
        _registry[dt] = traits
        _missing_reported.discard(dt)
    return traits


def unregister_min_max_finder(dtype) -> None:
    with _registry_lock:
        _registry.pop(np.dtype(dtype), None)


def get_traits(dtype) -> Optional[NumericTraits]:
    return _registry.get(np.dtype(dtype))


def find_min_max(dtype, buffer: np.ndarray) -> Optional[MinMax]:
    """Run the registered finder for ``dtype``; ``None`` when there is none."""
    traits = get_traits(dtype)
    if traits is None:
        dt = np.dtype(dtype)
        if dt not in _missing_reported:
            _missing_reported.add(dt)
            logger.warning("No min/max finder registered for dtype %s; statistics will be NaN", dt)
        return None
    return traits.find_min_max(buffer)


def is_supported_primitive(dtype) -> bool:
    """True for bool, signed/unsigned integer and floating dtypes."""
    return np.dtype(dtype).kind in "biuf"


def _register_defaults() -> None:
    for name in ("bool", "int8", "uint8", "int16", "uint16", "int32", "uint32", "int64", "uint64"):
        register_min_max_finder(name, _find_real)
    for name in ("float16", "float32", "float64"):
        register_min_max_finder(name, _find_float)
    for name in ("complex64", "complex128"):
        register_min_max_finder(name, _find_complex, COMPLEX_VALUE_MODES)


_register_defaults()


__all__ = [
    "MinMax",
    "MinMaxFinder",
    "NumericTraits",
    "register_min_max_finder",
    "unregister_min_max_finder",
    "get_traits",
    "find_min_max",
    "is_supported_primitive",
]
