"""
Disk spill cache for matrix containers.

Frames are written to a single ``np.memmap`` file and a small pickled header
keeps the scale, units, dimension description and the per-frame min/max
statistics.  Reloading seeds the statistics cache from that side-channel so
no rescan is needed.

This is a process-local scratch cache, not an interchange format.
"""

from __future__ import annotations

import gc
import hashlib
import logging
import os
import pickle
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import numpy as np

from config import CACHE_DIR, CACHE_PREFIX
from core.dto import DimensionDTO
from core.scale import Scale2D
from data.matrix import MatrixData

logger = logging.getLogger(__name__)


def _safe_key(raw_key: str, max_prefix_len: int = 80) -> str:
    """
    Convert any key string into a filesystem-safe token.
    """
    cleaned = "".join(ch if (ch.isalnum() or ch in {"-", "_"}) else "_" for ch in str(raw_key))
    if len(cleaned) > max_prefix_len:
        cleaned = cleaned[:max_prefix_len]
    digest = hashlib.md5(str(raw_key).encode("utf-8")).hexdigest()[:10]
    return f"{cleaned}_{digest}"


def _remove_file(path: str) -> None:
    """Best-effort file removal with logging."""
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as exc:
        logger.warning("Failed to remove cache file %s: %s", path, exc)


class StorageBackend(ABC):
    """
    Abstract filesystem backend used by the cache manager.
    """

    def __init__(self, cache_dir: Optional[str], prefix: str, extension: str) -> None:
        self.cache_dir = cache_dir or tempfile.gettempdir()
        self.prefix = prefix
        self.extension = extension
        os.makedirs(self.cache_dir, exist_ok=True)

    def build_path(self, key: str) -> str:
        return os.path.join(self.cache_dir, f"{self.prefix}_{_safe_key(key)}.{self.extension}")

    def exists(self, entry: Dict[str, Any]) -> bool:
        return os.path.exists(entry["path"])

    @abstractmethod
    def write(self, key: str, value: Any) -> Dict[str, Any]:
        """Persist a value and return its backend entry."""

    @abstractmethod
    def read(self, entry: Dict[str, Any]) -> Any:
        """Load a value from a backend entry."""

    def delete(self, entry: Dict[str, Any]) -> None:
        _remove_file(entry["path"])


class MemmapStorageBackend(StorageBackend):
    """
    Numpy arrays stored as ``np.memmap`` files.
    """

    def __init__(self, cache_dir: Optional[str] = None, prefix: str = f"{CACHE_PREFIX}_frames") -> None:
        super().__init__(cache_dir=cache_dir, prefix=prefix, extension="dat")

    def create_empty(self, key: str, shape: Tuple[int, ...], dtype) -> Tuple[np.memmap, Dict[str, Any]]:
        path = self.build_path(key)
        mmap = np.memmap(path, dtype=dtype, mode="w+", shape=shape)
        entry = {
            "path": path,
            "shape": tuple(shape),
            "dtype": np.dtype(dtype).str,
            "kind": "memmap",
        }
        return mmap, entry

    def write(self, key: str, value: np.ndarray) -> Dict[str, Any]:
        mmap, entry = self.create_empty(key, shape=value.shape, dtype=value.dtype)
        mmap[:] = value[:]
        mmap.flush()
        del mmap
        return entry

    def read(self, entry: Dict[str, Any]) -> Optional[np.memmap]:
        if not os.path.exists(entry["path"]):
            return None
        return np.memmap(
            entry["path"],
            dtype=np.dtype(entry["dtype"]),
            mode="r",
            shape=tuple(entry["shape"]),
        )


class PickleStorageBackend(StorageBackend):
    """
    Small Python objects (headers) stored as pickle files.
    """

    def __init__(self, cache_dir: Optional[str] = None, prefix: str = f"{CACHE_PREFIX}_header") -> None:
        super().__init__(cache_dir=cache_dir, prefix=prefix, extension="pkl")

    def write(self, key: str, value: Any) -> Dict[str, Any]:
        path = self.build_path(key)
        with open(path, "wb") as fh:
            pickle.dump(value, fh, protocol=pickle.HIGHEST_PROTOCOL)
        return {"path": path, "kind": "pickle"}

    def read(self, entry: Dict[str, Any]) -> Any:
        if not os.path.exists(entry["path"]):
            return None
        with open(entry["path"], "rb") as fh:
            return pickle.load(fh)


class FrameCacheManager:
    """
    Spill :class:`MatrixData` containers to disk and bring them back.

    ``store`` writes every frame (aliased frames are written once per
    reference), the scale, units, dimension description and statistics;
    ``load`` rebuilds an independent container with seeded statistics.
    """

    def __init__(self, cache_dir: Optional[str] = CACHE_DIR, prefix: str = CACHE_PREFIX) -> None:
        self.frames = MemmapStorageBackend(cache_dir=cache_dir, prefix=f"{prefix}_frames")
        self.headers = PickleStorageBackend(cache_dir=cache_dir, prefix=f"{prefix}_header")
        self._entries: Dict[str, Tuple[Dict[str, Any], Dict[str, Any]]] = {}

    def store(self, key: str, matrix: MatrixData) -> None:
        self.evict(key)
        mins, maxs = matrix.get_min_max_arrays()
        stack = np.stack(matrix.store.buffers())
        frame_entry = self.frames.write(key, stack)
        header = {
            "scale": matrix.get_scale(),
            "dimensions": DimensionDTO.from_structure(matrix.dimensions).to_dict(),
            "min_values": mins,
            "max_values": maxs,
            "metadata": dict(matrix.metadata.items()),
            "active_index": matrix.active_index,
        }
        header_entry = self.headers.write(key, header)
        self._entries[key] = (frame_entry, header_entry)
        logger.debug("Cached '%s': %d frames, %s", key, matrix.frame_count, self._format_size(stack.nbytes))

    def load(self, key: str) -> Optional[MatrixData]:
        entries = self._entries.get(key)
        if entries is None:
            return None
        frame_entry, header_entry = entries
        mmap = self.frames.read(frame_entry)
        header = self.headers.read(header_entry)
        if mmap is None or header is None:
            logger.warning("Cache entry '%s' is missing on disk; dropping it", key)
            self.evict(key)
            return None

        stack = np.array(mmap)
        del mmap
        scale: Scale2D = header["scale"]
        dims = DimensionDTO.from_dict(header["dimensions"])
        md = MatrixData.from_frames(
            list(stack),
            scale=scale,
            axes=dims.build_axes(),
            min_values=header["min_values"],
            max_values=header["max_values"],
        )
        md.metadata.update(header["metadata"])
        md.active_index = header["active_index"]
        return md

    def evict(self, key: str) -> None:
        entries = self._entries.pop(key, None)
        if entries is None:
            return
        frame_entry, header_entry = entries
        self.frames.delete(frame_entry)
        self.headers.delete(header_entry)
        gc.collect()

    def clear(self) -> None:
        for key in list(self._entries.keys()):
            self.evict(key)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _format_size(size_bytes: float) -> str:
        for unit in ["B", "KB", "MB", "GB"]:
            if size_bytes < 1024:
                return f"{size_bytes:.1f} {unit}"
            size_bytes /= 1024
        return f"{size_bytes:.1f} TB"

    def __del__(self) -> None:
        try:
            self.clear()
        except Exception as exc:
            logger.debug("FrameCacheManager cleanup during destruction failed: %s", exc)


__all__ = [
    "StorageBackend",
    "MemmapStorageBackend",
    "PickleStorageBackend",
    "FrameCacheManager",
]
