"""
Data management package: frame storage, the matrix container and disk spill cache.
"""

from data.frame_store import ValueRange, FrameHandle, FrameArena, FrameStore
from data.matrix import MatrixData, CaseInsensitiveDict
from data.disk_cache import (
    StorageBackend,
    MemmapStorageBackend,
    PickleStorageBackend,
    FrameCacheManager,
)

__all__ = [
    'ValueRange',
    'FrameHandle',
    'FrameArena',
    'FrameStore',
    'MatrixData',
    'CaseInsensitiveDict',
    'StorageBackend',
    'MemmapStorageBackend',
    'PickleStorageBackend',
    'FrameCacheManager',
]
