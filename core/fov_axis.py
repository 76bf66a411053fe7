"""
Tiled field-of-view axis.

A :class:`FovAxis` is an index-based frame axis whose positions are tiles of
a mosaic laid out on an ``x_tiles x y_tiles`` grid (row-major, X fastest).
Each tile carries a world-space :class:`GlobalPoint` origin (stage position
of its first pixel), so frames can be placed back into a common coordinate
system.

Helpers generate origin grids from a tile scale and check that the origins
agree with a whole-pixel overlap between neighbouring tiles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from config import DEFAULT_FOV_AXIS_NAME, TILE_OVERLAP_TOLERANCE
from core.axis import Axis
from core.events import EventBus
from core.scale import Scale2D

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GlobalPoint:
    """World coordinate of a tile origin."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True)
class TileOverlap:
    """
    Overlap of one tile with its right (X+1) and lower (Y+1) neighbours.

    ``overlap_x`` / ``overlap_y`` are in pixels and ``None`` on the last
    column / row, or when the tile pitch along that direction is zero.
    """

    tile_index: int
    tile_x: int
    tile_y: int
    overlap_x: Optional[float] = None
    overlap_y: Optional[float] = None

    def is_whole_pixel(self, tolerance: float = TILE_OVERLAP_TOLERANCE) -> bool:
        return all(
            v is None or abs(v - round(v)) < tolerance
            for v in (self.overlap_x, self.overlap_y)
        )


TileOrigins = Tuple[List[GlobalPoint], float, float]


class FovAxis(Axis):
    """
    Index-based axis over a grid of tiles.

    Parameters
    ----------
    x_tiles, y_tiles : int
        Tile grid layout; the axis count is ``x_tiles * y_tiles``.
    z_tiles : int
        Must be 1; stacked mosaics are not supported.
    origins : sequence of GlobalPoint, optional
        One origin per tile in index order.  Defaults to all zeros.
    """

    def __init__(
        self,
        x_tiles: int,
        y_tiles: int,
        z_tiles: int = 1,
        origins: Optional[Sequence[GlobalPoint]] = None,
        name: str = DEFAULT_FOV_AXIS_NAME,
    ) -> None:
        x_tiles, y_tiles, z_tiles = int(x_tiles), int(y_tiles), int(z_tiles)
        if x_tiles <= 0 or y_tiles <= 0 or z_tiles <= 0:
            raise ValueError(f"Tile layout must be positive, got {x_tiles}x{y_tiles}x{z_tiles}")
        if z_tiles > 1:
            raise ValueError("3-D tiling (z_tiles > 1) is not supported")
        count = x_tiles * y_tiles * z_tiles
        super().__init__(count, name=name, is_index_based=True)

        if origins is None:
            self._origins = [GlobalPoint() for _ in range(count)]
        else:
            self._origins = list(origins)
            if len(self._origins) != count:
                raise ValueError(
                    f"Tile layout {x_tiles}x{y_tiles} needs {count} origins, got {len(self._origins)}"
                )
        self._layout = (x_tiles, y_tiles, z_tiles)
        self.origin_changed = EventBus("origin")

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    @property
    def tile_layout(self) -> Tuple[int, int, int]:
        """``(x_tiles, y_tiles, z_tiles)``."""
        return self._layout

    @property
    def origins(self) -> List[GlobalPoint]:
        return list(self._origins)

    def get_index(self, x: int, y: int, z: int = 0) -> int:
        """Flat tile index for grid position ``(x, y, z)``."""
        nx, ny, nz = self._layout
        for label, value, n in (("x", x, nx), ("y", y, ny), ("z", z, nz)):
            if value < 0 or value >= n:
                raise IndexError(f"Tile {label} index {value} is out of range [0, {n - 1}]")
        return z * nx * ny + y * nx + x

    def tile_position(self, index: int) -> Tuple[int, int]:
        """Grid ``(x, y)`` of a flat tile index."""
        if index < 0 or index >= self.count:
            raise IndexError(f"Tile index {index} is out of range (count={self.count})")
        nx = self._layout[0]
        return index % nx, index // nx

    @property
    def current_tile(self) -> Tuple[int, int]:
        return self.tile_position(self.index)

    @current_tile.setter
    def current_tile(self, xy: Tuple[int, int]) -> None:
        self.index = self.get_index(*xy)

    # ------------------------------------------------------------------
    # Origin access
    # ------------------------------------------------------------------

    def _flat(self, key) -> int:
        if isinstance(key, tuple):
            return self.get_index(*key)
        if key < 0 or key >= self.count:
            raise IndexError(f"Tile index {key} is out of range (count={self.count})")
        return key

    def __getitem__(self, key) -> GlobalPoint:
        """Origin by flat index, ``[x, y]`` or ``[x, y, z]``."""
        return self._origins[self._flat(key)]

    def __setitem__(self, key, origin: GlobalPoint) -> None:
        index = self._flat(key)
        old = self._origins[index]
        if old == origin:
            return
        self._origins[index] = origin
        self.origin_changed.fire(self, old, origin, detail=index)

    def clone(self) -> "FovAxis":
        nx, ny, nz = self._layout
        copy = FovAxis(nx, ny, nz, origins=self._origins, name=self.name)
        copy.unit = self.unit
        return copy

    def __repr__(self) -> str:
        nx, ny, _ = self._layout
        return f"FovAxis(name={self.name!r}, layout={nx}x{ny}, index={self.index})"


# ---------------------------------------------------------------------------
# Origin generation
# ---------------------------------------------------------------------------

def tile_origins_extended_from(
    tile_scale: Scale2D,
    x_tiles: int,
    y_tiles: int,
    pixel_overlap: int = 1,
    base_tile_index: int = 0,
) -> TileOrigins:
    """
    Grow a mosaic outwards from one tile.

    ``tile_scale`` is the scale of a single tile and is pinned to tile
    ``base_tile_index``; the others are offset by ``count - pixel_overlap``
    pixels per grid step.  Returns ``(origins, tile_width, tile_height)``.
    """
    stride_x = tile_scale.x_step * (tile_scale.x_count - pixel_overlap)
    stride_y = tile_scale.y_step * (tile_scale.y_count - pixel_overlap)
    base_x, base_y = base_tile_index % x_tiles, base_tile_index // x_tiles

    origins = [
        GlobalPoint(
            tile_scale.x_min + (gx - base_x) * stride_x,
            tile_scale.y_min + (gy - base_y) * stride_y,
            0.0,
        )
        for gy in range(y_tiles)
        for gx in range(x_tiles)
    ]
    return origins, tile_scale.x_range, tile_scale.y_range


def _subdivide(lo: float, hi: float, pixels: int, tiles: int, pixel_overlap: int) -> Tuple[float, float]:
    intervals = (tiles - 1) * (pixels - pixel_overlap) + (pixels - 1)
    if intervals <= 0:
        intervals = pixels - 1 if pixels > 1 else 1
    pitch = (hi - lo) / intervals
    return pitch * (pixels - pixel_overlap), pitch * (pixels - 1)


def tile_origins_subdivided_from(
    total_scale: Scale2D,
    x_tiles: int,
    y_tiles: int,
    pixel_overlap: int = 1,
) -> TileOrigins:
    """
    Split a physical region into a tile grid.

    ``total_scale`` min/max give the whole region while its counts are the
    pixels of *one* tile; the pitch is chosen so that the tiles, overlapping
    by ``pixel_overlap`` pixels, exactly span the region.  Returns
    ``(origins, tile_width, tile_height)``.
    """
    stride_x, tile_w = _subdivide(total_scale.x_min, total_scale.x_max, total_scale.x_count, x_tiles, pixel_overlap)
    stride_y, tile_h = _subdivide(total_scale.y_min, total_scale.y_max, total_scale.y_count, y_tiles, pixel_overlap)
    origins = [
        GlobalPoint(total_scale.x_min + gx * stride_x, total_scale.y_min + gy * stride_y, 0.0)
        for gy in range(y_tiles)
        for gx in range(x_tiles)
    ]
    return origins, tile_w, tile_h


def validate_pixel_overlap(
    fov: FovAxis,
    tile_scale: Scale2D,
    tolerance: float = TILE_OVERLAP_TOLERANCE,
) -> List[TileOverlap]:
    """
    Measure how many pixels each tile shares with its right and lower
    neighbours, given the pixel pitch of ``tile_scale``.

    Sub-pixel overlaps are logged at WARNING.
    """
    nx, ny, _ = fov.tile_layout
    pitch_x, pitch_y = tile_scale.x_step, tile_scale.y_step
    origins = fov.origins
    results: List[TileOverlap] = []

    logger.debug("Validating overlap for %dx%d tiles of %dx%d px", nx, ny, tile_scale.x_count, tile_scale.y_count)
    for gy in range(ny):
        for gx in range(nx):
            index = gy * nx + gx
            here = origins[index]
            overlap_x = overlap_y = None
            if gx < nx - 1 and pitch_x != 0:
                overlap_x = tile_scale.x_count - (origins[index + 1].x - here.x) / pitch_x
            if gy < ny - 1 and pitch_y != 0:
                overlap_y = tile_scale.y_count - (origins[index + nx].y - here.y) / pitch_y
            result = TileOverlap(index, gx, gy, overlap_x, overlap_y)
            if not result.is_whole_pixel(tolerance):
                logger.warning(
                    "Tile [%d,%d] has a sub-pixel overlap (x=%s, y=%s)", gx, gy, overlap_x, overlap_y,
                )
            results.append(result)
    return results


__all__ = [
    "GlobalPoint",
    "TileOverlap",
    "FovAxis",
    "tile_origins_extended_from",
    "tile_origins_subdivided_from",
    "validate_pixel_overlap",
]
