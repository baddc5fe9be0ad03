"""Bounding box to slippy-map tile conversion.

Pure functions: no I/O, identical output for identical input.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from domain.models import TileCoordinate, validate_zoom_levels
from shared.constants import (
    AVG_TILE_SIZE_KB,
    MERCATOR_MAX_LAT_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from domain.models import BoundingBox


def lat_lon_to_tile(lat_deg: float, lon_deg: float, zoom: int) -> tuple[int, int]:
    """Return the (x, y) tile containing a WGS84 point at the given zoom.

    Latitude is clamped to the Web Mercator limit and the result to the
    zoom's grid, so the poles and lon=180 map onto edge tiles.
    """
    n = 2**zoom
    lat = min(max(lat_deg, -MERCATOR_MAX_LAT_DEG), MERCATOR_MAX_LAT_DEG)
    lat_rad = math.radians(lat)
    x = math.floor((lon_deg + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG * n)
    y = math.floor(
        (1 - math.log(math.tan(lat_rad) + 1 / math.cos(lat_rad)) / math.pi) / 2 * n
    )
    return min(max(x, 0), n - 1), min(max(y, 0), n - 1)


def tile_range(bounds: BoundingBox, zoom: int) -> tuple[int, int, int, int]:
    """Inclusive (min_x, max_x, min_y, max_y) covering the box at one zoom."""
    x1, y1 = lat_lon_to_tile(bounds.north, bounds.west, zoom)
    x2, y2 = lat_lon_to_tile(bounds.south, bounds.east, zoom)
    return min(x1, x2), max(x1, x2), min(y1, y2), max(y1, y2)


def iter_tiles(bounds: BoundingBox, zoom_levels: Iterable[int]) -> Iterator[TileCoordinate]:
    for zoom in validate_zoom_levels(list(zoom_levels)):
        min_x, max_x, min_y, max_y = tile_range(bounds, zoom)
        for x in range(min_x, max_x + 1):
            for y in range(min_y, max_y + 1):
                yield TileCoordinate(zoom=zoom, x=x, y=y)


def compute_tiles(bounds: BoundingBox, zoom_levels: Iterable[int]) -> list[TileCoordinate]:
    """All tiles covering the box, zoom levels concatenated in request order."""
    return list(iter_tiles(bounds, zoom_levels))


def count_tiles(bounds: BoundingBox, zoom_levels: Iterable[int]) -> int:
    """Number of tiles compute_tiles would return, without building them."""
    total = 0
    for zoom in validate_zoom_levels(list(zoom_levels)):
        min_x, max_x, min_y, max_y = tile_range(bounds, zoom)
        total += (max_x - min_x + 1) * (max_y - min_y + 1)
    return total


def estimate_download_size(
    bounds: BoundingBox,
    zoom_levels: Iterable[int],
    *,
    avg_tile_kb: float = AVG_TILE_SIZE_KB,
) -> tuple[int, float]:
    """Return (tile_count, approximate size in MB)."""
    tiles = count_tiles(bounds, zoom_levels)
    return tiles, tiles * avg_tile_kb / 1024
