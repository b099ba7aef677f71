from __future__ import annotations

import math
from dataclasses import dataclass

from geo.aoi import BBox


_MAX_MERCATOR_LAT = 85.05112878

# Bump the version part when the cached feature shape changes.
TILE_KEY_SCHEME = "urbangreen:v2"


@dataclass(frozen=True)
class TileKeyParts:
    z: int
    x: int
    y: int
    category: str


def tile_zoom_for_view_zoom(view_zoom: float) -> int:
    """
    Integer tile zoom used for cache keys.

    Flooring (not rounding) keeps every fractional zoom inside [z, z+1) on the same key.
    """
    return int(math.floor(float(view_zoom)))


def lonlat_to_tile(zoom: int, lon: float, lat: float) -> tuple[int, int]:
    """
    Convert lon/lat in EPSG:4326 to slippy tile (x, y) at zoom.
    """
    z = int(zoom)
    n = 2**z

    # Clamp to WebMercator-supported latitudes.
    lat = max(-_MAX_MERCATOR_LAT, min(_MAX_MERCATOR_LAT, float(lat)))

    lon = float(lon)
    lat_rad = math.radians(lat)

    x = int(math.floor((lon + 180.0) / 360.0 * n))
    y = int(
        math.floor(
            (1.0 - math.log(math.tan(lat_rad) + (1.0 / math.cos(lat_rad))) / math.pi)
            / 2.0
            * n
        )
    )
    # Clamp indices to valid tile range.
    x = max(0, min(n - 1, x))
    y = max(0, min(n - 1, y))
    return x, y


def tile_key(bbox: BBox, view_zoom: float, category: str = "all") -> str:
    """
    Cache/dedup key for a viewport: the tile under the viewport center plus the category.

    Two viewports whose centers fall in the same tile at the same integer zoom share a key.
    """
    z = tile_zoom_for_view_zoom(view_zoom)
    lon, lat = bbox.center
    x, y = lonlat_to_tile(z, lon, lat)
    return f"{TILE_KEY_SCHEME}:{z}:{x}:{y}:{category}"


def parse_tile_key(key: str) -> TileKeyParts:
    """
    Split a tile key from the right; the scheme prefix may itself contain colons.
    """
    parts = str(key).split(":")
    if len(parts) < 4:
        raise ValueError(f"Invalid tile key: {key!r}")
    return TileKeyParts(
        z=int(parts[-4]),
        x=int(parts[-3]),
        y=int(parts[-2]),
        category=parts[-1],
    )
