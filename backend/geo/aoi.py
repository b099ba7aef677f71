from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees.

    Convention used throughout this repo:
    - minLon, minLat, maxLon, maxLat (west, south, east, north)
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def normalized(self) -> "BBox":
        min_lon = min(self.min_lon, self.max_lon)
        max_lon = max(self.min_lon, self.max_lon)
        min_lat = min(self.min_lat, self.max_lat)
        max_lat = max(self.min_lat, self.max_lat)
        return BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

    @property
    def center(self) -> tuple[float, float]:
        """(lon, lat) of the box midpoint."""
        return (
            (self.min_lon + self.max_lon) / 2.0,
            (self.min_lat + self.max_lat) / 2.0,
        )

    @property
    def north_east(self) -> tuple[float, float]:
        return (self.max_lon, self.max_lat)

    def shrunk(self, factor: float) -> "BBox":
        """
        Scale the box toward its center.

        factor=1.0 returns an identical box; factor=0.5 keeps the middle half of each side.
        """
        cx, cy = self.center
        half_w = (self.max_lon - self.min_lon) * factor / 2.0
        half_h = (self.max_lat - self.min_lat) * factor / 2.0
        return BBox(
            min_lon=cx - half_w,
            min_lat=cy - half_h,
            max_lon=cx + half_w,
            max_lat=cy + half_h,
        )

    def as_dict(self) -> dict[str, float]:
        return {
            "west": self.min_lon,
            "south": self.min_lat,
            "east": self.max_lon,
            "north": self.max_lat,
        }
