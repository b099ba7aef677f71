from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


GeometryType = Literal["Point", "LineString", "Polygon"]


class Category(str, Enum):
    """
    Top-level green-code types. The value is what the remote API filters on (`type=`).
    """

    vegetation = "1"
    furniture = "2"
    zones = "3"


@dataclass(frozen=True)
class Feature:
    """
    One decoded record, GeoJSON-shaped.

    `geometry` is {"type": ..., "coordinates": ...} with lon/lat order.
    Never mutated after decoding; the cache and the loader share instances.
    """

    geometry: dict[str, Any]
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def geometry_type(self) -> GeometryType:
        return self.geometry["type"]

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": self.geometry,
            "properties": self.properties,
        }

    @classmethod
    def from_geojson(cls, obj: dict[str, Any]) -> "Feature":
        return cls(
            geometry=dict(obj["geometry"]),
            properties=dict(obj.get("properties") or {}),
        )


@dataclass(frozen=True)
class LoadOptions:
    """
    Per-call knobs coming from the rendering layer.
    """

    # Overrides the zoom-derived page size when set.
    page_size: int | None = None
    active_only: bool = True

    @property
    def shareable(self) -> bool:
        """
        True when results depend on the tile alone, so they may be cached and shared.
        """
        return self.page_size is None and self.active_only

    def variant(self) -> str:
        return f"pagesize={self.page_size or 'auto'}&active={str(self.active_only).lower()}"
