from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

from geo.aoi import BBox
from layers.types import Category

EARTH_RADIUS_M = 6_371_000.0

# Low-zoom radius queries never exceed this, however far out the user zooms.
MAX_RADIUS_M = 20_000

StrategyKind = Literal["radius", "polygon"]


@dataclass(frozen=True)
class QueryStrategy:
    kind: StrategyKind
    # Spatial query-string parameters, ready to merge into the request.
    params: dict[str, Any] = field(default_factory=dict)


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> int:
    """
    Great-circle distance in meters, rounded to the nearest meter.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return int(round(EARTH_RADIUS_M * c))


def radius_from_bbox(bbox: BBox) -> int:
    """
    Center-to-north-east-corner distance: the radius of a circle covering the view.
    """
    cx, cy = bbox.center
    ne_lon, ne_lat = bbox.north_east
    return haversine_m(cx, cy, ne_lon, ne_lat)


def bbox_to_polygon_wkt(bbox: BBox, *, srid: int | None = None) -> str:
    w, s, e, n = bbox.min_lon, bbox.min_lat, bbox.max_lon, bbox.max_lat
    out = f"POLYGON(({w} {s}, {e} {s}, {e} {n}, {w} {n}, {w} {s}))"
    if srid:
        out += f";SRID={int(srid)}"
    return out


def radius_query(center: tuple[float, float], radius_m: float) -> dict[str, Any]:
    lon, lat = center
    return {
        "latitude": f"{lat:.6f}",
        "longitude": f"{lon:.6f}",
        "radius": int(round(radius_m)),
    }


def polygon_query(bbox: BBox, *, srid: int | None = None) -> dict[str, Any]:
    return {"polygon": bbox_to_polygon_wkt(bbox, srid=srid)}


def shrink_factor_for_zoom(zoom: float) -> float:
    # Panning rarely needs edge-to-edge coverage; a smaller box means a smaller result set.
    return 0.6 if float(zoom) < 13 else 0.8


def choose_strategy(
    category: str, zoom: float, bbox: BBox, *, srid: int | None = None
) -> QueryStrategy:
    """
    Pick the remote spatial query for one category in one view.
    """
    z = float(zoom)
    center = bbox.center

    if z <= 10:
        radius = min(radius_from_bbox(bbox), MAX_RADIUS_M)
        return QueryStrategy(kind="radius", params=radius_query(center, radius))

    if str(category) == Category.furniture.value:
        # Sparse, point-like category: a small circle is enough.
        return QueryStrategy(
            kind="radius", params=radius_query(center, 1500 if z >= 13 else 3000)
        )

    shrunk = bbox.shrunk(shrink_factor_for_zoom(z))
    return QueryStrategy(kind="polygon", params=polygon_query(shrunk, srid=srid))
