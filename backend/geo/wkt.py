from __future__ import annotations

import re
from typing import Any

from shapely import wkt as shapely_wkt
from shapely.errors import ShapelyError
from shapely.geometry import LineString, Point, Polygon

from lod.policy import GeometryPolicy
from lod.simplify import ring_centroid, round_coords, simplify_ring

COORD_PRECISION = 6

_SRID_SUFFIX = re.compile(r";\s*SRID=\d+\s*$", re.IGNORECASE)
_SRID_PREFIX = re.compile(r"^\s*SRID=\d+\s*;", re.IGNORECASE)


def strip_srid(raw: str) -> str:
    """
    Drop a trailing `;SRID=n` (remote API style) or a leading `SRID=n;` (EWKT).
    """
    cleaned = _SRID_SUFFIX.sub("", str(raw))
    cleaned = _SRID_PREFIX.sub("", cleaned)
    return cleaned.strip()


def _xy(coords) -> list[tuple[float, float]]:
    # Drop Z/M if present.
    return [(float(c[0]), float(c[1])) for c in coords]


def decode_geometry(
    raw: Any, policy: GeometryPolicy, *, precision: int = COORD_PRECISION
) -> dict[str, Any] | None:
    """
    Decode a WKT string into a GeoJSON-shaped geometry for the given zoom policy.

    Returns None for anything that can't be used at this zoom: malformed text, empty
    geometries, unsupported kinds, and lines when full geometry is off.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None

    try:
        geom = shapely_wkt.loads(strip_srid(raw))
    except (ShapelyError, ValueError):
        return None
    if geom is None or geom.is_empty:
        return None

    if isinstance(geom, Point):
        return {
            "type": "Point",
            "coordinates": round_coords([float(geom.x), float(geom.y)], precision),
        }

    if isinstance(geom, LineString):
        if not policy.include_full_geometry:
            return None
        coords = _xy(geom.coords)
        if len(coords) < 2:
            return None
        return {"type": "LineString", "coordinates": round_coords(coords, precision)}

    if isinstance(geom, Polygon):
        exterior = _xy(geom.exterior.coords)
        if len(exterior) < 3:
            return None

        if not policy.include_full_geometry:
            return {
                "type": "Point",
                "coordinates": round_coords(ring_centroid(exterior), precision),
            }

        tol = policy.simplification_tolerance
        rings = [simplify_ring(exterior, tol)]
        for interior in geom.interiors:
            hole = _xy(interior.coords)
            if len(hole) >= 4:
                rings.append(simplify_ring(hole, tol))
        return {"type": "Polygon", "coordinates": round_coords(rings, precision)}

    return None
