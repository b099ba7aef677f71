from __future__ import annotations

from typing import Any

from geo.wkt import COORD_PRECISION, decode_geometry
from layers.types import Feature
from lod.policy import GeometryPolicy
from lod.simplify import round_coords

DEFAULT_LANGUAGE = "en"


def _as_float(v: Any) -> float | None:
    """
    Lenient number parsing; the API sometimes sends "11,87" style decimals.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        f = float(v)
    else:
        try:
            f = float(str(v).strip().replace(",", "."))
        except ValueError:
            return None
    if f != f or f in (float("inf"), float("-inf")):
        return None
    return f


def extract_items(payload: Any) -> list[dict[str, Any]]:
    """
    Page body is either a bare list or an object with `Items` / `items`.
    """
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        items = payload.get("Items")
        if items is None:
            items = payload.get("items")
    else:
        items = None
    if not isinstance(items, list):
        return []
    return [it for it in items if isinstance(it, dict)]


def pick_geo(geo_obj: Any) -> dict[str, Any] | None:
    """
    The record's geo entry: the one flagged Default, else the first.

    `Geo` arrives list-shaped or map-shaped depending on the endpoint options.
    """
    if not geo_obj:
        return None
    if isinstance(geo_obj, dict):
        position = geo_obj.get("position")
        if isinstance(position, dict):
            return position
        entries = list(geo_obj.values())
    elif isinstance(geo_obj, list):
        entries = geo_obj
    else:
        return None

    entries = [e for e in entries if isinstance(e, dict)]
    if not entries:
        return None
    for e in entries:
        if e.get("Default") is True:
            return e
    return entries[0]


def _first_present(primary: dict[str, Any], secondary: dict[str, Any], key: str) -> Any:
    v = primary.get(key)
    return v if v is not None else secondary.get(key)


def extract_geometry(
    item: dict[str, Any], policy: GeometryPolicy, *, precision: int = COORD_PRECISION
) -> dict[str, Any] | None:
    geo = pick_geo(item.get("Geo"))
    if geo is None:
        return None

    wkt_raw = geo.get("Geometry")
    if wkt_raw is None:
        wkt_raw = geo.get("geometry")
    if wkt_raw:
        geometry = decode_geometry(wkt_raw, policy, precision=precision)
        if geometry is not None:
            return geometry

    # Fallback: plain lat/lon on the geo entry or the record itself.
    lat = _as_float(_first_present(geo, item, "Latitude"))
    lon = _as_float(_first_present(geo, item, "Longitude"))
    if lat is None or lon is None:
        return None
    return {"type": "Point", "coordinates": round_coords([lon, lat], precision)}


def localized_title(item: dict[str, Any], language: str) -> str:
    fallback = item.get("Shortname") or item.get("Id") or "Unknown"
    detail = item.get("Detail")
    if not isinstance(detail, dict):
        return str(fallback)

    for lang in (language, DEFAULT_LANGUAGE):
        d = detail.get(lang)
        if isinstance(d, dict) and d.get("Title"):
            return str(d["Title"])
    for d in detail.values():
        if isinstance(d, dict) and d.get("Title"):
            return str(d["Title"])
    return str(fallback)


def project_properties(item: dict[str, Any], zoom: float, language: str) -> dict[str, Any]:
    """
    Property set grows with zoom: identity only when zoomed out, labels when zoomed in.
    """
    props: dict[str, Any] = {
        "id": item.get("Id"),
        "category": str(item.get("GreenCodeType") or ""),
        "subcategory": str(item.get("GreenCodeSubtype") or ""),
        "code": item.get("GreenCode") or "N/A",
        "isActive": bool(item.get("Active") or False),
    }
    z = float(zoom)
    if z < 12:
        return props

    props["title"] = localized_title(item, language)
    if z < 15:
        return props

    props["shortname"] = item.get("Shortname") or ""
    props["activeLabel"] = "Yes" if item.get("Active") else "No"
    return props


def record_to_feature(
    item: dict[str, Any], zoom: float, policy: GeometryPolicy, language: str
) -> Feature | None:
    geometry = extract_geometry(item, policy)
    if geometry is None:
        return None
    return Feature(geometry=geometry, properties=project_properties(item, zoom, language))
