from __future__ import annotations

import pytest

from geo.aoi import BBox
from geo.tiles import (
    TILE_KEY_SCHEME,
    lonlat_to_tile,
    parse_tile_key,
    tile_key,
    tile_zoom_for_view_zoom,
)


def _box_around(lon: float, lat: float, dx: float, dy: float) -> BBox:
    return BBox(min_lon=lon - dx, min_lat=lat - dy, max_lon=lon + dx, max_lat=lat + dy)


def test_tile_key_is_stable_within_same_tile():
    # Bolzano-ish; both boxes share a center but differ in extent.
    lon, lat = 11.3548, 46.4983
    a = _box_around(lon, lat, 0.01, 0.01)
    b = _box_around(lon, lat, 0.03, 0.005)

    assert tile_key(a, 14.2, "1") == tile_key(b, 14.9, "1")
    assert tile_key(a, 14.2, "1") == tile_key(a, 14.2, "1")


def test_tile_key_format_and_category_separation():
    lon, lat = 11.3548, 46.4983
    box = _box_around(lon, lat, 0.01, 0.01)
    x, y = lonlat_to_tile(14, lon, lat)

    k1 = tile_key(box, 14.7, "1")
    k3 = tile_key(box, 14.7, "3")
    assert k1 == f"{TILE_KEY_SCHEME}:14:{x}:{y}:1"
    assert k1 != k3


def test_tile_key_changes_with_integer_zoom():
    box = _box_around(11.3548, 46.4983, 0.01, 0.01)
    assert tile_key(box, 13.99, "3") != tile_key(box, 14.0, "3")


def test_tile_zoom_floors_fractional_zoom():
    assert tile_zoom_for_view_zoom(11.999) == 11
    assert tile_zoom_for_view_zoom(12.0) == 12


def test_parse_tile_key_reads_from_the_right():
    parts = parse_tile_key("urbangreen:v2:14:8708:5814:2")
    assert (parts.z, parts.x, parts.y, parts.category) == (14, 8708, 5814, "2")


def test_parse_tile_key_rejects_garbage():
    with pytest.raises(ValueError):
        parse_tile_key("nope")


def test_lonlat_to_tile_clamps_polar_latitudes():
    x, y = lonlat_to_tile(3, 0.0, 89.9)
    assert 0 <= x < 8
    assert y == 0
