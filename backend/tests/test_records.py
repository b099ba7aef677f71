from __future__ import annotations

from lod.policy import geometry_policy_for_zoom
from remote.records import (
    extract_items,
    localized_title,
    pick_geo,
    project_properties,
    record_to_feature,
)


def _item(**overrides):
    item = {
        "Id": "UG-1",
        "Active": True,
        "GreenCode": "ABC-12",
        "GreenCodeType": 1,
        "GreenCodeSubtype": "11",
        "Shortname": "Plane tree",
        "Geo": [{"Default": True, "Geometry": "POINT (11.35 46.49)"}],
        "Detail": {"de": {"Title": "Platane"}, "en": {"Title": "Plane"}},
    }
    item.update(overrides)
    return item


def test_extract_items_accepts_all_body_shapes():
    assert extract_items([{"Id": 1}]) == [{"Id": 1}]
    assert extract_items({"Items": [{"Id": 2}]}) == [{"Id": 2}]
    assert extract_items({"items": [{"Id": 3}]}) == [{"Id": 3}]
    assert extract_items({"TotalResults": 0}) == []
    assert extract_items(None) == []


def test_pick_geo_prefers_default_entry_in_lists_and_maps():
    a = {"Geometry": "POINT (1 1)"}
    b = {"Geometry": "POINT (2 2)", "Default": True}
    assert pick_geo([a, b]) is b
    assert pick_geo({"x": a, "y": b}) is b
    assert pick_geo([a]) is a
    assert pick_geo([]) is None
    assert pick_geo({"position": a}) is a


def test_properties_grow_with_zoom():
    low = project_properties(_item(), 11.0, "en")
    assert low == {
        "id": "UG-1",
        "category": "1",
        "subcategory": "11",
        "code": "ABC-12",
        "isActive": True,
    }

    mid = project_properties(_item(), 13.0, "en")
    assert mid["title"] == "Plane"
    assert "shortname" not in mid

    high = project_properties(_item(Active=False), 15.0, "en")
    assert high["shortname"] == "Plane tree"
    assert high["activeLabel"] == "No"
    assert high["isActive"] is False


def test_localized_title_fallback_chain():
    assert localized_title(_item(), "de") == "Platane"
    assert localized_title(_item(), "it") == "Plane"
    assert localized_title(_item(Detail={"it": {"Title": "Platano"}}), "de") == "Platano"
    assert localized_title(_item(Detail={}), "de") == "Plane tree"
    assert localized_title(_item(Detail=None, Shortname=None), "de") == "UG-1"
    assert localized_title({}, "en") == "Unknown"


def test_record_without_wkt_falls_back_to_lat_lon():
    item = _item(Geo=[{"Default": True, "Latitude": "46,5", "Longitude": 11.3}])
    f = record_to_feature(item, 12.0, geometry_policy_for_zoom(12.0), "en")
    assert f is not None
    assert f.geometry == {"type": "Point", "coordinates": [11.3, 46.5]}


def test_record_without_geometry_is_dropped():
    policy = geometry_policy_for_zoom(16.0)
    assert record_to_feature(_item(Geo=None), 16.0, policy, "en") is None
    assert record_to_feature(_item(Geo=[{"Geometry": "POINT (nope)"}]), 16.0, policy, "en") is None


def test_lines_are_dropped_when_zoomed_out():
    item = _item(Geo=[{"Default": True, "Geometry": "LINESTRING (11 46, 11.1 46.1)"}])
    assert record_to_feature(item, 10.0, geometry_policy_for_zoom(10.0), "en") is None
    f = record_to_feature(item, 14.0, geometry_policy_for_zoom(14.0), "en")
    assert f is not None and f.geometry_type == "LineString"
