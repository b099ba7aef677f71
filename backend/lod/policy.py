from __future__ import annotations

from dataclasses import dataclass

from layers.types import Category


@dataclass(frozen=True)
class GeometryPolicy:
    # False: polygons collapse to centroids and lines are dropped.
    include_full_geometry: bool
    # Douglas-Peucker tolerance in degrees.
    simplification_tolerance: float


def geometry_policy_for_zoom(zoom: float) -> GeometryPolicy:
    z = float(zoom)
    if z <= 11:
        return GeometryPolicy(include_full_geometry=False, simplification_tolerance=0.001)
    if z <= 13:
        return GeometryPolicy(include_full_geometry=True, simplification_tolerance=0.0005)
    if z <= 15:
        return GeometryPolicy(include_full_geometry=True, simplification_tolerance=0.0001)
    return GeometryPolicy(include_full_geometry=True, simplification_tolerance=0.00005)


def page_size_for_zoom(zoom: float) -> int:
    z = float(zoom)
    if z <= 10:
        return 100
    if z <= 13:
        return 150
    if z <= 15:
        return 250
    return 400


# Practical "no limit"; a short page ends pagination long before this.
UNBOUNDED_PAGES = 999


def max_pages_for_zoom(zoom: float) -> int:
    z = float(zoom)
    if z <= 11:
        return 1
    if z <= 13:
        return 2
    if z <= 15:
        return 3
    return UNBOUNDED_PAGES


def categories_for_zoom(zoom: float, selected: str | None = None) -> list[str]:
    """
    Categories to query for a view.

    An explicit selection always wins. Otherwise the densest categories are only
    disclosed once the user zooms in.
    """
    if selected:
        return [str(selected)]

    z = float(zoom)
    if z <= 10:
        return [Category.zones.value]
    if z <= 12:
        return [Category.zones.value, Category.vegetation.value]
    if z <= 14:
        return [Category.zones.value, Category.vegetation.value, Category.furniture.value]
    return [Category.vegetation.value, Category.furniture.value, Category.zones.value]
