from __future__ import annotations

import math
from typing import Any, Sequence

Coord = Sequence[float]


def perpendicular_distance(point: Coord, start: Coord, end: Coord) -> float:
    """
    Distance from `point` to the infinite line through start/end.

    A zero-length chord degrades to plain point-to-point distance.
    """
    x, y = point[0], point[1]
    x1, y1 = start[0], start[1]
    x2, y2 = end[0], end[1]

    dx = x2 - x1
    dy = y2 - y1
    if dx == 0 and dy == 0:
        return math.hypot(x - x1, y - y1)

    return abs(dy * x - dx * y + x2 * y1 - y2 * x1) / math.hypot(dx, dy)


def douglas_peucker(points: Sequence[Coord], tolerance: float) -> list[list[float]]:
    """
    Douglas-Peucker line simplification.

    Uses an explicit stack instead of recursion; long rings would otherwise run into the
    interpreter recursion limit. Endpoints are always kept.
    """
    n = len(points)
    if n <= 2:
        return [list(p) for p in points]

    keep = [False] * n
    keep[0] = True
    keep[n - 1] = True

    stack: list[tuple[int, int]] = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        max_dist = 0.0
        max_idx = first
        for i in range(first + 1, last):
            d = perpendicular_distance(points[i], points[first], points[last])
            if d > max_dist:
                max_dist = d
                max_idx = i

        if max_dist > tolerance:
            keep[max_idx] = True
            stack.append((first, max_idx))
            stack.append((max_idx, last))

    return [list(points[i]) for i in range(n) if keep[i]]


def simplify_ring(ring: Sequence[Coord], tolerance: float) -> list[list[float]]:
    """
    Douglas-Peucker on a closed ring.

    A polygon ring needs at least 4 coordinates; rings already that small, or that would
    simplify below it, are returned unchanged.
    """
    if len(ring) < 4:
        return [list(p) for p in ring]
    simplified = douglas_peucker(ring, tolerance)
    if len(simplified) < 4:
        return [list(p) for p in ring]
    return simplified


def ring_centroid(coords: Sequence[Coord]) -> list[float]:
    """
    Arithmetic mean of the vertices (not the area centroid).
    """
    n = len(coords)
    return [
        sum(c[0] for c in coords) / n,
        sum(c[1] for c in coords) / n,
    ]


def round_coords(coords: Any, decimals: int = 6) -> Any:
    """
    Round a coordinate pair or any nesting of them.
    """
    if not coords:
        return []
    if isinstance(coords[0], (int, float)):
        return [round(float(c), decimals) for c in coords]
    return [round_coords(c, decimals) for c in coords]
