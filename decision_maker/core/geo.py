from __future__ import annotations

import math
from typing import Callable, Iterable, Sequence, TypeVar

from decision_maker.core.constants import EARTH_RADIUS_MILES

T = TypeVar("T")


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in miles between two lat/lon points.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(d_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def parse_coordinate(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def within_radius(
    origin: tuple[float, float],
    items: Iterable[T],
    radius_miles: float,
    coords: Callable[[T], tuple[float, float] | None],
) -> list[tuple[T, float]]:
    """
    Keep the items whose coordinates lie within ``radius_miles`` of ``origin``.

    Items without coordinates are dropped. Returns (item, distance) pairs in
    input order.
    """
    kept: list[tuple[T, float]] = []
    for item in items:
        point = coords(item)
        if point is None:
            continue
        distance = haversine_miles(origin[0], origin[1], point[0], point[1])
        if not math.isfinite(distance) or distance > radius_miles:
            continue
        kept.append((item, distance))
    return kept


def distance_sort_key(distance: float | None, order: int) -> tuple[float, int]:
    # missing distance sorts last, original order breaks ties
    if distance is None or not math.isfinite(distance):
        return (math.inf, order)
    return (distance, order)


def sort_by_distance(items: Sequence[T], distance: Callable[[T], float | None], order: Callable[[T], int]) -> list[T]:
    return sorted(items, key=lambda it: distance_sort_key(distance(it), order(it)))
