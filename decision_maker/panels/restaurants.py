from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from decision_maker.core.constants import RESTAURANTS_MAX_DISTANCE_METERS, YELP_MAX_RADIUS_MILES
from decision_maker.core.exceptions import DecisionMakerError
from decision_maker.integrations.geocoding import reverse_geocode_city
from decision_maker.integrations.yelp import YelpProxy, build_restaurant_query
from decision_maker.services.session import SessionState

logger = logging.getLogger(__name__)

MSG_LOCATION_REQUIRED = "Location access is required to show nearby restaurants."
MSG_LOCATION_UNKNOWN = "Unable to determine your location."
MSG_NO_RESULTS = "No restaurants found."
MSG_FAILED = "Failed to load restaurants."

NEARBY_LIMIT = 60
# Radii (miles) tried in order while the search keeps coming back empty.
EXPANDED_RADII = (None, YELP_MAX_RADIUS_MILES)


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def format_distance(meters: Any) -> str:
    value = _number(meters)
    if value is None:
        return ""
    miles = value / 1609.344
    return f"{miles:.0f} mi" if miles >= 10 else f"{miles:.1f} mi"


def format_rating(rating: Any) -> str:
    value = _number(rating)
    if value is None:
        return ""
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


def filter_by_distance(items: list[dict[str, Any]], max_distance: float = RESTAURANTS_MAX_DISTANCE_METERS) -> list[dict[str, Any]]:
    """Keep restaurants within ``max_distance`` meters; if none qualify keep everything."""
    if not items:
        return []
    if not max_distance or max_distance <= 0:
        return list(items)
    nearby = [i for i in items if (d := _number(i.get("distance"))) is not None and d <= max_distance]
    return nearby or list(items)


def sort_by_rating(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Rating desc, then review count desc; missing values sort last."""

    def key(item: dict[str, Any]) -> tuple[float, float]:
        rating = _number(item.get("rating"))
        reviews = _number(item.get("reviewCount"))
        return (
            -rating if rating is not None else math.inf,
            -reviews if reviews is not None else math.inf,
        )

    return sorted(items, key=key)


def directions_url(rest: dict[str, Any]) -> str:
    lat, lon = _number(rest.get("latitude")), _number(rest.get("longitude"))
    if lat is not None and lon is not None:
        return f"https://www.google.com/maps/dir/?api=1&destination={lat},{lon}"
    return ""


@dataclass
class RestaurantsResult:
    restaurants: list[dict[str, Any]] = field(default_factory=list)
    message: str = ""
    city: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "restaurants": [
                dict(
                    r,
                    distanceText=format_distance(r.get("distance")),
                    ratingText=format_rating(r.get("rating")),
                    directionsUrl=directions_url(r),
                )
                for r in self.restaurants
            ],
            "message": self.message,
            "city": self.city,
        }


def _error_from_body(text: str, status: int) -> str:
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), str) and data["error"]:
        return data["error"]
    return f"Request failed: {status}"


async def load_restaurants(
    session: SessionState,
    proxy: YelpProxy,
    city: str | None = None,
    cuisine: str | None = None,
) -> RestaurantsResult:
    location = session.reported_location
    city = (city or "").strip()
    if location is None and not city:
        return RestaurantsResult(message=MSG_LOCATION_REQUIRED if session.location_denied else MSG_LOCATION_UNKNOWN)

    if location is not None and not city:
        city = await reverse_geocode_city(location.latitude, location.longitude)

    items: list[dict[str, Any]] = []
    try:
        for radius in EXPANDED_RADII:
            query = build_restaurant_query(
                city=city,
                cuisine=cuisine,
                latitude=location.latitude if location else None,
                longitude=location.longitude if location else None,
                limit=NEARBY_LIMIT,
                radius=radius,
            )
            resp = await proxy.search(query)
            if not resp.ok:
                return RestaurantsResult(message=_error_from_body(resp.text, resp.status), city=city)
            data = json.loads(resp.text)
            items = [i for i in data if isinstance(i, dict)] if isinstance(data, list) else []
            if items or location is None:
                break
    except DecisionMakerError as e:
        logger.error(f"Restaurant search failed: {e}", exc_info=True)
        return RestaurantsResult(message=e.user_message or MSG_FAILED, city=city)
    except ValueError:
        logger.error("Restaurant search returned invalid JSON", exc_info=True)
        return RestaurantsResult(message=MSG_FAILED, city=city)

    restaurants = sort_by_rating(filter_by_distance(items))
    return RestaurantsResult(restaurants=restaurants, message="" if restaurants else MSG_NO_RESULTS, city=city)
