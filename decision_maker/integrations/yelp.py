from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from decision_maker.cache.keys import serialize_part
from decision_maker.cache.response_cache import ResponseCache
from decision_maker.core.config import get_settings
from decision_maker.core.constants import (
    METERS_PER_MILE,
    YELP_ABSOLUTE_MAX_LIMIT,
    YELP_CACHE_COLLECTION,
    YELP_CACHE_TTL_SECONDS,
    YELP_DEFAULT_TOTAL_LIMIT,
    YELP_DETAILS_CONCURRENCY,
    YELP_DETAILS_MAX_ENRICH,
    YELP_MAX_PAGE_LIMIT,
    YELP_MAX_RADIUS_METERS,
    YELP_MAX_RADIUS_MILES,
)
from decision_maker.core.exceptions import ConfigurationError, UpstreamError, ValidationError
from decision_maker.core.geo import parse_coordinate
from decision_maker.core.validation import normalize_positive_integer
from decision_maker.integrations.http import RawResponse, fetch_raw, use_client

logger = logging.getLogger(__name__)

SERVICE = "Yelp"

_TAKEOUT_TRANSACTIONS = {"pickup", "delivery", "takeout"}
_SIT_DOWN_TRANSACTIONS = {"dine-in", "dinein", "dine_in", "restaurant_reservation"}


@dataclass(frozen=True)
class RestaurantQuery:
    city: str
    cuisine: str
    latitude: float | None
    longitude: float | None
    limit: int
    radius_miles: float | None

    @property
    def has_coords(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def radius_meters(self) -> int | None:
        if self.radius_miles is None:
            return None
        return min(round(self.radius_miles * METERS_PER_MILE), YELP_MAX_RADIUS_METERS)


def build_restaurant_query(
    city: str | None = None,
    cuisine: str | None = None,
    latitude: Any = None,
    longitude: Any = None,
    limit: Any = None,
    radius: Any = None,
) -> RestaurantQuery:
    city = (city or "").strip()
    lat = parse_coordinate(latitude)
    lon = parse_coordinate(longitude)
    if lat is None or lon is None:
        lat = lon = None
    if lat is None and not city:
        raise ValidationError("missing_location", user_message="missing_location")

    requested = normalize_positive_integer(limit, 1, YELP_ABSOLUTE_MAX_LIMIT) if limit not in (None, "") else None
    radius_value = parse_coordinate(radius)
    radius_miles = min(radius_value, YELP_MAX_RADIUS_MILES) if radius_value is not None and radius_value > 0 else None

    return RestaurantQuery(
        city=city,
        cuisine=(cuisine or "").strip(),
        latitude=lat,
        longitude=lon,
        limit=requested or YELP_DEFAULT_TOTAL_LIMIT,
        radius_miles=radius_miles,
    )


def cache_key_parts(q: RestaurantQuery) -> list[str]:
    parts = ["yelp"]
    if q.has_coords:
        parts.append("coords")
        parts.append(f"{q.latitude:.4f},{q.longitude:.4f}")
    else:
        parts.append("coords:none")
    if q.city:
        parts.append(f"city:{q.city.lower()}")
    if q.cuisine:
        parts.append(f"cuisine:{q.cuisine.lower()}")
    parts.append(f"limit:{q.limit}")
    if q.radius_miles is not None:
        parts.append(f"radius:{serialize_part(round(q.radius_miles, 1))}")
    else:
        parts.append("radius:none")
    return parts


def parse_yelp_boolean(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("1", "true", "yes", "y"):
            return True
        if normalized in ("0", "false", "no", "n"):
            return False
    return None


def derive_service_options(search_biz: dict | None = None, details: dict | None = None) -> dict[str, bool | None]:
    """
    Takeout / sit-down availability from transactions, attributes and
    ``service_options``. A ``True`` from any source sticks.
    """
    result: dict[str, bool | None] = {"takeout": None, "sitDown": None}

    def set_option(key: str, value: bool | None) -> None:
        if value is None:
            return
        if value:
            result[key] = True
        elif result[key] is not True:
            result[key] = False

    for source in (search_biz, details):
        transactions = (source or {}).get("transactions")
        if not isinstance(transactions, list):
            continue
        normalized = {t.strip().lower() for t in transactions if isinstance(t, str) and t.strip()}
        if normalized & _TAKEOUT_TRANSACTIONS:
            set_option("takeout", True)
        if normalized & _SIT_DOWN_TRANSACTIONS:
            set_option("sitDown", True)

    attributes: dict = {}
    if details and isinstance(details.get("attributes"), dict):
        attributes = details["attributes"]
    elif search_biz and isinstance(search_biz.get("attributes"), dict):
        attributes = search_biz["attributes"]

    set_option("takeout", parse_yelp_boolean(attributes.get("RestaurantsTakeOut")))
    set_option("takeout", parse_yelp_boolean(attributes.get("RestaurantsDelivery")))
    set_option("sitDown", parse_yelp_boolean(attributes.get("RestaurantsTableService")))
    set_option("sitDown", parse_yelp_boolean(attributes.get("RestaurantsReservations")))

    service_options = (details or {}).get("service_options")
    if isinstance(service_options, dict):
        set_option("takeout", parse_yelp_boolean(service_options.get("takeout")))
        dine_in = service_options.get("dine_in")
        if dine_in is None:
            dine_in = service_options.get("dineIn")
        set_option("sitDown", parse_yelp_boolean(dine_in))

    return result


def simplify_business(biz: dict, details: dict | None = None) -> dict[str, Any] | None:
    if not isinstance(biz, dict):
        return None
    location = biz.get("location") or {}
    coordinates = biz.get("coordinates") or {}
    display_address = location.get("display_address")
    lat = coordinates.get("latitude")
    lon = coordinates.get("longitude")
    distance = biz.get("distance")

    simplified: dict[str, Any] = {
        "id": biz.get("id"),
        "name": biz.get("name"),
        "address": ", ".join(display_address) if isinstance(display_address, list) else location.get("address1") or "",
        "city": location.get("city") or "",
        "state": location.get("state") or "",
        "zip": location.get("zip_code") or "",
        "phone": biz.get("display_phone") or biz.get("phone") or "",
        "rating": biz.get("rating"),
        "reviewCount": biz.get("review_count"),
        "price": biz.get("price") or "",
        "categories": [c["title"] for c in biz.get("categories") or [] if isinstance(c, dict) and c.get("title")],
        "latitude": lat if isinstance(lat, (int, float)) and not isinstance(lat, bool) else None,
        "longitude": lon if isinstance(lon, (int, float)) and not isinstance(lon, bool) else None,
        "url": biz.get("url") or "",
        "distance": distance if isinstance(distance, (int, float)) and not isinstance(distance, bool) else None,
    }
    options = derive_service_options(biz, details)
    if options["takeout"] is not None or options["sitDown"] is not None:
        simplified["serviceOptions"] = options
    return simplified


def _error_message(data: Any) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("description") or error.get("code") or "failed"
        if error:
            return str(error)
    return "failed"


async def fetch_business_details(
    businesses: list[dict],
    api_key: str,
    limit: int = YELP_DETAILS_MAX_ENRICH,
    concurrency: int = YELP_DETAILS_CONCURRENCY,
    client: httpx.AsyncClient | None = None,
) -> dict[str, dict]:
    """
    Fetch ``/businesses/{id}`` for up to ``limit`` distinct businesses.

    Failures for individual businesses are skipped.
    """
    ids: list[str] = []
    for biz in businesses:
        biz_id = biz.get("id").strip() if isinstance(biz.get("id"), str) else ""
        if biz_id and biz_id not in ids:
            ids.append(biz_id)
        if len(ids) >= limit:
            break
    if not ids:
        return {}

    base = get_settings().yelp_base_url.rstrip("/")
    semaphore = asyncio.Semaphore(max(1, min(concurrency, len(ids))))
    results: dict[str, dict] = {}

    async def fetch_one(c: httpx.AsyncClient, biz_id: str) -> None:
        async with semaphore:
            try:
                resp = await fetch_raw(
                    SERVICE, "GET", f"{base}/businesses/{biz_id}", client=c,
                    headers={"Authorization": f"Bearer {api_key}"},
                )
            except UpstreamError as e:
                logger.warning("Yelp business details fetch failed for %s: %s", biz_id, e)
                return
            if resp.status_code >= 400:
                return
            try:
                data = resp.json()
            except ValueError:
                return
            if not isinstance(data, dict):
                return
            results[biz_id] = {
                "attributes": data.get("attributes") if isinstance(data.get("attributes"), dict) else None,
                "transactions": data.get("transactions") if isinstance(data.get("transactions"), list) else None,
                "service_options": data.get("service_options") if isinstance(data.get("service_options"), dict) else None,
            }

    async with use_client(client) as c:
        await asyncio.gather(*(fetch_one(c, biz_id) for biz_id in ids))
    return results


class YelpProxy:
    """Paged business search plus details enrichment behind a 30 minute cache."""

    def __init__(self, response_cache: ResponseCache | None = None, api_key: str | None = None):
        self.api_key = api_key if api_key is not None else get_settings().yelp_api_key
        self.cache = response_cache or ResponseCache(YELP_CACHE_COLLECTION, YELP_CACHE_TTL_SECONDS)

    async def search(self, q: RestaurantQuery, api_key: str | None = None) -> RawResponse:
        key = (api_key or "").strip() or self.api_key
        if not key:
            raise ConfigurationError("missing_yelp_api_key", user_message="missing_yelp_api_key")

        parts = cache_key_parts(q)
        cached = await self.cache.read(parts)
        if cached is not None:
            return RawResponse(cached.status, cached.body, cached.content_type)

        base_params: dict[str, str] = {"categories": "restaurants"}
        if q.has_coords:
            base_params["latitude"] = serialize_part(q.latitude)
            base_params["longitude"] = serialize_part(q.longitude)
            base_params["sort_by"] = "distance"
            if q.radius_meters:
                base_params["radius"] = str(q.radius_meters)
        elif q.city:
            base_params["location"] = q.city
        if q.cuisine:
            base_params["term"] = q.cuisine

        url = f"{get_settings().yelp_base_url.rstrip('/')}/businesses/search"
        headers = {"Authorization": f"Bearer {key}"}
        aggregated: list[dict] = []
        seen: set[str] = set()
        offset = 0
        total_available: int | None = None

        async with use_client() as client:
            while len(aggregated) < q.limit:
                batch_limit = min(YELP_MAX_PAGE_LIMIT, q.limit - len(aggregated))
                params = dict(base_params, limit=str(batch_limit))
                if offset > 0:
                    params["offset"] = str(offset)

                resp = await fetch_raw(SERVICE, "GET", url, client=client, params=params, headers=headers)
                try:
                    data = resp.json()
                except ValueError:
                    data = None
                if resp.status_code >= 400 or not isinstance(data, dict):
                    status = resp.status_code if resp.status_code >= 400 else 502
                    return RawResponse(status, json.dumps({"error": _error_message(data)}))

                results = data.get("businesses") if isinstance(data.get("businesses"), list) else []
                if isinstance(data.get("total"), int) and data["total"] >= 0:
                    total_available = data["total"]
                offset += len(results)

                for biz in results:
                    biz_id = biz.get("id") if isinstance(biz, dict) else None
                    if not biz_id or biz_id in seen:
                        continue
                    seen.add(biz_id)
                    aggregated.append(biz)
                    if len(aggregated) >= q.limit:
                        break

                if len(results) < batch_limit:
                    break
                if total_available is not None and offset >= total_available:
                    break

            details = await fetch_business_details(aggregated, key, client=client)

        simplified = [s for s in (simplify_business(b, details.get(b.get("id"))) for b in aggregated) if s]
        body = json.dumps(simplified)
        await self.cache.write(
            parts,
            body,
            metadata={
                "city": q.city,
                "hasCoords": q.has_coords,
                "latitude": q.latitude,
                "longitude": q.longitude,
                "cuisine": q.cuisine,
                "requestedLimit": q.limit,
                "returned": len(simplified),
                "totalAvailable": total_available,
                "radiusMiles": q.radius_miles,
            },
        )
        return RawResponse(200, body)
