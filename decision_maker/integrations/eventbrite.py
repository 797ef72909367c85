from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from decision_maker.cache.keys import serialize_part
from decision_maker.cache.memory import TTLCache
from decision_maker.cache.response_cache import ResponseCache
from decision_maker.core.config import get_settings
from decision_maker.core.constants import (
    EVENTBRITE_CACHE_COLLECTION,
    EVENTBRITE_CACHE_TTL_SECONDS,
    EVENTBRITE_DEFAULT_DAYS,
    EVENTBRITE_DEFAULT_WITHIN,
    EVENTBRITE_MAX_DAYS,
    EVENTBRITE_SERVER_CACHE_MAX_ENTRIES,
)
from decision_maker.core.dates import add_days, normalize_date_string, to_date_string, today_utc
from decision_maker.core.exceptions import ConfigurationError, UpstreamError, ValidationError
from decision_maker.core.geo import parse_coordinate
from decision_maker.core.validation import clamp, parse_int
from decision_maker.integrations.http import RawResponse, create_client, fetch_raw, parse_json

logger = logging.getLogger(__name__)

SERVICE = "Eventbrite"
SEARCH_PATH = "/events/search/"


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def extract_error_message(status: int, body: Any) -> str:
    """Pick the most useful message out of an Eventbrite error body."""
    message = f"Eventbrite request failed with status {status}"
    if not isinstance(body, dict):
        return message
    if body.get("error_description"):
        return str(body["error_description"])
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("error_detail"), list):
        return ", ".join(str(d) for d in error["error_detail"])
    if isinstance(error, str) and error:
        return error
    return message


async def search_events(
    token: str,
    query: str = "",
    location: str = "",
    radius: str = "",
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """
    Keyword / address search with a user-supplied token.

    Raises:
        ValidationError: token missing, or neither query nor location given
        UpstreamError: non-2xx response, message taken from the error body
    """
    token = (token or "").strip()
    query = (query or "").strip()
    location = (location or "").strip()
    if not token:
        raise ValidationError("missing eventbrite token", user_message="Please provide an Eventbrite API token.")
    if not query and not location:
        raise ValidationError(
            "missing query and location",
            user_message="Enter keywords or a location to search events.",
        )

    params: dict[str, str] = {
        "sort_by": "date",
        "expand": "venue",
        "start_date.range_start": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }
    if query:
        params["q"] = query
    if location:
        params["location.address"] = location
        if radius:
            params["location.within"] = radius

    url = f"{get_settings().eventbrite_base_url.rstrip('/')}{SEARCH_PATH}"
    resp = await fetch_raw(SERVICE, "GET", url, client=client, params=params, headers=_auth(token))

    if resp.status_code >= 400:
        try:
            body = resp.json()
        except ValueError:
            body = None
        message = extract_error_message(resp.status_code, body)
        raise UpstreamError(SERVICE, message, status=resp.status_code, user_message=message)

    data = parse_json(SERVICE, resp)
    events = data.get("events") if isinstance(data, dict) else None
    return events if isinstance(events, list) else []


# -------------------------
# Coordinate proxy
# -------------------------

@dataclass(frozen=True)
class CoordinateQuery:
    latitude: float
    longitude: float
    radius_miles: float | None
    start_date: str
    end_date: str
    token: str
    scope: str  # manual / server

    @property
    def within(self) -> str:
        if self.radius_miles is None:
            return EVENTBRITE_DEFAULT_WITHIN
        return f"{clamp(self.radius_miles, 1.0, 1000.0):.1f}mi"


def _fixed(value: float, digits: int) -> str:
    return serialize_part(round(value, digits))


def clamp_days(value: Any) -> int:
    days = parse_int(value)
    if days is None:
        return EVENTBRITE_DEFAULT_DAYS
    return int(clamp(days, 1, EVENTBRITE_MAX_DAYS))


def build_coordinate_query(
    lat: Any,
    lon: Any,
    radius: Any = None,
    start_date: str | None = None,
    days: Any = None,
    token: str | None = None,
    default_token: str | None = None,
) -> CoordinateQuery:
    latitude = parse_coordinate(lat)
    longitude = parse_coordinate(lon)
    if latitude is None or longitude is None:
        raise ValidationError("missing_coordinates", user_message="missing_coordinates")

    radius_value = parse_coordinate(radius)
    radius_miles = radius_value if radius_value is not None and radius_value > 0 else None

    start = normalize_date_string(start_date) or to_date_string(today_utc())
    end = add_days(start, clamp_days(days) - 1) or start

    query_token = (token or "").strip()
    effective = query_token or (default_token or "")
    if not effective:
        raise ConfigurationError("missing_eventbrite_api_token", user_message="missing_eventbrite_api_token")

    return CoordinateQuery(
        latitude=round(latitude, 4),
        longitude=round(longitude, 4),
        radius_miles=radius_miles,
        start_date=start,
        end_date=end,
        token=effective,
        scope="manual" if query_token else "server",
    )


def memory_cache_key(q: CoordinateQuery) -> str:
    radius = _fixed(q.radius_miles, 1) if q.radius_miles is not None else "none"
    return "::".join(
        [q.scope, _fixed(q.latitude, 3), _fixed(q.longitude, 3), radius, q.start_date, q.end_date]
    )


def shared_cache_parts(q: CoordinateQuery) -> list[str]:
    radius = _fixed(q.radius_miles, 1) if q.radius_miles is not None else "none"
    return [
        "eventbrite",
        q.token,
        f"lat:{_fixed(q.latitude, 3)}",
        f"lon:{_fixed(q.longitude, 3)}",
        f"radius:{radius}",
        f"from:{q.start_date}",
        f"to:{q.end_date}",
    ]


class EventbriteProxy:
    """
    Coordinate search behind a 24 hour cache.

    A bounded memory map answers repeat queries in-process; the shared
    response cache carries successful bodies across restarts.
    """

    def __init__(self, response_cache: ResponseCache | None = None, default_token: str | None = None):
        settings = get_settings()
        self.default_token = default_token if default_token is not None else settings.eventbrite_api_token
        self.memory: TTLCache[RawResponse] = TTLCache(
            EVENTBRITE_CACHE_TTL_SECONDS, EVENTBRITE_SERVER_CACHE_MAX_ENTRIES
        )
        self.shared = response_cache or ResponseCache(EVENTBRITE_CACHE_COLLECTION, EVENTBRITE_CACHE_TTL_SECONDS)

    async def fetch(self, q: CoordinateQuery) -> RawResponse:
        memory_key = memory_cache_key(q)
        cached = self.memory.get(memory_key)
        if cached is not None:
            return cached

        parts = shared_cache_parts(q)
        shared = await self.shared.read(parts)
        if shared is not None:
            result = RawResponse(shared.status, shared.body, shared.content_type)
            self.memory.set(memory_key, result)
            return result

        params = {
            "location.latitude": serialize_part(q.latitude),
            "location.longitude": serialize_part(q.longitude),
            "expand": "venue",
            "sort_by": "date",
            "start_date.range_start": f"{q.start_date}T00:00:00Z",
            "start_date.range_end": f"{q.end_date}T23:59:59Z",
            "location.within": q.within,
        }
        url = f"{get_settings().eventbrite_base_url.rstrip('/')}{SEARCH_PATH}"
        async with create_client() as client:
            resp = await fetch_raw(SERVICE, "GET", url, client=client, params=params, headers=_auth(q.token))

        result = RawResponse(resp.status_code, resp.text)
        self.memory.set(memory_key, result)

        if result.ok:
            await self.shared.write(
                parts,
                result.text,
                status=result.status,
                metadata={
                    "latitude": q.latitude,
                    "longitude": q.longitude,
                    "radiusMiles": q.radius_miles,
                    "startDate": q.start_date,
                    "endDate": q.end_date,
                    "usingDefaultToken": q.scope == "server",
                },
            )
        else:
            logger.warning("Eventbrite HTTP %s for %s", resp.status_code, memory_key)
        return result
