from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from decision_maker.cache.memory import TTLCache
from decision_maker.core.config import get_settings
from decision_maker.core.constants import (
    TICKETMASTER_CACHE_MAX_ENTRIES,
    TICKETMASTER_CACHE_TTL_SECONDS,
    TICKETMASTER_MIN_INTERVAL_SECONDS,
)
from decision_maker.core.exceptions import ConfigurationError, ValidationError
from decision_maker.core.geo import parse_coordinate
from decision_maker.integrations.http import RawResponse, create_client, fetch_raw

logger = logging.getLogger(__name__)

SERVICE = "Ticketmaster"


def cache_key(keyword: str, api_key: str, extra: dict[str, str] | None = None) -> str:
    key = f"{api_key.strip().lower()}::{keyword.strip().lower()}"
    if extra:
        key += "::" + "&".join(f"{k}={extra[k]}" for k in sorted(extra))
    return key


class TicketmasterClient:
    """
    Discovery API ``events.json`` with a 15 minute response cache.

    Upstream calls go out one at a time, at least 300 ms apart.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        min_interval: float = TICKETMASTER_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.ticketmaster_api_key
        self.base_url = (base_url or settings.ticketmaster_base_url).rstrip("/")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_request: float | None = None
        self.cache: TTLCache[RawResponse] = TTLCache(
            TICKETMASTER_CACHE_TTL_SECONDS, TICKETMASTER_CACHE_MAX_ENTRIES
        )

    @property
    def has_key(self) -> bool:
        return bool(self.api_key)

    async def _scheduled_get(self, url: str, params: dict[str, str]) -> httpx.Response:
        async with self._lock:
            if self._last_request is not None:
                wait = self._last_request + self.min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_request = self._clock()
            async with create_client() as client:
                return await fetch_raw(SERVICE, "GET", url, client=client, params=params)

    async def search_events(
        self,
        keyword: str | None,
        api_key: str | None = None,
        **extra: Any,
    ) -> RawResponse:
        """
        Search events by keyword; ``extra`` query params are forwarded.

        Music is the default classification. Only 2xx bodies are cached.
        """
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValidationError("missing keyword", user_message="missing keyword")

        effective_key = (api_key or "").strip() or self.api_key
        if not effective_key:
            raise ConfigurationError(
                "missing ticketmaster api key",
                user_message="Please enter your Ticketmaster API key.",
            )

        forwarded = {k: str(v) for k, v in extra.items() if v is not None and k not in ("apikey", "apiKey")}
        key = cache_key(keyword, effective_key, forwarded)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        params = {"apikey": effective_key, "classificationName": "music", "keyword": keyword}
        params.update(forwarded)
        return await self._cached_events(key, params)

    async def _cached_events(self, key: str, params: dict[str, str]) -> RawResponse:
        resp = await self._scheduled_get(f"{self.base_url}/events.json", params)
        result = RawResponse(
            status=resp.status_code,
            text=resp.text,
            content_type=resp.headers.get("content-type", "application/json"),
        )
        if result.ok:
            self.cache.set(key, result)
        else:
            logger.warning("Ticketmaster HTTP %s for %s", resp.status_code, params.get("keyword") or params.get("latlong"))
        return result

    def nearby_request(
        self,
        latitude: float,
        longitude: float,
        radius_miles: float,
        classification: str,
        api_key: str | None = None,
        keyword: str | None = None,
        size: int = 100,
    ) -> tuple[str, dict[str, str]]:
        """Cache key and query params for a coordinate search."""
        effective_key = (api_key or "").strip() or self.api_key
        if not effective_key:
            raise ConfigurationError(
                "missing ticketmaster api key",
                user_message="Please enter your Ticketmaster API key.",
            )
        params = {
            "apikey": effective_key,
            "classificationName": classification,
            "latlong": f"{latitude},{longitude}",
            "radius": str(int(round(radius_miles))),
            "unit": "miles",
            "size": str(size),
            "sort": "date,asc",
        }
        if keyword:
            params["keyword"] = keyword
        extra = {k: v for k, v in params.items() if k not in ("apikey", "keyword")}
        return cache_key(keyword or "", effective_key, extra), params

    def public_url(self, params: dict[str, str]) -> str:
        """Upstream URL for ``params`` with the key left out."""
        visible = {k: v for k, v in params.items() if k != "apikey"}
        return str(httpx.URL(f"{self.base_url}/events.json", params=visible))

    async def search_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_miles: float,
        classification: str,
        api_key: str | None = None,
        keyword: str | None = None,
        size: int = 100,
    ) -> RawResponse:
        key, params = self.nearby_request(latitude, longitude, radius_miles, classification, api_key, keyword, size)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        return await self._cached_events(key, params)


# -------------------------
# Event payload helpers
# -------------------------

def extract_events(data: Any) -> list[dict[str, Any]]:
    events = ((data or {}).get("_embedded") or {}).get("events") if isinstance(data, dict) else None
    return [e for e in events if isinstance(e, dict)] if isinstance(events, list) else []


def first_venue(event: dict[str, Any]) -> dict[str, Any]:
    venues = (event.get("_embedded") or {}).get("venues")
    if isinstance(venues, list) and venues and isinstance(venues[0], dict):
        return venues[0]
    return {}


def venue_coordinates(venue: dict[str, Any]) -> tuple[float, float] | None:
    location = venue.get("location") or {}
    lat = parse_coordinate(location.get("latitude"))
    lon = parse_coordinate(location.get("longitude"))
    if lat is None or lon is None:
        return None
    return lat, lon


def pick_image(event: dict[str, Any]) -> str:
    images = event.get("images")
    if not isinstance(images, list) or not images:
        return ""
    wide = [img for img in images if isinstance(img, dict) and img.get("ratio") == "16_9" and img.get("url")]
    if wide:
        return max(wide, key=lambda img: img.get("width") or 0)["url"]
    first = images[0]
    return first.get("url") or "" if isinstance(first, dict) else ""


def as_eventbrite_event(event: dict[str, Any]) -> dict[str, Any]:
    """
    Reshape a Discovery event like an Eventbrite one so the live music
    normalizer can read either.
    """
    venue = first_venue(event)
    start = (event.get("dates") or {}).get("start") or {}
    local = start.get("localDate") or ""
    if local and start.get("localTime"):
        local = f"{local}T{start['localTime']}"
    location = venue.get("location") or {}
    shaped: dict[str, Any] = {
        "id": event.get("id"),
        "name": {"text": event.get("name") or ""},
        "start": {"local": local or start.get("dateTime") or ""},
        "url": event.get("url") or "",
        "venue": {
            "name": venue.get("name") or "",
            "address": {
                "city": (venue.get("city") or {}).get("name") or "",
                "region": (venue.get("state") or {}).get("stateCode") or "",
                "latitude": location.get("latitude"),
                "longitude": location.get("longitude"),
            },
        },
        "summary": event.get("info") or event.get("pleaseNote") or "",
    }
    image = pick_image(event)
    if image:
        shaped["logo"] = {"url": image}
    return shaped
