"""
Same-origin proxy routes.

They hide the server's API keys and relay the upstream status and body as-is,
with the caching each upstream needs.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse, Response

from decision_maker.api.dependencies import ServicesDep
from decision_maker.core.config import get_settings
from decision_maker.core.constants import DEFAULT_SHOWS_RADIUS_MILES
from decision_maker.core.exceptions import UpstreamError, ValidationError
from decision_maker.core.geo import parse_coordinate
from decision_maker.integrations.eventbrite import build_coordinate_query
from decision_maker.integrations.http import RawResponse
from decision_maker.integrations.ticketmaster import as_eventbrite_event, extract_events
from decision_maker.integrations.tmdb import tmdb_config_payload
from decision_maker.integrations.yelp import build_restaurant_query
from decision_maker.storage.kv import get_json, set_json

logger = logging.getLogger(__name__)

router = APIRouter()

SAVED_MOVIES_KEY = "savedMovies"


def relay(resp: RawResponse) -> Response:
    return Response(content=resp.text, status_code=resp.status, media_type=resp.content_type or "application/json")


def failed() -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "failed"})


@router.get("/api/spotify-client-id")
async def spotify_client_id():
    settings = get_settings()
    if not settings.spotify_client_id:
        return JSONResponse(status_code=500, content={"error": "missing"})
    return {"clientId": settings.spotify_client_id, "hasTicketmasterKey": settings.has_ticketmaster_key}


@router.get("/api/ticketmaster")
async def ticketmaster(request: Request, services: ServicesDep, keyword: str | None = None, apiKey: str | None = None):
    extra = {k: v for k, v in request.query_params.items() if k not in ("keyword", "apiKey", "apikey")}
    try:
        resp = await services.ticketmaster.search_events(keyword, apiKey, **extra)
    except UpstreamError as e:
        logger.error(f"Ticketmaster fetch failed: {e}", exc_info=True)
        return failed()
    return relay(resp)


@router.get("/api/eventbrite")
async def eventbrite(
    services: ServicesDep,
    lat: str | None = None,
    lon: str | None = None,
    radius: str | None = None,
    startDate: str | None = None,
    days: str | None = None,
    token: str | None = None,
):
    query = build_coordinate_query(
        lat, lon, radius, startDate, days, token=token, default_token=services.eventbrite.default_token
    )
    try:
        resp = await services.eventbrite.fetch(query)
    except UpstreamError as e:
        logger.error(f"Eventbrite fetch failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "eventbrite_proxy_failed"})
    return relay(resp)


@router.get("/api/shows")
async def shows(
    services: ServicesDep,
    lat: str | None = None,
    lon: str | None = None,
    radius: str | None = None,
    keyword: str | None = None,
    apiKey: str | None = None,
) -> dict[str, Any]:
    """Nearby live music from Ticketmaster, shaped like Eventbrite events."""
    latitude, longitude = parse_coordinate(lat), parse_coordinate(lon)
    if latitude is None or longitude is None:
        raise ValidationError("missing_coordinates", user_message="missing_coordinates")
    radius_miles = parse_coordinate(radius)
    if radius_miles is None or radius_miles <= 0:
        radius_miles = DEFAULT_SHOWS_RADIUS_MILES

    client = services.ticketmaster
    key, params = client.nearby_request(latitude, longitude, radius_miles, "music", apiKey, keyword)
    cached = key in client.cache
    resp = await client.search_nearby(latitude, longitude, radius_miles, "music", apiKey, keyword)

    events: list[dict[str, Any]] = []
    total = 0
    if resp.ok:
        try:
            data = json.loads(resp.text)
        except ValueError:
            data = {}
        events = [as_eventbrite_event(e) for e in extract_events(data)]
        total = ((data.get("page") or {}).get("totalElements") if isinstance(data, dict) else None) or len(events)

    return {
        "events": events,
        "segments": [
            {
                "key": "music",
                "description": "Live music",
                "ok": resp.ok,
                "status": resp.status,
                "total": total,
                "requestUrl": client.public_url(params),
            }
        ],
        "cached": cached,
    }


@router.get("/api/spoonacular")
@router.get("/spoonacularProxy")
async def spoonacular(services: ServicesDep, query: str | None = None):
    try:
        resp = await services.spoonacular.search(query)
    except UpstreamError as e:
        logger.error(f"Spoonacular fetch failed: {e}", exc_info=True)
        return failed()
    return relay(resp)


@router.get("/api/restaurants")
async def restaurants(
    services: ServicesDep,
    city: str | None = None,
    cuisine: str | None = None,
    latitude: str | None = None,
    longitude: str | None = None,
    limit: str | None = None,
    radius: str | None = None,
):
    query = build_restaurant_query(city, cuisine, latitude, longitude, limit, radius)
    try:
        resp = await services.yelp.search(query)
    except UpstreamError as e:
        logger.error(f"Yelp fetch failed: {e}", exc_info=True)
        return failed()
    return relay(resp)


@router.get("/api/tmdb-config")
@router.get("/tmdbConfig")
async def tmdb_config():
    payload = tmdb_config_payload()
    if payload is None:
        return JSONResponse(status_code=404, content={"error": "tmdb_config_unavailable"})
    return payload


@router.get("/api/tmdb")
async def tmdb_proxy(request: Request, services: ServicesDep, endpoint: str | None = None):
    resp = await services.tmdb.fetch(endpoint, list(request.query_params.multi_items()))
    return relay(resp)


@router.get("/api/saved-movies")
async def list_saved_movies(services: ServicesDep) -> list[dict[str, Any]]:
    saved = get_json(services.saved_movies, SAVED_MOVIES_KEY, [])
    return saved if isinstance(saved, list) else []


@router.post("/api/saved-movies")
async def add_saved_movie(services: ServicesDep, movie: dict[str, Any] | None = Body(default=None)):
    if not isinstance(movie, dict) or not movie.get("id"):
        return JSONResponse(status_code=400, content={"error": "invalid"})
    saved = await list_saved_movies(services)
    if not any(str(m.get("id")) == str(movie["id"]) for m in saved if isinstance(m, dict)):
        saved.append(movie)
        set_json(services.saved_movies, SAVED_MOVIES_KEY, saved)
    return {"status": "ok"}
