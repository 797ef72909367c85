from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote

import httpx

from decision_maker.cache.response_cache import ResponseCache
from decision_maker.core.config import get_settings
from decision_maker.core.constants import TMDB_CACHE_COLLECTION, TMDB_CACHE_TTL_SECONDS
from decision_maker.core.exceptions import ConfigurationError, UpstreamError, ValidationError
from decision_maker.integrations.http import RawResponse, fetch_raw, request_json

logger = logging.getLogger(__name__)

SERVICE = "TMDB"

QueryParams = Mapping[str, Any]


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _id_path(template: str, *names: str) -> Callable[[QueryParams], Optional[str]]:
    def build(query: QueryParams) -> Optional[str]:
        raw = None
        for name in names:
            raw = _first(query.get(name))
            if raw is not None:
                break
        if raw is None:
            return None
        trimmed = str(raw).strip()
        if not trimmed:
            return None
        return template.format(id=quote(trimmed, safe=""))

    return build


@dataclass(frozen=True)
class Endpoint:
    path: str | Callable[[QueryParams], Optional[str]]
    omit_params: tuple[str, ...] = ()

    def resolve(self, query: QueryParams) -> Optional[str]:
        if callable(self.path):
            return self.path(query)
        return self.path


ALLOWED_ENDPOINTS: dict[str, Endpoint] = {
    "discover": Endpoint("/3/discover/movie"),
    "discover_tv": Endpoint("/3/discover/tv"),
    "genres": Endpoint("/3/genre/movie/list"),
    "tv_genres": Endpoint("/3/genre/tv/list"),
    "credits": Endpoint(_id_path("/3/movie/{id}/credits", "movie_id", "id", "movieId"), ("movie_id", "movieId", "id")),
    "tv_credits": Endpoint(_id_path("/3/tv/{id}/credits", "tv_id", "id"), ("tv_id", "id")),
    "movie_details": Endpoint(_id_path("/3/movie/{id}", "movie_id", "id", "movieId"), ("movie_id", "movieId", "id")),
    "tv_details": Endpoint(_id_path("/3/tv/{id}", "tv_id", "id"), ("tv_id", "id")),
    "person_details": Endpoint(_id_path("/3/person/{id}", "person_id", "id"), ("person_id", "id")),
    "search_multi": Endpoint("/3/search/multi"),
    "search_movie": Endpoint("/3/search/movie"),
    "search_tv": Endpoint("/3/search/tv"),
    "trending_all": Endpoint("/3/trending/all/day"),
    "trending_movies": Endpoint("/3/trending/movie/day"),
    "trending_tv": Endpoint("/3/trending/tv/day"),
    "popular_movies": Endpoint("/3/movie/popular"),
    "popular_tv": Endpoint("/3/tv/popular"),
    "upcoming_movies": Endpoint("/3/movie/upcoming"),
}


def resolve_endpoint(endpoint_key: str | None, query: QueryParams) -> tuple[str, Endpoint]:
    """
    Map an allow-listed endpoint name plus its query onto a TMDB path.

    Raises:
        ValidationError: unknown endpoint, or a required id is missing
    """
    key = str(endpoint_key or "discover")
    endpoint = ALLOWED_ENDPOINTS.get(key)
    if endpoint is None:
        raise ValidationError(f"Unsupported TMDB endpoint {key!r}", user_message="unsupported_endpoint")
    path = endpoint.resolve(query)
    if not path:
        raise ValidationError(f"Missing id for TMDB endpoint {key!r}", user_message="invalid_endpoint_params")
    return path, endpoint


def forward_params(query: list[tuple[str, str]], endpoint: Endpoint) -> list[tuple[str, str]]:
    omit = {"endpoint", "api_key", *endpoint.omit_params}
    return [(k, v) for k, v in query if k not in omit]


def cache_key_parts(path: str, params: list[tuple[str, str]]) -> list[str]:
    normalized = sorted((k, v) for k, v in params if k != "api_key")
    return ["tmdb", path.strip(), "&".join(f"{k}={v}" for k, v in normalized)]


class TmdbProxy:
    """Allow-listed pass-through to TMDB v3 with a 6 hour shared cache."""

    def __init__(self, response_cache: ResponseCache | None = None, api_key: str | None = None):
        self.api_key = api_key if api_key is not None else get_settings().tmdb_api_key
        self.cache = response_cache or ResponseCache(TMDB_CACHE_COLLECTION, TMDB_CACHE_TTL_SECONDS)

    async def fetch(self, endpoint_key: str | None, query: list[tuple[str, str]]) -> RawResponse:
        lookup: dict[str, list[str]] = {}
        for k, v in query:
            lookup.setdefault(k, []).append(v)
        path, endpoint = resolve_endpoint(endpoint_key, lookup)

        if not self.api_key:
            logger.error("TMDB API key missing for proxy request")
            raise ConfigurationError("TMDB API key missing", user_message="tmdb_key_not_configured")

        params = forward_params(query, endpoint)
        parts = cache_key_parts(path, params)
        cached = await self.cache.read(parts)
        if cached is not None:
            return RawResponse(cached.status, cached.body, cached.content_type)

        url = f"{get_settings().tmdb_base_url.rstrip('/')}{path}"
        try:
            resp = await fetch_raw(
                SERVICE, "GET", url, params=params + [("api_key", self.api_key)], headers={"Accept": "application/json"}
            )
        except UpstreamError as e:
            logger.error(f"TMDB proxy failed: {e}", exc_info=True)
            raise UpstreamError(SERVICE, str(e), status=500, user_message="tmdb_proxy_failed") from e

        content_type = resp.headers.get("content-type") or "application/json"
        result = RawResponse(resp.status_code, resp.text, content_type)
        if result.ok:
            await self.cache.write(
                parts,
                result.text,
                status=result.status,
                content_type=content_type,
                metadata={"path": path, "params": parts[2], "endpoint": endpoint_key or "discover"},
            )
        return result


# -------------------------
# Direct API (movie and TV panels)
# -------------------------

async def _tmdb_get(
    path: str,
    api_key: str,
    params: Optional[dict[str, Any]] = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """
    Low-level GET against TMDB v3 using the ``api_key`` query parameter.
    """
    if not api_key:
        raise ConfigurationError("TMDB API key not provided", user_message="TMDB API key not provided.")

    final_params = dict(params or {})
    final_params["api_key"] = api_key

    url = f"{get_settings().tmdb_base_url.rstrip('/')}{path}"
    data = await request_json(SERVICE, "GET", url, client=client, params=final_params)
    if not isinstance(data, dict):
        raise UpstreamError(SERVICE, "TMDB response is not a JSON object")
    return data


@dataclass(frozen=True)
class DiscoverPage:
    results: list[dict[str, Any]]
    total_pages: int | None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "DiscoverPage":
        results = data.get("results")
        total = data.get("total_pages")
        return cls(
            results=[r for r in results if isinstance(r, dict)] if isinstance(results, list) else [],
            total_pages=total if isinstance(total, int) and total > 0 else None,
        )


def discover_params(page: int, extra: Optional[list[tuple[str, str]]] = None) -> list[tuple[str, str]]:
    return [
        ("sort_by", "popularity.desc"),
        ("include_adult", "false"),
        ("include_video", "false"),
        ("language", get_settings().tmdb_language),
        ("page", str(page)),
        *(extra or []),
    ]


async def discover_page(
    api_key: str,
    page: int,
    media: str = "movie",
    extra_params: Optional[list[tuple[str, str]]] = None,
    client: httpx.AsyncClient | None = None,
) -> DiscoverPage:
    """One ``/3/discover/{media}`` page, most popular first."""
    data = await _tmdb_get(f"/3/discover/{media}", api_key, params=dict(discover_params(page, extra_params)), client=client)
    return DiscoverPage.from_payload(data)


def parse_genres(data: dict[str, Any]) -> dict[int, str]:
    genres = data.get("genres")
    if not isinstance(genres, list):
        return {}
    return {g["id"]: str(g["name"]) for g in genres if isinstance(g, dict) and "id" in g and g.get("name")}


async def genre_map(api_key: str, media: str = "movie", client: httpx.AsyncClient | None = None) -> dict[int, str]:
    """``{genre_id: name}``; empty when TMDB is unavailable."""
    try:
        data = await _tmdb_get(
            f"/3/genre/{media}/list", api_key, params={"language": get_settings().tmdb_language}, client=client
        )
    except UpstreamError as e:
        logger.warning("Failed to load TMDB %s genres: %s", media, e)
        return {}
    return parse_genres(data)


async def fetch_credits(
    item_id: Any,
    api_key: str,
    media: str = "movie",
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any] | None:
    if item_id is None or not api_key:
        return None
    try:
        return await _tmdb_get(f"/3/{media}/{item_id}/credits", api_key, client=client)
    except UpstreamError as e:
        logger.warning("Failed to fetch credits for %s %s: %s", media, item_id, e)
        return None


def tmdb_config_payload() -> dict[str, Any] | None:
    settings = get_settings()
    api_key = settings.tmdb_api_key or ""
    proxy = settings.tmdb_proxy_endpoint or ""
    if not api_key and not proxy:
        return None
    payload: dict[str, Any] = {"hasKey": bool(api_key), "hasProxy": bool(proxy)}
    if api_key:
        payload["apiKey"] = api_key
    if proxy:
        payload["proxyEndpoint"] = proxy
    return payload
