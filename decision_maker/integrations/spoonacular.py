from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from decision_maker.cache.response_cache import ResponseCache
from decision_maker.core.config import get_settings
from decision_maker.core.constants import (
    SPOONACULAR_CACHE_COLLECTION,
    SPOONACULAR_CACHE_TTL_SECONDS,
    SPOONACULAR_RESULTS_NUMBER,
)
from decision_maker.core.exceptions import ConfigurationError, UpstreamError, ValidationError
from decision_maker.integrations.http import RawResponse, request_json

logger = logging.getLogger(__name__)

SERVICE = "Spoonacular"
NINJAS_SERVICE = "API Ninjas"

_WHITESPACE = re.compile(r"\s+")


def normalize_recipe_query(query: str | None) -> str:
    return _WHITESPACE.sub(" ", str(query or "").strip().lower())


def recipe_cache_key_parts(query: str | None) -> list[str]:
    return ["spoonacular", normalize_recipe_query(query) or "default"]


async def complex_search(query: str, api_key: str, client: httpx.AsyncClient | None = None) -> dict[str, Any]:
    params = {
        "query": query,
        "number": SPOONACULAR_RESULTS_NUMBER,
        "offset": 0,
        "addRecipeInformation": "true",
        "apiKey": api_key,
    }
    url = f"{get_settings().spoonacular_base_url.rstrip('/')}/recipes/complexSearch"
    data = await request_json(SERVICE, "GET", url, client=client, params=params)
    return data if isinstance(data, dict) else {"results": []}


async def ninjas_search(query: str, api_key: str, client: httpx.AsyncClient | None = None) -> list[dict[str, Any]]:
    """
    API-Ninjas ``/recipe``. Results carry ``ingredients`` as one
    ``|``-separated string and ``instructions`` as free text.
    """
    url = f"{get_settings().api_ninjas_base_url.rstrip('/')}/recipe"
    data = await request_json(
        NINJAS_SERVICE, "GET", url, client=client, params={"query": query}, headers={"X-Api-Key": api_key}
    )
    return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []


class SpoonacularProxy:
    """
    ``complexSearch`` behind the shared response cache.

    Falls back to API-Ninjas when no Spoonacular key is configured or the
    Spoonacular call fails.
    """

    def __init__(
        self,
        response_cache: ResponseCache | None = None,
        api_key: str | None = None,
        ninjas_key: str | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.spoonacular_key
        self.ninjas_key = ninjas_key if ninjas_key is not None else settings.api_ninjas_key
        self.cache = response_cache or ResponseCache(SPOONACULAR_CACHE_COLLECTION, SPOONACULAR_CACHE_TTL_SECONDS)

    async def search(self, query: str | None) -> RawResponse:
        query = (query or "").strip()
        if not query:
            raise ValidationError("missing query", user_message="missing query")
        if not self.api_key and not self.ninjas_key:
            raise ConfigurationError("missing api key", user_message="missing api key")

        parts = recipe_cache_key_parts(query)
        cached = await self.cache.read(parts)
        if cached is not None:
            return RawResponse(cached.status, cached.body, cached.content_type)

        payload: dict[str, Any] | None = None
        if self.api_key:
            try:
                payload = await complex_search(query, self.api_key)
            except UpstreamError as e:
                if not self.ninjas_key:
                    raise
                logger.warning("Spoonacular failed (%s), falling back to API Ninjas", e)

        if payload is None:
            results = await ninjas_search(query, self.ninjas_key or "")
            payload = {"results": results, "source": "api-ninjas"}

        body = json.dumps(payload)
        await self.cache.write(parts, body, metadata={"query": normalize_recipe_query(query)})
        return RawResponse(200, body)
