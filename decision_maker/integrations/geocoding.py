from __future__ import annotations

import logging

import httpx

from decision_maker.core.config import get_settings
from decision_maker.core.exceptions import UpstreamError
from decision_maker.integrations.http import request_json

logger = logging.getLogger(__name__)

SERVICE = "Nominatim"
_CITY_FIELDS = ("city", "town", "village", "municipality", "locality", "county")


async def reverse_geocode_city(latitude: float, longitude: float, client: httpx.AsyncClient | None = None) -> str:
    """Best-effort city name for a coordinate pair; "" when unknown."""
    url = f"{get_settings().nominatim_url.rstrip('/')}/reverse"
    params = {"format": "jsonv2", "lat": str(latitude), "lon": str(longitude)}
    try:
        data = await request_json(SERVICE, "GET", url, client=client, params=params, headers={"Accept": "application/json"})
    except UpstreamError as e:
        logger.warning("Reverse geocoding failed: %s", e)
        return ""

    address = data.get("address") if isinstance(data, dict) else None
    if not isinstance(address, dict):
        return ""
    for field in _CITY_FIELDS:
        value = address.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""
