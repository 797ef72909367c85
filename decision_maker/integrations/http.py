"""
Shared HTTP plumbing for the third-party clients.

``request_json`` maps transport failures and non-2xx responses onto
``UpstreamError`` with status-specific user text. ``fetch_raw`` is for the
pass-through proxies, which relay the upstream status and body as-is.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx

from decision_maker.core.config import get_settings
from decision_maker.core.exceptions import RateLimitError, UpstreamError

logger = logging.getLogger(__name__)

# Tests install an httpx.MockTransport here.
_transport: httpx.AsyncBaseTransport | None = None


@dataclass(frozen=True)
class RawResponse:
    """Upstream status and body, relayed untouched by the proxy routes."""

    status: int
    text: str
    content_type: str = "application/json"

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def set_transport(transport: httpx.AsyncBaseTransport | None) -> None:
    global _transport
    _transport = transport


def create_client(base_url: str = "", timeout: float | None = None) -> httpx.AsyncClient:
    secs = timeout if timeout is not None else get_settings().http_timeout_secs
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(secs, connect=secs),
        transport=_transport,
        follow_redirects=True,
    )


async def fetch_raw(
    service: str,
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request; only transport errors raise."""
    try:
        if client is not None:
            return await client.request(method, url, **kwargs)
        async with create_client() as own:
            return await own.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise UpstreamError(service, f"{service} network error: {e!r}") from e


def error_text(resp: httpx.Response, limit: int = 300) -> str:
    try:
        return resp.text[:limit]
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""


def parse_json(service: str, resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamError(service, f"{service} invalid JSON response", status=resp.status_code) from e


async def request_json(
    service: str,
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    **kwargs: Any,
) -> Any:
    resp = await fetch_raw(service, method, url, client=client, **kwargs)

    if resp.status_code == 429:
        retry_after = resp.headers.get("retry-after")
        raise RateLimitError(service, int(retry_after) if retry_after and retry_after.isdigit() else None)
    if resp.status_code >= 400:
        body = error_text(resp)
        logger.warning("%s HTTP %s for %s", service, resp.status_code, url)
        raise UpstreamError(
            service,
            f"{service} HTTP {resp.status_code}: {body}",
            status=resp.status_code,
            body=body,
        )

    return parse_json(service, resp)


@asynccontextmanager
async def use_client(client: httpx.AsyncClient | None = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` untouched, or a fresh one that is closed afterwards."""
    if client is not None:
        yield client
        return
    async with create_client() as own:
        yield own
