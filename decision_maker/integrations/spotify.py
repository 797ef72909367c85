"""
Spotify Web API: PKCE authorization and the two read endpoints the shows
panel needs (top artists, recommendations).
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import string
from typing import Any
from urllib.parse import urlencode

import httpx

from decision_maker.core.config import get_settings
from decision_maker.core.constants import (
    SPOTIFY_MAX_SEEDS,
    SPOTIFY_SCOPE,
    SPOTIFY_SUGGESTION_LIMIT,
    SPOTIFY_TOP_ARTISTS_PAGE_SIZE,
    SPOTIFY_VERIFIER_LENGTH,
)
from decision_maker.core.exceptions import ConfigurationError, SpotifyAuthError, UpstreamError
from decision_maker.integrations.http import fetch_raw, parse_json, use_client

logger = logging.getLogger(__name__)

SERVICE = "Spotify"
_VERIFIER_ALPHABET = string.ascii_letters + string.digits


# -------------------------
# PKCE
# -------------------------

def generate_code_verifier(length: int = SPOTIFY_VERIFIER_LENGTH) -> str:
    return "".join(secrets.choice(_VERIFIER_ALPHABET) for _ in range(length))


def code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def build_authorize_url(client_id: str, redirect_uri: str, verifier: str) -> str:
    if not client_id:
        raise ConfigurationError("Spotify client ID missing", user_message="Spotify client ID not configured.")
    params = {
        "response_type": "code",
        "client_id": client_id,
        "scope": SPOTIFY_SCOPE,
        "redirect_uri": redirect_uri,
        "code_challenge_method": "S256",
        "code_challenge": code_challenge(verifier),
    }
    return f"{get_settings().spotify_accounts_url.rstrip('/')}/authorize?{urlencode(params)}"


async def exchange_code(
    code: str,
    verifier: str,
    client_id: str,
    redirect_uri: str,
    client: httpx.AsyncClient | None = None,
) -> str:
    """
    Trade an authorization code for an access token.

    Returns an empty string when Spotify refuses the exchange.
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "client_id": client_id,
        "code_verifier": verifier,
    }
    url = f"{get_settings().spotify_accounts_url.rstrip('/')}/api/token"
    resp = await fetch_raw(
        SERVICE,
        "POST",
        url,
        client=client,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    if resp.status_code >= 400:
        logger.warning("Spotify token exchange failed with HTTP %s", resp.status_code)
        return ""
    payload = parse_json(SERVICE, resp)
    return str(payload.get("access_token") or "") if isinstance(payload, dict) else ""


# -------------------------
# Web API
# -------------------------

def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def fetch_top_artists(token: str, total_limit: int, client: httpx.AsyncClient | None = None) -> list[dict]:
    """
    Page through ``/me/top/artists`` until ``total_limit`` artists are collected.

    Raises:
        SpotifyAuthError: the token was rejected (HTTP 401)
        UpstreamError: any other non-2xx status
    """
    if not token or total_limit <= 0:
        return []

    url = f"{get_settings().spotify_api_url.rstrip('/')}/me/top/artists"
    artists: list[dict] = []
    offset = 0

    async with use_client(client) as c:
        while len(artists) < total_limit:
            page_size = min(SPOTIFY_TOP_ARTISTS_PAGE_SIZE, total_limit - len(artists))
            resp = await fetch_raw(
                SERVICE, "GET", url, client=c, params={"limit": page_size, "offset": offset}, headers=_auth(token)
            )
            if resp.status_code == 401:
                raise SpotifyAuthError()
            if resp.status_code >= 400:
                raise UpstreamError(SERVICE, f"Spotify HTTP {resp.status_code}", status=resp.status_code)

            data = parse_json(SERVICE, resp)
            items = data.get("items") if isinstance(data, dict) else None
            items = items if isinstance(items, list) else []
            artists.extend(items)
            offset += len(items)

            if not items or not data.get("next") or len(items) < page_size:
                break

    return artists[:total_limit]


async def fetch_recommendations(
    token: str,
    artist_seeds: list[str] | None = None,
    genre_seeds: list[str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[dict]:
    artist_seeds = artist_seeds or []
    genre_seeds = genre_seeds or []
    if not token or (not artist_seeds and not genre_seeds):
        return []

    params: dict[str, Any] = {"limit": SPOTIFY_SUGGESTION_LIMIT, "market": "from_token"}
    if artist_seeds:
        params["seed_artists"] = ",".join(artist_seeds)
    if genre_seeds:
        params["seed_genres"] = ",".join(genre_seeds)

    url = f"{get_settings().spotify_api_url.rstrip('/')}/recommendations"
    try:
        resp = await fetch_raw(SERVICE, "GET", url, client=client, params=params, headers=_auth(token))
    except UpstreamError as e:
        logger.warning("Failed to reach Spotify recommendations: %s", e)
        return []

    # unknown seeds
    if resp.status_code in (400, 422):
        return []
    if resp.status_code >= 400:
        raise UpstreamError(SERVICE, f"Spotify suggestions HTTP {resp.status_code}", status=resp.status_code)

    try:
        data = resp.json()
    except ValueError:
        logger.warning("Failed to parse Spotify recommendations")
        return []
    tracks = data.get("tracks") if isinstance(data, dict) else None
    return tracks if isinstance(tracks, list) else []


def _unique_non_empty(values: list[Any]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        if not v or v in seen:
            continue
        seen.add(v)
        result.append(v)
    return result


def seed_attempts(artists: list[dict]) -> list[tuple[list[str], list[str]]]:
    """Seed combinations to try in order: artists, artists + genres, genres."""
    artist_seeds = _unique_non_empty([a.get("id") for a in artists if isinstance(a, dict)])
    genres: list[str] = []
    for a in artists:
        if isinstance(a, dict) and isinstance(a.get("genres"), list):
            genres.extend(g.strip().lower() for g in a["genres"] if isinstance(g, str) and g.strip())
    genre_seeds = _unique_non_empty(genres)

    attempts: list[tuple[list[str], list[str]]] = []
    if artist_seeds:
        attempts.append((artist_seeds[:SPOTIFY_MAX_SEEDS], []))
    if artist_seeds and genre_seeds:
        artist_count = min(3, len(artist_seeds))
        attempts.append((artist_seeds[:artist_count], genre_seeds[: SPOTIFY_MAX_SEEDS - artist_count]))
    if genre_seeds:
        attempts.append(([], genre_seeds[:SPOTIFY_MAX_SEEDS]))
    return attempts


def format_suggestions(tracks: list[dict]) -> list[dict[str, str]]:
    suggestions: list[dict[str, str]] = []
    seen: set[str] = set()
    for track in tracks or []:
        if not isinstance(track, dict):
            continue
        track_id = track.get("id") or track.get("uri") or track.get("name") or ""
        if not track_id or track_id in seen:
            continue
        seen.add(track_id)

        artists = track.get("artists")
        artist_names = ", ".join(a["name"] for a in artists if isinstance(a, dict) and a.get("name")) if isinstance(artists, list) else ""

        images = (track.get("album") or {}).get("images")
        image = ""
        if isinstance(images, list) and images:
            chosen = next((img for img in images if isinstance(img, dict) and (img.get("width") or 0) >= 200), images[0])
            image = (chosen or {}).get("url") or ""

        suggestions.append(
            {
                "id": str(track_id),
                "name": track.get("name") or "Spotify recommendation",
                "artists": artist_names,
                "url": (track.get("external_urls") or {}).get("spotify") or "",
                "image": image,
            }
        )
        if len(suggestions) >= SPOTIFY_SUGGESTION_LIMIT:
            break
    return suggestions


async def fetch_suggestions(token: str, artists: list[dict], client: httpx.AsyncClient | None = None) -> list[dict[str, str]]:
    """First seed attempt that yields tracks wins."""
    if not token or not artists:
        return []
    for artist_seeds, genre_seeds in seed_attempts(artists):
        tracks = await fetch_recommendations(token, artist_seeds, genre_seeds, client=client)
        if tracks:
            return format_suggestions(tracks)
    return []
