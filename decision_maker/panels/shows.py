"""
Live music panel.

Spotify top artists are matched against Eventbrite events near the user.
Without a Spotify login the panel shows three sample cards instead.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from decision_maker.core.config import get_settings
from decision_maker.core.constants import (
    DEFAULT_ARTIST_LIMIT,
    DEFAULT_SHOWS_RADIUS_MILES,
    EMPTY_LOCATION_DENIED,
    EMPTY_NO_NEARBY,
    EMPTY_PREVIEW,
    EVENTBRITE_LOOKAHEAD_DAYS,
    KEY_EVENTBRITE_TOKEN,
    KEY_SHOWS_CONFIG,
    KEY_SPOTIFY_TOKEN,
    KEY_SPOTIFY_VERIFIER,
    MATCH_DESCRIPTION_CHARS,
    MAX_ARTIST_SCAN_LIMIT,
    MAX_SHOWS_RADIUS_MILES,
    MIN_SHOWS_RADIUS_MILES,
)
from decision_maker.core.dates import split_local_datetime, to_date_string, today_utc
from decision_maker.core.exceptions import DecisionMakerError, SpotifyAuthError, UpstreamError
from decision_maker.core.geo import parse_coordinate, sort_by_distance, within_radius
from decision_maker.core.validation import clamp, parse_float, parse_int
from decision_maker.integrations import spotify
from decision_maker.integrations.eventbrite import EventbriteProxy, build_coordinate_query
from decision_maker.panels.common import PanelResult, ShowItem, Venue
from decision_maker.services.session import Location, SessionState
from decision_maker.storage.kv import get_json, get_text, set_json

logger = logging.getLogger(__name__)

MSG_PREVIEW = "Connect your Spotify account to discover live music within {radius} miles of you."
MSG_SESSION_EXPIRED = "Spotify session expired. Login again to refresh your personalized shows."
MSG_TOKEN_REQUIRED = "Please enter your Eventbrite API token."
MSG_NO_ARTISTS = "Spotify did not return any top artists yet. Listen to a few artists and try again."
MSG_LOCATION_DENIED = "Allow location access to see shows within {radius} miles."
MSG_NO_NEARBY = "No nearby shows within {radius} miles."
MSG_ALL_DISMISSED = "No other shows right now. Review ones you previously skipped below."
MSG_FAILED = "Failed to load shows."


# -------------------------
# Config
# -------------------------

@dataclass(frozen=True)
class ShowsConfig:
    radius_miles: float = DEFAULT_SHOWS_RADIUS_MILES
    artist_limit: int = DEFAULT_ARTIST_LIMIT
    include_suggestions: bool = True

    def to_storage(self) -> dict[str, Any]:
        return {
            "radiusMiles": self.radius_miles,
            "artistLimit": self.artist_limit,
            "includeSuggestions": self.include_suggestions,
        }


def normalize_shows_config(raw: dict[str, Any] | None = None) -> ShowsConfig:
    raw = raw or {}

    radius = parse_float(raw.get("radiusMiles"))
    radius_miles = (
        clamp(radius, MIN_SHOWS_RADIUS_MILES, MAX_SHOWS_RADIUS_MILES)
        if radius is not None and radius > 0
        else DEFAULT_SHOWS_RADIUS_MILES
    )

    artists = parse_int(raw.get("artistLimit"))
    artist_limit = int(clamp(artists, 1, MAX_ARTIST_SCAN_LIMIT)) if artists is not None and artists > 0 else DEFAULT_ARTIST_LIMIT

    include = raw.get("includeSuggestions")
    return ShowsConfig(
        radius_miles=radius_miles,
        artist_limit=artist_limit,
        include_suggestions=include if isinstance(include, bool) else True,
    )


def load_shows_config(session: SessionState) -> ShowsConfig:
    stored = get_json(session.store, KEY_SHOWS_CONFIG, None)
    return normalize_shows_config(stored if isinstance(stored, dict) else None)


def update_shows_config(session: SessionState, partial: dict[str, Any]) -> ShowsConfig:
    merged = {**load_shows_config(session).to_storage(), **partial}
    config = normalize_shows_config(merged)
    set_json(session.store, KEY_SHOWS_CONFIG, config.to_storage())
    return config


# -------------------------
# Preview
# -------------------------

_SAMPLES = (
    (
        "sample-paramount",
        "The Midnight Echo",
        "Paramount Theatre",
        4,
        14,
        "https://images.unsplash.com/photo-1507874457470-272b3c8d8ee2?auto=format&fit=crop&w=960&q=80",
        "A synthwave night packed with neon visuals and soaring hooks.",
    ),
    (
        "sample-stubb",
        "Stubb’s Backyard Sessions",
        "Stubb's Waller Creek Amphitheater",
        8,
        24,
        "https://images.unsplash.com/photo-1489515217757-5fd1be406fef?auto=format&fit=crop&w=960&q=80",
        "Indie favorites with local openers and late-night food trucks.",
    ),
    (
        "sample-moody-center",
        "Moody Center Block Party",
        "Moody Center",
        42,
        37,
        "https://images.unsplash.com/photo-1519074002996-a69e7ac46a42?auto=format&fit=crop&w=960&q=80",
        "A stadium-sized pop spectacle with immersive light design.",
    ),
)


def sample_shows(now: datetime | None = None) -> list[ShowItem]:
    now = now or datetime.now(timezone.utc)
    items = []
    for order, (item_id, name, venue, distance, days, image, note) in enumerate(_SAMPLES):
        when = now + timedelta(days=days)
        items.append(
            ShowItem(
                id=item_id,
                name=name,
                local_date=when.date().isoformat(),
                local_time=when.strftime("%H:%M"),
                venue=Venue(name=venue, city="Austin", state="TX"),
                distance_miles=float(distance),
                image_url=image,
                url="#",
                order=order,
                is_sample=True,
                sample_note=note,
            )
        )
    return items


def preview_result(radius_miles: float, message: str | None = None) -> PanelResult:
    return PanelResult(
        items=sample_shows(),
        message=message or MSG_PREVIEW.format(radius=round(radius_miles)),
        empty_reason=EMPTY_PREVIEW,
    )


# -------------------------
# Eventbrite normalization
# -------------------------

def eventbrite_coordinates(raw: Any) -> tuple[float, float] | None:
    if not isinstance(raw, dict):
        return None
    venue = raw.get("venue") or {}
    address = venue.get("address") or {}
    lat = parse_coordinate(_coalesce(address.get("latitude"), venue.get("latitude"), address.get("lat")))
    lon = parse_coordinate(_coalesce(address.get("longitude"), venue.get("longitude"), address.get("lng")))
    if lat is None or lon is None:
        return None
    return lat, lon


def normalize_eventbrite_event(raw: dict[str, Any], order: int, distance: float | None = None) -> ShowItem:
    venue = raw.get("venue") or {}
    address = venue.get("address") or {}
    start = raw.get("start") or {}
    local_date, local_time = split_local_datetime(start.get("local") or start.get("utc") or "")

    name = raw.get("name") or {}
    fallback_name = name.get("text") or "event"
    logo = raw.get("logo") or {}

    return ShowItem(
        id=str(raw.get("id") or raw.get("url") or f"{fallback_name}-{order}"),
        name=name.get("text") or name.get("html") or "Live music event",
        local_date=local_date,
        local_time=local_time,
        venue=Venue(name=venue.get("name") or "", city=address.get("city") or "", state=address.get("region") or ""),
        distance_miles=distance,
        image_url=logo.get("url") or "",
        url=raw.get("url") or "",
        order=order,
    )


def _coalesce(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def matched_artists(raw: dict[str, Any], artist_lookup: dict[str, str]) -> list[str]:
    """
    Case-insensitive substring matches of artist names in the event name,
    summary and the start of the description.
    """
    if not artist_lookup:
        return []
    haystacks: list[str] = []
    name = (raw.get("name") or {}).get("text")
    if name:
        haystacks.append(name)
    if raw.get("summary"):
        haystacks.append(str(raw["summary"]))
    description = (raw.get("description") or {}).get("text")
    if description:
        haystacks.append(description[:MATCH_DESCRIPTION_CHARS])

    matches: list[str] = []
    for haystack in haystacks:
        lowered = haystack.lower()
        for key, original in artist_lookup.items():
            if key in lowered and original not in matches:
                matches.append(original)
    return matches


def artist_lookup(artists: list[dict]) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for artist in artists:
        name = (artist.get("name") or "").strip() if isinstance(artist, dict) else ""
        if name:
            lookup[name.lower()] = name
    return lookup


def rank_events(raw_events: list[dict], artists: list[dict], location: Location, radius_miles: float) -> list[ShowItem]:
    """
    Events with venue coordinates inside ``radius_miles`` only. Artist matches
    come first; each group by distance with original order breaking ties.
    """
    lookup = artist_lookup(artists)
    matching: list[ShowItem] = []
    others: list[ShowItem] = []
    nearby = within_radius((location.latitude, location.longitude), raw_events, radius_miles, eventbrite_coordinates)
    for counter, (raw, distance) in enumerate(nearby):
        item = normalize_eventbrite_event(raw, counter, distance)
        matches = matched_artists(raw, lookup)
        if matches:
            matching.append(replace(item, matched_artists=tuple(matches)))
        else:
            others.append(item)

    def by_distance(items: list[ShowItem]) -> list[ShowItem]:
        return sort_by_distance(items, lambda i: i.distance_miles, lambda i: i.order)

    return by_distance(matching) + by_distance(others)


def client_cache_key(scope: str, location: Location, radius_miles: float | None, start_date: str, days: int) -> str:
    radius = f"{radius_miles:.1f}" if radius_miles is not None else "na"
    return f"{scope}:{location.latitude:.3f}:{location.longitude:.3f}:{radius}:{start_date}:{days}"


async def fetch_nearby_events(
    session: SessionState,
    proxy: EventbriteProxy,
    location: Location,
    radius_miles: float,
    manual_token: str | None,
    start_date: str | None = None,
) -> list[dict[str, Any]]:
    scope = "manual" if manual_token else "server"
    start = start_date or to_date_string(today_utc())
    key = client_cache_key(scope, location, radius_miles, start, EVENTBRITE_LOOKAHEAD_DAYS)

    data = session.eventbrite_cache.get(key)
    if data is None:
        query = build_coordinate_query(
            location.latitude,
            location.longitude,
            radius_miles,
            start,
            EVENTBRITE_LOOKAHEAD_DAYS,
            token=manual_token,
            default_token=proxy.default_token,
        )
        resp = await proxy.fetch(query)
        if not resp.ok:
            raise UpstreamError("Eventbrite", f"Eventbrite HTTP {resp.status}: {resp.text[:200]}", status=resp.status)
        try:
            data = json.loads(resp.text)
        except ValueError as e:
            raise UpstreamError("Eventbrite", "Eventbrite invalid JSON response") from e
        session.eventbrite_cache.set(key, data)

    events = data.get("events") if isinstance(data, dict) else None
    return [e for e in events if isinstance(e, dict)] if isinstance(events, list) else []


# -------------------------
# Panel
# -------------------------

async def load_shows(
    session: SessionState,
    proxy: EventbriteProxy,
    config: ShowsConfig | None = None,
    manual_token: str | None = None,
    triggered_by_user: bool = False,
    server_has_token: bool | None = None,
    client: httpx.AsyncClient | None = None,
) -> PanelResult:
    config = config or load_shows_config(session)
    radius_label = round(config.radius_miles)
    if server_has_token is None:
        server_has_token = bool(proxy.default_token)
    requires_manual = not server_has_token

    spotify_token = get_text(session.store, KEY_SPOTIFY_TOKEN)
    typed_token = (manual_token or "").strip()
    eventbrite_token = typed_token or get_text(session.store, KEY_EVENTBRITE_TOKEN)

    if not spotify_token:
        return preview_result(config.radius_miles)

    if requires_manual and not eventbrite_token:
        return PanelResult(message=MSG_TOKEN_REQUIRED)

    if requires_manual and typed_token:
        session.store.set(KEY_EVENTBRITE_TOKEN, typed_token)
    elif not requires_manual:
        session.store.remove(KEY_EVENTBRITE_TOKEN)

    try:
        try:
            artists = await spotify.fetch_top_artists(spotify_token, config.artist_limit, client=client)
        except SpotifyAuthError:
            session.store.remove(KEY_SPOTIFY_TOKEN)
            return preview_result(config.radius_miles, MSG_SESSION_EXPIRED)

        if not artists:
            return PanelResult(message=MSG_NO_ARTISTS)

        location = await session.shows_location.get(allow_retry=triggered_by_user)
        if location is None:
            return PanelResult(message=MSG_LOCATION_DENIED.format(radius=radius_label), empty_reason=EMPTY_LOCATION_DENIED)

        raw_events = await fetch_nearby_events(
            session, proxy, location, config.radius_miles, eventbrite_token if requires_manual else None
        )
        events = rank_events(raw_events, artists, location, config.radius_miles)

        if events:
            result = PanelResult.from_items(events, session.shows_prefs)
            if not result.items:
                result.message = MSG_ALL_DISMISSED
            return result

        suggestions: list[dict[str, str]] = []
        if config.include_suggestions:
            try:
                suggestions = await spotify.fetch_suggestions(spotify_token, artists, client=client)
            except DecisionMakerError as e:
                logger.warning("Failed to load Spotify suggestions: %s", e)
        return PanelResult(
            message=MSG_NO_NEARBY.format(radius=radius_label),
            empty_reason=EMPTY_NO_NEARBY,
            suggestions=suggestions,
        )
    except DecisionMakerError as e:
        logger.error(f"Failed to load shows: {e}", exc_info=True)
        return PanelResult(message=MSG_FAILED)


def set_show_status(session: SessionState, item_id: str, status: str | None) -> str | None:
    """Toggle a show status; returns the status now stored."""
    if status is None:
        session.shows_prefs.set_status(item_id, None)
        return None
    return session.shows_prefs.toggle(item_id, status)


# -------------------------
# Spotify login
# -------------------------

def start_spotify_login(session: SessionState, client_id: str | None = None, redirect_uri: str | None = None) -> str:
    settings = get_settings()
    verifier = spotify.generate_code_verifier()
    url = spotify.build_authorize_url(
        client_id or settings.spotify_client_id or "", redirect_uri or settings.spotify_redirect_uri, verifier
    )
    session.store.set(KEY_SPOTIFY_VERIFIER, verifier)
    return url


async def complete_spotify_login(
    session: SessionState,
    code: str,
    client_id: str | None = None,
    redirect_uri: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Exchange ``code`` with the stored verifier; stores the access token on success."""
    settings = get_settings()
    verifier = get_text(session.store, KEY_SPOTIFY_VERIFIER)
    if not code or not verifier:
        return False
    token = await spotify.exchange_code(
        code,
        verifier,
        client_id or settings.spotify_client_id or "",
        redirect_uri or settings.spotify_redirect_uri,
        client=client,
    )
    session.store.remove(KEY_SPOTIFY_VERIFIER)
    if not token:
        return False
    session.store.set(KEY_SPOTIFY_TOKEN, token)
    return True
