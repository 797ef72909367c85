"""
Free-form Eventbrite search with a user-supplied token.

Only the most recent search per session is allowed to finish: starting a new
one cancels the task still in flight, and the cancelled caller gets no
message at all.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from decision_maker.core.constants import (
    EVENTBRITE_DESCRIPTION_CHARS,
    KEY_EVENTBRITE_LOCATION,
    KEY_EVENTBRITE_QUERY,
    KEY_EVENTBRITE_RADIUS,
    KEY_EVENTBRITE_TOKEN,
)
from decision_maker.core.dates import format_timestamp
from decision_maker.core.exceptions import DecisionMakerError
from decision_maker.integrations import eventbrite
from decision_maker.services.session import SessionState
from decision_maker.storage.kv import get_text, set_text

logger = logging.getLogger(__name__)

MSG_INTRO = "Enter an API token plus keywords or a location to discover Eventbrite events."
MSG_NO_RESULTS = "No events found. Try a different search."
MSG_FAILED = "Unable to load events."

_WHITESPACE = re.compile(r"\s+")


def truncate(text: str | None, max_length: int = EVENTBRITE_DESCRIPTION_CHARS) -> str:
    if not text:
        return ""
    clean = _WHITESPACE.sub(" ", text).strip()
    if len(clean) <= max_length:
        return clean
    return f"{clean[: max_length - 1].strip()}…"


def format_venue(venue: dict[str, Any] | None, online_event: bool = False) -> str:
    venue = venue or {}
    address = venue.get("address") or {}
    parts: list[str] = []
    if venue.get("name"):
        parts.append(venue["name"])
    line = address.get("localized_address_display") or ", ".join(
        p for p in (address.get("city"), address.get("region")) if p
    )
    if line:
        parts.append(line)
    if online_event:
        parts.append("Online event")
    return " • ".join(parts)


def maps_url(venue: dict[str, Any] | None) -> str:
    venue = venue or {}
    display = (venue.get("address") or {}).get("localized_address_display")
    if not venue.get("name") or not display:
        return ""
    return f"https://www.google.com/maps/search/?api=1&query={quote(display, safe='')}"


@dataclass(frozen=True)
class EventCard:
    title: str
    meta: str
    description: str
    url: str
    maps_url: str

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "meta": self.meta,
            "description": self.description,
            "url": self.url,
            "mapsUrl": self.maps_url,
        }


def format_event(event: dict[str, Any]) -> EventCard:
    start = event.get("start") or {}
    meta = [format_timestamp(start.get("local") or start.get("utc"))]
    venue_text = format_venue(event.get("venue"), bool(event.get("online_event")))
    if venue_text:
        meta.append(venue_text)
    if isinstance(event.get("is_free"), bool):
        meta.append("Free" if event["is_free"] else "Paid")
    if event.get("status") and event["status"] != "live":
        meta.append(f"Status: {event['status']}")

    return EventCard(
        title=(event.get("name") or {}).get("text") or "Untitled event",
        meta=" • ".join(p for p in meta if p),
        description=truncate((event.get("description") or {}).get("text")),
        url=event.get("url") or "",
        maps_url=maps_url(event.get("venue")),
    )


@dataclass
class SearchResult:
    cards: list[EventCard] = field(default_factory=list)
    message: str = ""
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "cards": [c.to_dict() for c in self.cards],
            "message": self.message,
            "cancelled": self.cancelled,
        }


def last_inputs(session: SessionState) -> dict[str, str]:
    return {
        "token": get_text(session.store, KEY_EVENTBRITE_TOKEN),
        "query": get_text(session.store, KEY_EVENTBRITE_QUERY),
        "location": get_text(session.store, KEY_EVENTBRITE_LOCATION),
        "radius": get_text(session.store, KEY_EVENTBRITE_RADIUS),
    }


def initial_message(session: SessionState) -> str:
    inputs = last_inputs(session)
    if inputs["token"] and (inputs["query"] or inputs["location"]):
        return ""
    return MSG_INTRO


async def search(
    session: SessionState,
    token: str | None,
    query: str | None = None,
    location: str | None = None,
    radius: str | None = None,
) -> SearchResult:
    token = (token or "").strip()
    query = (query or "").strip()
    location = (location or "").strip()
    radius = (radius or "").strip()

    set_text(session.store, KEY_EVENTBRITE_TOKEN, token)
    set_text(session.store, KEY_EVENTBRITE_QUERY, query)
    set_text(session.store, KEY_EVENTBRITE_LOCATION, location)
    set_text(session.store, KEY_EVENTBRITE_RADIUS, radius)

    previous = session.eventbrite_search
    if previous is not None and not previous.done():
        previous.cancel()

    task = asyncio.ensure_future(eventbrite.search_events(token, query, location, radius))
    session.eventbrite_search = task
    try:
        events = await task
    except asyncio.CancelledError:
        if task.cancelled() and session.eventbrite_search is not task:
            return SearchResult(cancelled=True)
        raise
    except DecisionMakerError as e:
        logger.warning("Unable to load Eventbrite events: %s", e)
        return SearchResult(message=e.user_message or MSG_FAILED)
    finally:
        if session.eventbrite_search is task:
            session.eventbrite_search = None

    if not events:
        return SearchResult(message=MSG_NO_RESULTS)
    return SearchResult(cards=[format_event(e) for e in events if isinstance(e, dict)])
