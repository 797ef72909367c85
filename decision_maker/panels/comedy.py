from __future__ import annotations

import json
import logging
from typing import Any

from decision_maker.core.constants import (
    COMEDY_MAX_DISTANCE_MILES,
    COMEDY_PAGE_SIZE,
    COMEDY_SEARCH_RADIUS,
    EMPTY_LOCATION_DENIED,
    EMPTY_NO_NEARBY,
    KEY_TICKETMASTER_KEY,
)
from decision_maker.core.geo import sort_by_distance, within_radius
from decision_maker.core.exceptions import DecisionMakerError
from decision_maker.integrations.ticketmaster import (
    TicketmasterClient,
    extract_events,
    first_venue,
    pick_image,
    venue_coordinates,
)
from decision_maker.panels.common import PanelResult, ShowItem, Venue
from decision_maker.services.session import Location, SessionState
from decision_maker.storage.kv import get_text

logger = logging.getLogger(__name__)

MSG_KEY_REQUIRED = "Please enter your Ticketmaster API key."
MSG_RATE_LIMITED = "Ticketmaster rate limit reached. Try again later."
MSG_NO_NEARBY = "No stand-up shows nearby within 300 miles."
MSG_LOCATION_DENIED = "Allow location access to discover nearby stand-up comedy."
MSG_ALL_DISMISSED = "No other stand-up shows right now. Review the ones you skipped below."
MSG_FAILED = "Failed to load stand-up comedy shows."


def comedy_items(events: list[dict[str, Any]], location: Location) -> list[ShowItem]:
    """Venues without coordinates are skipped; anything past 300 miles is dropped."""
    nearby = within_radius(
        (location.latitude, location.longitude),
        events,
        COMEDY_MAX_DISTANCE_MILES,
        lambda event: venue_coordinates(first_venue(event)),
    )
    items: list[ShowItem] = []
    for counter, (event, distance) in enumerate(nearby):
        venue = first_venue(event)
        start = (event.get("dates") or {}).get("start") or {}
        items.append(
            ShowItem(
                id=str(event.get("id") or f"{event.get('name') or 'event'}-{counter}"),
                name=event.get("name") or "",
                local_date=start.get("localDate") or "",
                local_time=(start.get("localTime") or "")[:5],
                venue=Venue(
                    name=venue.get("name") or "",
                    city=(venue.get("city") or {}).get("name") or "",
                    state=(venue.get("state") or {}).get("stateCode") or "",
                ),
                distance_miles=distance,
                image_url=pick_image(event),
                url=event.get("url") or "",
                order=counter,
            )
        )
    return sort_by_distance(items, lambda i: i.distance_miles, lambda i: i.order)


async def load_comedy(
    session: SessionState,
    client: TicketmasterClient,
    manual_key: str | None = None,
) -> PanelResult:
    requires_manual = not client.has_key
    typed_key = (manual_key or "").strip()
    api_key = typed_key or get_text(session.store, KEY_TICKETMASTER_KEY)

    if requires_manual and not api_key:
        return PanelResult(message=MSG_KEY_REQUIRED)
    if requires_manual and typed_key:
        session.store.set(KEY_TICKETMASTER_KEY, typed_key)
    elif not requires_manual:
        session.store.remove(KEY_TICKETMASTER_KEY)

    try:
        location = await session.comedy_location.get()
        if location is None:
            return PanelResult(message=MSG_LOCATION_DENIED, empty_reason=EMPTY_LOCATION_DENIED)

        resp = await client.search_events(
            "comedy",
            api_key if requires_manual else None,
            classificationName="Comedy",
            latlong=f"{location.latitude},{location.longitude}",
            radius=str(COMEDY_SEARCH_RADIUS),
            size=str(COMEDY_PAGE_SIZE),
        )
        if resp.status == 429:
            return PanelResult(message=MSG_RATE_LIMITED)
        if not resp.ok:
            logger.error(f"Ticketmaster HTTP {resp.status} while loading comedy shows")
            return PanelResult(message=MSG_FAILED)

        try:
            data = json.loads(resp.text)
        except ValueError:
            logger.error("Ticketmaster returned invalid JSON for comedy shows", exc_info=True)
            return PanelResult(message=MSG_FAILED)

        items = comedy_items(extract_events(data), location)
        if not items:
            return PanelResult(message=MSG_NO_NEARBY, empty_reason=EMPTY_NO_NEARBY)

        result = PanelResult.from_items(items, session.comedy_prefs)
        if not result.items:
            result.message = MSG_ALL_DISMISSED
        return result
    except DecisionMakerError as e:
        logger.error(f"Failed to load stand-up comedy shows: {e}", exc_info=True)
        return PanelResult(message=MSG_FAILED)


def set_comedy_status(session: SessionState, item_id: str, status: str | None) -> str | None:
    if status is None:
        session.comedy_prefs.set_status(item_id, None)
        return None
    return session.comedy_prefs.toggle(item_id, status)

