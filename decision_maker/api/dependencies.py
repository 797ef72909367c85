from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Header, Request

from decision_maker.core.config import Settings, get_settings
from decision_maker.integrations.eventbrite import EventbriteProxy
from decision_maker.integrations.spoonacular import SpoonacularProxy
from decision_maker.integrations.ticketmaster import TicketmasterClient
from decision_maker.integrations.tmdb import TmdbProxy
from decision_maker.integrations.yelp import YelpProxy
from decision_maker.services.session import SessionRegistry, SessionState
from decision_maker.storage.kv import JsonFileStore, KeyValueStore, MemoryStore


@dataclass
class Services:
    """Long-lived clients and stores shared by every request."""

    ticketmaster: TicketmasterClient
    eventbrite: EventbriteProxy
    spoonacular: SpoonacularProxy
    yelp: YelpProxy
    tmdb: TmdbProxy
    sessions: SessionRegistry
    saved_movies: KeyValueStore


def build_services(settings: Settings | None = None, persist: bool = True) -> Services:
    settings = settings or get_settings()
    storage_dir = Path(settings.storage_dir) if persist else None
    return Services(
        ticketmaster=TicketmasterClient(),
        eventbrite=EventbriteProxy(),
        spoonacular=SpoonacularProxy(),
        yelp=YelpProxy(),
        tmdb=TmdbProxy(),
        sessions=SessionRegistry(storage_dir),
        saved_movies=JsonFileStore(storage_dir / "saved_movies.json") if storage_dir else MemoryStore(),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_session_state(
    session_id: str,
    services: ServicesDep,
    x_user_id: Annotated[str | None, Header()] = None,
) -> SessionState:
    session = services.sessions.get(session_id)
    if x_user_id:
        session.user_id = x_user_id
    return session


SessionDep = Annotated[SessionState, Depends(get_session_state)]
