"""
Per-session panel routes under ``/sessions/{session_id}``.

Each route runs one panel operation against the session's state and returns
what the panel would render.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Query

from decision_maker.api.dependencies import ServicesDep, SessionDep
from decision_maker.api.schemas import (
    HideRecipe,
    LocationReport,
    MovieStatusUpdate,
    RatingUpdate,
    ShowsConfigUpdate,
    StatusUpdate,
    TvFeedFiltersUpdate,
    TvStatusUpdate,
)
from decision_maker.core.exceptions import ValidationError
from decision_maker.panels import comedy, eventbrite_search, movies, recipes, restaurants, shows, tv
from decision_maker.panels.movies import WATCHED_SORT_MODES

router = APIRouter(prefix="/sessions/{session_id}")


# -------------------------
# Location
# -------------------------

@router.post("/location")
async def report_location(session: SessionDep, body: LocationReport) -> dict[str, Any]:
    location = session.report_location(body.latitude, body.longitude)
    return {"latitude": location.latitude, "longitude": location.longitude}


@router.post("/location/deny")
async def deny_location(session: SessionDep) -> dict[str, Any]:
    session.deny_location()
    return {"denied": True}


# -------------------------
# Live music
# -------------------------

@router.get("/shows")
async def load_shows(session: SessionDep, services: ServicesDep, token: str | None = None, retry: bool = False):
    result = await shows.load_shows(session, services.eventbrite, manual_token=token, triggered_by_user=retry)
    return result.to_dict()


@router.get("/shows/config")
async def get_shows_config(session: SessionDep) -> dict[str, Any]:
    return shows.load_shows_config(session).to_storage()


@router.put("/shows/config")
async def put_shows_config(session: SessionDep, body: ShowsConfigUpdate) -> dict[str, Any]:
    return shows.update_shows_config(session, body.model_dump(exclude_none=True)).to_storage()


@router.put("/shows/{item_id}/status")
async def put_show_status(session: SessionDep, item_id: str, body: StatusUpdate) -> dict[str, Any]:
    return {"id": item_id, "status": shows.set_show_status(session, item_id, body.status)}


@router.get("/spotify/login")
async def spotify_login(session: SessionDep) -> dict[str, str]:
    return {"url": shows.start_spotify_login(session)}


@router.get("/spotify/callback")
async def spotify_callback(session: SessionDep, code: str | None = None) -> dict[str, bool]:
    return {"connected": await shows.complete_spotify_login(session, code or "")}


# -------------------------
# Stand-up comedy
# -------------------------

@router.get("/comedy")
async def load_comedy(session: SessionDep, services: ServicesDep, apiKey: str | None = None):
    result = await comedy.load_comedy(session, services.ticketmaster, manual_key=apiKey)
    return result.to_dict()


@router.put("/comedy/{item_id}/status")
async def put_comedy_status(session: SessionDep, item_id: str, body: StatusUpdate) -> dict[str, Any]:
    return {"id": item_id, "status": comedy.set_comedy_status(session, item_id, body.status)}


# -------------------------
# Eventbrite search
# -------------------------

@router.get("/eventbrite")
async def search_eventbrite(
    session: SessionDep,
    token: str | None = None,
    query: str | None = None,
    location: str | None = None,
    radius: str | None = None,
):
    result = await eventbrite_search.search(session, token, query, location, radius)
    return result.to_dict()


@router.get("/eventbrite/inputs")
async def eventbrite_inputs(session: SessionDep) -> dict[str, Any]:
    return {**eventbrite_search.last_inputs(session), "message": eventbrite_search.initial_message(session)}


# -------------------------
# Recipes
# -------------------------

@router.get("/recipes")
async def load_recipes(session: SessionDep, services: ServicesDep, query: str | None = None):
    result = await recipes.load_recipes(session.store, services.spoonacular, query)
    return result.to_dict()


@router.post("/recipes/hide")
async def hide_recipe(session: SessionDep, body: HideRecipe) -> dict[str, Any]:
    return {"hidden": recipes.RecipeLists(session.store).hide(body.title)}


@router.post("/recipes/save")
async def save_recipe(session: SessionDep, recipe: dict[str, Any] = Body(...)) -> dict[str, Any]:
    lists = recipes.RecipeLists(session.store)
    added = lists.save(recipe)
    return {"added": added, "saved": lists.saved()}


@router.get("/recipes/saved")
async def saved_recipes(session: SessionDep) -> list[dict[str, Any]]:
    return recipes.RecipeLists(session.store).saved()


# -------------------------
# Restaurants
# -------------------------

@router.get("/restaurants")
async def load_restaurants(session: SessionDep, services: ServicesDep, city: str | None = None, cuisine: str | None = None):
    result = await restaurants.load_restaurants(session, services.yelp, city=city, cuisine=cuisine)
    return result.to_dict()


# -------------------------
# Movies
# -------------------------

def _check_sort(watched_sort: str) -> None:
    if watched_sort not in WATCHED_SORT_MODES:
        raise ValidationError(f"Invalid watched sort {watched_sort!r}", user_message="invalid_sort")


@router.get("/movies")
async def load_movies(
    session: SessionDep,
    services: ServicesDep,
    apiKey: str | None = None,
    watchedSort: str = "recent",
    genre: list[str] | None = Query(default=None),
):
    _check_sort(watchedSort)
    result = await movies.load_movies(
        session, services.tmdb, api_key=apiKey, watched_sort=watchedSort, selected_genres=genre
    )
    return result.to_dict()


@router.get("/movies/saved")
async def saved_movies(
    session: SessionDep, services: ServicesDep, genre: list[str] | None = Query(default=None)
) -> dict[str, Any]:
    return await movies.saved_movies(session, services.tmdb, selected_genres=genre)


@router.put("/movies/{movie_id}/status")
async def put_movie_status(session: SessionDep, services: ServicesDep, movie_id: str, body: MovieStatusUpdate) -> dict[str, Any]:
    movie = {**body.movie, "id": body.movie.get("id", movie_id)}
    source = movies.resolve_source(session, services.tmdb)
    return await movies.set_status(session, movie, body.status, interest=body.interest, source=source)


@router.put("/movies/{movie_id}/rating")
async def put_movie_rating(session: SessionDep, movie_id: str, body: RatingUpdate) -> dict[str, Any]:
    entry = await movies.set_user_rating(session, movie_id, body.rating)
    return {"id": movie_id, "entry": entry}


@router.delete("/movies/{movie_id}/status")
async def delete_movie_status(session: SessionDep, movie_id: str) -> dict[str, Any]:
    return {"feed": await movies.clear_status(session, movie_id)}


# -------------------------
# TV
# -------------------------

@router.get("/tv")
async def load_tv(
    session: SessionDep,
    services: ServicesDep,
    apiKey: str | None = None,
    watchedSort: str = "recent",
    genre: list[str] | None = Query(default=None),
):
    _check_sort(watchedSort)
    result = await tv.load_tv(session, services.tmdb, api_key=apiKey, watched_sort=watchedSort, selected_genres=genre)
    return {**result.to_dict(), "filters": tv.load_feed_filters(session.store).to_dict()}


@router.get("/tv/saved")
async def saved_tv(
    session: SessionDep, services: ServicesDep, genre: list[str] | None = Query(default=None)
) -> dict[str, Any]:
    return await tv.saved_shows(session, services.tmdb, selected_genres=genre)


@router.get("/tv/filters")
async def get_tv_filters(session: SessionDep) -> dict[str, Any]:
    return tv.load_feed_filters(session.store).to_dict()


@router.put("/tv/filters")
async def put_tv_filters(session: SessionDep, body: TvFeedFiltersUpdate) -> dict[str, Any]:
    return tv.update_feed_filters(session.store, body.model_dump(exclude_unset=True)).to_dict()


@router.delete("/tv/filters")
async def delete_tv_filters(session: SessionDep) -> dict[str, Any]:
    return tv.clear_feed_filters(session.store).to_dict()


@router.put("/tv/{show_id}/status")
async def put_tv_status(session: SessionDep, services: ServicesDep, show_id: str, body: TvStatusUpdate) -> dict[str, Any]:
    show = {**body.show, "id": body.show.get("id", show_id)}
    source = tv.resolve_source(session, services.tmdb)
    return await tv.set_status(session, show, body.status, interest=body.interest, source=source)


@router.put("/tv/{show_id}/rating")
async def put_tv_rating(session: SessionDep, show_id: str, body: RatingUpdate) -> dict[str, Any]:
    entry = await tv.set_user_rating(session, show_id, body.rating)
    return {"id": show_id, "entry": entry}


@router.delete("/tv/{show_id}/status")
async def delete_tv_status(session: SessionDep, show_id: str) -> dict[str, Any]:
    return {"feed": await tv.clear_status(session, show_id)}
