"""
Live music panel: Spotify artists matched against nearby Eventbrite events.
"""
from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from decision_maker.core.constants import (
    EMPTY_LOCATION_DENIED,
    EMPTY_NO_NEARBY,
    EMPTY_PREVIEW,
    KEY_EVENTBRITE_TOKEN,
    KEY_SPOTIFY_TOKEN,
    KEY_SPOTIFY_VERIFIER,
)
from decision_maker.core.exceptions import ConfigurationError
from decision_maker.integrations.eventbrite import EventbriteProxy
from decision_maker.panels.shows import (
    MSG_ALL_DISMISSED,
    MSG_NO_ARTISTS,
    MSG_SESSION_EXPIRED,
    MSG_TOKEN_REQUIRED,
    ShowsConfig,
    complete_spotify_login,
    load_shows,
    set_show_status,
    start_spotify_login,
)

from tests.fakes.event_stubs import ARTISTS, AUSTIN, HOUSTON, NEAR_AUSTIN, artists_page, eb_event, eb_page, track

TOP_ARTISTS = "api.spotify.com/v1/me/top/artists"
RECOMMENDATIONS = "api.spotify.com/v1/recommendations"
TOKEN = "accounts.spotify.com/api/token"
SEARCH = "www.eventbriteapi.com/v3/events/search/"


@pytest.fixture
def listener(session_state):
    session_state.store.set(KEY_SPOTIFY_TOKEN, "spotify-token")
    session_state.report_location(*AUSTIN)
    return session_state


@pytest.fixture
def proxy():
    return EventbriteProxy(default_token="server")


class TestPreview:
    @pytest.mark.asyncio
    async def test_samples_without_spotify(self, session_state, proxy):
        result = await load_shows(session_state, proxy, ShowsConfig(radius_miles=120))
        assert len(result.items) == 3
        assert all(i.is_sample for i in result.items)
        assert result.empty_reason == EMPTY_PREVIEW
        assert "within 120 miles" in result.message

    @pytest.mark.asyncio
    async def test_expired_spotify_session(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, (401, {"error": {"status": 401, "message": "The access token expired"}}))

        result = await load_shows(listener, proxy)

        assert result.message == MSG_SESSION_EXPIRED
        assert result.empty_reason == EMPTY_PREVIEW
        assert listener.store.get(KEY_SPOTIFY_TOKEN) is None


class TestLoadShows:
    @pytest.mark.asyncio
    async def test_eventbrite_token_required(self, listener):
        result = await load_shows(listener, EventbriteProxy(default_token=""))
        assert result.message == MSG_TOKEN_REQUIRED

    @pytest.mark.asyncio
    async def test_manual_token_is_remembered(self, upstream, listener):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        upstream.add(SEARCH, eb_page(eb_event("e1", "Khruangbin")))

        await load_shows(listener, EventbriteProxy(default_token=""), manual_token=" mine ")

        assert listener.store.get(KEY_EVENTBRITE_TOKEN) == "mine"
        assert upstream.calls(SEARCH)[0].headers["Authorization"] == "Bearer mine"

    @pytest.mark.asyncio
    async def test_no_top_artists(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page([]))
        result = await load_shows(listener, proxy)
        assert result.message == MSG_NO_ARTISTS

    @pytest.mark.asyncio
    async def test_location_denied(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        listener.deny_location()

        result = await load_shows(listener, proxy)

        assert result.empty_reason == EMPTY_LOCATION_DENIED
        assert result.message == "Allow location access to see shows within 300 miles."

    @pytest.mark.asyncio
    async def test_denial_after_a_successful_search(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        upstream.add(SEARCH, eb_page(eb_event("e1", "Khruangbin")))
        assert (await load_shows(listener, proxy)).items

        listener.deny_location()
        result = await load_shows(listener, proxy, triggered_by_user=True)

        assert result.empty_reason == EMPTY_LOCATION_DENIED
        assert result.items == []

    @pytest.mark.asyncio
    async def test_matching_events_come_first(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        upstream.add(
            SEARCH,
            eb_page(
                eb_event("plain", "Open mic", coords=NEAR_AUSTIN),
                eb_event("match", "Khruangbin", coords=HOUSTON),
            ),
        )

        result = await load_shows(listener, proxy)

        assert [i.id for i in result.items] == ["match", "plain"]
        assert result.items[0].matched_artists == ("Khruangbin",)
        assert result.items[0].to_dict()["date_text"] == "Nov 2, 2026, 7:30 PM"

    @pytest.mark.asyncio
    async def test_events_are_cached_per_session(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        upstream.add(SEARCH, eb_page(eb_event("e1", "Khruangbin")))

        await load_shows(listener, proxy)
        await load_shows(listener, EventbriteProxy(default_token="server"))

        assert len(upstream.calls(SEARCH)) == 1

    @pytest.mark.asyncio
    async def test_all_dismissed(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        upstream.add(SEARCH, eb_page(eb_event("e1", "Khruangbin")))
        set_show_status(listener, "e1", "notInterested")

        result = await load_shows(listener, proxy)

        assert result.items == []
        assert [i.id for i in result.dismissed] == ["e1"]
        assert result.message == MSG_ALL_DISMISSED

    @pytest.mark.asyncio
    async def test_suggestions_when_nothing_is_nearby(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        upstream.add(SEARCH, eb_page())
        upstream.add(RECOMMENDATIONS, (400, {"error": "invalid seeds"}), {"tracks": [track("t1", "Kyoto")]})

        result = await load_shows(listener, proxy)

        assert result.empty_reason == EMPTY_NO_NEARBY
        assert result.message == "No nearby shows within 300 miles."
        assert [s["id"] for s in result.suggestions] == ["t1"]
        assert len(upstream.calls(RECOMMENDATIONS)) == 2

    @pytest.mark.asyncio
    async def test_suggestions_can_be_turned_off(self, upstream, listener, proxy):
        upstream.add(TOP_ARTISTS, artists_page(ARTISTS))
        upstream.add(SEARCH, eb_page())

        result = await load_shows(listener, proxy, ShowsConfig(include_suggestions=False))

        assert result.suggestions == []
        assert upstream.calls(RECOMMENDATIONS) == []


class TestSpotifyLogin:
    def test_requires_client_id(self, session_state):
        with pytest.raises(ConfigurationError):
            start_spotify_login(session_state)

    def test_stores_the_verifier(self, session_state, configure):
        configure(SPOTIFY_CLIENT_ID="cid")

        url = start_spotify_login(session_state)

        params = parse_qs(urlparse(url).query)
        assert params["client_id"] == ["cid"]
        assert len(session_state.store.get(KEY_SPOTIFY_VERIFIER)) == 64

    @pytest.mark.asyncio
    async def test_code_exchange(self, upstream, session_state, configure):
        configure(SPOTIFY_CLIENT_ID="cid")
        upstream.add(TOKEN, {"access_token": "fresh", "token_type": "Bearer"})
        start_spotify_login(session_state)
        verifier = session_state.store.get(KEY_SPOTIFY_VERIFIER)

        assert await complete_spotify_login(session_state, "auth-code") is True

        form = parse_qs(upstream.calls(TOKEN)[0].content.decode())
        assert form["code_verifier"] == [verifier]
        assert form["grant_type"] == ["authorization_code"]
        assert session_state.store.get(KEY_SPOTIFY_TOKEN) == "fresh"
        assert session_state.store.get(KEY_SPOTIFY_VERIFIER) is None

    @pytest.mark.asyncio
    async def test_refused_exchange(self, upstream, session_state, configure):
        configure(SPOTIFY_CLIENT_ID="cid")
        upstream.add(TOKEN, (400, {"error": "invalid_grant"}))
        start_spotify_login(session_state)

        assert await complete_spotify_login(session_state, "stale") is False
        assert session_state.store.get(KEY_SPOTIFY_TOKEN) is None

    @pytest.mark.asyncio
    async def test_without_verifier(self, session_state):
        assert await complete_spotify_login(session_state, "code") is False
