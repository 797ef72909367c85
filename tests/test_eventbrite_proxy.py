"""
Eventbrite coordinate proxy and keyword search.
"""
from __future__ import annotations

import pytest

from decision_maker.cache.response_cache import ResponseCache
from decision_maker.core.exceptions import UpstreamError, ValidationError
from decision_maker.integrations.eventbrite import EventbriteProxy, build_coordinate_query, search_events

from tests.fakes.event_stubs import eb_event, eb_page
from tests.fakes.upstream import network_down, query

SEARCH = "www.eventbriteapi.com/v3/events/search/"


def _query(**overrides):
    args = dict(lat=30.2672, lon=-97.7431, radius=None, start_date="2026-11-01", days=14, default_token="server")
    args.update(overrides)
    return build_coordinate_query(**args)


class TestEventbriteProxy:
    @pytest.mark.asyncio
    async def test_upstream_params(self, upstream):
        upstream.add(SEARCH, eb_page(eb_event("e1", "Jazz Night")))

        resp = await EventbriteProxy().fetch(_query())

        assert resp.ok
        request = upstream.calls(SEARCH)[0]
        assert request.headers["Authorization"] == "Bearer server"
        assert query(request) == {
            "location.latitude": "30.2672",
            "location.longitude": "-97.7431",
            "expand": "venue",
            "sort_by": "date",
            "start_date.range_start": "2026-11-01T00:00:00Z",
            "start_date.range_end": "2026-11-14T23:59:59Z",
            "location.within": "100.0mi",
        }

    @pytest.mark.asyncio
    async def test_memory_cache(self, upstream):
        upstream.add(SEARCH, eb_page(eb_event("e1", "Jazz Night")))
        proxy = EventbriteProxy()

        await proxy.fetch(_query())
        await proxy.fetch(_query(lat=30.26721))

        assert len(upstream.calls(SEARCH)) == 1

    @pytest.mark.asyncio
    async def test_shared_cache_survives_a_new_proxy(self, upstream):
        upstream.add(SEARCH, eb_page(eb_event("e1", "Jazz Night")))
        shared = ResponseCache("eventbriteCache", 3600)

        first = await EventbriteProxy(shared).fetch(_query())
        second = await EventbriteProxy(shared).fetch(_query())

        assert second.text == first.text
        assert len(upstream.calls(SEARCH)) == 1

    @pytest.mark.asyncio
    async def test_errors_stay_out_of_the_shared_cache(self, upstream):
        upstream.add(SEARCH, (401, {"error": "INVALID_AUTH"}), eb_page())
        shared = ResponseCache("eventbriteCache", 3600)

        first = await EventbriteProxy(shared).fetch(_query())
        second = await EventbriteProxy(shared).fetch(_query())

        assert first.status == 401
        assert second.ok
        assert shared.memory_size() == 1

    @pytest.mark.asyncio
    async def test_manual_and_server_scopes_do_not_share(self, upstream):
        upstream.add(SEARCH, eb_page())
        proxy = EventbriteProxy()

        await proxy.fetch(_query())
        await proxy.fetch(_query(token="mine"))

        assert [r.headers["Authorization"] for r in upstream.calls(SEARCH)] == ["Bearer server", "Bearer mine"]


class TestKeywordSearch:
    @pytest.mark.asyncio
    async def test_params(self, upstream):
        upstream.add(SEARCH, eb_page(eb_event("e1", "Jazz Night")))

        events = await search_events("tok", "jazz", "Austin, TX", "25mi")

        assert [e["id"] for e in events] == ["e1"]
        params = query(upstream.calls(SEARCH)[0])
        assert params["q"] == "jazz"
        assert params["location.address"] == "Austin, TX"
        assert params["location.within"] == "25mi"
        assert params["expand"] == "venue"

    @pytest.mark.asyncio
    async def test_radius_needs_a_location(self, upstream):
        upstream.add(SEARCH, eb_page())

        await search_events("tok", "jazz", "", "25mi")

        assert "location.within" not in query(upstream.calls(SEARCH)[0])

    @pytest.mark.asyncio
    async def test_error_body_becomes_the_message(self, upstream):
        upstream.add(SEARCH, (401, {"error_description": "The OAuth token you provided was invalid."}))

        with pytest.raises(UpstreamError) as exc:
            await search_events("bad", "jazz")

        assert exc.value.status == 401
        assert exc.value.user_message == "The OAuth token you provided was invalid."

    @pytest.mark.asyncio
    async def test_network_failure(self, upstream):
        upstream.add(SEARCH, network_down)

        with pytest.raises(UpstreamError):
            await search_events("tok", "jazz")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token,q,location", [("", "jazz", ""), ("tok", "", " ")])
    async def test_validation(self, token, q, location):
        with pytest.raises(ValidationError):
            await search_events(token, q, location)
