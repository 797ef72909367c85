"""Unit tests for Ticketmaster cache keys and payload helpers."""

import pytest

from decision_maker.core.exceptions import ConfigurationError
from decision_maker.integrations.ticketmaster import (
    TicketmasterClient,
    as_eventbrite_event,
    cache_key,
    extract_events,
    first_venue,
    pick_image,
    venue_coordinates,
)

from tests.fakes.event_stubs import NEAR_AUSTIN, TM_EMPTY, tm_event, tm_page


class TestCacheKey:
    def test_keyword_and_key_are_normalized(self):
        assert cache_key(" Comedy ", " KEY ") == "key::comedy"

    def test_extras_sorted(self):
        key = cache_key("comedy", "key", {"size": "100", "classificationName": "Comedy"})
        assert key == "key::comedy::classificationName=Comedy&size=100"


class TestNearbyRequest:
    def test_params_and_key(self):
        client = TicketmasterClient(api_key="tm", min_interval=0)
        key, params = client.nearby_request(30.2672, -97.7431, 300.4, "music")
        assert params == {
            "apikey": "tm",
            "classificationName": "music",
            "latlong": "30.2672,-97.7431",
            "radius": "300",
            "unit": "miles",
            "size": "100",
            "sort": "date,asc",
        }
        assert key.startswith("tm::::")
        assert "apikey" not in key

    def test_public_url_hides_key(self):
        client = TicketmasterClient(api_key="secret", min_interval=0)
        _, params = client.nearby_request(30.2672, -97.7431, 300, "music")
        url = client.public_url(params)
        assert url.startswith("https://app.ticketmaster.com/discovery/v2/events.json?")
        assert "secret" not in url
        assert "classificationName=music" in url

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            TicketmasterClient(api_key="").nearby_request(30.0, -97.0, 100, "music")


class TestPayloadHelpers:
    def test_extract_events(self):
        assert [e["id"] for e in extract_events(tm_page(tm_event("a", "A"), tm_event("b", "B")))] == ["a", "b"]
        assert extract_events(TM_EMPTY) == []
        assert extract_events(None) == []

    def test_venue_coordinates_parse_strings(self):
        venue = first_venue(tm_event("a", "A"))
        assert venue["name"] == "Cap City Comedy"
        assert venue_coordinates(venue) == NEAR_AUSTIN
        assert venue_coordinates(first_venue(tm_event("b", "B", coords=None))) is None
        assert first_venue({}) == {}

    def test_pick_image_prefers_widest_16_9(self):
        assert pick_image(tm_event("a", "A")) == "https://img.example/a-1024.jpg"
        assert pick_image({"images": [{"ratio": "4_3", "url": "small.jpg"}]}) == "small.jpg"
        assert pick_image({}) == ""

    def test_as_eventbrite_event(self):
        shaped = as_eventbrite_event(tm_event("a", "Khruangbin", venue="Moody Center"))
        assert shaped["name"] == {"text": "Khruangbin"}
        assert shaped["start"] == {"local": "2026-11-01T20:00:00"}
        assert shaped["venue"]["name"] == "Moody Center"
        assert shaped["venue"]["address"]["city"] == "Austin"
        assert shaped["venue"]["address"]["region"] == "TX"
        assert shaped["venue"]["address"]["latitude"] == "30.2669"
        assert shaped["logo"] == {"url": "https://img.example/a-1024.jpg"}
        assert shaped["summary"] == "Khruangbin live"

    def test_as_eventbrite_event_without_image(self):
        event = tm_event("a", "A")
        event["images"] = []
        assert "logo" not in as_eventbrite_event(event)
