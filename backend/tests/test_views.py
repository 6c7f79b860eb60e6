"""Tests for view counting: the aggregator and the public event endpoints."""
from datetime import timedelta

from eventhub.clock import utc_now
from eventhub.main import on_shutdown
from eventhub.services.stats_client import ViewStats
from eventhub.services.views_service import FallbackViewCache, ViewsAggregator, event_uri, get_views_aggregator
from tests.conftest import (
    FakeStatsClient,
    create_published_event,
    create_test_category,
    create_test_event,
    create_test_user,
    future,
    request_participation,
)


class _Row:
    def __init__(self, id):
        self.id = id


class TestViewsAggregator:
    def test_takes_the_larger_of_stats_and_fallback(self):
        stats = FakeStatsClient()
        views = ViewsAggregator(stats, cache=FallbackViewCache())
        views.record_hit(event_uri(1), "10.0.0.1", event_id=1)
        views.record_hit(event_uri(1), "10.0.0.1", event_id=1)
        # Hits this instance never saw, recorded by another replica.
        stats.record_hit("ewm-main-service", event_uri(1), "10.0.0.2", utc_now())
        stats.record_hit("ewm-main-service", event_uri(1), "10.0.0.3", utc_now())

        assert views.views_for([_Row(1), _Row(2)]) == {1: 3, 2: 0}

    def test_stats_outage_falls_back_to_local_count(self):
        stats = FakeStatsClient()
        views = ViewsAggregator(stats, cache=FallbackViewCache())
        stats.down = True
        views.record_hit(event_uri(7), "10.0.0.1", event_id=7)
        views.record_hit(event_uri(7), "10.0.0.2", event_id=7)
        assert views.views_for([_Row(7)]) == {7: 2}

    def test_blank_address_counts_as_unknown(self):
        views = ViewsAggregator(FakeStatsClient(), cache=FallbackViewCache())
        views.record_hit(event_uri(3), "  ", event_id=3)
        views.record_hit(event_uri(3), None, event_id=3)
        assert views.cache.count(3) == 1
        assert views.stats.hits[0]["ip"] == "0.0.0.0"

    def test_unknown_uris_and_query_strings(self):
        class _Stats(FakeStatsClient):
            def query_views(self, start, end, uris=None, unique=False):
                return [
                    ViewStats(uri="/events/4?from=0", hits=5),
                    ViewStats(uri="/events/999", hits=100),
                    ViewStats(uri="/events", hits=50),
                ]

        views = ViewsAggregator(_Stats(), cache=FallbackViewCache())
        assert views.views_for([_Row(4)]) == {4: 5}

    def test_queries_the_lookback_window_with_unique_hits(self):
        calls = []

        class _Stats(FakeStatsClient):
            def query_views(self, start, end, uris=None, unique=False):
                calls.append((start, end, uris, unique))
                return []

        views = ViewsAggregator(_Stats(), cache=FallbackViewCache(), lookback=timedelta(days=30))
        as_of = utc_now()
        views.views_for([_Row(1), _Row(2)], as_of=as_of)
        start, end, uris, unique = calls[0]
        assert end == as_of
        assert start == as_of - timedelta(days=30)
        assert sorted(uris) == ["/events/1", "/events/2"]
        assert unique is True

    def test_no_events_skips_the_stats_call(self):
        stats = FakeStatsClient()
        stats.down = True
        assert ViewsAggregator(stats).views_for([]) == {}


class TestPublicEvents:
    def test_get_counts_unique_viewers(self, client, stats):
        _, event = create_published_event(client)
        url = f"/events/{event['id']}"

        assert client.get(url).json()["views"] == 1
        assert client.get(url).json()["views"] == 1
        resp = client.get(url, headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        assert resp.json()["views"] == 2
        assert stats.hits[-1]["ip"] == "203.0.113.9"
        assert stats.hits[-1]["uri"] == url
        assert stats.hits[-1]["app"] == "ewm-main-service"

    def test_stats_outage_never_fails_a_read(self, client, stats):
        _, event = create_published_event(client)
        client.get(f"/events/{event['id']}")
        stats.down = True
        resp = client.get(f"/events/{event['id']}")
        assert resp.status_code == 200
        assert resp.json()["views"] == 1

    def test_unpublished_event_is_not_public(self, client):
        organizer = create_test_user(client)
        category = create_test_category(client)
        event = create_test_event(client, organizer["id"], category["id"])
        assert client.get(f"/events/{event['id']}").status_code == 404

    def test_search_lists_published_upcoming_events(self, client, stats):
        _, soon = create_published_event(client, event_date=future(hours=24))
        _, later = create_published_event(client, event_date=future(hours=96))
        resp = client.get("/events")
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()] == [soon["id"], later["id"]]
        assert stats.hits[-1]["uri"] == "/events"

    def test_search_sorted_by_views(self, client):
        _, quiet = create_published_event(client, event_date=future(hours=24))
        _, popular = create_published_event(client, event_date=future(hours=96))
        for ip in ("198.51.100.1", "198.51.100.2"):
            client.get(f"/events/{popular['id']}", headers={"X-Forwarded-For": ip})

        resp = client.get("/events", params={"sort": "VIEWS"})
        data = resp.json()
        assert [e["id"] for e in data] == [popular["id"], quiet["id"]]
        assert data[0]["views"] == 2

    def test_search_filters(self, client):
        _, free = create_published_event(client, annotation="A free open-air concert in the park")
        _, paid = create_published_event(client, paid=True)

        resp = client.get("/events", params={"text": "OPEN-AIR"})
        assert [e["id"] for e in resp.json()] == [free["id"]]

        resp = client.get("/events", params={"paid": True})
        assert [e["id"] for e in resp.json()] == [paid["id"]]

        resp = client.get("/events", params={"categories": [paid["category_id"]]})
        assert [e["id"] for e in resp.json()] == [paid["id"]]

    def test_search_only_available(self, client):
        _, full = create_published_event(client, participant_limit=1, request_moderation=False)
        _, open_event = create_published_event(client, participant_limit=0)
        request_participation(client, create_test_user(client)["id"], full["id"])

        resp = client.get("/events", params={"only_available": True})
        assert [e["id"] for e in resp.json()] == [open_event["id"]]

    def test_inverted_range_is_invalid(self, client):
        resp = client.get("/events", params={"range_start": future(hours=48), "range_end": future(hours=24)})
        assert resp.status_code == 400


class TestStatsClientLifecycle:
    def test_shutdown_closes_the_shared_stats_client(self):
        get_views_aggregator.cache_clear()
        aggregator = get_views_aggregator()
        assert get_views_aggregator() is aggregator

        on_shutdown()

        assert aggregator.stats._client.is_closed
        assert get_views_aggregator.cache_info().currsize == 0

    def test_shutdown_without_a_client_is_a_noop(self):
        get_views_aggregator.cache_clear()
        on_shutdown()
        assert get_views_aggregator.cache_info().currsize == 0
