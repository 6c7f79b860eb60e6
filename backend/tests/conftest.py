"""Pytest fixtures: file-backed SQLite database, recreated for every test."""
import os
import uuid
from datetime import datetime, timedelta, timezone

# Must be set before eventhub.config is imported.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from eventhub.database import Base, get_db
from eventhub.exceptions import StatsUnavailableError
from eventhub.main import app
from eventhub.services.stats_client import ViewStats
from eventhub.services.views_service import FallbackViewCache, ViewsAggregator, get_views_aggregator

# Import all models so they register with Base.metadata
from eventhub.models.user import User                                    # noqa: F401
from eventhub.models.category import Category                            # noqa: F401
from eventhub.models.event import Event                                  # noqa: F401
from eventhub.models.participation_request import ParticipationRequest   # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


class FakeStatsClient:
    """In-memory stand-in for the stats service. Set ``down`` to simulate an outage."""

    def __init__(self):
        self.hits: list[dict] = []
        self.down = False

    def record_hit(self, app: str, uri: str, ip: str, timestamp: datetime) -> None:
        if self.down:
            raise StatsUnavailableError("stats service is down")
        self.hits.append({"app": app, "uri": uri, "ip": ip, "timestamp": timestamp})

    def query_views(self, start, end, uris=None, unique=False) -> list[ViewStats]:
        if self.down:
            raise StatsUnavailableError("stats service is down")
        by_uri: dict[str, list[str]] = {}
        for hit in self.hits:
            if uris and hit["uri"] not in uris:
                continue
            by_uri.setdefault(hit["uri"], []).append(hit["ip"])
        return [
            ViewStats(app="ewm-main-service", uri=uri, hits=len(set(ips)) if unique else len(ips))
            for uri, ips in by_uri.items()
        ]


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode so a second session can read while another writes
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def stats():
    return FakeStatsClient()


@pytest.fixture(scope="function")
def views(stats):
    return ViewsAggregator(stats, cache=FallbackViewCache())


@pytest.fixture(scope="function")
def client(db_engine, views):
    """TestClient with the database and views dependencies overridden."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_views_aggregator] = lambda: views
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: create resources via the API, return the JSON response dict
# ---------------------------------------------------------------------------
def future(hours: float = 72) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


def create_test_user(client: TestClient, name: str = "Test User", email: str = None) -> dict:
    """Helper: POST /admin/users and return response JSON."""
    resp = client.post("/admin/users", json={
        "name": name,
        "email": email or f"{uuid.uuid4().hex[:12]}@example.com",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_category(client: TestClient, name: str = None) -> dict:
    resp = client.post("/admin/categories", json={"name": name or f"cat-{uuid.uuid4().hex[:8]}"})
    assert resp.status_code == 201, resp.text
    return resp.json()


def event_payload(category_id: int, **overrides) -> dict:
    payload = {
        "title": "Board game night",
        "annotation": "Weekly board game night at the community hall",
        "description": "Bring your favourite games; snacks and tables are provided by the hall.",
        "category_id": category_id,
        "location": {"lat": 55.75, "lon": 37.62},
        "event_date": future(),
        "paid": False,
        "participant_limit": 0,
        "request_moderation": True,
    }
    payload.update(overrides)
    return payload


def create_test_event(client: TestClient, user_id: int, category_id: int, **overrides) -> dict:
    """Helper: POST /users/{user_id}/events and return response JSON."""
    resp = client.post(f"/users/{user_id}/events", json=event_payload(category_id, **overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


def publish_event(client: TestClient, event_id: int) -> dict:
    resp = client.patch(f"/admin/events/{event_id}", json={"state_action": "PUBLISH_EVENT"})
    assert resp.status_code == 200, resp.text
    return resp.json()


def create_published_event(client: TestClient, **overrides) -> tuple[dict, dict]:
    """Helper: fresh organizer + category + published event; returns (organizer, event)."""
    organizer = create_test_user(client, name="Organizer")
    category = create_test_category(client)
    created = create_test_event(client, organizer["id"], category["id"], **overrides)
    return organizer, publish_event(client, created["id"])


def request_participation(client: TestClient, user_id: int, event_id: int) -> dict:
    resp = client.post(f"/users/{user_id}/requests", params={"event_id": event_id})
    assert resp.status_code == 201, resp.text
    return resp.json()
