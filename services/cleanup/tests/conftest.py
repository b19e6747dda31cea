"""
Shared test fixtures for the trip service test suite.

Provides:
- in-memory document / blob stores (no Firestore or GCS needed)
- a started TripSync and a TripService bound to those stores
- async FastAPI test client with app.state wired to the fakes
"""

import os

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("FIREBASE_API_KEY", "test-api-key")
os.environ.setdefault("STORAGE_BUCKET", "test-bucket")

from services.cleanup.tests.helpers.factories import TODAY, make_trip_doc  # noqa: E402
from services.cleanup.tests.helpers.fakes import (  # noqa: E402
    InMemoryBlobStore,
    InMemoryDocumentStore,
)


@pytest.fixture
def store():
    """Three trips: two upcoming (one full), one completed."""
    return InMemoryDocumentStore(
        {
            "trip-a": make_trip_doc(title="Harbor sweep", participants=["u1"]),
            "trip-b": make_trip_doc(
                title="Reef rescue",
                location="Coral cove",
                maxParticipants=2,
                participants=["u1", "u2"],
                date=make_trip_doc()["date"].replace(month=8),
            ),
            "trip-c": make_trip_doc(
                title="Estuary pass",
                location="Mill creek",
                status="completed",
                participants=["u3"],
                completionNote="Thank you for helping clean the ocean!",
                date=make_trip_doc()["date"].replace(month=6),
            ),
        }
    )


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
async def sync(store):
    from services.cleanup.trips.sync import TripSync

    trip_sync = TripSync(store)
    await trip_sync.start()
    yield trip_sync
    await trip_sync.close()


@pytest.fixture
def service(sync, store, blobs):
    from services.cleanup.trips.service import TripService

    return TripService(sync, store, blobs, max_cover_bytes=1024 * 1024, today=lambda: TODAY)


@pytest.fixture
async def app(service, sync):
    """The FastAPI app with its lifespan replaced by fake-backed state."""
    from services.cleanup.auth.firebase import FirebaseAuthClient
    from services.cleanup.config import settings
    from services.cleanup.main import app as _app

    _app.state.settings = settings
    _app.state.trip_sync = sync
    _app.state.trip_service = service
    _app.state.auth_client = FirebaseAuthClient("test-api-key")
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
