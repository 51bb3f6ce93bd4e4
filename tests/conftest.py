import os
import tempfile

# Settings are read at import time; keep the default store out of the working tree
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="teacher-reviews-"))
os.environ.setdefault("CACHE_DIR", tempfile.mkdtemp(prefix="teacher-reviews-cache-"))

import httpx
import pytest
from fastapi.testclient import TestClient

from teacher_reviews.client.agent import SyncAgent
from teacher_reviews.client.api import ReviewApiClient
from teacher_reviews.client.cache import LocalCache
from teacher_reviews.main import app
from teacher_reviews.notifier import ChangeNotifier, get_notifier
from teacher_reviews.store import RecordStore, get_store


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store(tmp_path):
    return RecordStore(str(tmp_path / "data"))


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def events(notifier):
    """Event kinds broadcast during the test, in order."""
    received = []
    notifier.add_listener(lambda kind, version: received.append(kind.value))
    return received


@pytest.fixture
def override_deps(store, notifier):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(override_deps):
    with TestClient(override_deps) as c:
        yield c


@pytest.fixture
def create_teacher(client):
    def _create(**overrides):
        body = {"name": "Dr. A", "field": "Math", "experience": 5, "bio": "x"}
        body.update(overrides)
        response = client.post("/api/teachers", json=body)
        assert response.status_code == 201, response.text
        return response.json()
    return _create


@pytest.fixture
def create_review(client):
    def _create(teacher_id, metrics=(3, 4, 5, 4, 5), **overrides):
        names = ("teaching", "knowledge", "engagement", "approachability", "responsiveness")
        body = {
            "teacherId": teacher_id,
            "comment": "Clear explanations and fair grading.",
            "metrics": dict(zip(names, metrics)),
        }
        body.update(overrides)
        response = client.post("/api/reviews", json=body)
        assert response.status_code == 201, response.text
        return response.json()
    return _create


class FlakyTransport(httpx.AsyncBaseTransport):
    """Routes requests into the app until ``down`` is set, then fails like a dead server."""

    def __init__(self, inner):
        self.inner = inner
        self.down = False

    async def handle_async_request(self, request):
        if self.down:
            raise httpx.ConnectError("server unreachable", request=request)
        return await self.inner.handle_async_request(request)


@pytest.fixture
def transport(override_deps):
    return FlakyTransport(httpx.ASGITransport(app=override_deps))


@pytest.fixture
def cache(tmp_path):
    return LocalCache(str(tmp_path / "cache"))


@pytest.fixture
async def agent(transport, cache):
    api = ReviewApiClient("http://testserver/api", transport=transport)
    sync_agent = SyncAgent(api, cache)
    yield sync_agent
    await sync_agent.aclose()
