import pytest
from fastapi.testclient import TestClient

from app import app, get_client_cache
from client_cache import ClientCache
from fakes import FakeClient


class FakeMongo:
    """Connector handing out one FakeClient per connection string."""

    def __init__(self):
        self.clients = {}
        self.calls = []
        self.fail_with = None

    async def __call__(self, uri):
        self.calls.append(uri)
        if self.fail_with is not None:
            raise self.fail_with
        return self.clients.setdefault(uri, FakeClient(uri))


@pytest.fixture
def fake_mongo():
    return FakeMongo()


@pytest.fixture
def client_cache(fake_mongo):
    return ClientCache(fake_mongo, capacity=3)


@pytest.fixture
def api(client_cache):
    app.dependency_overrides[get_client_cache] = lambda: client_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
