"""Shared test fixtures: configurations and a scriptable fake Metabase upstream."""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from metabase_mcp.client import MetabaseClient
from metabase_mcp.config import MetabaseConfig

BASE_URL = "https://metabase.test"

Responder = Callable[[httpx.Request], httpx.Response]


class FakeMetabase:
    """
    In-memory Metabase upstream served through httpx.MockTransport.

    Routes are keyed by (method, path). Unrouted requests get a 404 with a Metabase-style error body.
    Every request is recorded in `requests`.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status: int = 200,
        responder: Responder | None = None,
    ) -> None:
        if responder is None:

            def responder(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json_body)

        self.routes[(method.upper(), path)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"message": "Not found"})
        return responder(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path == path
        ]

    def bodies(self, method: str, path: str) -> list[Any]:
        return [json.loads(r.content) for r in self.calls(method, path)]


def make_client(config: MetabaseConfig, fake: FakeMetabase) -> MetabaseClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    return MetabaseClient(config, http_client=http_client)


@pytest.fixture
def api_key_config():
    return MetabaseConfig(url=BASE_URL, api_key="test-api-key")


@pytest.fixture
def session_config():
    return MetabaseConfig(
        url=BASE_URL, user_email="analyst@example.com", password="s3cret"
    )


@pytest.fixture
def fake_metabase():
    fake = FakeMetabase()
    fake.add("POST", "/api/session", {"id": "session-token-1"})
    fake.add("GET", "/api/dashboard", [{"id": 1, "name": "Sales"}, {"id": 2, "name": "Ops"}])
    fake.add(
        "GET",
        "/api/dashboard/123",
        {"id": 123, "name": "Sales", "cards": [{"id": 7, "card_id": 5}]},
    )
    fake.add("GET", "/api/card", [{"id": 5, "name": "Revenue"}])
    fake.add("GET", "/api/card/5", {"id": 5, "name": "Revenue"})
    fake.add("POST", "/api/card/5/query", {"data": {"rows": [[100]]}, "status": "completed"})
    fake.add("GET", "/api/database", {"data": [{"id": 2, "name": "warehouse"}]})
    fake.add("GET", "/api/database/2", {"id": 2, "name": "warehouse", "engine": "postgres"})
    fake.add(
        "GET",
        "/api/database/2/metadata",
        {"id": 2, "tables": [{"name": "orders", "fields": [{"name": "id"}]}]},
    )
    fake.add("POST", "/api/dataset", {"data": {"rows": [[1, "a"]]}, "status": "completed"})
    return fake


@pytest.fixture
def api_key_client(api_key_config, fake_metabase):
    return make_client(api_key_config, fake_metabase)


@pytest.fixture
def session_client(session_config, fake_metabase):
    return make_client(session_config, fake_metabase)


@pytest.fixture
def client_factory(fake_metabase):
    """Build extra clients sharing the fake upstream, e.g. for a different configuration."""

    def factory(config: MetabaseConfig) -> MetabaseClient:
        return make_client(config, fake_metabase)

    return factory
