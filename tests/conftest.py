"""Shared test fixtures."""

import asyncio

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from auditflow.runtime import AuditRuntime
from auditflow.services.id_generator import generate_api_key
from auditflow.storage.memory import InMemoryStorage


class WebhookReceiver:
    """Records every request made through an ``httpx.MockTransport``.

    ``statuses`` is consumed one per request; once exhausted ``default`` is used.
    An exception instance in ``statuses`` is raised instead of responding.
    """

    def __init__(self, statuses=None, default: int = 200):
        self.statuses = list(statuses or [])
        self.default = default
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.statuses.pop(0) if self.statuses else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"ok": 200 <= outcome < 300})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def for_url(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records backoff delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


async def quick_executor(url: str, options: dict) -> dict:
    await asyncio.sleep(0.01)
    return {"url": url, "score": 97, "options": options}


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
async def user(storage):
    return await storage.create_user("owner@example.com", "free", generate_api_key())


@pytest.fixture
def receiver():
    return WebhookReceiver()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
async def runtime(storage, receiver, sleeper):
    """A started lifecycle runtime with a fast executor and mocked webhook endpoints."""
    rt = AuditRuntime.build(
        storage,
        quick_executor,
        concurrency=2,
        timeout_ms=2_000,
        transport=receiver.transport,
        sleep=sleeper,
    )
    await rt.start()
    yield rt
    await rt.stop(drain_timeout=5)


@pytest.fixture
def app(runtime):
    """Create a test application instance wired to the in-memory runtime."""
    from auditflow.main import create_app

    _app = create_app()
    _app.state.runtime = runtime
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def api_user(client):
    """Register a user over the API and return (user body, auth headers)."""
    response = await client.post("/api/v1/users", json={"email": "api@example.com", "plan": "free"})
    assert response.status_code == 201
    body = response.json()
    return body, {"X-API-Key": body["apiKey"]}
