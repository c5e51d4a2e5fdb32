"""Tests for the log-service HTTP surface."""

import httpx
import pytest

from logservice.app import create_app
from logservice.services.client import ResilientClient
from logservice.services.retry import RetryPolicy
from logservice.settings import Settings

SETTINGS = Settings(
    dependency_url="http://echo-service.test/info",
    app_version="v-test",
    log_level="debug",
)


def build_app(mock_http, sleeper, handler, settings: Settings = SETTINGS):
    client = ResilientClient(
        RetryPolicy.from_settings(settings),
        http_client=mock_http(handler),
        sleep=sleeper,
    )
    return create_app(settings, client)


def asgi_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://log-service.test"
    )


@pytest.mark.asyncio
async def test_healthz(mock_http, sleeper):
    app = build_app(mock_http, sleeper, lambda request: httpx.Response(200))

    async with asgi_client(app) as client:
        response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.text == "ok"


@pytest.mark.asyncio
async def test_request_is_enriched_and_correlated(mock_http, sleeper):
    forwarded: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        forwarded.append(request)
        return httpx.Response(200, json={"hostname": "echo-1"})

    app = build_app(mock_http, sleeper, handler)

    async with asgi_client(app) as client:
        response = await client.get(
            "/hello", params={"q": "1"}, headers={"X-Request-ID": "abc-123"}
        )

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "abc-123"
    assert forwarded[0].headers["X-Request-ID"] == "abc-123"
    assert str(forwarded[0].url) == "http://echo-service.test/info"

    body = response.json()
    assert body["message"] == "Hello from log-service"
    assert body["received"]["method"] == "GET"
    assert body["received"]["path"] == "/hello"
    assert body["received"]["query"] == {"q": "1"}
    assert body["received"]["body"] is None
    assert body["environment"]["version"] == "v-test"
    assert body["environment"]["logLevel"] == "debug"
    assert body["enrichment"] == {"hostname": "echo-1"}
    assert body["degraded"] is None


@pytest.mark.asyncio
async def test_missing_request_id_is_generated_and_forwarded(mock_http, sleeper):
    forwarded: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        forwarded.append(request)
        return httpx.Response(200, json={})

    app = build_app(mock_http, sleeper, handler)

    async with asgi_client(app) as client:
        response = await client.get("/")

    generated = response.headers["X-Request-ID"]
    assert generated
    assert forwarded[0].headers["X-Request-ID"] == generated


@pytest.mark.asyncio
async def test_failing_dependency_degrades_instead_of_erroring(mock_http, sleeper):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    app = build_app(mock_http, sleeper, handler)

    async with asgi_client(app) as client:
        response = await client.post("/orders", json={"id": 7})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Hello from log-service"
    assert body["received"]["body"] == {"id": 7}
    assert body["enrichment"] is None
    assert body["degraded"] == {"reason": "dependency_error", "attempts": 3}
    assert len(calls) == 3
    assert len(sleeper.delays) == 2


@pytest.mark.asyncio
async def test_non_json_body_is_echoed_as_text(mock_http, sleeper):
    app = build_app(mock_http, sleeper, lambda request: httpx.Response(200, json={}))

    async with asgi_client(app) as client:
        response = await client.put("/notes", content=b"plain words")

    assert response.json()["received"]["body"] == "plain words"


@pytest.mark.asyncio
async def test_configured_correlation_header_is_used(mock_http, sleeper):
    forwarded: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        forwarded.append(request)
        return httpx.Response(200, json={})

    settings = SETTINGS.model_copy(update={"correlation_header": "X-Correlation-ID"})
    app = build_app(mock_http, sleeper, handler, settings)

    async with asgi_client(app) as client:
        response = await client.get("/", headers={"X-Correlation-ID": "corr-9"})

    assert response.headers["X-Correlation-ID"] == "corr-9"
    assert forwarded[0].headers["X-Correlation-ID"] == "corr-9"


@pytest.mark.asyncio
async def test_misconfigured_dependency_fails_loudly(mock_http, sleeper):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    settings = SETTINGS.model_copy(update={"dependency_url": "echo-service:8080"})
    app = build_app(mock_http, sleeper, handler, settings)

    async with asgi_client(app) as client:
        response = await client.get("/")

    assert response.status_code == 500
    assert response.json()["error"] == "invalid_dependency_target"
    assert calls == []


@pytest.mark.asyncio
async def test_latin1_request_id_round_trips(mock_http, sleeper):
    forwarded: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        forwarded.append(request)
        return httpx.Response(200, json={})

    app = build_app(mock_http, sleeper, handler)

    async with asgi_client(app) as client:
        response = await client.get("/", headers={"X-Request-ID": b"caf\xe9"})

    assert response.status_code == 200
    assert response.json()["degraded"] is None
    assert forwarded[0].headers["X-Request-ID"] == "café"
    assert response.headers["X-Request-ID"] == "café"


@pytest.mark.asyncio
async def test_head_is_answered(mock_http, sleeper):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    app = build_app(mock_http, sleeper, handler)

    async with asgi_client(app) as client:
        response = await client.head("/anything", headers={"X-Request-ID": "h-1"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "h-1"
    assert len(calls) == 1
