"""
App factory and service endpoints: liveness, health, security headers and
store wiring.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from backend.storage.memory import InMemoryStore
from backend.web.config import load_settings
from backend.web.storage_wiring import build_services, build_store

pytestmark = pytest.mark.anyio("asyncio")


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_root_and_health(app):
    async with _client(app) as client:
        root = await client.get("/")
        health = await client.get("/health")
    assert root.status_code == 200
    assert root.text == "The Web is running"
    assert health.json() == {"status": "ok"}
    assert health.headers["Cache-Control"] == "private, no-store"


async def test_security_headers_present(app):
    async with _client(app) as client:
        r = await client.get("/courses")
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


async def test_every_service_shares_the_injected_store(app, store):
    services = app.state.services
    assert services.store is store
    store.insert_user(email="ada@example.org", name=None, photo_url=None, role="admin")
    assert services.directory.is_admin("ada@example.org")


async def test_payment_intent_without_key_is_bad_gateway():
    from backend.web.main import create_app

    app = create_app(store=InMemoryStore())
    async with _client(app) as client:
        r = await client.post("/payment-intent", json={"price": 10})
    assert r.status_code == 502
    assert r.json()["detail"] == "payment_provider_unconfigured"


def test_memory_backend_is_default():
    assert isinstance(build_store(load_settings()), InMemoryStore)


def test_unknown_backend_aborts(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STORE_BACKEND", "mongo")
    with pytest.raises(SystemExit):
        build_store(load_settings())


def test_build_services_uses_configured_currency(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PAYMENT_CURRENCY", "EUR")
    services = build_services(load_settings(), store=InMemoryStore())
    assert services.settlement.currency == "eur"
