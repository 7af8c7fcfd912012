"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh app
over a fresh in-memory store, so no state leaks between tests.
"""
import sys
from pathlib import Path

import pytest

# Ensure the repo root is importable (``backend.*``) across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

TEST_JWT_SECRET = "test-only-secret-with-enough-length-0123456789"


class FakeChargeGateway:
    """Records intent requests instead of calling the payment processor."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    def create_intent(self, *, amount: int, currency: str) -> str:
        self.calls.append({"amount": amount, "currency": currency})
        return f"pi_test_{len(self.calls)}_secret"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Pin configuration per test.

    Behavior:
        - Dev environment, in-memory store, known token secret.
        - Clear toggles a test may have set so they never leak.
    """
    for var in (
        "SUMMER_SCHOOL_ENV",
        "STORE_BACKEND",
        "PAYMENT_KEY",
        "PAYMENT_CURRENCY",
        "JWT_TTL_SECONDS",
        "LEGACY_OPEN_CART_DELETE",
        "CORS_ALLOW_ORIGINS",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("JWT_TOKEN_SECRET", TEST_JWT_SECRET)
    yield


@pytest.fixture
def store():
    from backend.storage.memory import InMemoryStore

    return InMemoryStore()


@pytest.fixture
def charges():
    return FakeChargeGateway()


@pytest.fixture
def app(store, charges):
    from backend.web.main import create_app

    return create_app(store=store, charges=charges)


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def auth_header(services):
    """Return a function building an Authorization header for an email."""

    def _make(email: str) -> dict:
        token = services.tokens.issue({"email": email})
        return {"Authorization": f"Bearer {token}"}

    return _make
