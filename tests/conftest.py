"""
Pytest configuration and fixtures for testing
"""
import json
import os
import tempfile

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_fixture")
os.environ["AUTH_RATE_LIMIT_PER_MINUTE"] = "0"
os.environ["PASSWORD_HASH_TIME_COST"] = "1"
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "formcraft-test-logs"))

import httpx
import pytest

from config.settings import settings
from database import build_engine, build_session_factory, get_db, init_db
from services.paystack_client import (
    PaystackClient,
    WebhookSignatureVerifier,
    get_paystack_client,
    get_webhook_verifier,
    sign_webhook_payload,
)


class FakePaystack:
    """
    In-memory Paystack used through httpx.MockTransport.
    Transactions start as "abandoned" until mark_paid() is called.
    """

    def __init__(self):
        self.transactions = {}
        self.requests = []
        self.fail_transport = False
        # When set, every initialize answers with this reference
        self.reference_override = None
        self._counter = 0

    def mark_paid(self, reference: str) -> None:
        self.transactions[reference] = "success"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)

        if request.method == "POST" and request.url.path == "/transaction/initialize":
            body = json.loads(request.content)
            self._counter += 1
            reference = self.reference_override or f"ref_{self._counter:04d}"
            self.transactions[reference] = "abandoned"
            return httpx.Response(200, json={
                "status": True,
                "message": "Authorization URL created",
                "data": {
                    "authorization_url": f"https://checkout.paystack.com/{reference}",
                    "access_code": f"ac_{reference}",
                    "reference": reference,
                    "email": body["email"],
                },
            })

        if request.method == "GET" and request.url.path.startswith("/transaction/verify/"):
            reference = request.url.path.rsplit("/", 1)[-1]
            if reference not in self.transactions:
                return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})
            return httpx.Response(200, json={
                "status": True,
                "message": "Verification successful",
                "data": {"status": self.transactions[reference], "reference": reference},
            })

        return httpx.Response(404, json={"status": False, "message": "Not found"})

    def verify_calls(self) -> int:
        return sum(1 for _, path in self.requests if path.startswith("/transaction/verify/"))


@pytest.fixture
async def db_engine(tmp_path):
    """
    Fixture that provides an isolated SQLite database file for each test.
    Tables are created before the test runs; the file goes away with tmp_path.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
async def test_db(session_factory):
    """A single session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_paystack():
    return FakePaystack()


@pytest.fixture
def paystack_client(fake_paystack):
    return PaystackClient(
        settings.paystack_secret_key,
        transport=httpx.MockTransport(fake_paystack.handler),
    )


@pytest.fixture
async def async_client(session_factory, paystack_client):
    """
    Async HTTP client fixture with test database and gateway overrides.
    Uses httpx.AsyncClient over ASGITransport for asynchronous testing.
    """
    from main import app

    # Override get_db dependency to use test database
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_paystack_client] = lambda: paystack_client
    app.dependency_overrides[get_webhook_verifier] = lambda: WebhookSignatureVerifier(settings.paystack_secret_key)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Cleanup: remove dependency overrides
    app.dependency_overrides.clear()


async def register_user(client: httpx.AsyncClient, email: str, password: str = "secret-pass-1") -> dict:
    """Register through the API and return {"token", "user_id", "headers"}."""
    response = await client.post("/api/auth/register", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    return {
        "token": data["token"],
        "user_id": data["user"]["id"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


async def post_webhook(client: httpx.AsyncClient, event: str, reference: str, status: str = "success", signature: str = None):
    body = json.dumps({"event": event, "data": {"reference": reference, "status": status}}).encode()
    if signature is None:
        signature = sign_webhook_payload(settings.paystack_secret_key, body)
    return await client.post(
        "/api/payments/webhook",
        content=body,
        headers={"Content-Type": "application/json", "x-paystack-signature": signature},
    )
