"""
End-to-end tests for the payment endpoints and their effect on form quota
"""
import json

import pytest

from tests.conftest import post_webhook, register_user


async def create_form(client, headers, title="Survey"):
    return await client.post("/api/forms", json={"title": title}, headers=headers)


async def start_payment(client, headers) -> str:
    response = await client.post("/api/payments/initialize", headers=headers)
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["authorization_url"].startswith("https://checkout.paystack.com/")
    return data["reference"]


async def subscriptions_of(client, headers) -> dict:
    response = await client.get("/api/payments/subscriptions", headers=headers)
    assert response.status_code == 200
    return response.json()["data"]


@pytest.mark.asyncio
async def test_webhook_lifts_free_plan_quota(async_client):
    """A free user at the quota is refused, pays, and can then create more forms."""
    user = await register_user(async_client, "maker@example.com")

    for n in range(3):
        response = await create_form(async_client, user["headers"], f"Form {n}")
        assert response.status_code == 201

    refused = await create_form(async_client, user["headers"], "Form 4")
    assert refused.status_code == 400
    assert refused.json()["error"] == "quota_exceeded"
    assert refused.json()["message"] == "Free plan users can only create up to 3 forms"

    reference = await start_payment(async_client, user["headers"])
    hook = await post_webhook(async_client, "charge.success", reference)
    assert hook.status_code == 200
    assert hook.json()["ok"] is True
    assert hook.json()["outcome"] == "activated"

    accepted = await create_form(async_client, user["headers"], "Form 4")
    assert accepted.status_code == 201

    me = await async_client.get("/api/auth/me", headers=user["headers"])
    assert me.json()["data"]["subscription_plan"] == "unlimited"


@pytest.mark.asyncio
async def test_verify_endpoint_activates(async_client, fake_paystack):
    user = await register_user(async_client, "verifier@example.com")
    reference = await start_payment(async_client, user["headers"])

    unpaid = await async_client.get(f"/api/payments/verify/{reference}", headers=user["headers"])
    assert unpaid.status_code == 402
    assert unpaid.json()["error"] == "payment_error"

    fake_paystack.mark_paid(reference)
    paid = await async_client.get(f"/api/payments/verify/{reference}", headers=user["headers"])
    assert paid.status_code == 200
    subscription = paid.json()["data"]
    assert subscription["status"] == "active"
    assert subscription["gateway_reference"] == reference

    # Webhook arriving after verify is a no-op
    hook = await post_webhook(async_client, "charge.success", reference)
    assert hook.json()["outcome"] == "already_active"

    again = await async_client.get(f"/api/payments/verify/{reference}", headers=user["headers"])
    assert again.json()["data"]["end_date"] == subscription["end_date"]

    state = await subscriptions_of(async_client, user["headers"])
    assert state["current"]["end_date"] == subscription["end_date"]
    assert len(state["subscriptions"]) == 1


@pytest.mark.asyncio
async def test_verify_someone_elses_reference_is_forbidden(async_client, fake_paystack):
    owner = await register_user(async_client, "owner@example.com")
    intruder = await register_user(async_client, "intruder@example.com")
    reference = await start_payment(async_client, owner["headers"])
    fake_paystack.mark_paid(reference)

    response = await async_client.get(f"/api/payments/verify/{reference}", headers=intruder["headers"])

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"
    assert fake_paystack.verify_calls() == 0

    intruder_me = await async_client.get("/api/auth/me", headers=intruder["headers"])
    assert intruder_me.json()["data"]["subscription_plan"] == "free"
    owner_state = await subscriptions_of(async_client, owner["headers"])
    assert owner_state["current"] is None
    assert owner_state["subscriptions"][0]["status"] == "pending"


@pytest.mark.asyncio
async def test_verify_unknown_reference_is_not_found(async_client):
    user = await register_user(async_client, "nobody@example.com")

    response = await async_client.get("/api/payments/verify/ref_nope", headers=user["headers"])

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bad_signature_webhook_is_acknowledged_and_ignored(async_client):
    user = await register_user(async_client, "victim@example.com")
    reference = await start_payment(async_client, user["headers"])

    response = await post_webhook(async_client, "charge.success", reference, signature="0" * 128)

    assert response.status_code == 200
    assert response.json()["ok"] is False
    state = await subscriptions_of(async_client, user["headers"])
    assert state["current"] is None
    assert state["subscriptions"][0]["status"] == "pending"


@pytest.mark.asyncio
async def test_webhook_unknown_reference_is_acknowledged(async_client):
    response = await post_webhook(async_client, "charge.success", "ref_forged")

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert response.json()["outcome"] == "unknown_reference"


@pytest.mark.asyncio
async def test_webhook_malformed_payload_is_acknowledged(async_client):
    from config.settings import settings
    from services.paystack_client import sign_webhook_payload

    body = b'{"data": {"reference": "ref_0001", "status": "success"}}'
    response = await async_client.post(
        "/api/payments/webhook",
        content=body,
        headers={"x-paystack-signature": sign_webhook_payload(settings.paystack_secret_key, body)},
    )

    assert response.status_code == 200
    assert response.json()["ok"] is False


@pytest.mark.asyncio
async def test_payment_endpoints_require_credentials(async_client):
    assert (await async_client.post("/api/payments/initialize")).status_code == 401
    assert (await async_client.get("/api/payments/verify/ref_0001")).status_code == 401
    assert (await async_client.get("/api/payments/subscriptions")).status_code == 401


@pytest.mark.asyncio
async def test_gateway_outage_on_initialize(async_client, fake_paystack):
    user = await register_user(async_client, "offline@example.com")
    fake_paystack.fail_transport = True

    response = await async_client.post("/api/payments/initialize", headers=user["headers"])

    assert response.status_code == 402
    assert response.json()["message"] == "Failed to initialize payment"
    assert (await subscriptions_of(async_client, user["headers"]))["subscriptions"] == []


async def post_signed_body(client, body: dict):
    from config.settings import settings
    from services.paystack_client import sign_webhook_payload

    raw = json.dumps(body).encode()
    return await client.post(
        "/api/payments/webhook",
        content=raw,
        headers={
            "Content-Type": "application/json",
            "x-paystack-signature": sign_webhook_payload(settings.paystack_secret_key, raw),
        },
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"event": "subscription.disable", "data": {"id": 42, "subscription_code": "SUB_x"}},
    {"event": "transfer.success", "data": {"amount": 1000, "recipient": {"name": "x"}}},
    {"event": "customeridentification.failed", "data": None},
    {"event": "charge.success", "data": {"id": 7}},
])
async def test_webhook_events_of_other_shapes_are_ignored(async_client, body):
    response = await post_signed_body(async_client, body)

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert response.json()["outcome"] == "ignored"


@pytest.mark.asyncio
async def test_webhook_verifier_is_injected(async_client):
    """With signature checks switched off, an unsigned charge still activates."""
    from main import app
    from services.paystack_client import WebhookSignatureVerifier, get_webhook_verifier

    user = await register_user(async_client, "unsigned@example.com")
    reference = await start_payment(async_client, user["headers"])
    app.dependency_overrides[get_webhook_verifier] = lambda: WebhookSignatureVerifier(None, enabled=False)

    response = await async_client.post(
        "/api/payments/webhook",
        json={"event": "charge.success", "data": {"reference": reference, "status": "success"}},
    )

    assert response.json()["outcome"] == "activated"
    assert (await subscriptions_of(async_client, user["headers"]))["current"]["gateway_reference"] == reference


@pytest.mark.asyncio
async def test_reused_gateway_reference_is_payment_error(async_client, fake_paystack):
    first = await register_user(async_client, "first@example.com")
    second = await register_user(async_client, "second@example.com")
    fake_paystack.reference_override = "ref_reused"

    assert (await async_client.post("/api/payments/initialize", headers=first["headers"])).status_code == 200
    response = await async_client.post("/api/payments/initialize", headers=second["headers"])

    assert response.status_code == 402
    assert response.json()["message"] == "Duplicate payment reference"
    assert (await subscriptions_of(async_client, second["headers"]))["subscriptions"] == []
