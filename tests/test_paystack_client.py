"""
Tests for the Paystack client response mapping and webhook signatures
"""
import httpx
import pytest

from backend.utils.errors import PaymentError
from services.paystack_client import (
    PaystackClient,
    WebhookSignatureVerifier,
    sign_webhook_payload,
    verify_webhook_signature,
)


def client_for(handler) -> PaystackClient:
    return PaystackClient("sk_test_unit", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_initialize_sends_expected_request(fake_paystack):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = request.content
        return fake_paystack.handler(request)

    result = await client_for(handler).initialize("payer@example.com", 500000, "http://localhost/cb")

    assert seen["auth"] == "Bearer sk_test_unit"
    assert b'"amount":500000' in seen["body"].replace(b" ", b"")
    assert result.reference == "ref_0001"
    assert result.authorization_url.endswith("ref_0001")
    assert result.access_code == "ac_ref_0001"


@pytest.mark.asyncio
async def test_verify_maps_status(fake_paystack, paystack_client):
    initialized = await paystack_client.initialize("payer@example.com", 100, "http://cb")

    pending = await paystack_client.verify(initialized.reference)
    assert pending.status == "abandoned"
    assert pending.is_successful is False

    fake_paystack.mark_paid(initialized.reference)
    paid = await paystack_client.verify(initialized.reference)
    assert paid.is_successful is True
    assert paid.reference == initialized.reference


@pytest.mark.asyncio
async def test_gateway_rejection_becomes_payment_error(paystack_client):
    with pytest.raises(PaymentError) as exc_info:
        await paystack_client.verify("ref_missing")

    assert exc_info.value.message == "Transaction reference not found"


@pytest.mark.asyncio
async def test_transport_failure_becomes_payment_error(fake_paystack, paystack_client):
    fake_paystack.fail_transport = True

    with pytest.raises(PaymentError) as exc_info:
        await paystack_client.initialize("payer@example.com", 100, "http://cb")

    assert exc_info.value.message == "Failed to initialize payment"


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(502, text="<html>Bad Gateway</html>"),
    httpx.Response(200, json=["not", "an", "object"]),
    httpx.Response(200, json={"status": True, "message": "ok", "data": None}),
    httpx.Response(200, json={"status": True, "message": "ok", "data": {"reference": "r"}}),
])
async def test_malformed_responses_become_payment_error(response):
    client = client_for(lambda request: response)

    with pytest.raises(PaymentError):
        await client.verify("r")


def test_client_requires_secret_key():
    with pytest.raises(ValueError):
        PaystackClient("")


def test_webhook_signature_round_trip():
    body = b'{"event":"charge.success"}'
    signature = sign_webhook_payload("sk_test_unit", body)

    assert verify_webhook_signature("sk_test_unit", body, signature) is True
    assert verify_webhook_signature("sk_test_unit", body, signature.upper()) is True
    assert verify_webhook_signature("sk_test_other", body, signature) is False
    assert verify_webhook_signature("sk_test_unit", body + b" ", signature) is False
    assert verify_webhook_signature("sk_test_unit", body, None) is False
    assert verify_webhook_signature(None, body, signature) is False


def test_webhook_verifier():
    body = b'{"event":"charge.success"}'
    signature = sign_webhook_payload("sk_test_unit", body)

    enabled = WebhookSignatureVerifier("sk_test_unit")
    assert enabled.verify(body, signature) is True
    assert enabled.verify(body, "bad") is False
    assert enabled.verify(body, None) is False

    disabled = WebhookSignatureVerifier(None, enabled=False)
    assert disabled.verify(body, None) is True
