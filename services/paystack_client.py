"""
Paystack client - request/response mapping for transaction initialize and verify
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from backend.utils.errors import InternalError, PaymentError
from config.settings import settings

logger = logging.getLogger(__name__)

PAYSTACK_SUCCESS = "success"


@dataclass(frozen=True)
class PaymentInitialization:
    authorization_url: str
    access_code: str
    reference: str


@dataclass(frozen=True)
class PaymentVerification:
    status: str
    reference: str

    @property
    def is_successful(self) -> bool:
        return self.status == PAYSTACK_SUCCESS


class PaystackClient:
    """
    Thin async wrapper over the Paystack transaction API.

    Every failure (transport, HTTP error with an unreadable body, malformed JSON,
    gateway-reported failure) surfaces as PaymentError. No retries.
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret_key:
            raise ValueError("PAYSTACK_SECRET_KEY is not set. Cannot call Paystack.")
        self._secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self._secret_key}"},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, failure_message: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Paystack {method} {path} failed: {e}")
            raise PaymentError(failure_message)

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"Paystack returned non-JSON body ({response.status_code}) for {path}")
            raise PaymentError("Invalid response from Paystack")

        if not isinstance(body, dict) or "status" not in body:
            raise PaymentError("Invalid response from Paystack")

        if not body.get("status"):
            message = body.get("message") or failure_message
            logger.info(f"Paystack rejected {method} {path}: {message}")
            raise PaymentError(message)

        data = body.get("data")
        if not isinstance(data, dict):
            raise PaymentError("Invalid response from Paystack")
        return data

    async def initialize(self, email: str, amount: int, callback_url: str) -> PaymentInitialization:
        """
        Open a transaction.

        Args:
            email: Customer email
            amount: Amount in minor units (kobo)
            callback_url: Where Paystack sends the customer afterwards

        Returns:
            PaymentInitialization with the checkout URL and reference
        """
        data = await self._request(
            "POST",
            "/transaction/initialize",
            "Failed to initialize payment",
            json={"email": email, "amount": amount, "callback_url": callback_url},
        )
        try:
            return PaymentInitialization(
                authorization_url=data["authorization_url"],
                access_code=data["access_code"],
                reference=data["reference"],
            )
        except KeyError:
            raise PaymentError("Invalid response from Paystack")

    async def verify(self, reference: str) -> PaymentVerification:
        """Fetch the gateway's current view of a transaction."""
        data = await self._request(
            "GET",
            f"/transaction/verify/{reference}",
            "Failed to verify payment",
        )
        try:
            return PaymentVerification(status=data["status"], reference=data["reference"])
        except KeyError:
            raise PaymentError("Invalid response from Paystack")


def sign_webhook_payload(secret_key: str, payload: bytes) -> str:
    """Hex HMAC-SHA512 of the raw body, as Paystack sends in x-paystack-signature."""
    return hmac.new(secret_key.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def verify_webhook_signature(secret_key: Optional[str], payload: bytes, signature: Optional[str]) -> bool:
    if not secret_key or not signature:
        return False
    expected = sign_webhook_payload(secret_key, payload)
    return hmac.compare_digest(expected, signature.strip().lower())


class WebhookSignatureVerifier:
    """Checks x-paystack-signature; a disabled verifier accepts every body."""

    def __init__(self, secret_key: Optional[str], enabled: bool = True):
        self._secret_key = secret_key
        self.enabled = enabled

    def verify(self, payload: bytes, signature: Optional[str]) -> bool:
        if not self.enabled:
            return True
        return verify_webhook_signature(self._secret_key, payload, signature)


def get_webhook_verifier() -> WebhookSignatureVerifier:
    """FastAPI dependency building the webhook verifier from settings."""
    return WebhookSignatureVerifier(
        settings.paystack_secret_key,
        enabled=settings.paystack_verify_webhook_signature,
    )


def get_paystack_client() -> PaystackClient:
    """FastAPI dependency building the gateway client from settings."""
    try:
        return PaystackClient(
            settings.paystack_secret_key,
            base_url=settings.paystack_base_url,
            timeout=settings.payment_timeout_seconds,
        )
    except ValueError as e:
        logger.error(str(e))
        raise InternalError()
