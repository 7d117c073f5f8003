"""
Payments Router - API endpoints for Paystack subscription payments
Webhook is defined FIRST; it is the only unauthenticated payment endpoint
"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.auth.user import AuthUser
from backend.utils.responses import success_response
from database import get_db
from models.subscription import PaymentInitializeOut, SubscriptionOut, WebhookEvent
from services.paystack_client import (
    PaystackClient,
    WebhookSignatureVerifier,
    get_paystack_client,
    get_webhook_verifier,
)
from services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

# Create payments router
payments_router = APIRouter(prefix="/api/payments", tags=["payments"])


def _webhook_ack(ok: bool, **extra) -> JSONResponse:
    # Always 200 so Paystack never retries
    return JSONResponse(status_code=200, content={"ok": ok, "received": True, **extra})


# WEBHOOK ENDPOINT
@payments_router.post("/webhook")
async def paystack_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    verifier: WebhookSignatureVerifier = Depends(get_webhook_verifier),
):
    """
    Handle Paystack webhook events.

    When signature checking is enabled the x-paystack-signature header must
    match the HMAC-SHA512 of the raw body; anything else is dropped.
    Event types other than charge.success are acknowledged and ignored
    whatever their data looks like.

    Always returns 200 OK to Paystack to prevent retries.

    Args:
        request: FastAPI Request object (for raw body)
        db: Database session dependency
        verifier: Webhook signature checker

    Returns:
        JSON response with 200 status code
    """
    payload = await request.body()

    if not verifier.verify(payload, request.headers.get("x-paystack-signature")):
        logger.error("Paystack webhook signature verification failed")
        return _webhook_ack(False, error="Invalid webhook signature")

    try:
        event = WebhookEvent.model_validate(json.loads(payload))
    except (ValueError, PydanticValidationError) as e:
        logger.error(f"Invalid webhook payload: {e}")
        return _webhook_ack(False, error="Invalid payload format")

    try:
        outcome = await SubscriptionService(db).handle_webhook_event(event)
    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        await db.rollback()
        return _webhook_ack(False, error="Webhook processing failed")

    return _webhook_ack(True, event_type=event.event, outcome=outcome)


@payments_router.post("/initialize")
async def initialize_payment(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaystackClient = Depends(get_paystack_client),
):
    """
    Start a subscription payment for the current user.

    Returns:
        JSON response with the Paystack checkout URL and the payment reference
    """
    result = await SubscriptionService(db, gateway).initialize_payment(current_user.user_id)
    return success_response(PaymentInitializeOut(**result).model_dump())


@payments_router.get("/verify/{reference}")
async def verify_payment(
    reference: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaystackClient = Depends(get_paystack_client),
):
    """
    Confirm a payment with Paystack and activate the caller's subscription.
    Safe to call repeatedly and safe to race with the webhook.
    """
    subscription = await SubscriptionService(db, gateway).verify_payment(current_user.user_id, reference)
    return success_response(SubscriptionOut.model_validate(subscription).model_dump(mode="json"))


@payments_router.get("/subscriptions")
async def list_subscriptions(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Subscription history for the current user, newest first."""
    service = SubscriptionService(db)
    subscriptions = await service.list_subscriptions(current_user.user_id)
    current = await service.current_subscription(current_user.user_id)
    return success_response({
        "current": SubscriptionOut.model_validate(current).model_dump(mode="json") if current else None,
        "subscriptions": [
            SubscriptionOut.model_validate(s).model_dump(mode="json") for s in subscriptions
        ],
    })
