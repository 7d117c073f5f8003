"""
Subscription Service - reconciles paid subscriptions against Paystack

Two channels confirm a payment: the customer calling verify, and Paystack
calling the webhook. They may arrive in either order, concurrently, or more
than once. Both end in activate(), whose conditional update lets exactly one
caller perform the pending -> active transition.
"""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.utils.errors import AuthorizationError, NotFoundError, PaymentError
from config.settings import settings, PLAN_UNLIMITED
from crud.subscription import SubscriptionRepository
from crud.user import UserRepository
from database_models import Subscription, SUBSCRIPTION_ACTIVE, utcnow
from models.subscription import WebhookEvent
from services.paystack_client import PaystackClient, PAYSTACK_SUCCESS

logger = logging.getLogger(__name__)

SUBSCRIPTION_PERIOD = timedelta(days=365)
CHARGE_SUCCESS_EVENT = "charge.success"

# Webhook outcomes
WEBHOOK_ACTIVATED = "activated"
WEBHOOK_ALREADY_ACTIVE = "already_active"
WEBHOOK_UNKNOWN_REFERENCE = "unknown_reference"
WEBHOOK_IGNORED = "ignored"


class SubscriptionService:
    """
    Service class for the subscription lifecycle.
    The gateway is only needed for initialize and verify; webhook handling
    and activation work from the database alone.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: Optional[PaystackClient] = None,
        amount: Optional[int] = None,
        callback_url: Optional[str] = None,
    ):
        """
        Args:
            db: AsyncSession instance for database operations
            gateway: Paystack client
            amount: Price in minor units (defaults to SUBSCRIPTION_AMOUNT)
            callback_url: Checkout return URL (defaults to PAYSTACK_CALLBACK_URL)
        """
        self.db = db
        self.gateway = gateway
        self.amount = amount if amount is not None else settings.subscription_amount
        self.callback_url = callback_url or settings.paystack_callback_url
        self.subscriptions = SubscriptionRepository(db)
        self.users = UserRepository(db)

    def _require_gateway(self) -> PaystackClient:
        if self.gateway is None:
            raise RuntimeError("SubscriptionService was built without a payment gateway")
        return self.gateway

    async def _end_transaction(self) -> None:
        # Nothing may hold a database transaction open across a gateway call
        await self.db.commit()

    async def initialize_payment(self, user_id: int) -> dict:
        """
        Open a Paystack transaction and record a pending subscription for it.

        Returns:
            {"authorization_url": str, "reference": str}
        """
        gateway = self._require_gateway()

        user = await self.users.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        email = user.email
        await self._end_transaction()

        transaction = await gateway.initialize(email, self.amount, self.callback_url)

        try:
            await self.subscriptions.create_pending(user_id, PLAN_UNLIMITED, transaction.reference)
            await self.db.commit()
        except IntegrityError:
            # Paystack handed back a reference we already track
            await self.db.rollback()
            logger.error(f"Paystack returned reused reference {transaction.reference} for user {user_id}")
            raise PaymentError("Duplicate payment reference")
        logger.info(f"Pending subscription recorded for user {user_id} (reference {transaction.reference})")

        return {
            "authorization_url": transaction.authorization_url,
            "reference": transaction.reference,
        }

    async def verify_payment(self, user_id: int, reference: str) -> Subscription:
        """
        Customer-initiated confirmation.

        The subscription must belong to user_id; a reference belonging to
        someone else is refused before the gateway is contacted.

        Raises:
            NotFoundError: no subscription carries this reference
            AuthorizationError: the subscription belongs to another user
            PaymentError: the gateway failed or reports the payment unsuccessful
        """
        gateway = self._require_gateway()

        subscription = await self.subscriptions.get_by_reference(reference)
        if not subscription:
            raise NotFoundError("Subscription not found")
        if subscription.user_id != user_id:
            logger.warning(f"User {user_id} tried to verify reference {reference} owned by another user")
            raise AuthorizationError()
        if subscription.status == SUBSCRIPTION_ACTIVE:
            return subscription
        await self._end_transaction()

        verification = await gateway.verify(reference)
        if verification.reference != reference:
            logger.warning(f"Paystack answered verify {reference} with reference {verification.reference}")
            raise PaymentError("Payment reference mismatch")
        if not verification.is_successful:
            raise PaymentError("Payment was not successful")

        subscription, _ = await self.activate(reference, owner_id=user_id)
        return subscription

    async def handle_webhook_event(self, event: WebhookEvent) -> str:
        """
        Gateway-initiated confirmation.

        Unknown events, non-success charges and unknown references are
        acknowledged without effect so that redelivery never fails.

        Returns:
            One of the WEBHOOK_* outcome strings
        """
        if event.event != CHARGE_SUCCESS_EVENT:
            logger.info(f"Ignoring Paystack event {event.event}")
            return WEBHOOK_IGNORED
        data = event.data
        if data is None or not data.reference:
            logger.warning(f"Ignoring {event.event} without a transaction reference")
            return WEBHOOK_IGNORED
        if data.status != PAYSTACK_SUCCESS:
            logger.info(f"Ignoring {event.event} for {data.reference} with status {data.status}")
            return WEBHOOK_IGNORED

        try:
            _, activated = await self.activate(data.reference)
        except NotFoundError:
            logger.warning(f"Paystack webhook for unknown reference {data.reference}")
            return WEBHOOK_UNKNOWN_REFERENCE

        return WEBHOOK_ACTIVATED if activated else WEBHOOK_ALREADY_ACTIVE

    async def activate(self, reference: str, owner_id: Optional[int] = None) -> Tuple[Subscription, bool]:
        """
        Idempotently move the subscription for reference to active.

        The first caller stamps end_date = now + 1 year and upgrades the owner
        to the unlimited plan, both in one transaction. Later or concurrent
        callers change nothing and get the already-active row back.

        Args:
            reference: Gateway reference of the payment attempt
            owner_id: Restrict activation to this user's subscription

        Returns:
            (subscription, activated) where activated is True only for the
            call that performed the transition

        Raises:
            NotFoundError: no subscription carries this reference
            AuthorizationError: owner_id given and the row belongs to someone else
        """
        end_date = utcnow() + SUBSCRIPTION_PERIOD
        activated = await self.subscriptions.activate_if_pending(reference, end_date, owner_id=owner_id)

        if activated:
            subscription = await self.subscriptions.get_by_reference(reference)
            await self.users.set_subscription_plan(subscription.user_id, PLAN_UNLIMITED)
            await self.db.commit()
            logger.info(
                f"Subscription {subscription.id} for user {subscription.user_id} activated "
                f"until {subscription.end_date.isoformat()} (reference {reference})"
            )
            return subscription, True

        # Losing a race leaves the winner's committed row visible to this read
        subscription = await self.subscriptions.get_by_reference(reference)
        await self.db.commit()
        if not subscription:
            raise NotFoundError("Subscription not found")
        if owner_id is not None and subscription.user_id != owner_id:
            raise AuthorizationError()

        logger.info(f"Subscription {subscription.id} already {subscription.status}; activation for {reference} skipped")
        return subscription, False

    async def list_subscriptions(self, user_id: int) -> List[Subscription]:
        return await self.subscriptions.list_for_user(user_id)

    async def current_subscription(self, user_id: int) -> Optional[Subscription]:
        return await self.subscriptions.get_current_for_user(user_id)
