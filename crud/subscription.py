"""
SubscriptionRepository for database operations on Subscription model
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Subscription, SUBSCRIPTION_ACTIVE, SUBSCRIPTION_PENDING, utcnow


class SubscriptionRepository:
    """
    Repository class for Subscription database operations.
    Rows are addressed by gateway_reference for reconciliation.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_pending(self, user_id: int, plan_type: str, reference: str) -> Subscription:
        subscription = Subscription(
            user_id=user_id,
            plan_type=plan_type,
            gateway_reference=reference,
            status=SUBSCRIPTION_PENDING,
            start_date=utcnow(),
        )
        self.db.add(subscription)
        await self.db.flush()
        await self.db.refresh(subscription)
        return subscription

    async def get_by_reference(self, reference: str) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.gateway_reference == reference)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def activate_if_pending(
        self,
        reference: str,
        end_date: datetime,
        owner_id: Optional[int] = None,
    ) -> bool:
        """
        Atomically move a pending row to active.

        The status predicate makes the UPDATE a check-and-set: of any number of
        concurrent callers exactly one sees a changed row.

        Args:
            reference: Gateway reference of the payment attempt
            end_date: Expiry to stamp on the activated row
            owner_id: If given, only a row owned by this user may transition

        Returns:
            True if this call performed the transition, False otherwise
        """
        stmt = (
            update(Subscription)
            .where(Subscription.gateway_reference == reference)
            .where(Subscription.status == SUBSCRIPTION_PENDING)
        )
        if owner_id is not None:
            stmt = stmt.where(Subscription.user_id == owner_id)
        stmt = stmt.values(
            status=SUBSCRIPTION_ACTIVE,
            end_date=end_date,
            updated_at=utcnow(),
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def list_for_user(self, user_id: int) -> List[Subscription]:
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        return list(result.scalars().all())

    async def get_current_for_user(self, user_id: int) -> Optional[Subscription]:
        """Active subscription with the latest end_date, if any."""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .where(Subscription.status == SUBSCRIPTION_ACTIVE)
            .order_by(Subscription.end_date.desc(), Subscription.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
