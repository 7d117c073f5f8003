from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from backend.utils.errors import NotFoundError, QuotaExceededError
from config.settings import PLAN_UNLIMITED, FREE_PLAN_MAX_FORMS
from crud.form import FormRepository
from crud.user import UserRepository


class QuotaDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


def check_quota(plan: str, form_count: int) -> QuotaDecision:
    # Anything that is not the paid plan is held to the free quota
    if plan != PLAN_UNLIMITED and form_count >= FREE_PLAN_MAX_FORMS:
        return QuotaDecision.DENY
    return QuotaDecision.ALLOW


async def enforce_form_quota(db: AsyncSession, user_id: int) -> None:
    """
    Raise QuotaExceededError if user_id may not create another form.
    Reads the plan straight from the users table on every call.
    """
    plan = await UserRepository(db).get_subscription_plan(user_id)
    if plan is None:
        raise NotFoundError("User not found")

    form_count = await FormRepository(db).count_forms_for_user(user_id)
    if check_quota(plan, form_count) is QuotaDecision.DENY:
        raise QuotaExceededError(
            f"Free plan users can only create up to {FREE_PLAN_MAX_FORMS} forms"
        )
