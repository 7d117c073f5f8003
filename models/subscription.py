from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    plan_type: str
    gateway_reference: str
    status: str  # pending or active
    start_date: datetime
    end_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PaymentInitializeOut(BaseModel):
    authorization_url: str
    reference: str


class WebhookData(BaseModel):
    # Only charge events carry these; other event types have their own shapes
    reference: Optional[str] = None
    status: Optional[str] = None


class WebhookEvent(BaseModel):
    """Paystack webhook body. Fields we do not use are ignored."""
    event: str
    data: Optional[WebhookData] = None
