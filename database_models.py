from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship

from config.settings import PLAN_FREE
from database import Base

SUBSCRIPTION_PENDING = "pending"
SUBSCRIPTION_ACTIVE = "active"


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """
    Registered account.
    subscription_plan is a cached value written only by the subscription engine.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    subscription_plan = Column(String, nullable=False, default=PLAN_FREE)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    subscriptions = relationship("Subscription", back_populates="user")
    forms = relationship("Form", back_populates="user")


class Subscription(Base):
    """
    One row per payment attempt, addressed by the gateway reference.
    Lifecycle: pending -> active, never back.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_type = Column(String, nullable=False)
    gateway_reference = Column(String, unique=True, nullable=False, index=True)
    status = Column(String, nullable=False, default=SUBSCRIPTION_PENDING)
    start_date = Column(DateTime, default=utcnow, nullable=False)
    end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="subscriptions")


class Form(Base):
    __tablename__ = "forms"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)
    allow_anonymous = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="forms")
    elements = relationship(
        "FormElement",
        back_populates="form",
        cascade="all, delete-orphan",
        order_by="FormElement.order_index",
    )


class FormElement(Base):
    __tablename__ = "form_elements"

    id = Column(Integer, primary_key=True, index=True)
    form_id = Column(Integer, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, index=True)
    element_type = Column(String, nullable=False)
    question = Column(Text, nullable=False)
    required = Column(Boolean, nullable=False, default=False)
    options = Column(JSON, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    form = relationship("Form", back_populates="elements")


class FormResponse(Base):
    """
    One submission to a form.
    respondent_id is None for anonymous submissions.
    """
    __tablename__ = "form_responses"

    id = Column(Integer, primary_key=True, index=True)
    form_id = Column(Integer, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, index=True)
    respondent_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    response_data = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class FormShare(Base):
    __tablename__ = "form_shares"

    id = Column(Integer, primary_key=True, index=True)
    form_id = Column(Integer, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, index=True)
    share_type = Column(String, nullable=False)
    share_token = Column(String, unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
