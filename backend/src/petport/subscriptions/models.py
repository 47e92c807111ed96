"""Subscriber database model."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from petport.storage.db import Base

BASE_PET_SLOTS = 1


class SubscriptionStatus(str, Enum):
    """Subscriber access states."""
    INACTIVE = "inactive"
    ACTIVE = "active"
    GRACE = "grace"          # payment failed, access kept until grace_period_end
    SUSPENDED = "suspended"
    CANCELED = "canceled"


class PlanInterval(str, Enum):
    """Billing interval of the plan."""
    MONTH = "month"
    YEAR = "year"


ACCESS_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.GRACE.value)


class Subscriber(Base):
    """Subscription state for one email address.

    Rows may exist before the buyer creates an account (``user_id`` is NULL
    until the account is linked).
    """
    __tablename__ = "subscribers"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("user_accounts.id"), nullable=True, unique=True)

    # Stripe references
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    # Plan
    subscribed = Column(Boolean, default=False)
    status = Column(String(20), default=SubscriptionStatus.INACTIVE.value, nullable=False)
    subscription_tier = Column(String(50), nullable=True)
    subscription_end = Column(DateTime, nullable=True)
    plan_interval = Column(String(10), nullable=True)

    # Pet slot entitlement
    pet_limit = Column(Integer, default=BASE_PET_SLOTS, nullable=False)
    additional_pets = Column(Integer, default=0, nullable=False)
    additional_pets_purchased = Column(Integer, default=0, nullable=False)  # one-time bundles, included above

    # Grace period
    grace_period_end = Column(DateTime, nullable=True)
    payment_failed_at = Column(DateTime, nullable=True)
    suspended_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Subscriber(email={self.email}, status={self.status}, interval={self.plan_interval})>"

    @property
    def pet_capacity(self) -> int:
        """Total pet profiles allowed."""
        return (self.pet_limit or 0) + (self.additional_pets or 0)

    @property
    def has_access(self) -> bool:
        """Active or still inside the grace period."""
        return self.status in ACCESS_STATUSES


class AddonPurchase(Base):
    """A paid one-time pet slot bundle; one row per checkout session."""
    __tablename__ = "addon_purchases"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False)
    user_id = Column(String(36), ForeignKey("user_accounts.id"), nullable=True)
    stripe_session_id = Column(String(255), unique=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    amount = Column(Integer, default=0, nullable=False)  # cents
    currency = Column(String(10), default="usd", nullable=False)
    status = Column(String(20), default="paid", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<AddonPurchase(session={self.stripe_session_id}, quantity={self.quantity})>"


# Pydantic models for API

class SubscriptionSnapshot(BaseModel):
    """Subscription status returned to the client."""
    subscribed: bool
    status: str
    subscription_tier: str | None = None
    subscription_end: datetime | None = None
    plan_interval: str | None = None
    additional_pets: int = 0
    pet_limit: int = BASE_PET_SLOTS
    grace_period_end: datetime | None = None


class CheckoutVerification(BaseModel):
    """Result of verifying a completed checkout."""
    success: bool = True
    needs_account_setup: bool
    existing_user: bool
    email: str


class VerifyCheckoutRequest(BaseModel):
    """Request to verify a checkout session."""
    session_id: str | None = None


class CheckoutRequest(BaseModel):
    """Request to start a subscription checkout."""
    plan: str
    referral_code: str | None = None


class AddonCheckoutRequest(BaseModel):
    """Request to buy a bundle of extra pet slots."""
    bundle: int
