"""Gift membership database models."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text

from petport.storage.db import Base


class GiftStatus(str, Enum):
    """Gift membership lifecycle."""
    PENDING = "pending"    # purchased, waiting for redemption
    ACTIVE = "active"      # redeemed
    EXPIRED = "expired"


class ScheduledGiftStatus(str, Enum):
    """Delivery state of a future-dated gift."""
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class GiftMembership(Base):
    """Prepaid twelve-month membership redeemable once by code."""
    __tablename__ = "gift_memberships"

    id = Column(Integer, primary_key=True)
    gift_code = Column(String(20), unique=True, nullable=False, index=True)

    # Parties
    purchaser_email = Column(String(255), nullable=True)
    recipient_email = Column(String(255), nullable=False)
    recipient_user_id = Column(String(36), ForeignKey("user_accounts.id"), nullable=True)
    sender_name = Column(String(255), nullable=True)
    gift_message = Column(Text, nullable=True)
    theme = Column(String(50), default="standard")

    # Entitlement
    amount_paid = Column(Integer, nullable=False)  # cents
    additional_pets = Column(Integer, default=0, nullable=False)

    # Lifecycle
    status = Column(String(20), default=GiftStatus.PENDING.value, nullable=False, index=True)
    purchased_at = Column(DateTime, default=datetime.utcnow)
    activated_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    # Stripe references
    stripe_checkout_session_id = Column(String(255), nullable=True, unique=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    # Renewal reminders
    reminder_60_sent_at = Column(DateTime, nullable=True)
    reminder_30_sent_at = Column(DateTime, nullable=True)
    reminder_7_sent_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<GiftMembership(code={self.gift_code}, status={self.status})>"


class ScheduledGift(Base):
    """Gift purchase waiting for its send date."""
    __tablename__ = "scheduled_gifts"

    id = Column(Integer, primary_key=True)
    gift_code = Column(String(20), unique=True, nullable=False)

    purchaser_email = Column(String(255), nullable=True)
    recipient_email = Column(String(255), nullable=False)
    sender_name = Column(String(255), nullable=True)
    gift_message = Column(Text, nullable=True)
    theme = Column(String(50), default="standard")

    amount_paid = Column(Integer, nullable=False)  # cents
    additional_pets = Column(Integer, default=0, nullable=False)

    scheduled_send_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), default=ScheduledGiftStatus.SCHEDULED.value, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    stripe_checkout_session_id = Column(String(255), nullable=True, unique=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ScheduledGift(code={self.gift_code}, date={self.scheduled_send_date}, status={self.status})>"


# Pydantic models for API

class GiftPurchaseRequest(BaseModel):
    """Request to buy a gift membership."""
    recipient_email: str
    sender_name: str | None = None
    gift_message: str | None = Field(default=None, max_length=1000)
    purchaser_email: str | None = None
    scheduled_send_date: date | None = None
    additional_pets: int = 0
    theme: str = "standard"


class GiftRedeemRequest(BaseModel):
    """Request to redeem a gift code."""
    gift_code: str


class GiftRecoverRequest(BaseModel):
    """Request to rebuild a gift from a paid checkout session."""
    checkout_session_id: str


class GiftResendRequest(BaseModel):
    """Request to resend a gift's emails."""
    gift_code: str
