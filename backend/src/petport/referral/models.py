"""Referral system database models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from petport.storage.db import Base


class CommissionStatus(str, Enum):
    """Referral commission lifecycle."""
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class OnboardingStatus(str, Enum):
    """Stripe Connect onboarding progress for a referrer."""
    NOT_STARTED = "not_started"
    PENDING = "pending"
    COMPLETED = "completed"


class Referral(Base):
    """Referral code and the commission it earns.

    A code is owned by its referrer and is linked to at most one referred
    user. Commission moves pending -> approved -> paid.
    """
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True)
    referral_code = Column(String(20), unique=True, nullable=False, index=True)
    referrer_user_id = Column(String(36), ForeignKey("user_accounts.id"), nullable=False, index=True)
    referred_user_id = Column(String(36), ForeignKey("user_accounts.id"), nullable=True, unique=True)

    # Commission
    referred_plan_interval = Column(String(10), nullable=True)
    commission_amount = Column(Integer, default=200, nullable=False)  # cents
    commission_status = Column(String(20), default=CommissionStatus.PENDING.value, nullable=False, index=True)
    trial_completed_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    transfer_id = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    referrer = relationship("UserAccount", foreign_keys=[referrer_user_id])
    referred = relationship("UserAccount", foreign_keys=[referred_user_id])

    def __repr__(self):
        return f"<Referral(code={self.referral_code}, status={self.commission_status})>"


class ReferralVisit(Base):
    """A visit to a referral link, converted once the visitor subscribes."""
    __tablename__ = "referral_visits"

    id = Column(Integer, primary_key=True)
    referral_code = Column(String(20), nullable=False, index=True)
    ip_address = Column(String(100), nullable=True)
    user_agent = Column(String(500), nullable=True)
    visited_at = Column(DateTime, default=datetime.utcnow)

    # Conversion
    converted_user_id = Column(String(36), ForeignKey("user_accounts.id"), nullable=True)
    converted_at = Column(DateTime, nullable=True)
    plan_type = Column(String(20), nullable=True)

    def __repr__(self):
        return f"<ReferralVisit(code={self.referral_code}, converted={self.converted_user_id is not None})>"


class UserPayout(Base):
    """Payout account of a referrer (Stripe Connect Express)."""
    __tablename__ = "user_payouts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(36), ForeignKey("user_accounts.id"), nullable=False, unique=True)
    stripe_connect_id = Column(String(255), nullable=True)
    onboarding_status = Column(String(20), default=OnboardingStatus.NOT_STARTED.value, nullable=False)
    yearly_earnings = Column(Integer, default=0, nullable=False)  # cents

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UserPayout(user={self.user_id}, status={self.onboarding_status})>"
