"""Authentication models for user accounts."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from petport.storage.db import Base


class UserAccount(Base):
    """Local mirror of an account from the hosted auth provider.

    The id is the provider's user id (the ``sub`` claim of its JWTs).
    """
    __tablename__ = "user_accounts"

    id = Column(String(36), primary_key=True)

    # Identity
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    # Status
    is_admin = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UserAccount(id={self.id}, email={self.email}, admin={self.is_admin})>"

    @property
    def display_name(self) -> str:
        """Full name, or the local part of the email."""
        return self.full_name or self.email.split("@")[0]


class ProcessedWebhookEvent(Base):
    """Tracks processed webhook events for idempotency.

    Prevents duplicate processing of webhook events (e.g., Stripe payments).
    Stored in database to survive restarts and work across multiple processes.
    """
    __tablename__ = "processed_webhook_events"

    id = Column(Integer, primary_key=True)
    event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False)  # e.g., "checkout.session.completed"
    source = Column(String(50), nullable=False)  # e.g., "stripe"
    processed_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ProcessedWebhookEvent(id={self.event_id}, type={self.event_type})>"

