"""Initial database schema

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates the PetPort schema: accounts, pets and contacts, subscribers,
referrals with visits and payout accounts, and gift memberships.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all initial tables."""

    # User accounts (mirrored from the auth provider)
    op.create_table(
        "user_accounts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=True, default=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_accounts_email", "user_accounts", ["email"], unique=True)

    # Webhook idempotency
    op.create_table(
        "processed_webhook_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_processed_webhook_events_event_id", "processed_webhook_events", ["event_id"], unique=True)

    # Pets
    op.create_table(
        "pets",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("species", sa.String(100), nullable=True),
        sa.Column("breed", sa.String(255), nullable=True),
        sa.Column("age", sa.String(50), nullable=True),
        sa.Column("weight", sa.String(50), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("medical_alert", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("medical_conditions", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("emergency_contact", sa.String(500), nullable=True),
        sa.Column("second_emergency_contact", sa.String(500), nullable=True),
        sa.Column("vet_contact", sa.String(500), nullable=True),
        sa.Column("pet_caretaker", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["owner_id"], ["user_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pets_owner_id", "pets", ["owner_id"], unique=False)

    op.create_table(
        "pet_contacts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("pet_id", sa.String(36), nullable=False),
        sa.Column("contact_type", sa.String(30), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["pet_id"], ["pets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pet_contacts_pet_id", "pet_contacts", ["pet_id"], unique=False)

    # Subscribers
    op.create_table(
        "subscribers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("subscribed", sa.Boolean(), nullable=True, default=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="inactive"),
        sa.Column("subscription_tier", sa.String(50), nullable=True),
        sa.Column("subscription_end", sa.DateTime(), nullable=True),
        sa.Column("plan_interval", sa.String(10), nullable=True),
        sa.Column("pet_limit", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("additional_pets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("additional_pets_purchased", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("grace_period_end", sa.DateTime(), nullable=True),
        sa.Column("payment_failed_at", sa.DateTime(), nullable=True),
        sa.Column("suspended_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["user_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_subscribers_email", "subscribers", ["email"], unique=True)

    # One-time pet slot bundles
    op.create_table(
        "addon_purchases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("stripe_session_id", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(10), nullable=False, server_default="usd"),
        sa.Column("status", sa.String(20), nullable=False, server_default="paid"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["user_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stripe_session_id"),
    )

    # Referrals
    op.create_table(
        "referrals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("referral_code", sa.String(20), nullable=False),
        sa.Column("referrer_user_id", sa.String(36), nullable=False),
        sa.Column("referred_user_id", sa.String(36), nullable=True),
        sa.Column("referred_plan_interval", sa.String(10), nullable=True),
        sa.Column("commission_amount", sa.Integer(), nullable=False, server_default="200"),
        sa.Column("commission_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("trial_completed_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("transfer_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["referrer_user_id"], ["user_accounts.id"]),
        sa.ForeignKeyConstraint(["referred_user_id"], ["user_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referred_user_id"),
    )
    op.create_index("ix_referrals_referral_code", "referrals", ["referral_code"], unique=True)
    op.create_index("ix_referrals_referrer_user_id", "referrals", ["referrer_user_id"], unique=False)
    op.create_index("ix_referrals_commission_status", "referrals", ["commission_status"], unique=False)

    op.create_table(
        "referral_visits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("referral_code", sa.String(20), nullable=False),
        sa.Column("ip_address", sa.String(100), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("visited_at", sa.DateTime(), nullable=True),
        sa.Column("converted_user_id", sa.String(36), nullable=True),
        sa.Column("converted_at", sa.DateTime(), nullable=True),
        sa.Column("plan_type", sa.String(20), nullable=True),
        sa.ForeignKeyConstraint(["converted_user_id"], ["user_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_referral_visits_referral_code", "referral_visits", ["referral_code"], unique=False)

    op.create_table(
        "user_payouts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("stripe_connect_id", sa.String(255), nullable=True),
        sa.Column("onboarding_status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("yearly_earnings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["user_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    # Gift memberships
    op.create_table(
        "gift_memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("gift_code", sa.String(20), nullable=False),
        sa.Column("purchaser_email", sa.String(255), nullable=True),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("recipient_user_id", sa.String(36), nullable=True),
        sa.Column("sender_name", sa.String(255), nullable=True),
        sa.Column("gift_message", sa.Text(), nullable=True),
        sa.Column("theme", sa.String(50), nullable=True),
        sa.Column("amount_paid", sa.Integer(), nullable=False),
        sa.Column("additional_pets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("purchased_at", sa.DateTime(), nullable=True),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("stripe_checkout_session_id", sa.String(255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("reminder_60_sent_at", sa.DateTime(), nullable=True),
        sa.Column("reminder_30_sent_at", sa.DateTime(), nullable=True),
        sa.Column("reminder_7_sent_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["recipient_user_id"], ["user_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stripe_checkout_session_id"),
    )
    op.create_index("ix_gift_memberships_gift_code", "gift_memberships", ["gift_code"], unique=True)
    op.create_index("ix_gift_memberships_status", "gift_memberships", ["status"], unique=False)

    op.create_table(
        "scheduled_gifts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("gift_code", sa.String(20), nullable=False),
        sa.Column("purchaser_email", sa.String(255), nullable=True),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("sender_name", sa.String(255), nullable=True),
        sa.Column("gift_message", sa.Text(), nullable=True),
        sa.Column("theme", sa.String(50), nullable=True),
        sa.Column("amount_paid", sa.Integer(), nullable=False),
        sa.Column("additional_pets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("scheduled_send_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("stripe_checkout_session_id", sa.String(255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("gift_code"),
        sa.UniqueConstraint("stripe_checkout_session_id"),
    )
    op.create_index("ix_scheduled_gifts_scheduled_send_date", "scheduled_gifts", ["scheduled_send_date"], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("scheduled_gifts")
    op.drop_table("gift_memberships")
    op.drop_table("user_payouts")
    op.drop_table("referral_visits")
    op.drop_table("referrals")
    op.drop_table("addon_purchases")
    op.drop_table("subscribers")
    op.drop_table("pet_contacts")
    op.drop_table("pets")
    op.drop_table("processed_webhook_events")
    op.drop_table("user_accounts")
