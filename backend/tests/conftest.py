"""Shared fixtures: throw-away SQLite database, users, fake mailer and Stripe fakes."""

import os
import tempfile
from datetime import datetime
from typing import Any

import pytest

_TEST_DIR = tempfile.mkdtemp(prefix="petport-tests-")

# Settings are read at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["ENV"] = "test"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-that-is-long-enough-123"
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)
os.environ.pop("POSTMARK_API_KEY", None)

from petport.auth.accounts import account_service  # noqa: E402
from petport.auth.models import UserAccount  # noqa: E402
from petport.errors import NotFoundError, PaymentProviderError  # noqa: E402
from petport.payments import stripe_service  # noqa: E402
from petport.storage.db import db  # noqa: E402
from petport.subscriptions.models import Subscriber  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_database():
    """Recreate every table before each test."""
    db.drop_tables()
    db.create_tables()
    yield


class FakeMailer:
    """Records every send_* call; templates listed in ``failing`` return False."""

    def __init__(self, failing: set[str] | None = None):
        self.sent: list[tuple[str, tuple, dict]] = []
        self.failing = failing or set()

    def __getattr__(self, name: str):
        if not name.startswith("send_"):
            raise AttributeError(name)

        async def send(*args, **kwargs) -> bool:
            self.sent.append((name, args, kwargs))
            return name not in self.failing

        return send

    def calls(self, name: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for sent_name, args, kwargs in self.sent if sent_name == name]


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


def make_user(
    user_id: str = "user-1",
    email: str = "owner@example.com",
    full_name: str | None = "Pat Owner",
    is_admin: bool = False,
    created_at: datetime | None = None,
) -> UserAccount:
    with db.session() as session:
        user = UserAccount(
            id=user_id,
            email=email,
            full_name=full_name,
            is_admin=is_admin,
            created_at=created_at or datetime.utcnow(),
        )
        session.add(user)
    return user


def make_subscriber(email: str, **fields: Any) -> Subscriber:
    fields.setdefault("status", "active")
    fields.setdefault("subscribed", fields["status"] == "active")
    with db.session() as session:
        subscriber = Subscriber(email=email, **fields)
        session.add(subscriber)
    return subscriber


def auth_header(user: UserAccount) -> dict[str, str]:
    return {"Authorization": f"Bearer {account_service.create_access_token(user)}"}


@pytest.fixture
def user() -> UserAccount:
    return make_user()


@pytest.fixture
def admin() -> UserAccount:
    return make_user(user_id="admin-1", email="admin@example.com", full_name="Ada Admin", is_admin=True)


class FakeStripe:
    """In-memory stand-in for the stripe_service module functions."""

    def __init__(self):
        self.customers: dict[str, dict[str, Any]] = {}
        self.subscriptions: dict[str, list[dict[str, Any]]] = {}
        self.checkout_sessions: dict[str, dict[str, Any]] = {}
        self.prices: dict[str, dict[str, Any]] = {}
        self.accounts: dict[str, dict[str, Any]] = {}
        self.created_sessions: list[dict[str, Any]] = []
        self.transfers: list[dict[str, Any]] = []
        self.failing_transfers: set[str] = set()

    def retrieve_checkout_session(self, session_id, expand=None):
        if session_id not in self.checkout_sessions:
            raise NotFoundError(f"No such checkout.session: '{session_id}'")
        return self.checkout_sessions[session_id]

    def create_checkout_session(
        self,
        line_items,
        mode,
        success_url,
        cancel_url,
        metadata,
        customer_email=None,
        customer_id=None,
        subscription_data=None,
        discounts=None,
    ):
        session = {
            "id": f"cs_test_{len(self.created_sessions) + 1}",
            "url": "https://checkout.stripe.test/pay",
            "line_items": line_items,
            "mode": mode,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "customer_email": customer_email,
            "customer": customer_id,
            "subscription_data": subscription_data,
            "discounts": discounts,
        }
        self.created_sessions.append(session)
        return session

    def find_customer_by_email(self, email):
        return self.customers.get(email)

    def list_subscriptions(self, customer_id):
        return self.subscriptions.get(customer_id, [])

    def retrieve_price(self, price_id):
        return self.prices[price_id]

    def create_connect_account(self, email):
        account = {"id": f"acct_{len(self.accounts) + 1}", "email": email}
        self.accounts[account["id"]] = account
        return account

    def create_account_link(self, account_id, refresh_url, return_url):
        return {"url": f"https://connect.stripe.test/setup/{account_id}"}

    def retrieve_account(self, account_id):
        return self.accounts[account_id]

    def create_transfer(self, amount, destination, description, metadata, currency="usd"):
        if destination in self.failing_transfers:
            raise PaymentProviderError("Insufficient funds")
        transfer = {
            "id": f"tr_{len(self.transfers) + 1}",
            "amount": amount,
            "destination": destination,
            "description": description,
            "metadata": metadata,
        }
        self.transfers.append(transfer)
        return transfer


@pytest.fixture
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    for name in (
        "retrieve_checkout_session",
        "create_checkout_session",
        "find_customer_by_email",
        "list_subscriptions",
        "retrieve_price",
        "create_connect_account",
        "create_account_link",
        "retrieve_account",
        "create_transfer",
    ):
        monkeypatch.setattr(stripe_service, name, getattr(fake, name))
    return fake
