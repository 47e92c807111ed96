"""
Referral Payout Tests

Connect onboarding and the batched commission transfer job.
"""

from datetime import datetime

import pytest

from conftest import make_user
from petport.referral.models import Referral, UserPayout
from petport.referral.payouts import PayoutService, payout_description
from petport.storage.db import db

NOW = datetime(2024, 4, 1, 9, 0)


@pytest.fixture
def service() -> PayoutService:
    return PayoutService()


def approved_referrals(referrer_id: str, count: int, prefix: str) -> list[int]:
    ids = []
    with db.session() as session:
        for i in range(count):
            referral = Referral(
                referral_code=f"{prefix}{i:04d}",
                referrer_user_id=referrer_id,
                referred_user_id=f"{prefix.lower()}-referred-{i}",
                referred_plan_interval="year",
                commission_status="approved",
            )
            session.add(referral)
            session.flush()
            ids.append(referral.id)
    return ids


def add_payout(user_id: str, connect_id: str | None, status: str, yearly_earnings: int = 0) -> None:
    with db.session() as session:
        session.add(UserPayout(
            user_id=user_id,
            stripe_connect_id=connect_id,
            onboarding_status=status,
            yearly_earnings=yearly_earnings,
        ))


def load_referrals(ids: list[int]) -> list[Referral]:
    with db.session() as session:
        return session.query(Referral).filter(Referral.id.in_(ids)).order_by(Referral.id).all()


def load_payout(user_id: str) -> UserPayout:
    with db.session() as session:
        return session.query(UserPayout).filter(UserPayout.user_id == user_id).one()


class TestPayoutDescription:
    def test_pluralization(self):
        assert payout_description(1) == "PetPort referral commission - 1 referral"
        assert payout_description(3) == "PetPort referral commission - 3 referrals"


class TestOnboarding:
    """Express account is created once and reused"""

    def test_creates_account_once(self, service, user, fake_stripe):
        first = service.start_onboarding(user)
        second = service.start_onboarding(user)

        assert first["account_id"] == second["account_id"]
        assert first["url"].endswith(first["account_id"])
        assert len(fake_stripe.accounts) == 1
        assert load_payout(user.id).onboarding_status == "pending"

    def test_status_without_account(self, service, user, fake_stripe):
        assert service.refresh_status(user)["status"] == "not_started"

    def test_status_completed(self, service, user, fake_stripe):
        account_id = service.start_onboarding(user)["account_id"]
        fake_stripe.accounts[account_id].update(details_submitted=True, payouts_enabled=True, charges_enabled=True)

        status = service.refresh_status(user)

        assert status["status"] == "completed"
        assert load_payout(user.id).onboarding_status == "completed"

    def test_status_pending_until_payouts_enabled(self, service, user, fake_stripe):
        account_id = service.start_onboarding(user)["account_id"]
        fake_stripe.accounts[account_id].update(details_submitted=True, payouts_enabled=False)

        assert service.refresh_status(user)["status"] == "pending"


class TestProcessPayouts:
    """One transfer per referrer for the summed commission"""

    def test_pays_grouped_commissions(self, service, fake_stripe):
        referrer = make_user(user_id="referrer-a", email="a@example.com")
        ids = approved_referrals(referrer.id, 2, "AAA")
        add_payout(referrer.id, "acct_a", "completed", yearly_earnings=200)

        summary = service.process_payouts(now=NOW)

        assert summary == {
            "total_approved": 2,
            "successful_payouts": 2,
            "failed_payouts": 0,
            "unique_referrers": 1,
            "errors": 0,
            "error_details": [],
        }
        assert len(fake_stripe.transfers) == 1
        transfer = fake_stripe.transfers[0]
        assert transfer["amount"] == 400
        assert transfer["destination"] == "acct_a"
        assert transfer["description"] == "PetPort referral commission - 2 referrals"
        assert transfer["metadata"]["referral_ids"] == ",".join(str(i) for i in ids)

        for referral in load_referrals(ids):
            assert referral.commission_status == "paid"
            assert referral.paid_at == NOW
            assert referral.transfer_id == "tr_1"
        assert load_payout(referrer.id).yearly_earnings == 600

    def test_referrers_without_ready_accounts(self, service, fake_stripe):
        approved_referrals("no-row", 1, "BBB")
        approved_referrals("no-connect", 1, "CCC")
        add_payout("no-connect", None, "not_started")
        approved_referrals("onboarding", 2, "DDD")
        add_payout("onboarding", "acct_d", "pending")

        summary = service.process_payouts(now=NOW)

        assert summary["successful_payouts"] == 0
        assert summary["failed_payouts"] == 4
        assert summary["unique_referrers"] == 3
        errors = {e["user_id"]: e["error"] for e in summary["error_details"]}
        assert errors == {
            "no-row": "No payout info found",
            "no-connect": "Stripe not connected",
            "onboarding": "Stripe onboarding not completed",
        }
        assert fake_stripe.transfers == []

    def test_failed_transfer_leaves_referrals_approved(self, service, fake_stripe):
        ids = approved_referrals("referrer-a", 1, "AAA")
        add_payout("referrer-a", "acct_a", "completed")
        paid_ids = approved_referrals("referrer-b", 1, "BBB")
        add_payout("referrer-b", "acct_b", "completed")
        fake_stripe.failing_transfers.add("acct_a")

        summary = service.process_payouts(now=NOW)

        assert summary["successful_payouts"] == 1
        assert summary["failed_payouts"] == 1
        assert summary["error_details"] == [{"user_id": "referrer-a", "error": "Insufficient funds"}]
        assert load_referrals(ids)[0].commission_status == "approved"
        assert load_referrals(paid_ids)[0].commission_status == "paid"

    def test_db_failure_after_transfer_is_reported(self, service, fake_stripe, monkeypatch):
        ids = approved_referrals("referrer-a", 1, "AAA")
        add_payout("referrer-a", "acct_a", "completed")

        def broken_mark_paid(*args, **kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(service, "_mark_paid", broken_mark_paid)

        summary = service.process_payouts(now=NOW)

        assert summary["successful_payouts"] == 0
        assert summary["errors"] == 1
        assert summary["error_details"] == [{
            "user_id": "referrer-a",
            "transfer_id": "tr_1",
            "error": "Transfer succeeded but DB update failed",
            "details": "database is locked",
        }]
        assert len(fake_stripe.transfers) == 1
        assert load_referrals(ids)[0].commission_status == "approved"

    def test_nothing_to_pay(self, service, fake_stripe):
        summary = service.process_payouts(now=NOW)

        assert summary["total_approved"] == 0
        assert summary["unique_referrers"] == 0
