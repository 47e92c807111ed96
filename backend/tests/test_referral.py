"""
Referral Service Tests

Codes, visit tracking, manual linking and the 38-day approval window.
"""

from datetime import datetime

import pytest
from sqlalchemy import update

from conftest import make_subscriber, make_user
from petport.errors import InvalidRequestError, NotFoundError
from petport.referral.models import Referral, ReferralVisit
from petport.referral.service import ReferralService, normalize_code, referral_link
from petport.storage.db import db
from petport.subscriptions.models import Subscriber

ALPHABET = set("ABCDEFGHJKMNPQRSTUVWXYZ23456789")


@pytest.fixture
def service() -> ReferralService:
    return ReferralService()


@pytest.fixture
def referrer():
    return make_user(user_id="referrer-1", email="referrer@example.com", full_name="Rae Referrer")


def add_referral(code: str, referrer_id: str, **fields) -> None:
    with db.session() as session:
        session.add(Referral(referral_code=code, referrer_user_id=referrer_id, **fields))


def load_referral(code: str) -> Referral:
    with db.session() as session:
        return session.query(Referral).filter(Referral.referral_code == code).one()


def set_subscriber(user_id: str, **values) -> None:
    with db.session() as session:
        session.execute(update(Subscriber).where(Subscriber.user_id == user_id).values(**values))


class TestReferralCodes:
    """One open code per referrer at a time"""

    def test_code_is_readable(self, service, referrer):
        referral = service.get_or_create_code(referrer.id)

        assert len(referral.referral_code) == 8
        assert set(referral.referral_code) <= ALPHABET
        assert referral.commission_amount == 200
        assert referral.commission_status == "pending"

    def test_open_code_is_reused(self, service, referrer):
        first = service.get_or_create_code(referrer.id)
        second = service.get_or_create_code(referrer.id)

        assert first.referral_code == second.referral_code

    def test_used_code_is_replaced(self, service, referrer, user):
        first = service.get_or_create_code(referrer.id)
        with db.session() as session:
            session.query(Referral).filter(Referral.id == first.id).update({Referral.referred_user_id: user.id})

        second = service.get_or_create_code(referrer.id)

        assert second.referral_code != first.referral_code
        assert second.referred_user_id is None

    def test_normalize_and_link(self):
        assert normalize_code("  ref123 ") == "REF123"
        assert normalize_code(None) == ""
        assert referral_link("REF123") == "https://petport.app/?ref=REF123"


class TestTrackVisit:
    """Visits are recorded only for open codes"""

    def test_records_visit(self, service, referrer):
        add_referral("REF123", referrer.id)

        service.track_visit("ref123", "203.0.113.9", None)

        with db.session() as session:
            visit = session.query(ReferralVisit).one()
            assert visit.referral_code == "REF123"
            assert visit.ip_address == "203.0.113.9"
            assert visit.user_agent == "unknown"
            assert visit.converted_user_id is None

    def test_missing_code(self, service):
        with pytest.raises(InvalidRequestError):
            service.track_visit("  ", None, None)

    def test_unknown_code(self, service):
        with pytest.raises(NotFoundError, match="Invalid referral code"):
            service.track_visit("NOPE1234", None, None)

    def test_used_code(self, service, referrer, user):
        add_referral("REF123", referrer.id, referred_user_id=user.id)

        with pytest.raises(NotFoundError):
            service.track_visit("REF123", None, None)


class TestLinkReferral:
    """Admin linking of a code to a yearly subscriber"""

    def test_links_and_reports_approval_date(self, service, referrer):
        referred = make_user(user_id="referred-1", email="referred@example.com", created_at=datetime(2024, 1, 1))
        make_subscriber(referred.email, user_id=referred.id, plan_interval="year")
        add_referral("REF123", referrer.id)

        result = service.link_referral("ref123", "Referred@Example.com")

        assert result["referral_code"] == "REF123"
        assert result["referred_user_id"] == referred.id
        assert result["trial_completed_at"] == datetime(2024, 1, 8)
        assert result["approval_date"] == datetime(2024, 2, 15)
        referral = load_referral("REF123")
        assert referral.referred_plan_interval == "year"
        assert referral.commission_status == "pending"

    def test_missing_input(self, service):
        with pytest.raises(InvalidRequestError):
            service.link_referral("", "someone@example.com")

    def test_unknown_user(self, service, referrer):
        add_referral("REF123", referrer.id)

        with pytest.raises(NotFoundError, match="User not found"):
            service.link_referral("REF123", "ghost@example.com")

    def test_monthly_subscriber_rejected(self, service, referrer, user):
        make_subscriber(user.email, user_id=user.id, plan_interval="month")
        add_referral("REF123", referrer.id)

        with pytest.raises(InvalidRequestError, match="yearly"):
            service.link_referral("REF123", user.email)

    def test_code_already_linked(self, service, referrer, user):
        other = make_user(user_id="other-1", email="other@example.com")
        make_subscriber(user.email, user_id=user.id, plan_interval="year")
        add_referral("REF123", referrer.id, referred_user_id=other.id)

        with pytest.raises(NotFoundError, match="already linked"):
            service.link_referral("REF123", user.email)


class TestLinkFromVisit:
    """Automatic linking when a referred visitor subscribes yearly"""

    def test_self_referral_is_skipped(self, service, referrer):
        add_referral("REF123", referrer.id)

        assert service.link_from_visit(referrer.id, code="REF123") is False
        assert load_referral("REF123").referred_user_id is None

    def test_no_visit_and_no_code(self, service, user):
        assert service.link_from_visit(user.id) is False

    def test_user_with_referral_is_not_linked_twice(self, service, referrer, user):
        add_referral("OLD12345", referrer.id, referred_user_id=user.id)
        add_referral("REF123", referrer.id)

        assert service.link_from_visit(user.id, code="REF123") is False
        assert load_referral("REF123").referred_user_id is None


class TestApprovePending:
    """Commission approval after trial end + 38 days"""

    def linked_referral(self, service, referrer):
        referred = make_user(user_id="referred-1", email="referred@example.com", created_at=datetime(2024, 1, 1))
        make_subscriber(referred.email, user_id=referred.id, plan_interval="year")
        add_referral("REF123", referrer.id)
        service.link_referral("REF123", referred.email)
        return referred

    def test_not_due_the_day_before(self, service, referrer):
        self.linked_referral(service, referrer)

        summary = service.approve_pending(now=datetime(2024, 2, 14, 12, 0))

        assert summary["total_pending"] == 0
        assert summary["approved"] == 0
        assert load_referral("REF123").commission_status == "pending"

    def test_approved_on_approval_date(self, service, referrer):
        self.linked_referral(service, referrer)
        now = datetime(2024, 2, 15)

        summary = service.approve_pending(now=now)

        assert summary == {
            "total_pending": 1,
            "approved": 1,
            "skipped": 0,
            "errors": 0,
            "error_details": [],
        }
        referral = load_referral("REF123")
        assert referral.commission_status == "approved"
        assert referral.approved_at == now

    def test_grace_subscriber_still_qualifies(self, service, referrer):
        referred = self.linked_referral(service, referrer)
        set_subscriber(referred.id, status="grace")

        summary = service.approve_pending(now=datetime(2024, 3, 1))

        assert summary["approved"] == 1

    def test_canceled_subscriber_is_skipped(self, service, referrer):
        referred = self.linked_referral(service, referrer)
        set_subscriber(referred.id, status="canceled")

        summary = service.approve_pending(now=datetime(2024, 3, 1))

        assert summary["total_pending"] == 1
        assert summary["approved"] == 0
        assert summary["skipped"] == 1
        assert load_referral("REF123").commission_status == "pending"

    def test_switched_to_monthly_is_skipped(self, service, referrer):
        referred = self.linked_referral(service, referrer)
        set_subscriber(referred.id, plan_interval="month")

        summary = service.approve_pending(now=datetime(2024, 3, 1))

        assert summary["skipped"] == 1

    def test_rerun_does_not_approve_twice(self, service, referrer):
        self.linked_referral(service, referrer)

        service.approve_pending(now=datetime(2024, 3, 1))
        summary = service.approve_pending(now=datetime(2024, 3, 2))

        assert summary["total_pending"] == 0


class TestReferralStats:
    """Referrer dashboard numbers"""

    def test_stats(self, service, referrer, user):
        add_referral("PAID2345", referrer.id, referred_user_id=user.id, commission_status="paid")
        add_referral("OPEN2345", referrer.id)
        with db.session() as session:
            session.add(ReferralVisit(referral_code="PAID2345"))
            session.add(ReferralVisit(referral_code="OPEN2345"))
            session.add(ReferralVisit(referral_code="OPEN2345"))

        stats = service.get_stats(referrer.id)

        assert stats["code"] == "OPEN2345"
        assert stats["link"].endswith("?ref=OPEN2345")
        assert stats["visits"] == 3
        assert stats["conversions"] == 1
        assert stats["paid_cents"] == 200
        assert stats["pending_cents"] == 0
        assert stats["approved_cents"] == 0

