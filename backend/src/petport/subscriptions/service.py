"""Subscription service: checkout verification, status polling and grace periods."""

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.orm import Session

from petport.auth.accounts import account_service
from petport.auth.models import UserAccount
from petport.email.service import EmailService, email_service
from petport.errors import InvalidRequestError
from petport.logging_config import get_logger
from petport.payments import stripe_service
from petport.settings import settings
from petport.storage.db import db
from petport.subscriptions.models import (
    BASE_PET_SLOTS,
    AddonPurchase,
    CheckoutVerification,
    PlanInterval,
    Subscriber,
    SubscriptionSnapshot,
    SubscriptionStatus,
)

logger = get_logger(__name__)

# Tier breakpoints by monthly price in cents. Checkout verification and status
# polling have always used different tables; both are kept as-is.
CHECKOUT_TIER_THRESHOLDS = ((299, "Basic"), (1499, "Premium"))
STATUS_TIER_THRESHOLDS = ((999, "Basic"), (1999, "Premium"))
TOP_TIER = "Enterprise"

ACTIVE_STRIPE_STATUSES = ("active", "trialing")
PROBLEM_STRIPE_STATUSES = ("past_due", "unpaid", "incomplete")

PLAN_INTERVALS = {"monthly": PlanInterval.MONTH, "yearly": PlanInterval.YEAR}

# One-time pet slot bundles: slots -> price in cents
ADDON_BUNDLE_PRICES = {1: 199, 3: 599, 5: 799}
ADDON_CHECKOUT_TYPE = "pet_addons"
SUBSCRIPTION_CHECKOUT_TYPE = "subscription"


def classify_tier(amount: int, thresholds: tuple[tuple[int, str], ...]) -> str:
    """Map a price amount in cents to a tier label."""
    for limit, label in thresholds:
        if amount <= limit:
            return label
    return TOP_TIER


def count_additional_pets(items: list[dict[str, Any]]) -> int:
    """Count extra pet slots bought through subscription line items.

    Price metadata (``plan=addon, type=additional_pets``) wins over product
    metadata (``product_type=pet_slot``).
    """
    additional = 0
    for item in items:
        price = item.get("price") or {}
        quantity = item.get("quantity") or 1
        price_metadata = price.get("metadata") or {}
        product = price.get("product")
        product_metadata = product.get("metadata") or {} if isinstance(product, dict) else {}

        if price_metadata.get("plan") == "addon" and price_metadata.get("type") == "additional_pets":
            additional += quantity * int(price_metadata.get("adds_per_unit") or 1)
        elif product_metadata.get("product_type") == "pet_slot":
            additional += quantity * int(product_metadata.get("addon_count") or 1)
    return additional


def _from_unix(timestamp: int | None) -> datetime | None:
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def _subscription_items(subscription: dict[str, Any]) -> list[dict[str, Any]]:
    return (subscription.get("items") or {}).get("data") or []


def _period_end(subscription: dict[str, Any]) -> datetime | None:
    """Current period end; newer API versions carry it on the items."""
    timestamp = subscription.get("current_period_end")
    if not timestamp:
        items = _subscription_items(subscription)
        timestamp = items[0].get("current_period_end") if items else None
    return _from_unix(timestamp)


def _plan_interval(items: list[dict[str, Any]]) -> str | None:
    if not items:
        return None
    recurring = (items[0].get("price") or {}).get("recurring") or {}
    interval = recurring.get("interval")
    if interval in (PlanInterval.MONTH.value, PlanInterval.YEAR.value):
        return interval
    return None


def _expand_products(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Fetch product metadata for items whose price metadata is not conclusive."""
    expanded = []
    for item in items:
        price = item.get("price") or {}
        metadata = price.get("metadata") or {}
        if metadata.get("plan") != "addon" and isinstance(price.get("product"), str) and price.get("id"):
            item = {**item, "price": stripe_service.retrieve_price(price["id"])}
        expanded.append(item)
    return expanded


def get_subscriber(session: Session, email: str) -> Subscriber | None:
    """Subscriber row for an email (case-insensitive)."""
    return session.query(Subscriber).filter(
        Subscriber.email == email.strip().lower()
    ).first()


def upsert_subscriber(session: Session, email: str, **fields: Any) -> Subscriber:
    """Create or update the subscriber row keyed by email."""
    subscriber = get_subscriber(session, email)
    if subscriber is None:
        subscriber = Subscriber(email=email.strip().lower())
        session.add(subscriber)

    for key, value in fields.items():
        setattr(subscriber, key, value)
    subscriber.updated_at = datetime.utcnow()
    session.flush()
    return subscriber


def snapshot(subscriber: Subscriber) -> SubscriptionSnapshot:
    """API view of a subscriber row."""
    return SubscriptionSnapshot(
        subscribed=bool(subscriber.subscribed),
        status=subscriber.status,
        subscription_tier=subscriber.subscription_tier,
        subscription_end=subscriber.subscription_end,
        plan_interval=subscriber.plan_interval,
        additional_pets=subscriber.additional_pets or 0,
        pet_limit=subscriber.pet_capacity,
        grace_period_end=subscriber.grace_period_end,
    )


def purchased_addons(subscriber: Subscriber | None) -> int:
    """Slots from one-time bundles, kept when subscription items are recounted."""
    if subscriber is None:
        return 0
    return subscriber.additional_pets_purchased or 0


def _live_gift(session: Session, user_id: str, now: datetime):
    # petport.gifts.service imports this module
    from petport.gifts.models import GiftMembership, GiftStatus

    return session.query(GiftMembership).filter(
        GiftMembership.recipient_user_id == user_id,
        GiftMembership.status == GiftStatus.ACTIVE.value,
        GiftMembership.expires_at > now,
    ).first()


class SubscriptionService:
    """Service for keeping subscriber rows in sync with Stripe."""

    def __init__(self, mailer: EmailService | None = None):
        """Initialize subscription service."""
        self.logger = get_logger(__name__)
        self.mailer = mailer or email_service

    # ==================== CHECKOUT ====================

    def create_checkout(
        self,
        plan: str,
        referral_code: str | None = None,
        user: UserAccount | None = None,
    ) -> dict[str, Any]:
        """Start a subscription checkout with a free trial.

        An open referral code travels in the subscription metadata so the
        webhook can link it, and on yearly plans it also applies the referral
        coupon. Signed-in buyers are attached to their Stripe customer.

        Args:
            plan: "monthly" or "yearly"
            referral_code: Code from the buyer's referral link, if any
            user: Signed-in buyer; None for public checkout

        Returns:
            Dict with checkout ``url`` and ``session_id``

        Raises:
            InvalidRequestError: Unknown plan
        """
        from petport.referral.service import normalize_code, referral_service

        interval = PLAN_INTERVALS.get(plan)
        if interval is None:
            raise InvalidRequestError("Invalid plan. Use 'monthly' or 'yearly'.")

        code = normalize_code(referral_code) or None
        if code:
            referrer_id = referral_service.open_code_owner(code)
            if referrer_id is None or (user is not None and referrer_id == user.id):
                self.logger.info("checkout_referral_ignored", code=code)
                code = None

        if interval == PlanInterval.YEAR:
            amount = settings.subscription_yearly_price_cents
        else:
            amount = settings.subscription_monthly_price_cents

        customer_id = None
        if user is not None:
            customer = stripe_service.find_customer_by_email(user.email)
            customer_id = customer["id"] if customer else None

        discounts = None
        if code and interval == PlanInterval.YEAR:
            discounts = [{"coupon": settings.referral_coupon_id}]

        checkout = stripe_service.create_checkout_session(
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": f"PetPort {plan.capitalize()} Subscription"},
                    "unit_amount": amount,
                    "recurring": {"interval": interval.value},
                },
                "quantity": 1,
            }],
            mode="subscription",
            success_url=f"{settings.app_origin}/post-checkout?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.app_origin}/subscribe",
            metadata={"type": SUBSCRIPTION_CHECKOUT_TYPE, "plan": plan},
            customer_email=user.email if user is not None else None,
            customer_id=customer_id,
            subscription_data={
                "trial_period_days": settings.trial_days,
                "metadata": {"referral_code": code} if code else {},
            },
            discounts=discounts,
        )

        self.logger.info(
            "subscription_checkout_created",
            session_id=checkout.get("id"),
            plan=plan,
            referral_code=code,
            discounted=discounts is not None,
        )
        return {"url": checkout.get("url"), "session_id": checkout.get("id")}

    def create_addon_checkout(self, user: UserAccount, bundle: int) -> dict[str, Any]:
        """Start a one-time checkout for a bundle of extra pet slots.

        Raises:
            InvalidRequestError: Bundle is not 1, 3 or 5
        """
        price = ADDON_BUNDLE_PRICES.get(bundle)
        if price is None:
            raise InvalidRequestError("Invalid bundle. Use 1, 3, or 5.")

        customer = stripe_service.find_customer_by_email(user.email)
        checkout = stripe_service.create_checkout_session(
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": f"PetPort Additional Pet Accounts (+{bundle}) - Annual"},
                    "unit_amount": price,
                },
                "quantity": 1,
            }],
            mode="payment",
            success_url=f"{settings.app_origin}/post-checkout?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.app_origin}/billing",
            metadata={
                "type": ADDON_CHECKOUT_TYPE,
                "addon_count": str(bundle),
                "user_id": user.id,
                "product_type": "pet_slot",
            },
            customer_email=user.email,
            customer_id=customer["id"] if customer else None,
        )

        self.logger.info("addon_checkout_created", session_id=checkout.get("id"), user_id=user.id, bundle=bundle)
        return {"url": checkout.get("url"), "session_id": checkout.get("id")}

    def verify_addons(self, session_id: str | None) -> dict[str, Any]:
        """Apply the pet slot bundle bought in a checkout session."""
        if not session_id:
            raise InvalidRequestError("session_id is required")
        checkout = stripe_service.retrieve_checkout_session(session_id)
        return self.apply_addon_purchase(checkout)

    def apply_addon_purchase(self, checkout: dict[str, Any]) -> dict[str, Any]:
        """Credit a paid bundle to the buyer's subscriber row, once per session.

        Raises:
            InvalidRequestError: Not a paid one-time checkout, bad bundle
                metadata or no email on the session
        """
        if checkout.get("mode") != "payment":
            raise InvalidRequestError("Session is not a one-time payment")
        if checkout.get("payment_status") != "paid":
            raise InvalidRequestError("Payment not completed")

        metadata = checkout.get("metadata") or {}
        addon_count = metadata.get("addon_count") or ""
        if not addon_count.isdigit() or int(addon_count) not in ADDON_BUNDLE_PRICES:
            raise InvalidRequestError("Invalid or missing add-on count in session metadata")
        addon_count = int(addon_count)

        email = (checkout.get("customer_details") or {}).get("email") or checkout.get("customer_email")
        if not email:
            raise InvalidRequestError("No email found on session")

        session_id = checkout.get("id")
        with db.session() as session:
            applied = session.query(AddonPurchase).filter(
                AddonPurchase.stripe_session_id == session_id
            ).first()
            if applied:
                self.logger.info("addon_purchase_already_applied", session_id=session_id)
                return {"success": True, "email": email, "added": 0, "already_applied": True}

            existing = get_subscriber(session, email)
            current = (existing.additional_pets or 0) if existing else 0
            subscriber = upsert_subscriber(
                session,
                email,
                additional_pets=current + addon_count,
                additional_pets_purchased=purchased_addons(existing) + addon_count,
            )

            user_id = metadata.get("user_id")
            if user_id and subscriber.user_id is None:
                holder = session.query(Subscriber).filter(Subscriber.user_id == user_id).first()
                if holder is None:
                    subscriber.user_id = user_id

            session.add(AddonPurchase(
                email=subscriber.email,
                user_id=subscriber.user_id,
                stripe_session_id=session_id,
                quantity=addon_count,
                amount=checkout.get("amount_total") or 0,
                currency=checkout.get("currency") or "usd",
            ))
            additional_pets = subscriber.additional_pets

        self.logger.info("addon_purchase_applied", email=email, added=addon_count, session_id=session_id)
        return {"success": True, "email": email, "added": addon_count, "additional_pets": additional_pets}

    async def verify_checkout(self, session_id: str | None) -> CheckoutVerification:
        """Activate the subscriber behind a completed subscription checkout.

        Args:
            session_id: Stripe checkout session ID

        Returns:
            Verification result; ``needs_account_setup`` for first-time buyers

        Raises:
            InvalidRequestError: Missing id, missing email or incomplete checkout
            NotFoundError: Session does not exist
        """
        if not session_id:
            raise InvalidRequestError("session_id is required")

        self.logger.info("checkout_verification_started", session_id=session_id)
        checkout = stripe_service.retrieve_checkout_session(session_id, expand=["subscription"])

        email = (checkout.get("customer_details") or {}).get("email") or checkout.get("customer_email")
        if not email:
            raise InvalidRequestError("No customer email found on session")

        if checkout.get("mode") != "subscription" or checkout.get("status") != "complete":
            raise InvalidRequestError("Subscription not completed")

        subscription = checkout.get("subscription")
        if not isinstance(subscription, dict):
            subscription = {}
        items = _subscription_items(subscription)
        price_amount = ((items[0].get("price") or {}).get("unit_amount") or 0) if items else 0
        additional_pets = count_additional_pets(_expand_products(items))

        customer = checkout.get("customer")
        customer_id = customer.get("id") if isinstance(customer, dict) else customer

        user = account_service.get_user_by_email(email)

        with db.session() as session:
            purchased = purchased_addons(get_subscriber(session, email))
            upsert_subscriber(
                session,
                email,
                user_id=user.id if user else None,
                stripe_customer_id=customer_id,
                stripe_subscription_id=subscription.get("id"),
                subscribed=True,
                status=SubscriptionStatus.ACTIVE.value,
                subscription_tier=classify_tier(price_amount, CHECKOUT_TIER_THRESHOLDS),
                subscription_end=_period_end(subscription),
                plan_interval=_plan_interval(items),
                pet_limit=BASE_PET_SLOTS,
                additional_pets=additional_pets + purchased,
                grace_period_end=None,
                payment_failed_at=None,
                suspended_at=None,
            )

        self.logger.info(
            "checkout_verified",
            session_id=session_id,
            existing_user=user is not None,
            additional_pets=additional_pets,
        )

        if user is None:
            await self.mailer.send_account_setup_invite(email)

        return CheckoutVerification(
            needs_account_setup=user is None,
            existing_user=user is not None,
            email=email,
        )

    # ==================== STATUS POLLING ====================

    def check_subscription(self, user: UserAccount, now: datetime | None = None) -> SubscriptionSnapshot:
        """Reconcile the user's subscriber row with Stripe.

        Active or trialing subscriptions mean ``active``. Otherwise a
        past-due / unpaid / incomplete subscription opens a grace period,
        and an elapsed grace period means ``suspended``.
        """
        now = now or datetime.utcnow()
        customer = stripe_service.find_customer_by_email(user.email)

        if not customer:
            with db.session() as session:
                # Gift memberships have no Stripe customer; keep them as they are
                if _live_gift(session, user.id, now):
                    subscriber = upsert_subscriber(session, user.email, user_id=user.id)
                    return snapshot(subscriber)

                subscriber = upsert_subscriber(
                    session,
                    user.email,
                    user_id=user.id,
                    subscribed=False,
                    status=SubscriptionStatus.INACTIVE.value,
                    subscription_tier=None,
                    subscription_end=None,
                )
                return snapshot(subscriber)

        subscriptions = stripe_service.list_subscriptions(customer["id"])
        active = [s for s in subscriptions if s.get("status") in ACTIVE_STRIPE_STATUSES]

        tier = None
        subscription_end = None
        plan_interval = None
        subscription_id = None
        if active:
            matched = active[0]
            subscription_id = matched.get("id")
            if matched.get("status") == "trialing" and matched.get("trial_end"):
                subscription_end = _from_unix(matched["trial_end"])
            else:
                subscription_end = _period_end(matched)
            items = _subscription_items(matched)
            amount = ((items[0].get("price") or {}).get("unit_amount") or 0) if items else 0
            tier = classify_tier(amount, STATUS_TIER_THRESHOLDS)
            plan_interval = _plan_interval(items)

        additional_pets = sum(
            count_additional_pets(_expand_products(_subscription_items(s))) for s in active
        )

        with db.session() as session:
            existing = get_subscriber(session, user.email)

            in_trouble = any(s.get("status") in PROBLEM_STRIPE_STATUSES for s in subscriptions)
            if not active and not in_trouble and _live_gift(session, user.id, now):
                # A lapsed Stripe plan does not override a redeemed gift
                subscriber = upsert_subscriber(
                    session, user.email, user_id=user.id, stripe_customer_id=customer["id"]
                )
                self.logger.info("gift_membership_kept", user_id=user.id)
                return snapshot(subscriber)

            additional_pets += purchased_addons(existing)
            grace_fields = self._grace_fields(existing, subscriptions, bool(active), now)

            fields: dict[str, Any] = dict(
                user_id=user.id,
                stripe_customer_id=customer["id"],
                subscribed=bool(active),
                subscription_tier=tier,
                subscription_end=subscription_end,
                pet_limit=BASE_PET_SLOTS,
                additional_pets=additional_pets,
                **grace_fields,
            )
            if subscription_id:
                fields["stripe_subscription_id"] = subscription_id
            if plan_interval:
                fields["plan_interval"] = plan_interval

            subscriber = upsert_subscriber(session, user.email, **fields)

            self.logger.info(
                "subscription_checked",
                user_id=user.id,
                status=subscriber.status,
                tier=tier,
                additional_pets=additional_pets,
            )
            return snapshot(subscriber)

    def _grace_fields(
        self,
        existing: Subscriber | None,
        subscriptions: list[dict[str, Any]],
        has_active: bool,
        now: datetime,
    ) -> dict[str, Any]:
        if has_active:
            return {
                "status": SubscriptionStatus.ACTIVE.value,
                "grace_period_end": None,
                "payment_failed_at": None,
            }

        if not any(s.get("status") in PROBLEM_STRIPE_STATUSES for s in subscriptions):
            return {
                "status": SubscriptionStatus.INACTIVE.value,
                "grace_period_end": None,
                "payment_failed_at": None,
            }

        existing_end = existing.grace_period_end if existing else None
        failed_at = (existing.payment_failed_at if existing else None) or now

        if existing_end is None:
            return {
                "status": SubscriptionStatus.GRACE.value,
                "grace_period_end": now + timedelta(days=settings.grace_period_days),
                "payment_failed_at": now,
            }
        if now <= existing_end:
            return {
                "status": SubscriptionStatus.GRACE.value,
                "grace_period_end": existing_end,
                "payment_failed_at": failed_at,
            }
        return {
            "status": SubscriptionStatus.SUSPENDED.value,
            "grace_period_end": existing_end,
            "payment_failed_at": failed_at,
            "suspended_at": (existing.suspended_at if existing else None) or now,
        }

    # ==================== ACCOUNT LINKING ====================

    def link_subscriber(
        self,
        user: UserAccount,
        referral_code: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Attach a subscriber row bought before the account existed.

        Yearly subscribers who arrived through a referral link are linked to
        that referral as well.
        """
        from petport.referral.service import referral_service

        now = now or datetime.utcnow()

        with db.session() as session:
            existing = session.query(Subscriber).filter(Subscriber.user_id == user.id).first()
            if existing:
                return {
                    "success": True,
                    "message": "Subscription already linked",
                    "subscription": snapshot(existing).model_dump(),
                }

            orphan = session.query(Subscriber).filter(
                Subscriber.email == user.email.lower(),
                Subscriber.user_id.is_(None),
            ).first()
            if not orphan:
                self.logger.info("no_subscription_to_link", user_id=user.id)
                return {
                    "success": True,
                    "message": "No subscription found to link",
                    "subscription": None,
                }

            orphan.user_id = user.id
            orphan.updated_at = now
            session.flush()
            linked = snapshot(orphan)
            plan_interval = orphan.plan_interval

        self.logger.info("subscription_linked", user_id=user.id, status=linked.status)

        referral_linked = False
        if plan_interval == PlanInterval.YEAR.value:
            referral_linked = referral_service.link_from_visit(
                user.id,
                code=referral_code,
                trial_completed_at=now + timedelta(days=settings.trial_days),
                now=now,
            )

        return {
            "success": True,
            "message": "Subscription successfully linked",
            "subscription": linked.model_dump(),
            "referral_linked": referral_linked,
        }

    # ==================== GRACE PERIOD JOBS ====================

    async def send_grace_reminders(self, now: datetime | None = None) -> dict[str, Any]:
        """Remind subscribers whose grace period ends within a few days."""
        now = now or datetime.utcnow()
        horizon = now + timedelta(days=settings.grace_reminder_days)

        with db.session() as session:
            expiring = session.query(Subscriber).filter(
                Subscriber.status == SubscriptionStatus.GRACE.value,
                Subscriber.grace_period_end.isnot(None),
                Subscriber.grace_period_end <= horizon,
                Subscriber.grace_period_end > now,
            ).all()

            users = {
                u.id: u for u in session.query(UserAccount).filter(
                    UserAccount.id.in_([s.user_id for s in expiring if s.user_id])
                ).all()
            }

        results = []
        for subscriber in expiring:
            remaining = subscriber.grace_period_end - now
            days_remaining = remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)
            user = users.get(subscriber.user_id)
            sent = await self.mailer.send_grace_period_reminder(
                subscriber.email,
                user.full_name if user else None,
                subscriber.grace_period_end,
                days_remaining,
            )
            results.append({"email": subscriber.email, "success": sent, "days_remaining": days_remaining})

        self.logger.info("grace_reminders_processed", count=len(results))
        return {"message": f"Processed {len(results)} reminders", "results": results}

    def suspend_expired_grace(self, now: datetime | None = None) -> dict[str, Any]:
        """Suspend every subscriber whose grace period has ended."""
        now = now or datetime.utcnow()

        with db.session() as session:
            expired = session.query(Subscriber).filter(
                Subscriber.status == SubscriptionStatus.GRACE.value,
                Subscriber.grace_period_end < now,
            ).all()

            for subscriber in expired:
                subscriber.status = SubscriptionStatus.SUSPENDED.value
                subscriber.subscribed = False
                subscriber.suspended_at = now
                subscriber.updated_at = now
                self.logger.info("subscriber_suspended", user_id=subscriber.user_id, email=subscriber.email)

            suspended = len(expired)

        return {"success": True, "suspended": suspended}

    # ==================== WEBHOOK EVENTS ====================

    def handle_subscription_updated(self, subscription: dict[str, Any], now: datetime | None = None) -> None:
        """Sync a created or updated subscription and link its referral code.

        Only yearly subscriptions that are active or trialing earn a referral.
        """
        from petport.referral.service import referral_service

        now = now or datetime.utcnow()
        stripe_status = subscription.get("status")
        plan_interval = _plan_interval(_subscription_items(subscription))

        with db.session() as session:
            subscriber = self._by_customer(session, subscription.get("customer"))
            if subscriber is None:
                self.logger.info("webhook_subscriber_not_found", customer_id=subscription.get("customer"))
                return

            subscriber.stripe_subscription_id = subscription.get("id")
            if plan_interval:
                subscriber.plan_interval = plan_interval
            if stripe_status in ACTIVE_STRIPE_STATUSES:
                subscriber.subscribed = True
                subscriber.status = SubscriptionStatus.ACTIVE.value
                subscriber.grace_period_end = None
                subscriber.payment_failed_at = None
            elif stripe_status == "canceled":
                subscriber.subscribed = False
                subscriber.status = SubscriptionStatus.CANCELED.value
            subscriber.updated_at = now
            user_id = subscriber.user_id

        referral_code = (subscription.get("metadata") or {}).get("referral_code")
        if (
            referral_code
            and user_id
            and stripe_status in ACTIVE_STRIPE_STATUSES
            and plan_interval == PlanInterval.YEAR.value
        ):
            referral_service.link_from_visit(
                user_id,
                code=referral_code,
                trial_completed_at=_from_unix(subscription.get("trial_end")) or now,
                now=now,
            )

    def handle_subscription_deleted(self, subscription: dict[str, Any]) -> None:
        """Mark the customer's subscriber row canceled."""
        self._update_by_customer(
            subscription.get("customer"),
            status=SubscriptionStatus.CANCELED.value,
            subscribed=False,
        )

    def handle_payment_failed(self, invoice: dict[str, Any], now: datetime | None = None) -> None:
        """Open a grace period unless one is already running."""
        now = now or datetime.utcnow()
        with db.session() as session:
            subscriber = self._by_customer(session, invoice.get("customer"))
            if subscriber is None or subscriber.status == SubscriptionStatus.GRACE.value:
                return
            subscriber.status = SubscriptionStatus.GRACE.value
            subscriber.payment_failed_at = now
            subscriber.grace_period_end = now + timedelta(days=settings.grace_period_days)
            subscriber.updated_at = now
            self.logger.info("grace_period_started", email=subscriber.email, ends=subscriber.grace_period_end)

    def handle_payment_succeeded(self, invoice: dict[str, Any]) -> None:
        """Restore access after a successful payment."""
        self._update_by_customer(
            invoice.get("customer"),
            status=SubscriptionStatus.ACTIVE.value,
            subscribed=True,
            grace_period_end=None,
            payment_failed_at=None,
            suspended_at=None,
        )

    def _by_customer(self, session: Session, customer_id: str | None) -> Subscriber | None:
        if not customer_id:
            return None
        return session.query(Subscriber).filter(Subscriber.stripe_customer_id == customer_id).first()

    def _update_by_customer(self, customer_id: str | None, **fields: Any) -> None:
        with db.session() as session:
            subscriber = self._by_customer(session, customer_id)
            if subscriber is None:
                self.logger.info("webhook_subscriber_not_found", customer_id=customer_id)
                return
            for key, value in fields.items():
                setattr(subscriber, key, value)
            subscriber.updated_at = datetime.utcnow()
            self.logger.info("subscriber_updated_from_webhook", email=subscriber.email, status=subscriber.status)


def get_pet_capacity(user_id: str) -> int:
    """Pet profiles the user may hold; 0 without an active or grace subscription."""
    with db.session() as session:
        subscriber = session.query(Subscriber).filter(Subscriber.user_id == user_id).first()
        if subscriber is None or not subscriber.has_access:
            return 0
        return subscriber.pet_capacity


# Singleton instance
subscription_service = SubscriptionService()
