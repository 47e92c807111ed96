"""Subscription API v1 endpoints."""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from petport.api.rate_limit import limiter
from petport.auth.middleware import get_current_user, require_auth
from petport.auth.models import UserAccount
from petport.logging_config import get_logger
from petport.subscriptions.models import (
    AddonCheckoutRequest,
    CheckoutRequest,
    CheckoutVerification,
    SubscriptionSnapshot,
    VerifyCheckoutRequest,
)
from petport.subscriptions.service import subscription_service

logger = get_logger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


# ==================== MODELS ====================


class LinkSubscriberRequest(BaseModel):
    """Request to attach a pre-account subscription."""
    referral_code: str | None = None


# ==================== ENDPOINTS ====================


@router.post("/checkout")
@limiter.limit("10/minute")
async def create_checkout(
    request: Request,
    body: CheckoutRequest,
    user: UserAccount | None = Depends(get_current_user),
):
    """Start a subscription checkout with a seven-day trial.

    Works without an account; a signed-in buyer is attached to their Stripe
    customer.
    """
    return subscription_service.create_checkout(body.plan, referral_code=body.referral_code, user=user)


@router.post("/verify-checkout", response_model=CheckoutVerification)
async def verify_checkout(body: VerifyCheckoutRequest):
    """Verify a completed subscription checkout.

    Called from the checkout success page, before the buyer may have an
    account.
    """
    return await subscription_service.verify_checkout(body.session_id)


@router.post("/check", response_model=SubscriptionSnapshot)
async def check_subscription(user: UserAccount = Depends(require_auth)):
    """Refresh the current user's subscription from Stripe."""
    return subscription_service.check_subscription(user)


@router.post("/link")
async def link_subscriber(
    body: LinkSubscriberRequest | None = None,
    user: UserAccount = Depends(require_auth),
):
    """Attach a subscription bought before the account existed."""
    referral_code = body.referral_code if body else None
    return subscription_service.link_subscriber(user, referral_code=referral_code)


@router.post("/addons/checkout")
@limiter.limit("10/minute")
async def create_addon_checkout(
    request: Request,
    body: AddonCheckoutRequest,
    user: UserAccount = Depends(require_auth),
):
    """Buy a bundle of 1, 3 or 5 extra pet slots."""
    return subscription_service.create_addon_checkout(user, body.bundle)


@router.post("/addons/verify")
async def verify_addons(body: VerifyCheckoutRequest):
    """Credit the pet slots bought in a completed add-on checkout."""
    return subscription_service.verify_addons(body.session_id)
