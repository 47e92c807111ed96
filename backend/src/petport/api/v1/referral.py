"""Referral API v1 endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from petport.api.rate_limit import limiter
from petport.auth.middleware import require_admin, require_auth
from petport.auth.models import UserAccount
from petport.logging_config import get_logger
from petport.referral.payouts import payout_service
from petport.referral.service import referral_link, referral_service

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


# ==================== MODELS ====================


class ReferralCodeResponse(BaseModel):
    """Response with user's referral code."""
    code: str
    link: str


class ReferralStatsResponse(BaseModel):
    """Response with referral statistics (amounts in cents)."""
    code: str
    link: str
    visits: int
    conversions: int
    pending_cents: int
    approved_cents: int
    paid_cents: int


class TrackVisitRequest(BaseModel):
    """Request to track a referral link visit."""
    referral_code: str


class LinkReferralRequest(BaseModel):
    """Admin request to link a referral code to a subscriber."""
    referral_code: str
    referred_user_email: str


class LinkReferralResponse(BaseModel):
    """Result of a manual referral link."""
    success: bool
    referral_id: int
    referral_code: str
    referred_user_id: str
    trial_completed_at: datetime
    approval_date: datetime


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else None)


# ==================== ENDPOINTS ====================


@router.get("/code", response_model=ReferralCodeResponse)
async def get_referral_code(user: UserAccount = Depends(require_auth)):
    """Get the current user's open referral code.

    Creates a new code if the previous one has been used.
    """
    referral = referral_service.get_or_create_code(user.id)
    return ReferralCodeResponse(code=referral.referral_code, link=referral_link(referral.referral_code))


@router.get("/stats", response_model=ReferralStatsResponse)
async def get_referral_stats(user: UserAccount = Depends(require_auth)):
    """Get referral statistics for the current user."""
    return ReferralStatsResponse(**referral_service.get_stats(user.id))


@router.post("/track-visit")
@limiter.limit("60/minute")
async def track_referral_visit(request: Request, body: TrackVisitRequest):
    """Track a visit to a referral link."""
    referral_service.track_visit(
        body.referral_code,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return {"success": True}


@router.post("/link", response_model=LinkReferralResponse)
async def link_referral(body: LinkReferralRequest, admin: UserAccount = Depends(require_admin)):
    """Manually link a referral code to a yearly subscriber."""
    logger.info("admin_link_referral", admin_id=admin.id, code=body.referral_code)
    return referral_service.link_referral(body.referral_code, body.referred_user_email)


# ==================== PAYOUT ACCOUNT ====================


@router.post("/connect/onboard")
async def start_connect_onboarding(user: UserAccount = Depends(require_auth)):
    """Start (or resume) Stripe Connect onboarding for payouts."""
    return payout_service.start_onboarding(user)


@router.get("/connect/status")
async def get_connect_status(user: UserAccount = Depends(require_auth)):
    """Refresh and return the payout account's onboarding status."""
    return payout_service.refresh_status(user)
