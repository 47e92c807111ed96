"""Gift membership API v1 endpoints."""

from fastapi import APIRouter, Depends, Request

from petport.api.rate_limit import limiter
from petport.auth.middleware import require_admin, require_auth
from petport.auth.models import UserAccount
from petport.gifts.models import GiftPurchaseRequest, GiftRecoverRequest, GiftRedeemRequest, GiftResendRequest
from petport.gifts.service import gift_service
from petport.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/gifts", tags=["gifts"])


@router.post("/checkout")
@limiter.limit("10/minute")
async def create_gift_checkout(request: Request, body: GiftPurchaseRequest):
    """Start checkout for a twelve-month gift membership."""
    return gift_service.create_checkout(body)


@router.post("/redeem")
@limiter.limit("10/minute")
async def redeem_gift(
    request: Request,
    body: GiftRedeemRequest,
    user: UserAccount = Depends(require_auth),
):
    """Redeem a gift code for the current user."""
    return await gift_service.redeem(body.gift_code, user)


@router.post("/recover")
async def recover_gift(body: GiftRecoverRequest, admin: UserAccount = Depends(require_admin)):
    """Rebuild a gift from a paid checkout session that was never recorded."""
    logger.info("admin_recover_gift", admin_id=admin.id, session_id=body.checkout_session_id)
    return await gift_service.recover_gift(body.checkout_session_id)


@router.post("/resend-emails")
async def resend_gift_emails(body: GiftResendRequest, admin: UserAccount = Depends(require_admin)):
    """Send a gift's purchase confirmation and recipient notification again."""
    logger.info("admin_resend_gift_emails", admin_id=admin.id, gift_code=body.gift_code)
    return await gift_service.resend_emails(body.gift_code)
