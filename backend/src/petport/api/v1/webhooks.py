"""Webhook endpoints for external services."""

from datetime import datetime, timedelta

from fastapi import APIRouter, HTTPException, Request, status

from petport.auth.models import ProcessedWebhookEvent
from petport.gifts.service import GIFT_CHECKOUT_TYPE, gift_service
from petport.logging_config import get_logger
from petport.payments.stripe_service import verify_webhook_signature
from petport.settings import settings
from petport.storage.db import db
from petport.subscriptions.service import ADDON_CHECKOUT_TYPE, subscription_service

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

STRIPE_SOURCE = "stripe"


def is_event_processed(event_id: str, source: str) -> bool:
    """Check if a webhook event has already been processed.

    Args:
        event_id: The unique event ID from the webhook source
        source: The webhook source (e.g., "stripe")

    Returns:
        True if already processed, False otherwise
    """
    with db.session() as session:
        existing = session.query(ProcessedWebhookEvent).filter(
            ProcessedWebhookEvent.event_id == event_id,
            ProcessedWebhookEvent.source == source,
        ).first()
        return existing is not None


def mark_event_processed(event_id: str, event_type: str, source: str) -> None:
    """Mark a webhook event as processed."""
    with db.session() as session:
        session.add(ProcessedWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            source=source,
            processed_at=datetime.utcnow(),
        ))


def cleanup_old_events(days: int = 30) -> int:
    """Remove webhook events older than specified days.

    Returns:
        Number of deleted events
    """
    cutoff = datetime.utcnow() - timedelta(days=days)
    with db.session() as session:
        return session.query(ProcessedWebhookEvent).filter(
            ProcessedWebhookEvent.processed_at < cutoff
        ).delete()


async def dispatch_stripe_event(event_type: str, obj: dict) -> bool:
    """Route a verified Stripe event to its handler.

    Returns:
        False for event types that are ignored
    """
    if event_type in ("customer.subscription.created", "customer.subscription.updated"):
        subscription_service.handle_subscription_updated(obj)
    elif event_type == "customer.subscription.deleted":
        subscription_service.handle_subscription_deleted(obj)
    elif event_type == "invoice.payment_failed":
        subscription_service.handle_payment_failed(obj)
    elif event_type == "invoice.payment_succeeded":
        subscription_service.handle_payment_succeeded(obj)
    elif event_type == "checkout.session.completed":
        metadata = obj.get("metadata") or {}
        if metadata.get("type") == GIFT_CHECKOUT_TYPE:
            await gift_service.fulfill_purchase(obj)
        elif metadata.get("type") == ADDON_CHECKOUT_TYPE:
            subscription_service.apply_addon_purchase(obj)
        else:
            return False
    else:
        return False
    return True


@router.post("/stripe")
async def stripe_webhook(request: Request):
    """Handle Stripe webhook events.

    Verifies the webhook signature and uses database-backed idempotency to
    prevent duplicate processing.
    """
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhooks not configured",
        )

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = verify_webhook_signature(payload, sig_header)
    except ValueError as e:
        logger.warning("stripe_webhook_invalid", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    event_id = event.get("id", "")
    event_type = event.get("type", "")

    if is_event_processed(event_id, STRIPE_SOURCE):
        logger.info("stripe_webhook_duplicate", event_id=event_id)
        return {"received": True, "duplicate": True}

    obj = (event.get("data") or {}).get("object") or {}
    try:
        handled = await dispatch_stripe_event(event_type, obj)
    except Exception as e:
        logger.error("stripe_webhook_error", event_id=event_id, event_type=event_type, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error processing webhook",
        )

    if not handled:
        logger.info("stripe_webhook_unhandled", event_type=event_type)
        return {"received": True}

    # Mark as processed AFTER successful handling
    mark_event_processed(event_id, event_type, STRIPE_SOURCE)
    logger.info("stripe_webhook_processed", event_id=event_id, event_type=event_type)
    return {"received": True}
