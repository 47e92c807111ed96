"""Stripe integration for PetPort.

Thin wrappers over the Stripe SDK. Every call returns plain dicts so the
services never depend on SDK object types. A missing resource surfaces as
NotFoundError and any other SDK failure as PaymentProviderError.
"""

from typing import Any

import stripe

from petport.errors import NotFoundError, PaymentProviderError
from petport.logging_config import get_logger
from petport.settings import settings

logger = get_logger(__name__)

# Initialize Stripe
stripe.api_key = settings.stripe_secret_key


def _require_configured() -> None:
    if not settings.stripe_secret_key:
        raise PaymentProviderError("Stripe not configured")
    stripe.api_key = settings.stripe_secret_key


def _to_dict(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, stripe.StripeObject):
        return obj.to_dict()
    return dict(obj)


def _call(operation: str, fn, *args, **kwargs) -> dict[str, Any]:
    _require_configured()
    try:
        return _to_dict(fn(*args, **kwargs))
    except stripe.InvalidRequestError as e:
        if e.code == "resource_missing":
            logger.info("stripe_resource_missing", operation=operation, error=str(e))
            raise NotFoundError(e.user_message or str(e)) from e
        logger.error("stripe_call_failed", operation=operation, error=str(e))
        raise PaymentProviderError(e.user_message or str(e)) from e
    except stripe.StripeError as e:
        logger.error("stripe_call_failed", operation=operation, error=str(e))
        raise PaymentProviderError(e.user_message or str(e)) from e


# ==================== CHECKOUT ====================


def retrieve_checkout_session(session_id: str, expand: list[str] | None = None) -> dict[str, Any]:
    """Retrieve a checkout session.

    Args:
        session_id: Checkout session ID
        expand: Fields to expand (e.g. ["subscription"])

    Returns:
        Session as a dict
    """
    return _call(
        "retrieve_checkout_session",
        stripe.checkout.Session.retrieve,
        session_id,
        expand=expand or [],
    )


def create_checkout_session(
    line_items: list[dict[str, Any]],
    mode: str,
    success_url: str,
    cancel_url: str,
    metadata: dict[str, str],
    customer_email: str | None = None,
    customer_id: str | None = None,
    subscription_data: dict[str, Any] | None = None,
    discounts: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    """Create a Stripe Checkout session.

    Promotion codes are allowed unless explicit discounts are given; Stripe
    rejects the two together.

    Returns:
        Session as a dict (``id`` and ``url``)
    """
    params: dict[str, Any] = {
        "payment_method_types": ["card"],
        "line_items": line_items,
        "mode": mode,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
    }
    if customer_id:
        params["customer"] = customer_id
    elif customer_email:
        params["customer_email"] = customer_email
    if subscription_data:
        params["subscription_data"] = subscription_data
        params["payment_method_collection"] = "always"
    if discounts:
        params["discounts"] = discounts
    else:
        params["allow_promotion_codes"] = True

    session = _call("create_checkout_session", stripe.checkout.Session.create, **params)

    logger.info(
        "checkout_session_created",
        session_id=session.get("id"),
        mode=mode,
        metadata_type=metadata.get("type"),
    )
    return session


# ==================== CUSTOMERS & SUBSCRIPTIONS ====================


def find_customer_by_email(email: str) -> dict[str, Any] | None:
    """Return the first Stripe customer with this email, if any."""
    result = _call("list_customers", stripe.Customer.list, email=email, limit=1)
    customers = result.get("data") or []
    return customers[0] if customers else None


def list_subscriptions(customer_id: str) -> list[dict[str, Any]]:
    """List all subscriptions of a customer with item prices expanded."""
    result = _call(
        "list_subscriptions",
        stripe.Subscription.list,
        customer=customer_id,
        status="all",
        limit=100,
        expand=["data.items.data.price"],
    )
    return result.get("data") or []


def retrieve_price(price_id: str) -> dict[str, Any]:
    """Retrieve a price with its product expanded."""
    return _call("retrieve_price", stripe.Price.retrieve, price_id, expand=["product"])


# ==================== CONNECT & PAYOUTS ====================


def create_connect_account(email: str) -> dict[str, Any]:
    """Create an Express connected account able to receive transfers."""
    return _call(
        "create_connect_account",
        stripe.Account.create,
        type="express",
        country="US",
        email=email,
        capabilities={"transfers": {"requested": True}},
        business_type="individual",
    )


def create_account_link(account_id: str, refresh_url: str, return_url: str) -> dict[str, Any]:
    """Create an onboarding link for a connected account."""
    return _call(
        "create_account_link",
        stripe.AccountLink.create,
        account=account_id,
        refresh_url=refresh_url,
        return_url=return_url,
        type="account_onboarding",
    )


def retrieve_account(account_id: str) -> dict[str, Any]:
    """Retrieve a connected account."""
    return _call("retrieve_account", stripe.Account.retrieve, account_id)


def create_transfer(
    amount: int,
    destination: str,
    description: str,
    metadata: dict[str, str],
    currency: str = "usd",
) -> dict[str, Any]:
    """Transfer funds to a connected account.

    Args:
        amount: Amount in cents
        destination: Connected account ID
        description: Transfer description
        metadata: Metadata to attach

    Returns:
        Transfer as a dict
    """
    transfer = _call(
        "create_transfer",
        stripe.Transfer.create,
        amount=amount,
        currency=currency,
        destination=destination,
        description=description,
        metadata=metadata,
    )
    logger.info("transfer_created", transfer_id=transfer.get("id"), amount=amount)
    return transfer


# ==================== WEBHOOKS ====================


def verify_webhook_signature(payload: bytes, sig_header: str) -> dict[str, Any]:
    """Verify and parse a Stripe webhook event.

    Args:
        payload: Raw request body
        sig_header: Stripe-Signature header value

    Returns:
        Verified event as a dict

    Raises:
        ValueError: If signature is invalid or webhooks are not configured
    """
    if not settings.stripe_webhook_secret:
        raise ValueError("Stripe webhook secret not configured")

    try:
        event = stripe.Webhook.construct_event(
            payload,
            sig_header,
            settings.stripe_webhook_secret,
        )
        return _to_dict(event)
    except stripe.SignatureVerificationError:
        raise ValueError("Invalid webhook signature")
