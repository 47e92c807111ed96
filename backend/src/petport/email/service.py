"""Email service for PetPort using Postmark templates."""

from datetime import datetime
from typing import Any, Optional

import httpx

from petport.logging_config import get_logger
from petport.settings import settings

logger = get_logger(__name__)

GIFT_TEMPLATES = {
    "gift-purchase-confirmation",
    "gift-notification",
    "gift-activated",
    "gift-renewal-reminder-60",
    "gift-renewal-reminder-30",
    "gift-renewal-reminder-7",
    "gift-expired",
}


THEMED_TEMPLATES = {"gift-purchase-confirmation", "gift-notification"}
GIFT_THEMES = ("christmas", "birthday", "adoption")


def gift_template(base_template: str, theme: Optional[str] = None) -> str:
    """Resolve the Postmark alias for a gift email.

    A christmas, birthday or adoption theme selects its own variant of the
    purchase and notification templates. Everything else gets the holiday
    variant while holiday mode is on.
    """
    if base_template not in GIFT_TEMPLATES:
        raise ValueError(f"Unknown gift template: {base_template}")
    if base_template in THEMED_TEMPLATES and theme in GIFT_THEMES:
        return f"{base_template}-{theme}"
    if settings.holiday_mode:
        return f"{base_template}-holiday"
    return base_template


def format_long_date(value: datetime) -> str:
    """Format as e.g. 'January 5, 2025'."""
    return f"{value:%B} {value.day}, {value.year}"


class EmailService:
    """Email service using the Postmark template API.

    Handles transactional emails:
    - Account setup invitations after checkout
    - Gift lifecycle (purchase, notification, activation, renewal, expiry)
    - Grace period reminders
    """

    POSTMARK_API_URL = "https://api.postmarkapp.com/email/withTemplate"

    def __init__(self):
        """Initialize email service."""
        self.api_key = settings.postmark_api_key
        self.from_email = settings.email_from
        self.gift_from_email = settings.gift_email_from
        self.enabled = bool(self.api_key)

        if not self.enabled:
            logger.warning("email_service_disabled", reason="POSTMARK_API_KEY not set")

    async def send_template(
        self,
        to_email: str,
        template_alias: str,
        model: dict[str, Any],
        from_email: Optional[str] = None,
    ) -> bool:
        """Send a templated email via Postmark.

        Args:
            to_email: Recipient email address
            template_alias: Postmark template alias
            model: Template variables
            from_email: Sender (defaults to settings.email_from)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.warning("email_not_sent", reason="service_disabled", to=to_email, template=template_alias)
            return False

        payload = {
            "From": from_email or self.from_email,
            "To": to_email,
            "TemplateAlias": template_alias,
            "TemplateModel": model,
            "MessageStream": "outbound",
        }

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Postmark-Server-Token": self.api_key,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.POSTMARK_API_URL,
                    json=payload,
                    headers=headers,
                    timeout=30.0,
                )

                if response.status_code == 200:
                    message_id = response.json().get("MessageID")
                    logger.info("email_sent", to=to_email, template=template_alias, message_id=message_id)
                    return True
                else:
                    logger.error(
                        "email_send_failed",
                        to=to_email,
                        template=template_alias,
                        status=response.status_code,
                        body=response.text[:200],
                    )
                    return False

        except httpx.RequestError as e:
            logger.error("email_send_error", to=to_email, template=template_alias, error=str(e))
            return False

    # ==================== ACCOUNTS ====================

    async def send_account_setup_invite(self, to_email: str) -> bool:
        """Invite a first-time customer to create the account for their subscription."""
        setup_url = f"{settings.app_origin}/auth?email={to_email}&setup=1"
        return await self.send_template(
            to_email,
            "account-setup",
            {"email": to_email, "action_url": setup_url},
        )

    async def send_grace_period_reminder(
        self,
        to_email: str,
        user_name: Optional[str],
        grace_period_end: datetime,
        days_remaining: int,
    ) -> bool:
        """Remind a subscriber that access ends when the grace period runs out."""
        return await self.send_template(
            to_email,
            "grace-period-reminder",
            {
                "user_name": user_name or to_email.split("@")[0],
                "grace_period_end": format_long_date(grace_period_end),
                "days_remaining": days_remaining,
                "action_url": f"{settings.app_origin}/billing",
            },
        )

    # ==================== GIFTS ====================

    def _gift_model(self, gift: Any, redemption_link: str) -> dict[str, Any]:
        model = {
            "sender_name": gift.sender_name or "A friend",
            "recipient_email": gift.recipient_email,
            "recipient_name": gift.recipient_email.split("@")[0],
            "gift_message": gift.gift_message or "",
            "gift_code": gift.gift_code,
            "redemption_link": redemption_link,
            "additional_pets": gift.additional_pets or 0,
            "theme": gift.theme or "standard",
        }
        if gift.expires_at:
            model["expires_at"] = format_long_date(gift.expires_at)
        return model

    def redemption_link(self, gift_code: str) -> str:
        """Public link that pre-fills the gift code."""
        return f"{settings.app_origin}/claim-subscription?code={gift_code}"

    async def send_gift_notification(self, gift: Any) -> bool:
        """Tell the recipient they received a gift membership."""
        return await self.send_template(
            gift.recipient_email,
            gift_template("gift-notification", gift.theme),
            self._gift_model(gift, self.redemption_link(gift.gift_code)),
            from_email=self.gift_from_email,
        )

    async def send_gift_purchase_confirmation(self, gift: Any) -> bool:
        """Confirm the purchase to the buyer."""
        if not gift.purchaser_email:
            logger.info("gift_confirmation_skipped", gift_code=gift.gift_code, reason="no_purchaser_email")
            return False

        model = self._gift_model(gift, self.redemption_link(gift.gift_code))
        model["recipient_name"] = gift.sender_name or "there"
        model["gift_recipient_email"] = gift.recipient_email
        return await self.send_template(
            gift.purchaser_email,
            gift_template("gift-purchase-confirmation", gift.theme),
            model,
            from_email=self.gift_from_email,
        )

    async def send_gift_activated(self, gift: Any, to_email: str, recipient_name: Optional[str] = None) -> bool:
        """Confirm activation to the account that redeemed the gift."""
        model = self._gift_model(gift, f"{settings.app_origin}/add-pet")
        if recipient_name:
            model["recipient_name"] = recipient_name
        return await self.send_template(
            to_email,
            gift_template("gift-activated"),
            model,
            from_email=self.gift_from_email,
        )

    async def send_gift_renewal_reminder(self, gift: Any, days_until_expiration: int) -> bool:
        """Remind the recipient that the gift period is ending."""
        model = self._gift_model(gift, f"{settings.app_origin}/billing")
        model["days_remaining"] = days_until_expiration
        return await self.send_template(
            gift.recipient_email,
            gift_template(f"gift-renewal-reminder-{days_until_expiration}"),
            model,
            from_email=self.gift_from_email,
        )

    async def send_gift_expired(self, gift: Any) -> bool:
        """Tell the recipient the gift period has ended."""
        return await self.send_template(
            gift.recipient_email,
            gift_template("gift-expired"),
            self._gift_model(gift, f"{settings.app_origin}/billing"),
            from_email=self.gift_from_email,
        )


# Singleton instance
email_service = EmailService()
