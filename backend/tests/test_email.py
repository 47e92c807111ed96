"""Gift email template selection and recipients."""

from datetime import datetime

import pytest

from petport.email.service import EmailService, format_long_date, gift_template
from petport.gifts.models import GiftMembership
from petport.settings import settings


@pytest.fixture
def holiday(monkeypatch):
    monkeypatch.setattr(settings, "holiday_mode", True)


class TestGiftTemplate:
    @pytest.mark.parametrize("theme", ["christmas", "birthday", "adoption"])
    def test_theme_selects_purchase_and_notification_variants(self, theme):
        assert gift_template("gift-purchase-confirmation", theme) == f"gift-purchase-confirmation-{theme}"
        assert gift_template("gift-notification", theme) == f"gift-notification-{theme}"

    def test_standard_theme_uses_base(self):
        assert gift_template("gift-notification", "standard") == "gift-notification"
        assert gift_template("gift-notification") == "gift-notification"

    def test_theme_wins_over_holiday_mode(self, holiday):
        assert gift_template("gift-notification", "birthday") == "gift-notification-birthday"

    def test_holiday_mode_without_theme(self, holiday):
        assert gift_template("gift-notification", "standard") == "gift-notification-holiday"
        assert gift_template("gift-activated", "christmas") == "gift-activated-holiday"

    def test_other_templates_ignore_theme(self):
        assert gift_template("gift-expired", "adoption") == "gift-expired"

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            gift_template("gift-unknown")


class TestFormatting:
    def test_long_date(self):
        assert format_long_date(datetime(2025, 1, 5)) == "January 5, 2025"


class RecordingEmailService(EmailService):
    def __init__(self):
        super().__init__()
        self.sent: list[tuple[str, str, dict]] = []

    async def send_template(self, to_email, template_alias, model, from_email=None) -> bool:
        self.sent.append((to_email, template_alias, model))
        return True


class TestGiftEmails:
    def gift(self, **fields) -> GiftMembership:
        fields.setdefault("gift_code", "ABCD1234")
        fields.setdefault("recipient_email", "friend@example.com")
        fields.setdefault("purchaser_email", "buyer@example.com")
        fields.setdefault("amount_paid", 1499)
        fields.setdefault("additional_pets", 0)
        return GiftMembership(**fields)

    async def test_notification_uses_gift_theme(self):
        service = RecordingEmailService()

        await service.send_gift_notification(self.gift(theme="adoption"))

        to_email, template, model = service.sent[0]
        assert to_email == "friend@example.com"
        assert template == "gift-notification-adoption"
        assert model["redemption_link"].endswith("/claim-subscription?code=ABCD1234")

    async def test_purchase_confirmation_uses_gift_theme(self):
        service = RecordingEmailService()

        await service.send_gift_purchase_confirmation(self.gift(theme="christmas"))

        to_email, template, _ = service.sent[0]
        assert to_email == "buyer@example.com"
        assert template == "gift-purchase-confirmation-christmas"

    async def test_activation_goes_to_given_address(self):
        service = RecordingEmailService()

        await service.send_gift_activated(self.gift(), to_email="owner@example.com", recipient_name="Pat")

        to_email, template, model = service.sent[0]
        assert to_email == "owner@example.com"
        assert template == "gift-activated"
        assert model["recipient_name"] == "Pat"
