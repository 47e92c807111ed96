"""Stripe wrapper error mapping."""

import pytest
import stripe

from petport.errors import NotFoundError, PaymentProviderError
from petport.payments import stripe_service
from petport.settings import settings


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_petport")


def raising(error: Exception):
    def call(*args, **kwargs):
        raise error

    return call


class TestCallErrors:
    def test_resource_missing_is_not_found(self, configured):
        error = stripe.InvalidRequestError("No such checkout.session: 'cs_missing'", "id", code="resource_missing")

        with pytest.raises(NotFoundError, match="No such checkout.session"):
            stripe_service._call("retrieve_checkout_session", raising(error))

    def test_other_invalid_request_is_provider_error(self, configured):
        error = stripe.InvalidRequestError("Invalid currency", "currency", code="parameter_invalid_empty")

        with pytest.raises(PaymentProviderError):
            stripe_service._call("create_checkout_session", raising(error))

    def test_card_error_is_provider_error(self, configured):
        error = stripe.CardError("Your card was declined.", "card", "card_declined")

        with pytest.raises(PaymentProviderError):
            stripe_service._call("create_transfer", raising(error))

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "")

        with pytest.raises(PaymentProviderError, match="Stripe not configured"):
            stripe_service._call("retrieve_checkout_session", raising(RuntimeError("unreachable")))

    def test_returns_plain_dict(self, configured):
        result = stripe_service._call("retrieve_account", lambda: {"id": "acct_1"})

        assert result == {"id": "acct_1"}
