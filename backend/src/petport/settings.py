"""Application settings and configuration."""

import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_DEFAULTS = {"change-me-in-production", "secret", "your-super-secret-jwt-token"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "petport"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console | json
    allowed_origins: str = "*"
    app_origin: str = "https://petport.app"

    # Auth (JWTs issued by the hosted auth provider)
    jwt_secret_key: str = "change-me-in-production"
    jwt_audience: str = "authenticated"
    cron_secret: str | None = None

    # Database
    database_url: str = "sqlite:///./petport.db"

    # Stripe
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None

    # Postmark
    postmark_api_key: str | None = None
    email_from: str = "PetPort <info@petport.app>"
    gift_email_from: str = "PetPort <gifts@petport.app>"
    holiday_mode: bool = False

    # Referral program
    trial_days: int = 7
    referral_approval_days: int = 38  # after trial end
    referral_commission_cents: int = 200

    # Subscriptions
    subscription_monthly_price_cents: int = 199
    subscription_yearly_price_cents: int = 1499
    referral_coupon_id: str = "REFERRAL10"  # 10% off yearly plans bought through a referral
    grace_period_days: int = 14
    grace_reminder_days: int = 3

    # Gift memberships
    gift_base_price_cents: int = 1499
    gift_addon_price_cents: int = 399
    gift_max_additional_pets: int = 19


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    if settings.jwt_secret_key in _INSECURE_JWT_DEFAULTS or len(settings.jwt_secret_key) < 32:
        print(
            "\n❌  FATAL: JWT_SECRET_KEY is insecure or too short (min 32 chars).\n"
            "   Use the JWT secret from your auth provider's project settings.\n",
            file=sys.stderr,
        )
        sys.exit(1)
