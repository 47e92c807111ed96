"""Authentication for PetPort - bearer tokens from the hosted auth provider."""

from petport.auth.models import ProcessedWebhookEvent, UserAccount
from petport.auth.accounts import AccountService, account_service
from petport.auth.middleware import get_current_user, require_admin, require_auth, require_job_caller

__all__ = [
    "UserAccount",
    "ProcessedWebhookEvent",
    "AccountService",
    "account_service",
    "get_current_user",
    "require_auth",
    "require_admin",
    "require_job_caller",
]
