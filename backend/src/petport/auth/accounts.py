"""Account lookup and bearer-token verification.

Tokens are issued by the hosted auth provider (HS256, shared secret). The
``sub`` claim carries the user id and ``email`` the address; accounts are
mirrored locally the first time a token is seen.
"""

from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from petport.auth.models import UserAccount
from petport.logging_config import get_logger
from petport.settings import settings
from petport.storage.db import db

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = 1


class AccountService:
    """Authentication service for provider-issued tokens."""

    def __init__(self):
        """Initialize account service."""
        self.logger = get_logger(__name__)

    # ==================== LOOKUP ====================

    def get_user_by_id(self, user_id: str) -> UserAccount | None:
        """Get user by ID.

        Args:
            user_id: Provider user ID

        Returns:
            User account or None
        """
        with db.session() as session:
            return session.query(UserAccount).filter(
                UserAccount.id == user_id,
            ).first()

    def get_user_by_email(self, email: str) -> UserAccount | None:
        """Get user by email (case-insensitive).

        Args:
            email: User email

        Returns:
            User account or None
        """
        with db.session() as session:
            return session.query(UserAccount).filter(
                UserAccount.email == email.strip().lower(),
            ).first()

    def ensure_user(
        self,
        user_id: str,
        email: str,
        full_name: str | None = None,
    ) -> UserAccount:
        """Find or create the local mirror of a provider account."""
        with db.session() as session:
            user = session.query(UserAccount).filter(UserAccount.id == user_id).first()
            if user:
                return user

            user = UserAccount(
                id=user_id,
                email=email.strip().lower(),
                full_name=full_name,
            )
            session.add(user)
            session.commit()
            session.refresh(user)

            self.logger.info("user_mirrored", user_id=user_id)
            return user

    # ==================== TOKENS ====================

    def create_access_token(
        self,
        user: UserAccount,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a token in the provider's format.

        Used by tests; production tokens come from the provider.

        Args:
            user: User account
            expires_delta: Optional expiration time

        Returns:
            JWT token string
        """
        if expires_delta is None:
            expires_delta = timedelta(hours=JWT_EXPIRE_HOURS)

        payload = {
            "sub": str(user.id),
            "email": user.email,
            "aud": settings.jwt_audience,
            "role": "authenticated",
            "exp": datetime.utcnow() + expires_delta,
            "iat": datetime.utcnow(),
        }
        if user.full_name:
            payload["user_metadata"] = {"full_name": user.full_name}

        return jwt.encode(payload, settings.jwt_secret_key, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """Verify and decode JWT token.

        Args:
            token: JWT token string

        Returns:
            Token payload or None if invalid
        """
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[JWT_ALGORITHM],
                audience=settings.jwt_audience,
            )
            return payload
        except JWTError as e:
            self.logger.debug("token_verification_failed", error=str(e))
            return None

    def get_user_from_token(self, token: str) -> UserAccount | None:
        """Get user from JWT token.

        Args:
            token: JWT token string

        Returns:
            User account or None
        """
        payload = self.verify_token(token)
        if not payload:
            return None

        user_id = payload.get("sub")
        email = payload.get("email")
        if not user_id:
            return None

        user = self.get_user_by_id(user_id)
        if user:
            return user

        if not email:
            return None

        full_name = (payload.get("user_metadata") or {}).get("full_name")
        return self.ensure_user(user_id, email, full_name)


# Singleton instance
account_service = AccountService()
