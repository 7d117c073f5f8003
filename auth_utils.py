"""
Authentication utilities: Password hashing and JWT token management
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext

from backend.utils.errors import AuthenticationError, InternalError
from config.settings import settings

logger = logging.getLogger(__name__)

# JWT configuration
ALGORITHM = "HS256"
TOKEN_TTL = timedelta(days=7)


def build_password_context(time_cost: int) -> CryptContext:
    """Argon2 context; time_cost is the tunable work factor."""
    return CryptContext(
        schemes=["argon2"],
        deprecated="auto",
        argon2__time_cost=time_cost,
    )


# Password hashing context
pwd_context = build_password_context(settings.password_hash_time_cost)


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    try:
        return pwd_context.hash(password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password hashing failed: {e}")
        raise InternalError()


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError) as e:
        # Unreadable stored hash: server-side problem, not a wrong password
        logger.error(f"Password verification failed: {e}")
        raise InternalError()


class CredentialService:
    """
    Issues and validates signed bearer tokens.

    Validation is pure computation: no database round-trip and no revocation
    list, so a token stays valid until its expiry.
    """

    def __init__(self, secret: str, ttl: timedelta = TOKEN_TTL):
        if not secret:
            raise ValueError("JWT_SECRET_KEY is not set. Cannot sign or verify tokens.")
        self._secret = secret
        self.ttl = ttl

    def issue(self, user_id: int, issued_at: Optional[datetime] = None) -> str:
        """
        Create a token asserting user_id, valid for ttl from issued_at.

        Args:
            user_id: ID of the authenticated user
            issued_at: Issue time (defaults to now, UTC)

        Returns:
            Encoded JWT string
        """
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "exp": issued_at + self.ttl,
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error(f"Token signing failed: {e}")
            raise InternalError()

    def validate(self, token: str) -> int:
        """
        Return the user ID a token asserts.

        Raises:
            AuthenticationError: for any failure (signature, format, expiry,
                subject). The reason is deliberately not reported.
        """
        if not token:
            raise AuthenticationError()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
            return int(payload["sub"])
        except (jwt.PyJWTError, ValueError, TypeError, KeyError):
            raise AuthenticationError()


def get_credential_service() -> CredentialService:
    """FastAPI dependency building the credential service from settings."""
    try:
        return CredentialService(settings.jwt_secret_key)
    except ValueError as e:
        logger.error(str(e))
        raise InternalError()
