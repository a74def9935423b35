"""
JWT token handling for authentication.

This module provides functionality for:
- Creating signed, time-bound access tokens
- Validating access tokens
- Extracting tokens from Authorization headers
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from jwt.exceptions import PyJWTError
from pydantic import BaseModel

from user_service.auth.errors import InvalidTokenError
from user_service.config import Settings

BEARER_PREFIX = "Bearer "


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Token(BaseModel):
    """Token response model."""
    access_token: str
    token_type: str = "bearer"
    expires_at: int  # Unix timestamp


def strip_bearer(value: str) -> str:
    """Remove the ``Bearer`` scheme prefix from an Authorization header value."""
    value = value.strip()
    if value[:len(BEARER_PREFIX)].lower() == BEARER_PREFIX.lower():
        return value[len(BEARER_PREFIX):].strip()
    return value


class TokenService:
    """
    Issues and validates stateless bearer tokens bound to a user's email.

    The signing key and TTL come from the settings object handed in at
    construction and never change afterwards.
    """

    def __init__(self, settings: Settings, clock: Optional[Callable[[], datetime]] = None):
        self._secret_key = settings.jwt_secret_key
        self._algorithm = settings.jwt_algorithm
        self.ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self._clock = clock or utcnow

    def _encode(self, subject: str) -> tuple[str, datetime]:
        issued_at = self._clock()
        expires = issued_at + self.ttl
        payload = {
            "sub": subject,
            "iat": issued_at,
            "exp": expires,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm), expires

    def issue(self, subject: str) -> str:
        """
        Create a signed access token for a subject.

        Args:
            subject: The user's email

        Returns:
            Encoded JWT token string
        """
        token, _ = self._encode(subject)
        return token

    def create_token(self, subject: str) -> Token:
        """Issue a token and wrap it in the public response model."""
        token, expires = self._encode(subject)
        return Token(access_token=token, expires_at=int(expires.timestamp()))

    def validate(self, token: str) -> str:
        """
        Verify a token and return its subject.

        Raises:
            InvalidTokenError: If the token is malformed, badly signed or expired
        """
        if not token:
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except PyJWTError:
            raise InvalidTokenError()

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError()
        return subject
