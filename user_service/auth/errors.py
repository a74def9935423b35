"""
Error kinds raised by the authentication core.

Each error carries a stable ``code`` and the HTTP status it maps to at the
API boundary. Messages never include passwords, hashes or the signing key.
"""
from typing import Dict, Optional

from fastapi import status


class AuthError(Exception):
    """Base class for all authentication failures."""
    code = "auth_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Authentication error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationError(AuthError):
    """Registration fields do not meet the user constraints."""
    code = "validation_error"
    status_code = 422
    default_message = "Invalid user data"


class InvalidInputError(ValidationError):
    """A password is unusable for hashing."""
    default_message = "Invalid password"


class DuplicateEmailError(AuthError):
    code = "duplicate_email"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Email already registered"


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password. The two cases are never distinguished."""
    code = "invalid_credentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class InvalidTokenError(AuthError):
    code = "invalid_token"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class UserNotFoundError(AuthError):
    code = "user_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"
