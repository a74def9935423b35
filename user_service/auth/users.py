"""
User management service.

This module provides functionality for:
- User registration
- User authentication
- User profile lookup
"""
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from user_service.auth.errors import (
    DuplicateEmailError, InvalidCredentialsError, UserNotFoundError, ValidationError
)
from user_service.auth.jwt import Token, TokenService
from user_service.auth.models import Role, User
from user_service.auth.passwords import MIN_PASSWORD_LENGTH, PasswordHasher
from user_service.auth.store import UserStore

REGISTERED_MESSAGE = "User registered successfully"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def format_validation_errors(errors: Iterable[Dict[str, Any]]) -> str:
    """
    Render pydantic error entries as ``field: message`` pairs.

    Only the location and message are used; submitted values are never echoed.
    """
    parts = []
    for error in errors:
        loc = [str(p) for p in error.get("loc", ()) if p != "body"]
        field = ".".join(loc)
        msg = error.get("msg", "invalid value")
        parts.append(f"{field}: {msg}" if field else msg)
    return "; ".join(parts) or "Invalid user data"


# Pydantic models for request validation
class UserCreate(BaseModel):
    """Model for user registration."""
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    role: Role = Role.CLIENT
    avatar: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_must_be_printable(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        if not v.isprintable():
            raise ValueError("Name must contain only printable characters")
        return v.strip()

    @field_validator("email")
    @classmethod
    def email_is_case_insensitive(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Password is required")
        return v

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return Role.CLIENT
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("avatar")
    @classmethod
    def blank_avatar_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class UserLogin(BaseModel):
    """Model for user login."""
    email: str
    password: str


class UserOut(BaseModel):
    """Model for user information returned to clients."""
    model_config = {"from_attributes": True}

    id: str
    name: str
    email: str
    role: Role
    avatar: Optional[str] = None
    created_at: datetime


class UserService:
    """
    Registration, authentication and profile lookup.

    Holds no mutable state of its own: persistence goes through the store,
    and the hasher and token service are configured once at startup.
    """

    def __init__(self, store: UserStore, hasher: PasswordHasher, tokens: TokenService):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        # Checked against when an email is unknown, so both failures cost one bcrypt verify
        self._dummy_hash = hasher.hash("not-a-real-password")

    @staticmethod
    def _validate(candidate: Union[UserCreate, Mapping[str, Any]]) -> UserCreate:
        if isinstance(candidate, UserCreate):
            return candidate
        try:
            return UserCreate.model_validate(candidate)
        except PydanticValidationError as e:
            raise ValidationError(format_validation_errors(e.errors())) from None

    def _verify_against_dummy(self, password: str) -> None:
        self.hasher.verify(password or "", self._dummy_hash)

    async def create_user(self, candidate: Union[UserCreate, Mapping[str, Any]]) -> UserOut:
        """
        Register a new user and return its public view.

        Args:
            candidate: Registration data (name, email, password, role, avatar)

        Returns:
            The stored user, without its password hash

        Raises:
            ValidationError: If the registration data is invalid
            DuplicateEmailError: If the email is already registered
        """
        user_data = self._validate(candidate)

        if await self.store.find_by_email(user_data.email) is not None:
            raise DuplicateEmailError()

        new_user = User(
            name=user_data.name,
            email=user_data.email,
            password_hash=self.hasher.hash(user_data.password),
            role=user_data.role,
            avatar=user_data.avatar,
        )
        # The store's unique index still decides races past the check above
        saved = await self.store.save(new_user)
        return UserOut.model_validate(saved)

    async def register(self, candidate: Union[UserCreate, Mapping[str, Any]]) -> str:
        """Register a new user and return the confirmation message."""
        await self.create_user(candidate)
        return REGISTERED_MESSAGE

    async def _check_credentials(self, email: str, password: str) -> User:
        user = None
        if email:
            user = await self.store.find_by_email(normalize_email(email))

        if user is None:
            self._verify_against_dummy(password)
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.password_hash):
            raise InvalidCredentialsError()
        return user

    async def authenticate(self, email: str, password: str) -> str:
        """
        Check credentials and issue an access token bound to the user's email.

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is wrong
        """
        user = await self._check_credentials(email, password)
        return self.tokens.issue(user.email)

    async def login(self, email: str, password: str) -> Token:
        """Authenticate and return the token with its expiry metadata."""
        user = await self._check_credentials(email, password)
        return self.tokens.create_token(user.email)

    async def get_profile(self, token: str) -> UserOut:
        """
        Return the profile of the user a token is bound to.

        Raises:
            InvalidTokenError: If the token does not validate
            UserNotFoundError: If the token is valid but the user no longer exists
        """
        email = self.tokens.validate(token)
        user = await self.store.find_by_email(email)
        if user is None:
            raise UserNotFoundError()
        return UserOut.model_validate(user)
