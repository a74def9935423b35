"""
User persistence.

The store is the source of truth for email uniqueness: the unique index on
``users.email`` decides which of two concurrent registrations wins.
"""
import abc
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from user_service.auth.errors import DuplicateEmailError
from user_service.auth.models import User


class UserStoreError(Exception):
    """A write was rejected for a reason other than a duplicate email."""


def is_duplicate_email(error: IntegrityError) -> bool:
    """True if the violation is the unique constraint on ``users.email``."""
    detail = str(error.orig).lower()
    return "unique" in detail and "email" in detail


class UserStore(abc.ABC):
    """Keyed record store for users, looked up by unique email."""

    @abc.abstractmethod
    async def save(self, user: User) -> User:
        """
        Persist a new user.

        Raises:
            DuplicateEmailError: If a user with the same email already exists
            UserStoreError: If the record violates any other constraint
        """

    @abc.abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        """Return the user registered under ``email``, if any."""


class SQLAlchemyUserStore(UserStore):
    """User store backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def save(self, user: User) -> User:
        async with self._session_factory() as db:
            db.add(user)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                # Statement parameters carry the password hash; keep them out of the chain
                if is_duplicate_email(e):
                    raise DuplicateEmailError() from None
                raise UserStoreError("User could not be saved") from None
            await db.refresh(user)
            return user

    async def find_by_email(self, email: str) -> Optional[User]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(User).where(User.email == email)
            )
            return result.scalar_one_or_none()
