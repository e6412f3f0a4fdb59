"""Credential store: user accounts and bcrypt password hashing."""
from __future__ import annotations

import hashlib
import logging
from typing import Optional

from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import BUILTIN_ADMIN_PASSWORD
from vault.errors import StorageError, UserExists, UserNotFound
from vault.models import User

logger = logging.getLogger("filevault.users")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(_prepare_password(plain), hashed)


class UserStore:
    """Owns the ``users`` table. Every fault from the database surfaces as StorageError."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Return the user, or None when no such user exists."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).where(User.username == username))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Error looking up user {username!r}") from e

    async def create_user(self, username: str, password: str) -> User:
        if await self.get_user_by_username(username) is not None:
            raise UserExists(username)
        hashed = await run_in_threadpool(hash_password, password)
        user = User(username=username, password=hashed)
        try:
            async with self._session_factory() as session:
                session.add(user)
                await session.commit()
                await session.refresh(user)
        except IntegrityError as e:
            # Lost a race with a concurrent registration of the same name
            raise UserExists(username) from e
        except SQLAlchemyError as e:
            raise StorageError(f"Error creating user {username!r}") from e
        return user

    async def update_user_password(self, username: str, password: str) -> None:
        """Re-hash and overwrite the password. Raises UserNotFound if no row was updated."""
        hashed = await run_in_threadpool(hash_password, password)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(User).where(User.username == username).values(password=hashed)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Error updating password for {username!r}") from e
        if result.rowcount == 0:
            raise UserNotFound(username)

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Return the user when the password matches, else None. Unknown users also give None."""
        user = await self.get_user_by_username(username)
        if not user or not await run_in_threadpool(verify_password, password, user.password):
            return None
        return user

    async def ensure_default_admin(
        self,
        username: str = "admin",
        password: str = BUILTIN_ADMIN_PASSWORD,
    ) -> None:
        """Create the admin account, or reset its password to the default if it already exists."""
        if password == BUILTIN_ADMIN_PASSWORD:
            logger.warning(
                "Default admin '%s' uses the built-in password; set DEFAULT_ADMIN_PASSWORD in production.",
                username,
            )
        if await self.get_user_by_username(username) is None:
            logger.info("Default admin user '%s' not found, creating...", username)
            try:
                await self.create_user(username, password)
                logger.info("Default admin user '%s' created.", username)
                return
            except UserExists:
                # Another process created it in the meantime; fall through to the reset
                pass
        await self.update_user_password(username, password)
        logger.info("Default admin user '%s' password reset to the configured default.", username)
