"""
User store — CRUD over the ``users`` table.

Long-lived: each call opens its own session from the factory, so the auth
manager can hold one instance for the life of the process.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.user import User

log = logging.getLogger(__name__)


class UserStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Active user with exactly this username."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(User).where(User.username == username, User.is_active.is_(True))
            )
            return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        """True for any user with this username, active or not."""
        async with self._session_factory() as db:
            result = await db.execute(select(User.id).where(User.username == username))
            return result.first() is not None

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        async with self._session_factory() as db:
            return await db.get(User, user_id)

    async def get_all_users(self) -> List[User]:
        """Active users ordered by full name."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(User).where(User.is_active.is_(True)).order_by(User.full_name)
            )
            return list(result.scalars().all())

    async def create_user(self, user: User) -> bool:
        """Insert a user. False if the username is already taken."""
        async with self._session_factory() as db:
            existing = await db.execute(select(User.id).where(User.username == user.username))
            if existing.first() is not None:
                return False

            db.add(user)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                log.info("Create user %r lost a uniqueness race", user.username)
                return False
            return True

    async def update_user_last_login(self, user_id: str, when: Optional[datetime] = None) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(last_login_at=when or datetime.now(timezone.utc))
            )
            await db.commit()

    async def set_user_active(self, user_id: str, is_active: bool) -> bool:
        """Activate or deactivate an account. False if the user does not exist."""
        async with self._session_factory() as db:
            user = await db.get(User, user_id)
            if user is None:
                return False
            user.is_active = is_active
            await db.commit()
            return True
