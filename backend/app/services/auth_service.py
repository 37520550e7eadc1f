"""
Auth service — login, registration, device session and permission checks.

Callers only ever see a uniform result: a User or None from ``login``, a
bool from ``register``, and so on. Internally each operation produces an
``AuthOutcome`` whose ``AuthErrorKind`` separates bad input, unknown users,
conflicts and infrastructure failures; that distinction goes to the log and
never to the caller.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from app.config import settings
from app.core.roles import PermissionLike, Role, role_allows
from app.core.secure_store import SecureStore
from app.core.security import hash_password, verify_password
from app.models.user import NEVER_LOGGED_IN, User, new_user_id
from app.services.user_store import UserStore

log = logging.getLogger(__name__)

# ── Secure store keys ───────────────────────────────────
KEY_USER_ID = "current_user_id"
KEY_USER_NAME = "current_user_name"
KEY_USER_ROLE = "current_user_role"
KEY_USERNAME = "current_username"
KEY_LOGIN_TIMESTAMP = "login_timestamp"

SESSION_KEYS = (
    KEY_USER_ID,
    KEY_USER_NAME,
    KEY_USER_ROLE,
    KEY_USERNAME,
    KEY_LOGIN_TIMESTAMP,
)


class AuthErrorKind(str, enum.Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    CONFLICT = "conflict"
    INFRASTRUCTURE = "infrastructure"


@dataclass
class AuthOutcome:
    user: Optional[User] = None
    error: Optional[AuthErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SessionContext:
    """The authenticated operator on this device."""

    user_id: str
    username: str
    full_name: str
    role: Optional[Role]
    login_timestamp: datetime

    def has_permission(self, permission: PermissionLike) -> bool:
        return self.role is not None and role_allows(self.role, permission)

    def is_expired(self, now: Optional[datetime] = None, max_age: Optional[timedelta] = None) -> bool:
        if now is None:
            now = datetime.now(timezone.utc)
        if max_age is None:
            max_age = timedelta(days=settings.SESSION_MAX_AGE_DAYS)
        return not session_age_ok(now - self.login_timestamp, max_age)


def session_age_ok(age: timedelta, max_age: timedelta) -> bool:
    """A login stamped in the future is as invalid as one that is too old."""
    return timedelta(0) <= age < max_age


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """ISO-8601 text to an aware UTC datetime; None if absent or unparsable."""
    if not text:
        return None
    try:
        value = datetime.fromisoformat(text.strip())
    except ValueError:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class AuthManager:
    def __init__(
        self,
        user_store: UserStore,
        secure_store: SecureStore,
        session_max_age: Optional[timedelta] = None,
        min_password_length: Optional[int] = None,
    ) -> None:
        self.user_store = user_store
        self.secure_store = secure_store
        self.session_max_age = session_max_age if session_max_age is not None else timedelta(days=settings.SESSION_MAX_AGE_DAYS)
        self.min_password_length = min_password_length or settings.MIN_PASSWORD_LENGTH
        self.context: Optional[SessionContext] = None

    # ── Login ───────────────────────────────────────────

    async def login(self, username: str, password: str) -> Optional[User]:
        """The authenticated user, or None for any kind of failure."""
        outcome = await self.authenticate(username, password)
        return outcome.user if outcome.ok else None

    async def authenticate(self, username: str, password: str) -> AuthOutcome:
        if _blank(username) or _blank(password):
            return AuthOutcome(error=AuthErrorKind.INVALID_INPUT)

        try:
            user = await self.user_store.get_user_by_username(username)
            if user is None:
                log.info("Login failed: unknown user")
                return AuthOutcome(error=AuthErrorKind.NOT_FOUND)

            if not verify_password(password, user.password_hash):
                log.info("Login failed: bad password for user id %s", user.id)
                return AuthOutcome(error=AuthErrorKind.INVALID_CREDENTIALS)

            now = datetime.now(timezone.utc)
            await self.user_store.update_user_last_login(user.id, now)
            user.last_login_at = now
            log.info("User %s logged in", user.id)
            return AuthOutcome(user=user)
        except Exception:
            log.exception("Login error")
            return AuthOutcome(error=AuthErrorKind.INFRASTRUCTURE)

    # ── Registration ────────────────────────────────────

    async def register(self, candidate: User, password: str) -> bool:
        outcome = await self.register_user(candidate, password)
        return outcome.ok

    async def register_user(self, candidate: User, password: str) -> AuthOutcome:
        """Validate, hash and create ``candidate``. Never raises."""
        if (
            candidate is None
            or _blank(candidate.username)
            or _blank(candidate.full_name)
            or _blank(candidate.role)
            or _blank(password)
        ):
            return AuthOutcome(error=AuthErrorKind.INVALID_INPUT)

        if len(password) < self.min_password_length:
            return AuthOutcome(error=AuthErrorKind.INVALID_INPUT)

        role = Role.parse(candidate.role)
        if role is None:
            log.info("Registration rejected: unknown role %r", candidate.role)
            return AuthOutcome(error=AuthErrorKind.INVALID_INPUT)

        try:
            if await self.user_store.username_exists(candidate.username):
                log.info("Registration rejected: username %r taken", candidate.username)
                return AuthOutcome(error=AuthErrorKind.CONFLICT)

            candidate.role = role.value
            candidate.password_hash = hash_password(password)
            candidate.created_at = datetime.now(timezone.utc)
            candidate.last_login_at = NEVER_LOGGED_IN
            candidate.is_active = True
            if not candidate.id:
                candidate.id = new_user_id()

            if not await self.user_store.create_user(candidate):
                return AuthOutcome(error=AuthErrorKind.CONFLICT)

            log.info("Registered user %s (%s)", candidate.id, role.value)
            return AuthOutcome(user=candidate)
        except Exception:
            log.exception("Registration error")
            return AuthOutcome(error=AuthErrorKind.INFRASTRUCTURE)

    async def get_all_users(self) -> List[User]:
        try:
            return await self.user_store.get_all_users()
        except Exception:
            log.exception("Error getting users")
            return []

    # ── Session ─────────────────────────────────────────

    async def get_current_user(self) -> Optional[User]:
        """
        The user recorded in the secure store, re-read from the user store
        so that role or active-status changes apply immediately.
        """
        try:
            user_id = await self.secure_store.get(KEY_USER_ID)
            if not user_id:
                return None

            user = await self.user_store.find_user_by_id(user_id)
            if user is not None and user.is_active:
                return user
            return None
        except Exception:
            log.exception("Error getting current user")
            return None

    async def save_user_session(self, user: User) -> None:
        now = datetime.now(timezone.utc)
        self.context = SessionContext(
            user_id=user.id,
            username=user.username,
            full_name=user.full_name,
            role=Role.parse(user.role),
            login_timestamp=now,
        )
        try:
            await self.secure_store.set(KEY_USER_ID, user.id)
            await self.secure_store.set(KEY_USER_NAME, user.full_name)
            await self.secure_store.set(KEY_USER_ROLE, user.role)
            await self.secure_store.set(KEY_USERNAME, user.username)
            await self.secure_store.set(KEY_LOGIN_TIMESTAMP, now.isoformat())
        except Exception:
            # The session still works for this process, it just won't survive a restart.
            log.exception("Error saving user session")

    async def has_permission(self, permission: PermissionLike) -> bool:
        user = await self.get_current_user()
        if user is None:
            return False
        return role_allows(user.role, permission)

    async def logout(self) -> None:
        self.context = None
        try:
            await self.secure_store.remove_all()
            log.info("User logged out")
        except Exception:
            log.exception("Error during logout, removing session keys one by one")
            for key in SESSION_KEYS:
                try:
                    await self.secure_store.remove(key)
                except Exception:
                    log.debug("Could not remove %s", key, exc_info=True)

    async def is_session_valid(self) -> bool:
        try:
            login_timestamp = parse_timestamp(await self.secure_store.get(KEY_LOGIN_TIMESTAMP))
        except Exception:
            log.exception("Error checking session validity")
            return False
        if login_timestamp is None:
            return False
        return session_age_ok(datetime.now(timezone.utc) - login_timestamp, self.session_max_age)

    async def restore_session(self) -> Optional[SessionContext]:
        """
        Rebuild the session context from persisted state, typically at
        process start. A stale or orphaned session is cleared.
        """
        if not await self.is_session_valid():
            if await self._has_stored_session():
                log.info("Stored session expired, clearing it")
                await self.logout()
            self.context = None
            return None

        user = await self.get_current_user()
        if user is None:
            log.info("Stored session user is gone or inactive, clearing it")
            await self.logout()
            return None

        login_timestamp = parse_timestamp(await self.secure_store.get(KEY_LOGIN_TIMESTAMP))
        self.context = SessionContext(
            user_id=user.id,
            username=user.username,
            full_name=user.full_name,
            role=Role.parse(user.role),
            login_timestamp=login_timestamp or datetime.now(timezone.utc),
        )
        return self.context

    async def current_context(self) -> Optional[SessionContext]:
        """
        The live session context, or None once it has expired.

        The session's user is re-read on every call: a deactivated or deleted
        account ends the session, and a role change applies at once.
        """
        ctx = self.context
        if ctx is None:
            return None
        if ctx.is_expired(max_age=self.session_max_age):
            log.info("Session for user %s expired", ctx.user_id)
            await self.logout()
            return None

        try:
            user = await self.user_store.find_user_by_id(ctx.user_id)
        except Exception:
            log.exception("Error refreshing session user")
            return None

        if user is None or not user.is_active:
            log.info("Session user %s is gone or inactive, logging out", ctx.user_id)
            await self.logout()
            return None

        fresh = replace(
            ctx,
            username=user.username,
            full_name=user.full_name,
            role=Role.parse(user.role),
        )
        if fresh != ctx:
            log.info("Session user %s changed, refreshing context", ctx.user_id)
            self.context = fresh
        return fresh

    async def _has_stored_session(self) -> bool:
        try:
            return await self.secure_store.get(KEY_USER_ID) is not None
        except Exception:
            log.exception("Error reading stored session")
            return False
