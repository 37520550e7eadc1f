"""
Shared test fixtures — SQLite test DB, auth manager, FastAPI test client.

Uses a throwaway SQLite file with NullPool so every test gets fresh
connections on its own event loop and no Docker/PostgreSQL is needed.
"""

from __future__ import annotations

import os
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import NullPool

# ── Patch settings BEFORE any app imports ────────────────
import app.config as _cfg

TEST_DB_PATH = "/tmp/test_inventory_manager.db"
TEST_DB_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"

_cfg.settings.DATABASE_URL = TEST_DB_URL
_cfg.settings.DEBUG = False
_cfg.settings.BCRYPT_ROUNDS = 4  # fast hashing for tests

# ── Test engine shared with the app's module-level factory ──
import app.database as _db_mod  # noqa: E402

_test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=NullPool)
_db_mod.engine = _test_engine
_db_mod.async_session = async_sessionmaker(
    _test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
_TestSession = _db_mod.async_session

import app.models  # noqa: E402, F401  — ensure tables are registered
from app.database import Base  # noqa: E402
from app.main import create_app  # noqa: E402
from app.core.roles import Role, WarehouseLocation  # noqa: E402
from app.core.secure_store import MemorySecureStore  # noqa: E402
from app.models.item import InventoryItem  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.auth_service import AuthManager  # noqa: E402
from app.services.user_store import UserStore  # noqa: E402


# ── Database lifecycle ──────────────────────────────────

@pytest_asyncio.fixture()
async def tables() -> AsyncGenerator[None, None]:
    """Create all tables for one test, drop them afterwards."""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture()
async def db_session(tables) -> AsyncGenerator[AsyncSession, None]:
    async with _TestSession() as session:
        yield session


@pytest.fixture()
def session_factory(tables) -> async_sessionmaker[AsyncSession]:
    return _TestSession


# ── Service fixtures ────────────────────────────────────

@pytest.fixture()
def user_store(session_factory) -> UserStore:
    return UserStore(session_factory)


@pytest.fixture()
def secure_store() -> MemorySecureStore:
    return MemorySecureStore()


@pytest.fixture()
def auth(user_store, secure_store) -> AuthManager:
    return AuthManager(user_store, secure_store)


def make_user(
    username: str,
    role: str = Role.OPERATOR.value,
    full_name: Optional[str] = None,
) -> User:
    return User(username=username, full_name=full_name or username.title(), role=role)


async def register(auth: AuthManager, username: str, password: str, role: str) -> User:
    user = make_user(username, role)
    assert await auth.register(user, password)
    return user


async def add_item(
    session_factory,
    item_code: str,
    name: str = "Widget",
    location: WarehouseLocation = WarehouseLocation.MAIN_WAREHOUSE,
    **kwargs,
) -> InventoryItem:
    async with session_factory() as db:
        item = InventoryItem(item_code=item_code, name=name, location=int(location), **kwargs)
        db.add(item)
        await db.commit()
        await db.refresh(item)
        return item


# ── HTTP client fixtures ────────────────────────────────

@pytest_asyncio.fixture()
async def test_app(tables):
    return create_app()


@pytest_asyncio.fixture()
async def app_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """``httpx.AsyncClient`` wired to a fresh app instance."""
    test_app.state.scan_handler.on_appearing()
    transport = ASGITransport(app=test_app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client


ADMIN_USER = {"username": "admin", "password": "admin123", "role": "Admin"}
MANAGER_USER = {"username": "manager", "password": "manager123", "role": "Manager"}
OPERATOR_USER = {"username": "operator", "password": "operator123", "role": "Operator"}


@pytest_asyncio.fixture()
async def seeded_users(test_app) -> dict:
    """Admin, manager and operator accounts registered through the app's manager."""
    auth: AuthManager = test_app.state.auth
    users = {}
    for account in (ADMIN_USER, MANAGER_USER, OPERATOR_USER):
        users[account["role"]] = await register(auth, account["username"], account["password"], account["role"])
    return users


async def login_as(client: AsyncClient, account: dict) -> dict:
    resp = await client.post("/api/v1/auth/login", json={
        "username": account["username"],
        "password": account["password"],
    })
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest_asyncio.fixture()
async def admin_client(app_client: AsyncClient, seeded_users) -> AsyncClient:
    await login_as(app_client, ADMIN_USER)
    return app_client


@pytest_asyncio.fixture()
async def operator_client(app_client: AsyncClient, seeded_users) -> AsyncClient:
    await login_as(app_client, OPERATOR_USER)
    return app_client
