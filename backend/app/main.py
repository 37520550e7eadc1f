"""
FastAPI application factory.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import select

from app import database
from app.config import settings
from app.core.middleware import setup_cors, setup_request_logging
from app.core.exceptions import register_exception_handlers
from app.core.roles import Role
from app.core.secure_store import DatabaseSecureStore
from app.models.user import User
from app.services.auth_service import AuthManager
from app.services.inventory_service import InventoryService
from app.services.scan_service import ScanHandler
from app.services.user_store import UserStore
from app.api.v1 import router as api_v1_router


async def seed_admin(auth: AuthManager):
    """Create a default admin user if none exists."""
    async with database.async_session() as db:
        result = await db.execute(select(User.id).where(User.role == Role.ADMIN.value))
        if result.first() is None:
            admin = User(
                username=settings.DEFAULT_ADMIN_USERNAME,
                full_name=settings.DEFAULT_ADMIN_FULL_NAME,
                role=Role.ADMIN.value,
            )
            if await auth.register(admin, settings.DEFAULT_ADMIN_PASSWORD):
                print(f"👤 Default admin user created ({settings.DEFAULT_ADMIN_USERNAME})")
            else:
                print("⚠️  Could not create default admin user")
        else:
            print("👤 Admin user already exists — skipping seed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    # ── Startup ──────────────────────────────────────────
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    print(f"🚀 Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await database.init_models()
    await seed_admin(app.state.auth)

    ctx = await app.state.auth.restore_session()
    if ctx is not None:
        print(f"🔑 Restored session for {ctx.username}")
    app.state.scan_handler.on_appearing()
    yield
    # ── Shutdown ─────────────────────────────────────────
    app.state.scan_handler.on_disappearing()
    await database.engine.dispose()
    print("🛑 Shutting down…")


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Inventory tracking with QR scanning and role-based access",
        lifespan=lifespan,
    )

    # Services — one device session per process
    auth = AuthManager(
        UserStore(database.async_session),
        DatabaseSecureStore(database.async_session),
    )
    app.state.auth = auth
    app.state.inventory = InventoryService(database.async_session, auth)
    app.state.scan_handler = ScanHandler(lookup=app.state.inventory)

    # Middleware
    setup_cors(app)
    setup_request_logging(app)

    # Exception handlers
    register_exception_handlers(app)

    # Routers
    app.include_router(api_v1_router, prefix="/api/v1")

    # Health check
    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": settings.APP_VERSION}

    return app


app = create_app()
