"""
Shared FastAPI dependencies — app services and the session context.
"""

from fastapi import Depends, Request

from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.core.roles import Permission, Role
from app.models.user import User
from app.services.auth_service import AuthManager, SessionContext
from app.services.inventory_service import InventoryService
from app.services.scan_service import ScanHandler


def get_auth(request: Request) -> AuthManager:
    return request.app.state.auth


def get_inventory(request: Request) -> InventoryService:
    return request.app.state.inventory


def get_scan_handler(request: Request) -> ScanHandler:
    return request.app.state.scan_handler


async def get_session_context(auth: AuthManager = Depends(get_auth)) -> SessionContext:
    """
    The live device session, rebuilt from the current user record.
    401 when nobody is logged in, the session expired, or the account
    was deactivated since login.
    """
    ctx = await auth.current_context()
    if ctx is None:
        raise UnauthorizedException("Not logged in")
    return ctx


async def get_current_user(
    auth: AuthManager = Depends(get_auth),
    ctx: SessionContext = Depends(get_session_context),
) -> User:
    """Fresh user record for the session; 401 if deactivated since login."""
    user = await auth.get_current_user()
    if user is None or user.id != ctx.user_id:
        raise UnauthorizedException("Not logged in")
    return user


def require_permission(permission: Permission):
    """Dependency factory: 403 unless the session's role grants ``permission``."""

    async def _check(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
        if not ctx.has_permission(permission):
            raise ForbiddenException(f"Missing permission: {permission.value}")
        return ctx

    return _check


def require_role(role: Role, detail: str = "Insufficient role"):
    """Dependency factory: 403 unless the session's role is exactly ``role``."""

    async def _check(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
        if ctx.role is not role:
            raise ForbiddenException(detail)
        return ctx

    return _check
