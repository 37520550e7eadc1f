"""
Auth API endpoints — login, logout, session, permissions, user admin.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from app.core.dependencies import (
    get_auth,
    get_current_user,
    require_permission,
)
from app.core.exceptions import BadRequestException, NotFoundException, UnauthorizedException
from app.core.roles import Permission
from app.models.user import User
from app.schemas.user import (
    LoginResponse,
    PermissionOut,
    RegisterResponse,
    SessionOut,
    UserActiveUpdate,
    UserCreate,
    UserLogin,
    UserOut,
)
from app.services.auth_service import AuthManager, SessionContext

router = APIRouter()

manage_users = require_permission(Permission.MANAGE_USERS)


def _session_out(ctx: Optional[SessionContext], valid: bool) -> SessionOut:
    if ctx is None:
        return SessionOut(valid=valid)
    return SessionOut(
        valid=valid,
        user_id=ctx.user_id,
        username=ctx.username,
        full_name=ctx.full_name,
        role=ctx.role.value if ctx.role else None,
        login_timestamp=ctx.login_timestamp,
    )


@router.post("/login", response_model=LoginResponse)
async def login(payload: UserLogin, auth: AuthManager = Depends(get_auth)):
    """Verify credentials and open a device session."""
    user = await auth.login(payload.username, payload.password)
    if user is None:
        raise UnauthorizedException("Invalid credentials")

    await auth.save_user_session(user)
    return LoginResponse(
        user=UserOut.model_validate(user),
        session=_session_out(auth.context, valid=True),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(auth: AuthManager = Depends(get_auth)):
    """Clear the device session."""
    await auth.logout()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    """Get the logged-in user's profile."""
    return current_user


@router.get("/session", response_model=SessionOut)
async def session(auth: AuthManager = Depends(get_auth)):
    """Persisted session validity plus the live session context, if any."""
    valid = await auth.is_session_valid()
    ctx = await auth.current_context()
    return _session_out(ctx, valid=valid)


@router.get("/permissions/{permission}", response_model=PermissionOut)
async def check_permission(permission: str, auth: AuthManager = Depends(get_auth)):
    """Whether the current user's role grants ``permission``."""
    return PermissionOut(permission=permission, granted=await auth.has_permission(permission))


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    payload: UserCreate,
    auth: AuthManager = Depends(get_auth),
    _ctx: SessionContext = Depends(manage_users),
):
    """Create a user account. Every rejection gets the same response."""
    candidate = User(
        id=payload.id,
        username=payload.username,
        full_name=payload.full_name,
        role=payload.role,
    )
    if not await auth.register(candidate, payload.password):
        raise BadRequestException("Registration failed")
    return RegisterResponse()


@router.get("/users", response_model=list[UserOut])
async def list_users(
    auth: AuthManager = Depends(get_auth),
    _ctx: SessionContext = Depends(manage_users),
):
    """Active users ordered by full name."""
    return await auth.get_all_users()


@router.patch("/users/{user_id}/active", status_code=status.HTTP_204_NO_CONTENT)
async def set_user_active(
    user_id: str,
    body: UserActiveUpdate,
    auth: AuthManager = Depends(get_auth),
    _ctx: SessionContext = Depends(manage_users),
):
    """Activate or deactivate an account."""
    if not await auth.user_store.set_user_active(user_id, body.is_active):
        raise NotFoundException("User")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
