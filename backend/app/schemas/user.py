"""
Pydantic schemas for User and session endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


# ── Auth / Registration ─────────────────────────────────

class UserLogin(BaseModel):
    username: str
    password: str


class UserCreate(BaseModel):
    # Field rules are enforced by AuthManager.register so every rejection
    # collapses to the same 400 response.
    username: str = ""
    full_name: str = ""
    role: str = ""
    password: str = ""
    id: Optional[str] = None


class RegisterResponse(BaseModel):
    registered: bool = True


# ── User responses ──────────────────────────────────────

class UserOut(BaseModel):
    id: str
    username: str
    full_name: str
    role: str
    is_active: bool
    created_at: datetime
    last_login_at: datetime

    model_config = {"from_attributes": True}


class SessionOut(BaseModel):
    valid: bool
    user_id: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[str] = None
    login_timestamp: Optional[datetime] = None


class LoginResponse(BaseModel):
    user: UserOut
    session: SessionOut


class PermissionOut(BaseModel):
    permission: str
    granted: bool


class UserActiveUpdate(BaseModel):
    is_active: bool
