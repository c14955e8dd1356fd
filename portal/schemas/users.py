"""Schemas for identity administration (admin only)."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

UserHmacStatus = Literal["verified", "failed", "not_available"]


class UserListItem(BaseModel):
    """One identity with its live profile integrity status. The tag itself is never returned."""

    userid: int
    username: str
    email: str
    name: str
    role: str
    is_root: bool
    hmac_verified: bool
    hmac_status: UserHmacStatus
    created_at: datetime | None = None


class UsersListResponse(BaseModel):
    success: bool = True
    users: list[UserListItem]


class RoleChangeRequest(BaseModel):
    role: str = Field(..., min_length=1, max_length=16, description="admin, user or guest")


class RoleChangeResponse(BaseModel):
    success: bool = True
    message: str
    userid: int
    old_role: str
    new_role: str


class UserDeleteResponse(BaseModel):
    success: bool = True
    message: str = "User deleted successfully"
