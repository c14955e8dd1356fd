"""Schemas for the activity (audit) log endpoint."""

from datetime import datetime

from pydantic import BaseModel


class ActivityLogEntry(BaseModel):
    id: int
    userid: int | None
    username: str | None = None
    role: str | None = None
    activity_type: str
    description: str
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime | None = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class ActivityLogPage(BaseModel):
    """Response for GET /activity-logs (admin only)."""

    success: bool = True
    logs: list[ActivityLogEntry]
    pagination: Pagination
