"""Pydantic request/response schemas."""

from portal.schemas.activity import ActivityLogEntry, ActivityLogPage, Pagination
from portal.schemas.auth import (
    CurrentUser,
    IssuedSession,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
)
from portal.schemas.health import HealthResponse
from portal.schemas.integrity import CompromisedJob, IntegrityScanResponse
from portal.schemas.jobs import (
    JobFullView,
    JobListResponse,
    JobPlaintextView,
    JobSubmitRequest,
    JobSubmitResponse,
)
from portal.schemas.users import RoleChangeRequest, RoleChangeResponse, UserListItem, UsersListResponse

__all__ = [
    "ActivityLogEntry",
    "ActivityLogPage",
    "CompromisedJob",
    "CurrentUser",
    "HealthResponse",
    "IntegrityScanResponse",
    "IssuedSession",
    "JobFullView",
    "JobListResponse",
    "JobPlaintextView",
    "JobSubmitRequest",
    "JobSubmitResponse",
    "LoginRequest",
    "LoginResponse",
    "Pagination",
    "RegisterRequest",
    "RegisterResponse",
    "RoleChangeRequest",
    "RoleChangeResponse",
    "UserListItem",
    "UsersListResponse",
]
