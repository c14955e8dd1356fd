"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials for login. Length and charset rules are enforced by the validation service."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    password: str = Field(..., min_length=1, max_length=1024, description="Password")


class IssuedSession(BaseModel):
    """Both secrets of a new session. Returned exactly once; not retrievable later."""

    session_id: str
    token: str
    expires_at: datetime


class CurrentUser(BaseModel):
    """Authenticated identity resolved from the session headers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str
    email: str
    role: str
    is_root: bool = False


class LoginUser(BaseModel):
    userid: int
    username: str
    name: str
    role: str


class LoginResponse(BaseModel):
    """Session secrets, the identity, and its capability map."""

    success: bool = True
    session_id: str = Field(..., description="Send back as X-Session-ID")
    token: str = Field(..., description="Send back as X-Token")
    expires_at: datetime
    user: LoginUser
    permissions: dict[str, bool]


class LogoutResponse(BaseModel):
    success: bool = True


class CsrfTokenResponse(BaseModel):
    csrf_token: str = Field(..., description="Send as X-CSRF-Token header or csrf_token form field")


class RegisterRequest(BaseModel):
    """Self-registration. New identities always start as guest."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)
    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class RegisterResponse(BaseModel):
    success: bool = True
    message: str = "User registered successfully"
    userid: int
