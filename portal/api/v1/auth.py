"""Session login/logout, CSRF token issue, registration, and the auth dependencies used by every router."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from portal.api.v1.deps import (
    get_activity_logger,
    get_identity_service,
    get_rate_limiter,
    get_request_source,
    get_session_manager,
    http_error,
)
from portal.core.config import get_settings
from portal.core.database import get_db
from portal.core.errors import AuthenticationFailure, PortalError, StorageFailure
from portal.models import AuthSession, User
from portal.schemas.auth import (
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    LoginUser,
    LogoutResponse,
    RegisterRequest,
    RegisterResponse,
)
from portal.services.audit import ActivityLogger, RequestSource
from portal.services.context import RequestContext
from portal.services.csrf import CSRF_FORM_FIELD, CsrfGuard
from portal.services.identities import IdentityService
from portal.services.rate_limit import ACTION_LOGIN, ACTION_REGISTER, RateLimiter
from portal.services.rbac import capabilities
from portal.services.sessions import SessionManager, to_current_user

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_verified_session(
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    x_session_id: Annotated[str | None, Header()] = None,
    x_token: Annotated[str | None, Header()] = None,
) -> tuple[AuthSession, User]:
    """Dependency: resolve X-Session-ID / X-Token. 401 when invalid, 503 when storage is down."""
    try:
        return sessions.verify_session(x_session_id, x_token)
    except AuthenticationFailure as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    except StorageFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message) from e


def get_request_context(
    verified: Annotated[tuple[AuthSession, User], Depends(get_verified_session)],
    source: Annotated[RequestSource, Depends(get_request_source)],
) -> RequestContext:
    """Dependency: the caller's identity, session and source, passed on explicitly."""
    auth_session, user = verified
    return RequestContext(user=to_current_user(user), session_id=auth_session.session_id, source=source)


async def require_csrf(
    request: Request,
    verified: Annotated[tuple[AuthSession, User], Depends(get_verified_session)],
    x_csrf_token: Annotated[str | None, Header()] = None,
) -> None:
    """Dependency for state-changing endpoints: csrf_token form field, else X-CSRF-Token header."""
    form_token = None
    if request.headers.get("content-type", "").startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        value = form.get(CSRF_FORM_FIELD)
        form_token = value if isinstance(value, str) else None
    auth_session, user = verified
    if not CsrfGuard.validate(auth_session, form_token=form_token, header_token=x_csrf_token):
        logger.warning("CSRF validation failed for user %s", user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF token validation failed")


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    activity: Annotated[ActivityLogger, Depends(get_activity_logger)],
    source: Annotated[RequestSource, Depends(get_request_source)],
    x_session_id: Annotated[str | None, Header()] = None,
    x_token: Annotated[str | None, Header()] = None,
) -> LoginResponse:
    """
    Authenticate with username and password; returns a fresh session.

    Send session_id and token back as X-Session-ID and X-Token. Any session the
    client presented before logging in is revoked. Attempts are throttled per
    source address; a successful login clears the counter.
    """
    settings = get_settings()
    source_key = source.ip_address or "unknown"
    try:
        limiter.ensure_allowed(
            source_key,
            ACTION_LOGIN,
            settings.LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
            settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
        )
        user = sessions.verify_credentials(body.username.strip(), body.password)
        limiter.reset_limit(source_key, ACTION_LOGIN)
        issued = sessions.rotate_session(user.id, x_session_id, x_token)
        activity.log_login(user.id, user.username)
    except AuthenticationFailure as e:
        logger.warning("Failed login from %s", source_key)
        raise http_error(e) from e
    except PortalError as e:
        raise http_error(e) from e

    current = to_current_user(user)
    return LoginResponse(
        session_id=issued.session_id,
        token=issued.token,
        expires_at=issued.expires_at,
        user=LoginUser(userid=current.id, username=current.username, name=current.name, role=current.role),
        permissions=capabilities(current.role).as_dict(),
    )


@router.post("/logout", response_model=LogoutResponse, dependencies=[Depends(require_csrf)])
def logout(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    x_token: Annotated[str | None, Header()] = None,
) -> LogoutResponse:
    """Revoke the current session."""
    try:
        sessions.revoke_session(ctx.session_id, x_token or "")
    except PortalError as e:
        raise http_error(e) from e
    return LogoutResponse()


@router.get("/csrf-token", response_model=CsrfTokenResponse)
def get_csrf_token(
    verified: Annotated[tuple[AuthSession, User], Depends(get_verified_session)],
    db: Annotated[Session, Depends(get_db)],
) -> CsrfTokenResponse:
    """Return the session's anti-forgery token, issuing it on first use."""
    auth_session, _user = verified
    try:
        token = CsrfGuard(db).token_for(auth_session)
    except PortalError as e:
        raise http_error(e) from e
    return CsrfTokenResponse(csrf_token=token)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    identities: Annotated[IdentityService, Depends(get_identity_service)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    source: Annotated[RequestSource, Depends(get_request_source)],
) -> RegisterResponse:
    """Create a guest identity. Throttled per source address."""
    settings = get_settings()
    source_key = source.ip_address or "unknown"
    try:
        limiter.ensure_allowed(
            source_key,
            ACTION_REGISTER,
            settings.REGISTER_RATE_LIMIT_MAX_ATTEMPTS,
            settings.REGISTER_RATE_LIMIT_WINDOW_SECONDS,
        )
        user = identities.register_user(body.username, body.password, body.name, body.email)
    except PortalError as e:
        raise http_error(e) from e
    limiter.reset_limit(source_key, ACTION_REGISTER)
    return RegisterResponse(userid=user.id)
