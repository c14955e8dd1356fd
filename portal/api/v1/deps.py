"""Shared dependencies: crypto services, request source, audit logger, service factories, error mapping."""

import ipaddress
from datetime import datetime
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from portal.core.clock import utcnow
from portal.core.config import get_settings
from portal.core.database import get_db
from portal.core.errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    CryptographicFailure,
    DuplicateIdentity,
    NotFound,
    PortalError,
    RateLimitExceeded,
    StorageFailure,
    ValidationFailure,
)
from portal.services.audit import ActivityLogger, DatabaseAuditSink, RequestSource
from portal.services.encryption import FieldCipher
from portal.services.identities import IdentityService
from portal.services.integrity import IntegrityService
from portal.services.projection import JobService
from portal.services.rate_limit import RateLimiter
from portal.services.sessions import SessionManager


@lru_cache
def get_field_cipher() -> FieldCipher:
    return FieldCipher.from_settings(get_settings())


@lru_cache
def get_integrity_service() -> IntegrityService:
    return IntegrityService.from_settings(get_settings())


def _parse_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        ip = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    # Zone ids ("fe80::1%eth0") are unbounded free text.
    if getattr(ip, "scope_id", None):
        return None
    return str(ip)


def client_address(request: Request, trust_proxy_headers: bool) -> str | None:
    """
    Peer address of the request.

    Behind a trusted proxy, the right-most X-Forwarded-For hop (the one the proxy
    itself appended) is used, then X-Real-IP. Values that are not IP addresses are
    ignored, so a client cannot choose its own rate limit key.
    """
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            last_hop = _parse_ip(forwarded.split(",")[-1])
            if last_hop:
                return last_hop
        real_ip = _parse_ip(request.headers.get("x-real-ip"))
        if real_ip:
            return real_ip
    return request.client.host if request.client else None


def get_request_source(request: Request) -> RequestSource:
    settings = get_settings()
    return RequestSource(
        ip_address=client_address(request, settings.TRUST_PROXY_HEADERS),
        user_agent=request.headers.get("user-agent"),
    )


def get_activity_logger(
    db: Annotated[Session, Depends(get_db)],
    source: Annotated[RequestSource, Depends(get_request_source)],
) -> ActivityLogger:
    return ActivityLogger(
        DatabaseAuditSink(db),
        source=source,
        enabled=get_settings().ACTIVITY_LOGGING_ENABLED,
    )


def get_session_manager(db: Annotated[Session, Depends(get_db)]) -> SessionManager:
    return SessionManager(db, get_settings().SESSION_LIFETIME_SECONDS)


def get_rate_limiter(db: Annotated[Session, Depends(get_db)]) -> RateLimiter:
    return RateLimiter(db, fail_open=get_settings().RATE_LIMIT_FAIL_OPEN)


def get_job_service(
    db: Annotated[Session, Depends(get_db)],
    cipher: Annotated[FieldCipher, Depends(get_field_cipher)],
    integrity: Annotated[IntegrityService, Depends(get_integrity_service)],
    activity: Annotated[ActivityLogger, Depends(get_activity_logger)],
) -> JobService:
    return JobService(db, cipher, integrity, activity)


def get_identity_service(
    db: Annotated[Session, Depends(get_db)],
    integrity: Annotated[IntegrityService, Depends(get_integrity_service)],
    activity: Annotated[ActivityLogger, Depends(get_activity_logger)],
) -> IdentityService:
    return IdentityService(
        db,
        integrity,
        activity,
        default_email_domain=get_settings().DEFAULT_EMAIL_DOMAIN,
    )


def retry_after(reset_at: datetime) -> str:
    return str(max(1, int((reset_at - utcnow()).total_seconds()) + 1))


def http_error(exc: PortalError) -> HTTPException:
    """Translate a core failure into the HTTP status the API promises for it."""
    if isinstance(exc, AuthenticationFailure):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)
    if isinstance(exc, AuthorizationFailure):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
    if isinstance(exc, ValidationFailure):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, DuplicateIdentity):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    if isinstance(exc, RateLimitExceeded):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=exc.message,
            headers={"Retry-After": retry_after(exc.reset_at)},
        )
    if isinstance(exc, CryptographicFailure):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Data integrity error")
    if isinstance(exc, StorageFailure):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error occurred")
