"""Integrity check endpoint: decrypt and re-verify every stored job (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.api.v1.auth import get_request_context
from portal.api.v1.deps import get_activity_logger, get_field_cipher, get_integrity_service
from portal.core.database import get_db
from portal.models import Job
from portal.schemas.integrity import IntegrityScanResponse
from portal.services.audit import ActivityLogger, EventKind
from portal.services.context import RequestContext
from portal.services.encryption import FieldCipher
from portal.services.integrity import IntegrityService, audit_scan

router = APIRouter()


@router.get("", response_model=IntegrityScanResponse)
def integrity_check(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    db: Annotated[Session, Depends(get_db)],
    cipher: Annotated[FieldCipher, Depends(get_field_cipher)],
    integrity: Annotated[IntegrityService, Depends(get_integrity_service)],
    activity: Annotated[ActivityLogger, Depends(get_activity_logger)],
) -> IntegrityScanResponse:
    """
    Report every job whose ciphertext no longer decrypts or whose tag no longer matches.

    Detection only; nothing is modified. Each compromised job is also recorded as a
    failed HMAC_VERIFY event.
    """
    if not ctx.capabilities.view_encrypted_metadata:
        activity.log_access_denied(ctx.actor_id, EventKind.HMAC_VERIFY, "integrity check")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: Admin access required")
    try:
        jobs = db.query(Job).order_by(Job.id).all()
    except SQLAlchemyError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database error") from e

    compromised = audit_scan(jobs, cipher, integrity)
    for item in compromised:
        activity.log_hmac_verification(
            ctx.actor_id, False, f"Integrity check failed for Job ID {item.jobid} ({item.reason})"
        )
    return IntegrityScanResponse(
        scanned_count=len(jobs),
        compromised_count=len(compromised),
        compromised_jobs=compromised,
    )
