"""Activity log endpoint: filtered, paginated audit events (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.api.v1.auth import get_request_context
from portal.api.v1.deps import get_activity_logger
from portal.core.database import get_db
from portal.schemas.activity import ActivityLogPage
from portal.services.audit import MAX_PAGE_SIZE, ActivityLogger, EventKind, query_activity_logs
from portal.services.context import RequestContext

router = APIRouter()


@router.get("", response_model=ActivityLogPage)
def list_activity_logs(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    db: Annotated[Session, Depends(get_db)],
    activity: Annotated[ActivityLogger, Depends(get_activity_logger)],
    userid: Annotated[int | None, Query(ge=1)] = None,
    activity_type: Annotated[str | None, Query(max_length=50)] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ActivityLogPage:
    """
    Newest-first audit events. Filter by userid and activity_type; unknown
    activity types are ignored. The access itself is recorded as LOG_ACCESS.
    """
    if not ctx.capabilities.access_audit_log:
        activity.log_access_denied(ctx.actor_id, EventKind.LOG_ACCESS, "activity logs")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: Admin access required")
    activity.log_activity_log_access(ctx.actor_id)
    try:
        return query_activity_logs(db, user_id=userid, activity_type=activity_type, limit=limit, offset=offset)
    except SQLAlchemyError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database error") from e
