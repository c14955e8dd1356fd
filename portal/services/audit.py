"""Security-relevant activity events and the append-only sink they are written to.

The core only produces events. Anything implementing AuditSink.record can persist
them; DatabaseAuditSink appends to the activity_log table.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.errors import StorageFailure
from portal.models import ActivityLog, User
from portal.schemas.activity import ActivityLogEntry, ActivityLogPage, Pagination

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


class EventKind(str, Enum):
    LOGIN = "LOGIN"
    JOB_SUBMIT = "JOB_SUBMIT"
    JOB_VIEW = "JOB_VIEW"
    DATA_TRANSFER = "DATA_TRANSFER"
    HMAC_VERIFY = "HMAC_VERIFY"
    ROLE_CHANGE = "ROLE_CHANGE"
    ROLE_CHANGE_DENIED = "ROLE_CHANGE_DENIED"
    USER_DELETE = "USER_DELETE"
    REGISTER = "REGISTER"
    LOG_ACCESS = "LOG_ACCESS"


EVENT_KINDS = frozenset(k.value for k in EventKind)


@dataclass(frozen=True)
class RequestSource:
    """Where a request came from, as recorded on every event."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AuditEvent:
    actor_id: int | None
    kind: EventKind
    description: str
    ip_address: str | None = None
    user_agent: str | None = None


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class DatabaseAuditSink:
    """Appends events to activity_log in their own commit."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def record(self, event: AuditEvent) -> None:
        try:
            self._db.add(
                ActivityLog(
                    user_id=event.actor_id,
                    activity_type=event.kind.value,
                    description=event.description,
                    ip_address=event.ip_address,
                    user_agent=event.user_agent[:512] if event.user_agent else None,
                )
            )
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Failed to record %s event", event.kind.value)
            raise StorageFailure("Failed to record activity", cause=e) from e


class ActivityLogger:
    """
    Request-bound event writer: one helper per event kind.

    Sink errors propagate so a request whose denial or integrity failure cannot be
    recorded fails instead of completing silently.
    """

    def __init__(self, sink: AuditSink, source: RequestSource | None = None, enabled: bool = True) -> None:
        self._sink = sink
        self._source = source or RequestSource()
        self._enabled = enabled

    def log(self, actor_id: int | None, kind: EventKind, description: str) -> None:
        if not self._enabled:
            return
        self._sink.record(
            AuditEvent(
                actor_id=actor_id,
                kind=kind,
                description=description,
                ip_address=self._source.ip_address,
                user_agent=self._source.user_agent,
            )
        )

    def log_login(self, actor_id: int, username: str) -> None:
        self.log(actor_id, EventKind.LOGIN, f"User '{username}' logged in successfully")

    def log_data_transfer(self, actor_id: int, data_type: str, description: str) -> None:
        self.log(actor_id, EventKind.DATA_TRANSFER, f"{data_type}: {description}")

    def log_job_submission(self, actor_id: int, job_id: int, job_name: str) -> None:
        self.log(actor_id, EventKind.JOB_SUBMIT, f"Job ID {job_id} '{job_name}' submitted")

    def log_job_view(self, actor_id: int, role: str) -> None:
        self.log(actor_id, EventKind.JOB_VIEW, f"Jobs viewed (role: {role})")

    def log_hmac_verification(self, actor_id: int | None, success: bool, description: str) -> None:
        status = "Successful" if success else "Failed"
        if not success:
            logger.warning("Integrity failure reported to actor %s: %s", actor_id, description)
        self.log(actor_id, EventKind.HMAC_VERIFY, f"{status}: {description}")

    def log_role_change(self, actor_id: int, username: str, target_id: int, old_role: str, new_role: str) -> None:
        self.log(
            actor_id,
            EventKind.ROLE_CHANGE,
            f"Changed role of user '{username}' (ID: {target_id}) from '{old_role}' to '{new_role}'",
        )

    def log_role_change_denied(
        self, actor_id: int, username: str, target_id: int, old_role: str, new_role: str
    ) -> None:
        logger.warning("Role change denied: actor=%s target=%s", actor_id, target_id)
        self.log(
            actor_id,
            EventKind.ROLE_CHANGE_DENIED,
            f"Attempted to change role of user '{username}' (ID: {target_id}) from "
            f"'{old_role}' to '{new_role}' - Access denied (not root user or attempting to change root)",
        )

    def log_user_delete(self, actor_id: int, username: str, target_id: int) -> None:
        self.log(actor_id, EventKind.USER_DELETE, f"Deleted user '{username}' (ID: {target_id})")

    def log_registration(self, actor_id: int, username: str, role: str) -> None:
        self.log(actor_id, EventKind.REGISTER, f"New user '{username}' registered with role '{role}'")

    def log_activity_log_access(self, actor_id: int) -> None:
        self.log(actor_id, EventKind.LOG_ACCESS, "Accessed activity logs")

    def log_access_denied(self, actor_id: int | None, kind: EventKind, action: str) -> None:
        """An RBAC refusal, recorded under the kind of the action that was refused."""
        logger.warning("Access denied: actor=%s action=%s (%s)", actor_id, kind.value, action)
        self.log(actor_id, kind, f"Access denied: {action}")


def query_activity_logs(
    db: Session,
    user_id: int | None = None,
    activity_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> ActivityLogPage:
    """Newest-first page of events. Unknown activity types are ignored rather than matched."""
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)
    if activity_type not in EVENT_KINDS:
        activity_type = None

    query = db.query(ActivityLog, User.username, User.role).outerjoin(User, ActivityLog.user_id == User.id)
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if activity_type:
        query = query.filter(ActivityLog.activity_type == activity_type)

    total = query.count()
    rows = (
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    logs = [
        ActivityLogEntry(
            id=entry.id,
            userid=entry.user_id,
            username=username,
            role=role,
            activity_type=entry.activity_type,
            description=entry.description,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            created_at=entry.created_at,
        )
        for entry, username, role in rows
    ]
    return ActivityLogPage(
        logs=logs,
        pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + limit < total),
    )
