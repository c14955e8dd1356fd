"""Job submission and role-specific projection of stored jobs.

Inbound: validate, tag the plaintext, encrypt, persist. Outbound: every stored job
leaves the core as exactly one of JobFullView, JobPlaintextView, or nothing,
chosen purely by the requester's role.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.errors import AuthorizationFailure, CryptographicFailure, NotFound, StorageFailure
from portal.models import Job
from portal.schemas.jobs import JobFullView, JobPlaintextView, JobSubmitResponse
from portal.services.audit import ActivityLogger, EventKind
from portal.services.context import RequestContext
from portal.services.encryption import FieldCipher
from portal.services.integrity import IntegrityService
from portal.services.rbac import capabilities
from portal.services.validation import validate_clear_text, validate_job_name, validate_opn_number

logger = logging.getLogger(__name__)


def project_job(
    job: Job,
    role: str | None,
    cipher: FieldCipher,
    integrity: IntegrityService,
) -> JobFullView | JobPlaintextView | None:
    """
    Shape one stored job for a role. Pure: no events, no writes.

    The full view verifies the tag live against the freshly decrypted value; a job
    that cannot be decrypted is reported with opn_number=None and status "failed".
    The plaintext view never decrypts anything.
    """
    caps = capabilities(role)
    if caps.view_sensitive and caps.view_encrypted_metadata:
        try:
            opn_number: str | None = cipher.decrypt(job.opn_number_encrypted)
        except CryptographicFailure:
            opn_number = None
        verified = opn_number is not None and integrity.verify_job(job.job_name, opn_number, job.data_hmac)
        return JobFullView(
            id=job.id,
            user_id=job.user_id,
            job_name=job.job_name,
            opn_number=opn_number,
            opn_number_encrypted=job.opn_number_encrypted,
            clear_text_data=job.clear_text_data or "",
            data_hmac=job.data_hmac,
            hmac_verified=verified,
            hmac_status="verified" if verified else "failed",
            created_at=job.created_at,
        )
    if caps.view_plaintext:
        return JobPlaintextView(
            id=job.id,
            user_id=job.user_id,
            job_name=job.job_name,
            clear_text_data=job.clear_text_data or "",
            created_at=job.created_at,
        )
    return None


class JobService:
    """Request-scoped job operations for one caller."""

    def __init__(
        self,
        db: Session,
        cipher: FieldCipher,
        integrity: IntegrityService,
        activity: ActivityLogger,
    ) -> None:
        self._db = db
        self._cipher = cipher
        self._integrity = integrity
        self._activity = activity

    def submit_job(
        self,
        ctx: RequestContext,
        job_name: object,
        opn_number: object,
        clear_text_data: object = None,
    ) -> JobSubmitResponse:
        """
        Store a job owned by the caller.

        The tag is computed over the plaintext before encryption; the plaintext
        opn_number is never persisted.
        """
        if not ctx.capabilities.submit_records:
            self._activity.log_access_denied(ctx.actor_id, EventKind.JOB_SUBMIT, f"job submission (role: {ctx.role})")
            raise AuthorizationFailure("Permission denied: cannot submit jobs")
        name = validate_job_name(job_name)
        opn = validate_opn_number(opn_number)
        description = validate_clear_text(clear_text_data)

        tag = self._integrity.tag_job(name, opn)
        job = Job(
            user_id=ctx.actor_id,
            job_name=name,
            opn_number_encrypted=self._cipher.encrypt(opn),
            clear_text_data=description,
            data_hmac=tag,
        )
        try:
            self._db.add(job)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Job insert failed for user %s", ctx.actor_id)
            raise StorageFailure("Database error", cause=e) from e

        self._activity.log_job_submission(ctx.actor_id, job.id, name)
        self._activity.log_data_transfer(
            ctx.actor_id, "JOB_DATA", f"Job ID {job.id} submitted with HMAC verification"
        )
        return JobSubmitResponse(jobid=job.id, hmac=tag)

    def list_jobs(self, ctx: RequestContext) -> list[JobFullView | JobPlaintextView]:
        """Newest first. Roles without view_plaintext get an empty list."""
        caps = ctx.capabilities
        if not caps.view_plaintext:
            return []
        self._activity.log_job_view(ctx.actor_id, ctx.role)
        try:
            query = self._db.query(Job)
            if not caps.view_sensitive:
                query = query.filter(Job.user_id == ctx.actor_id)
            jobs = query.order_by(Job.created_at.desc(), Job.id.desc()).all()
        except SQLAlchemyError as e:
            logger.exception("Job retrieval failed")
            raise StorageFailure("Database error", cause=e) from e
        return [view for view in (self._project(ctx, job) for job in jobs) if view is not None]

    def get_job(self, ctx: RequestContext, job_id: int) -> JobFullView | JobPlaintextView:
        """
        Single job by id.

        Raises AuthorizationFailure for roles that may not see any job, and NotFound
        both for missing ids and for jobs outside the caller's visibility scope.
        """
        caps = ctx.capabilities
        if not caps.view_plaintext:
            self._activity.log_access_denied(ctx.actor_id, EventKind.JOB_VIEW, f"job ID {job_id} (role: {ctx.role})")
            raise AuthorizationFailure("Permission denied: cannot view jobs")
        try:
            job = self._db.get(Job, job_id)
        except SQLAlchemyError as e:
            logger.exception("Job lookup failed")
            raise StorageFailure("Database error", cause=e) from e
        if job is None or (not caps.view_sensitive and job.user_id != ctx.actor_id):
            raise NotFound("Job not found")
        self._activity.log_job_view(ctx.actor_id, ctx.role)
        view = self._project(ctx, job)
        if view is None:
            self._activity.log_access_denied(ctx.actor_id, EventKind.JOB_VIEW, f"job ID {job_id} (role: {ctx.role})")
            raise AuthorizationFailure("Permission denied: cannot view jobs")
        return view

    def _project(self, ctx: RequestContext, job: Job) -> JobFullView | JobPlaintextView | None:
        view = project_job(job, ctx.role, self._cipher, self._integrity)
        if isinstance(view, JobFullView) and not view.hmac_verified:
            self._activity.log_hmac_verification(
                ctx.actor_id, False, f"Integrity check failed for Job ID {job.id}"
            )
        return view
