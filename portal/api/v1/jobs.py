"""Jobs endpoints: submit a job and read jobs through the caller's role projection."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from portal.api.v1.auth import get_request_context, require_csrf
from portal.api.v1.deps import get_job_service, http_error
from portal.core.errors import PortalError
from portal.schemas.jobs import JobDetailResponse, JobListResponse, JobSubmitRequest, JobSubmitResponse
from portal.services.context import RequestContext
from portal.services.projection import JobService

router = APIRouter()


@router.get("", response_model=JobListResponse)
def list_jobs(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    jobs: Annotated[JobService, Depends(get_job_service)],
) -> JobListResponse:
    """
    List visible jobs, newest first.

    Admins see every job with decrypted values, ciphertext, tag and live integrity
    status. Users see only their own jobs with the sensitive field masked.
    Guests get an empty list.
    """
    try:
        views = jobs.list_jobs(ctx)
    except PortalError as e:
        raise http_error(e) from e
    return JobListResponse(role=ctx.role, jobs=views)


@router.get("/{job_id}", response_model=JobDetailResponse)
def get_job(
    job_id: int,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    jobs: Annotated[JobService, Depends(get_job_service)],
) -> JobDetailResponse:
    """One job, projected as in the list endpoint. 403 for guests, 404 outside the caller's scope."""
    try:
        view = jobs.get_job(ctx, job_id)
    except PortalError as e:
        raise http_error(e) from e
    return JobDetailResponse(job=view)


@router.post(
    "",
    response_model=JobSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf)],
)
def submit_job(
    body: JobSubmitRequest,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    jobs: Annotated[JobService, Depends(get_job_service)],
) -> JobSubmitResponse:
    """Submit a job. opn_number is encrypted at rest; the returned hmac covers the plaintext."""
    try:
        return jobs.submit_job(ctx, body.job_name, body.opn_number, body.clear_text_data)
    except PortalError as e:
        raise http_error(e) from e
