"""Schemas for job submission and the role-specific job views."""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from portal.schemas.integrity import HmacStatus

SENSITIVE_MARKER = "[Sensitive Data Hidden]"


class JobSubmitRequest(BaseModel):
    """Inbound job. Field rules are enforced by the validation service."""

    job_name: str = Field(..., max_length=1024)
    opn_number: str = Field(..., max_length=4096)
    clear_text_data: str | None = Field(default=None, max_length=4096)


class JobSubmitResponse(BaseModel):
    success: bool = True
    message: str = "Job submitted successfully"
    jobid: int
    hmac: str = Field(..., description="Integrity tag over the submitted plaintext")


class JobFullView(BaseModel):
    """Administrator view: decrypted value plus the stored protection metadata and live status."""

    view: Literal["full"] = "full"
    id: int
    user_id: int
    job_name: str
    opn_number: str | None = Field(
        default=None, description="Decrypted value; null when decryption failed"
    )
    opn_number_encrypted: str
    clear_text_data: str
    data_hmac: str
    hmac_verified: bool
    hmac_status: HmacStatus
    created_at: datetime | None = None


class JobPlaintextView(BaseModel):
    """Standard user view. Carries no ciphertext or tag fields at all."""

    view: Literal["plaintext"] = "plaintext"
    id: int
    user_id: int
    job_name: str
    opn_number: Literal["[Sensitive Data Hidden]"] = SENSITIVE_MARKER
    clear_text_data: str
    created_at: datetime | None = None


JobView = Annotated[Union[JobFullView, JobPlaintextView], Field(discriminator="view")]


class JobListResponse(BaseModel):
    success: bool = True
    role: str
    jobs: list[JobView]


class JobDetailResponse(BaseModel):
    success: bool = True
    job: JobView
