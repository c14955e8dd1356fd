"""Schemas for integrity scan results."""

from typing import Literal

from pydantic import BaseModel, Field

ScanReason = Literal["Decryption Failed", "HMAC Mismatch", "Verification Error"]
HmacStatus = Literal["verified", "failed"]


class CompromisedJob(BaseModel):
    """One job that failed decryption or tag verification."""

    jobid: int
    job_name: str
    reason: ScanReason


class IntegrityScanResponse(BaseModel):
    """Response for GET /integrity-check (admin only)."""

    success: bool = True
    scanned_count: int = Field(..., ge=0)
    compromised_count: int = Field(..., ge=0)
    compromised_jobs: list[CompromisedJob]
