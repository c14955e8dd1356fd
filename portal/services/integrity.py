"""Integrity tags: HMAC-SHA256 over canonical plaintext, and the bulk audit scan.

Tags detect out-of-band edits to stored rows; they do not prevent them. A job's tag
covers (job_name, opn_number) in plaintext, an identity's covers (username, email, name).
"""

import hashlib
import hmac
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from portal.core.errors import CryptographicFailure
from portal.schemas.integrity import CompromisedJob
from portal.services.canonical import canonical_job, canonical_user
from portal.services.encryption import FieldCipher

if TYPE_CHECKING:
    from portal.core.config import Settings

logger = logging.getLogger(__name__)

TAG_HEX_LENGTH = 64

REASON_DECRYPTION_FAILED = "Decryption Failed"
REASON_HMAC_MISMATCH = "HMAC Mismatch"
REASON_VERIFICATION_ERROR = "Verification Error"


class StoredJob(Protocol):
    id: int
    job_name: str
    opn_number_encrypted: str
    data_hmac: str


class IntegrityService:
    """Keyed tag generation and constant-time verification with a fixed shared secret."""

    def __init__(self, secret: bytes) -> None:
        if not secret:
            raise ValueError("HMAC secret must be non-empty")
        self._secret = secret

    @classmethod
    def from_settings(cls, settings: "Settings") -> "IntegrityService":
        return cls(settings.HMAC_SECRET_KEY.get_secret_value().encode("utf-8"))

    def generate(self, canonical: str) -> str:
        return hmac.new(self._secret, canonical.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, canonical: str, tag: str | None) -> bool:
        if not tag:
            return False
        expected = self.generate(canonical)
        return hmac.compare_digest(expected.encode("ascii"), tag.encode("utf-8"))

    def tag_job(self, job_name: str, opn_number: str) -> str:
        return self.generate(canonical_job(job_name, opn_number))

    def verify_job(self, job_name: str, opn_number: str, tag: str | None) -> bool:
        return self.verify(canonical_job(job_name, opn_number), tag)

    def tag_user(self, username: str, email: str, name: str) -> str:
        return self.generate(canonical_user(username, email, name))

    def verify_user(self, username: str, email: str, name: str, tag: str | None) -> bool:
        return self.verify(canonical_user(username, email, name), tag)


def audit_scan(
    jobs: Iterable[StoredJob],
    cipher: FieldCipher,
    integrity: IntegrityService,
) -> list[CompromisedJob]:
    """
    Decrypt and re-verify every job; return the ones that fail.

    Detection only: nothing is written. A failure on one job never stops the scan.
    """
    compromised: list[CompromisedJob] = []
    for job in jobs:
        try:
            opn_number = cipher.decrypt(job.opn_number_encrypted)
        except CryptographicFailure:
            compromised.append(
                CompromisedJob(jobid=job.id, job_name=job.job_name, reason=REASON_DECRYPTION_FAILED)
            )
            continue
        try:
            ok = integrity.verify_job(job.job_name, opn_number, job.data_hmac)
        except Exception:
            logger.exception("Integrity verification error for job %s", job.id)
            compromised.append(
                CompromisedJob(jobid=job.id, job_name=job.job_name, reason=REASON_VERIFICATION_ERROR)
            )
            continue
        if not ok:
            compromised.append(
                CompromisedJob(jobid=job.id, job_name=job.job_name, reason=REASON_HMAC_MISMATCH)
            )
    if compromised:
        logger.warning("Integrity scan found %s compromised job(s)", len(compromised))
    return compromised
