"""
CLI entrypoint for the offline integrity scan. Run from cron, e.g.:

  python -m portal.integrity_scan

Exit status: 0 when every job verifies, 2 when compromised jobs were found, 1 on error.
"""

import logging
import sys

from portal.core.config import get_settings
from portal.core.database import SessionLocal
from portal.models import Job
from portal.services.encryption import FieldCipher
from portal.services.integrity import IntegrityService, audit_scan

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_ERROR = 1
EXIT_COMPROMISED = 2


def main() -> int:
    """Decrypt and re-verify every stored job; report compromised ones. Writes nothing."""
    settings = get_settings()
    db = SessionLocal()
    try:
        jobs = db.query(Job).order_by(Job.id).all()
        compromised = audit_scan(
            jobs,
            FieldCipher.from_settings(settings),
            IntegrityService.from_settings(settings),
        )
        for item in compromised:
            logger.warning("Compromised job %s '%s': %s", item.jobid, item.job_name, item.reason)
        logger.info("Integrity scan completed: scanned=%s compromised=%s", len(jobs), len(compromised))
        return EXIT_COMPROMISED if compromised else EXIT_CLEAN
    except Exception as e:
        logger.exception("Integrity scan failed: %s", e)
        return EXIT_ERROR
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
