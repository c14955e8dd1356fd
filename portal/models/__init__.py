"""SQLAlchemy ORM models."""

from portal.models.activity_log import ActivityLog
from portal.models.base import Base
from portal.models.job import Job
from portal.models.rate_limit import RateLimitCounter
from portal.models.session import AuthSession
from portal.models.user import User

__all__ = ["ActivityLog", "AuthSession", "Base", "Job", "RateLimitCounter", "User"]
