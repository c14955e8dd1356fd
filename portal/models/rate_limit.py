"""ORM model for fixed-window attempt counters."""

from sqlalchemy import Column, DateTime, Integer, PrimaryKeyConstraint, String

from portal.models.base import Base


class RateLimitCounter(Base):
    """Attempts for one (source_key, action) in the window starting at window_start."""

    __tablename__ = "auth_rate_limits"
    __table_args__ = (PrimaryKeyConstraint("source_key", "action"),)

    source_key = Column(String(64), nullable=False)
    action = Column(String(50), nullable=False)
    attempts = Column(Integer, nullable=False, default=1)
    window_start = Column(DateTime(timezone=True), nullable=False)
