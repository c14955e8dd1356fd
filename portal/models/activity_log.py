"""ORM model for the append-only activity (audit) log."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from portal.models.base import Base


class ActivityLog(Base):
    """
    One security-relevant event.

    user_id carries no foreign key: entries outlive the identities they mention.
    """

    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    activity_type = Column(String(32), nullable=False, index=True)
    description = Column(Text, nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
