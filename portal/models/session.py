"""ORM model for server-issued login sessions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from portal.models.base import Base


class AuthSession(Base):
    """
    One login session. Both secrets must match and expires_at must be in the future.

    csrf_token is issued lazily on first request and reused for the life of the session.
    """

    __tablename__ = "sessions"

    session_id = Column(String(64), primary_key=True)
    token = Column(String(64), nullable=False)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    csrf_token = Column(String(64), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
