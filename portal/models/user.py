"""ORM model for identities (authentication, RBAC and profile integrity)."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from portal.models.base import Base


class User(Base):
    """
    Identity that can log in and act under one role.

    role: 'admin', 'user' or 'guest'.
    is_root: set once at provisioning for the single root identity; never updated.
    data_hmac: tag over username|email|name computed at creation only.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(100), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(16), nullable=False, default="guest")
    is_root = Column(Boolean, nullable=False, default=False)
    data_hmac = Column(String(64), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
