"""SQLAlchemy declarative Base shared by identity, session, job and audit tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
