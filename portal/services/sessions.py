"""Credential verification and server-issued sessions.

A session is two independent 256-bit secrets (session_id, token) plus an expiry.
Both must match and the expiry must be in the future. Expired rows are simply
never accepted; nothing evicts them in the background.
"""

import hmac
import logging
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.clock import Clock, ensure_utc, utcnow
from portal.core.errors import AuthenticationFailure, StorageFailure
from portal.core.security import burn_password_check, generate_secret, verify_password
from portal.models import AuthSession, User
from portal.schemas.auth import CurrentUser, IssuedSession
from portal.services.rbac import normalize_role

logger = logging.getLogger(__name__)

INVALID_SESSION = "Invalid or expired session"


def to_current_user(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        username=user.username,
        name=user.name,
        email=user.email,
        role=normalize_role(user.role),
        is_root=bool(user.is_root),
    )


class SessionManager:
    """Request-scoped: wraps one DB session; clock is injectable for expiry tests."""

    def __init__(self, db: Session, lifetime_seconds: int, clock: Clock = utcnow) -> None:
        self._db = db
        self._lifetime = timedelta(seconds=lifetime_seconds)
        self._clock = clock

    def verify_credentials(self, username: str, password: str) -> User:
        """
        Return the identity for a correct username/password pair.

        Unknown usernames still pay for one bcrypt comparison, and both failure
        cases raise the same AuthenticationFailure.
        """
        try:
            user = self._db.query(User).filter(User.username == username).first()
        except SQLAlchemyError as e:
            logger.exception("Credential lookup failed")
            raise StorageFailure(cause=e) from e
        if user is None:
            burn_password_check(password)
            raise AuthenticationFailure()
        if not verify_password(password, user.password_hash):
            raise AuthenticationFailure()
        return user

    def create_session(self, user_id: int) -> IssuedSession:
        now = self._clock()
        row = AuthSession(
            session_id=generate_secret(),
            token=generate_secret(),
            user_id=user_id,
            expires_at=now + self._lifetime,
        )
        try:
            self._db.add(row)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Session creation failed for user %s", user_id)
            raise StorageFailure("Failed to create session", cause=e) from e
        return IssuedSession(session_id=row.session_id, token=row.token, expires_at=ensure_utc(row.expires_at))

    def verify_session(self, session_id: str | None, token: str | None) -> tuple[AuthSession, User]:
        if not session_id or not token:
            raise AuthenticationFailure(INVALID_SESSION)
        try:
            row = self._db.query(AuthSession).filter(AuthSession.session_id == session_id).first()
            if row is None or not hmac.compare_digest(row.token.encode(), token.encode()):
                raise AuthenticationFailure(INVALID_SESSION)
            if ensure_utc(row.expires_at) <= self._clock():
                raise AuthenticationFailure(INVALID_SESSION)
            user = self._db.get(User, row.user_id)
        except SQLAlchemyError as e:
            logger.exception("Session lookup failed")
            raise StorageFailure(cause=e) from e
        if user is None:
            raise AuthenticationFailure(INVALID_SESSION)
        return row, user

    def rotate_session(
        self,
        user_id: int,
        previous_session_id: str | None = None,
        previous_token: str | None = None,
    ) -> IssuedSession:
        """
        Issue a fresh session on interactive login, revoking any session the client
        presented beforehand so a planted identifier never becomes authenticated.
        """
        if previous_session_id and previous_token:
            self.revoke_session(previous_session_id, previous_token)
        return self.create_session(user_id)

    def revoke_session(self, session_id: str, token: str) -> bool:
        try:
            row = self._db.query(AuthSession).filter(AuthSession.session_id == session_id).first()
            if row is None or not hmac.compare_digest(row.token.encode(), token.encode()):
                return False
            self._db.delete(row)
            self._db.commit()
            return True
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Session revocation failed")
            raise StorageFailure(cause=e) from e
