"""Per-session anti-forgery tokens."""

import hmac
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.errors import StorageFailure
from portal.core.security import generate_secret
from portal.models import AuthSession

logger = logging.getLogger(__name__)

CSRF_FORM_FIELD = "csrf_token"


class CsrfGuard:
    def __init__(self, db: Session) -> None:
        self._db = db

    def token_for(self, auth_session: AuthSession) -> str:
        """Return the session's token, generating and storing it on first use."""
        if auth_session.csrf_token:
            return auth_session.csrf_token
        auth_session.csrf_token = generate_secret()
        try:
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Failed to store CSRF token")
            raise StorageFailure(cause=e) from e
        return auth_session.csrf_token

    @staticmethod
    def validate(
        auth_session: AuthSession,
        form_token: str | None = None,
        header_token: str | None = None,
    ) -> bool:
        """Form field wins over header. A session that never issued a token accepts nothing."""
        expected = auth_session.csrf_token
        presented = form_token if form_token is not None else header_token
        if not expected or not presented:
            return False
        return hmac.compare_digest(expected.encode(), presented.encode())
