"""Tests for per-session anti-forgery tokens."""

import unittest

from db_support import add_user, make_db

from portal.services.csrf import CsrfGuard
from portal.services.sessions import SessionManager


class TestCsrfGuard(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_db()
        user = add_user(self.db, "alice", role="user")
        sessions = SessionManager(self.db, lifetime_seconds=3600)
        issued = sessions.create_session(user.id)
        self.auth_session, _ = sessions.verify_session(issued.session_id, issued.token)
        self.guard = CsrfGuard(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_token_issued_lazily_and_reused(self) -> None:
        self.assertIsNone(self.auth_session.csrf_token)
        token = self.guard.token_for(self.auth_session)
        self.assertEqual(len(token), 64)
        self.assertEqual(self.guard.token_for(self.auth_session), token)
        self.db.expire_all()
        self.assertEqual(self.auth_session.csrf_token, token)

    def test_session_without_token_accepts_nothing(self) -> None:
        self.assertFalse(CsrfGuard.validate(self.auth_session, header_token="anything"))

    def test_header_token(self) -> None:
        token = self.guard.token_for(self.auth_session)
        self.assertTrue(CsrfGuard.validate(self.auth_session, header_token=token))
        self.assertFalse(CsrfGuard.validate(self.auth_session, header_token=token[:-1] + "x"))
        self.assertFalse(CsrfGuard.validate(self.auth_session))

    def test_form_field_wins_over_header(self) -> None:
        token = self.guard.token_for(self.auth_session)
        self.assertTrue(CsrfGuard.validate(self.auth_session, form_token=token, header_token="bogus"))
        self.assertFalse(CsrfGuard.validate(self.auth_session, form_token="bogus", header_token=token))
