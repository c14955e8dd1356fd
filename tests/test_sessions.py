"""Tests for credential verification and server-issued sessions."""

import unittest
from unittest.mock import patch

from db_support import TEST_PASSWORD, FakeClock, add_user, make_db

from portal.core.errors import AuthenticationFailure
from portal.models import AuthSession
from portal.services.sessions import SessionManager


class TestVerifyCredentials(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_db()
        self.user = add_user(self.db, "alice", role="user")
        self.sessions = SessionManager(self.db, lifetime_seconds=3600)

    def tearDown(self) -> None:
        self.db.close()

    def test_correct_password(self) -> None:
        self.assertEqual(self.sessions.verify_credentials("alice", TEST_PASSWORD).id, self.user.id)

    def test_wrong_password_is_generic_failure(self) -> None:
        with self.assertRaises(AuthenticationFailure) as cm:
            self.sessions.verify_credentials("alice", "wrong-password-123")
        self.assertEqual(cm.exception.message, "Invalid credentials")

    def test_unknown_user_burns_a_hash_check_and_fails_identically(self) -> None:
        with patch("portal.services.sessions.burn_password_check") as burn:
            with self.assertRaises(AuthenticationFailure) as cm:
                self.sessions.verify_credentials("nobody", TEST_PASSWORD)
        burn.assert_called_once_with(TEST_PASSWORD)
        self.assertEqual(cm.exception.message, "Invalid credentials")


class TestSessionLifecycle(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_db()
        self.user = add_user(self.db, "alice", role="user")
        self.clock = FakeClock()
        self.sessions = SessionManager(self.db, lifetime_seconds=3600, clock=self.clock)

    def tearDown(self) -> None:
        self.db.close()

    def test_issued_secrets_are_independent_256_bit_hex(self) -> None:
        issued = self.sessions.create_session(self.user.id)
        self.assertEqual(len(issued.session_id), 64)
        self.assertEqual(len(issued.token), 64)
        self.assertNotEqual(issued.session_id, issued.token)
        self.assertEqual((issued.expires_at - self.clock.now).total_seconds(), 3600)

    def test_verify_returns_row_and_identity(self) -> None:
        issued = self.sessions.create_session(self.user.id)
        row, user = self.sessions.verify_session(issued.session_id, issued.token)
        self.assertEqual(row.session_id, issued.session_id)
        self.assertEqual(user.username, "alice")

    def test_both_secrets_required(self) -> None:
        issued = self.sessions.create_session(self.user.id)
        for session_id, token in ((issued.session_id, None), (None, issued.token), ("", "")):
            with self.subTest(session_id=session_id, token=token):
                with self.assertRaises(AuthenticationFailure):
                    self.sessions.verify_session(session_id, token)

    def test_mismatched_token_rejected(self) -> None:
        issued = self.sessions.create_session(self.user.id)
        other = self.sessions.create_session(self.user.id)
        with self.assertRaises(AuthenticationFailure):
            self.sessions.verify_session(issued.session_id, other.token)

    def test_expired_session_rejected(self) -> None:
        issued = self.sessions.create_session(self.user.id)
        self.clock.advance(3599)
        self.sessions.verify_session(issued.session_id, issued.token)
        self.clock.advance(1)
        with self.assertRaises(AuthenticationFailure) as cm:
            self.sessions.verify_session(issued.session_id, issued.token)
        self.assertEqual(cm.exception.message, "Invalid or expired session")

    def test_concurrent_sessions_allowed(self) -> None:
        first = self.sessions.create_session(self.user.id)
        second = self.sessions.create_session(self.user.id)
        self.sessions.verify_session(first.session_id, first.token)
        self.sessions.verify_session(second.session_id, second.token)

    def test_rotate_revokes_presented_session(self) -> None:
        planted = self.sessions.create_session(self.user.id)
        fresh = self.sessions.rotate_session(self.user.id, planted.session_id, planted.token)

        self.assertNotEqual(fresh.session_id, planted.session_id)
        self.sessions.verify_session(fresh.session_id, fresh.token)
        with self.assertRaises(AuthenticationFailure):
            self.sessions.verify_session(planted.session_id, planted.token)

    def test_revoke(self) -> None:
        issued = self.sessions.create_session(self.user.id)
        self.assertFalse(self.sessions.revoke_session(issued.session_id, "0" * 64))
        self.assertTrue(self.sessions.revoke_session(issued.session_id, issued.token))
        self.assertEqual(self.db.query(AuthSession).count(), 0)
        with self.assertRaises(AuthenticationFailure):
            self.sessions.verify_session(issued.session_id, issued.token)
