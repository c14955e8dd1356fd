"""Tests for the fixed-window attempt limiter."""

import unittest
from datetime import timedelta
from unittest.mock import MagicMock

from db_support import FakeClock, make_db
from sqlalchemy.exc import OperationalError

from portal.core.errors import RateLimitExceeded
from portal.models import RateLimitCounter
from portal.services.rate_limit import ACTION_LOGIN, ACTION_REGISTER, RateLimiter


class TestFixedWindow(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_db()
        self.clock = FakeClock()
        self.limiter = RateLimiter(self.db, clock=self.clock)

    def tearDown(self) -> None:
        self.db.close()

    def test_sixth_login_attempt_is_denied(self) -> None:
        results = [self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600) for _ in range(6)]

        self.assertTrue(all(r.allowed for r in results[:5]))
        self.assertEqual([r.remaining for r in results[:5]], [4, 3, 2, 1, 0])
        self.assertFalse(results[5].allowed)
        self.assertEqual(results[5].remaining, 0)

    def test_denied_reset_at_is_window_end(self) -> None:
        start = self.clock.now
        for _ in range(5):
            self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)
        self.clock.advance(120)
        result = self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)
        self.assertFalse(result.allowed)
        self.assertEqual(result.reset_at, start + timedelta(seconds=600))

    def test_fresh_window_after_elapse(self) -> None:
        for _ in range(6):
            self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)
        self.clock.advance(600)

        result = self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)

        self.assertTrue(result.allowed)
        self.assertEqual(result.remaining, 4)
        counter = self.db.query(RateLimitCounter).one()
        self.assertEqual(counter.attempts, 1)

    def test_sources_and_actions_are_independent(self) -> None:
        for _ in range(5):
            self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)
        self.assertFalse(self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600).allowed)
        self.assertTrue(self.limiter.check_limit("10.0.0.2", ACTION_LOGIN, 5, 600).allowed)
        self.assertTrue(self.limiter.check_limit("10.0.0.1", ACTION_REGISTER, 5, 3600).allowed)

    def test_reset_limit_clears_counter(self) -> None:
        for _ in range(5):
            self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)
        self.limiter.reset_limit("10.0.0.1", ACTION_LOGIN)

        result = self.limiter.check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)

        self.assertTrue(result.allowed)
        self.assertEqual(result.remaining, 4)

    def test_ensure_allowed_raises_with_reset_time(self) -> None:
        start = self.clock.now
        for _ in range(5):
            self.limiter.ensure_allowed("10.0.0.1", ACTION_LOGIN, 5, 600)
        with self.assertRaises(RateLimitExceeded) as cm:
            self.limiter.ensure_allowed("10.0.0.1", ACTION_LOGIN, 5, 600)
        self.assertEqual(cm.exception.reset_at, start + timedelta(seconds=600))


class TestStorageFailure(unittest.TestCase):
    def _broken_db(self) -> MagicMock:
        db = MagicMock()
        db.execute.side_effect = OperationalError("UPDATE auth_rate_limits", {}, Exception("db down"))
        return db

    def test_fails_open_by_default(self) -> None:
        db = self._broken_db()
        result = RateLimiter(db, clock=FakeClock()).check_limit("10.0.0.1", ACTION_LOGIN, 5, 600)
        self.assertTrue(result.allowed)
        db.rollback.assert_called_once()

    def test_fails_closed_when_configured(self) -> None:
        result = RateLimiter(self._broken_db(), fail_open=False, clock=FakeClock()).check_limit(
            "10.0.0.1", ACTION_LOGIN, 5, 600
        )
        self.assertFalse(result.allowed)
        self.assertEqual(result.remaining, 0)

    def test_reset_failure_does_not_raise(self) -> None:
        RateLimiter(self._broken_db()).reset_limit("10.0.0.1", ACTION_LOGIN)
