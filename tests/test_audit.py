"""Tests for the database audit sink and access-denied events."""

import unittest
from unittest.mock import MagicMock

from db_support import add_user, make_db, recording_logger
from sqlalchemy.exc import OperationalError

from portal.core.errors import StorageFailure
from portal.models import ActivityLog
from portal.services.audit import AuditEvent, DatabaseAuditSink, EventKind


class TestDatabaseAuditSink(unittest.TestCase):
    def test_persists_event(self) -> None:
        db = make_db()
        user = add_user(db, "alice", role="user")

        DatabaseAuditSink(db).record(
            AuditEvent(user.id, EventKind.LOGIN, "User 'alice' logged in", ip_address="10.0.0.1", user_agent="x" * 600)
        )

        row = db.query(ActivityLog).one()
        self.assertEqual(row.activity_type, "LOGIN")
        self.assertEqual(row.user_id, user.id)
        self.assertEqual(row.ip_address, "10.0.0.1")
        self.assertEqual(len(row.user_agent), 512)
        db.close()

    def test_write_failure_rolls_back_and_raises(self) -> None:
        db = MagicMock()
        db.commit.side_effect = OperationalError("INSERT INTO activity_log", {}, Exception("db down"))

        with self.assertLogs("portal.services.audit", "ERROR"):
            with self.assertRaises(StorageFailure) as cm:
                DatabaseAuditSink(db).record(AuditEvent(1, EventKind.JOB_SUBMIT, "Job ID 1 submitted"))

        db.rollback.assert_called_once()
        self.assertIsInstance(cm.exception.__cause__, OperationalError)


class TestAccessDenied(unittest.TestCase):
    def test_recorded_under_refused_kind_with_warning(self) -> None:
        activity, sink = recording_logger()

        with self.assertLogs("portal.services.audit", "WARNING") as logs:
            activity.log_access_denied(7, EventKind.LOG_ACCESS, "activity logs")

        self.assertEqual(sink.kinds(), ["LOG_ACCESS"])
        event = sink.events[0]
        self.assertEqual(event.actor_id, 7)
        self.assertEqual(event.description, "Access denied: activity logs")
        self.assertEqual(event.ip_address, "127.0.0.1")
        self.assertIn("LOG_ACCESS", logs.output[0])
