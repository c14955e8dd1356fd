"""Tests for canonical serialization, HMAC tags and the bulk integrity scan."""

import unittest
from types import SimpleNamespace

from db_support import add_user, context_for, make_cipher, make_db, make_integrity, recording_logger

from portal.models import Job
from portal.services.canonical import canonical_job, canonical_user, canonicalize
from portal.services.integrity import (
    REASON_DECRYPTION_FAILED,
    REASON_HMAC_MISMATCH,
    REASON_VERIFICATION_ERROR,
    IntegrityService,
    audit_scan,
)
from portal.services.projection import JobService


class TestCanonicalize(unittest.TestCase):
    def test_plain_fields_join_with_pipe(self) -> None:
        self.assertEqual(canonicalize("Deploy", "X123"), "Deploy|X123")
        self.assertEqual(canonical_job("Deploy", "X123"), "Deploy|X123")
        self.assertEqual(canonical_user("alice", "a@example.com", "Alice"), "alice|a@example.com|Alice")

    def test_order_matters(self) -> None:
        self.assertNotEqual(canonicalize("a", "b"), canonicalize("b", "a"))

    def test_none_is_empty(self) -> None:
        self.assertEqual(canonicalize("a", None), "a|")

    def test_separator_inside_field_does_not_collide(self) -> None:
        self.assertNotEqual(canonicalize("a|b", "c"), canonicalize("a", "b|c"))
        self.assertNotEqual(canonicalize("a\\", "b"), canonicalize("a", "\\b"))


class TestIntegrityService(unittest.TestCase):
    def setUp(self) -> None:
        self.integrity = make_integrity()

    def test_tag_is_64_hex_and_deterministic(self) -> None:
        tag = self.integrity.generate("Deploy|X123")
        self.assertEqual(len(tag), 64)
        int(tag, 16)
        self.assertEqual(tag, self.integrity.generate("Deploy|X123"))

    def test_verify_accepts_own_tag(self) -> None:
        tag = self.integrity.generate("Deploy|X123")
        self.assertTrue(self.integrity.verify("Deploy|X123", tag))

    def test_single_character_flip_in_message_fails(self) -> None:
        tag = self.integrity.generate("Deploy|X123")
        self.assertFalse(self.integrity.verify("Deploy|X124", tag))

    def test_single_character_flip_in_tag_fails(self) -> None:
        tag = self.integrity.generate("Deploy|X123")
        flipped = ("0" if tag[0] != "0" else "1") + tag[1:]
        self.assertFalse(self.integrity.verify("Deploy|X123", flipped))

    def test_missing_tag_fails(self) -> None:
        self.assertFalse(self.integrity.verify("Deploy|X123", None))
        self.assertFalse(self.integrity.verify("Deploy|X123", ""))

    def test_other_secret_produces_other_tag(self) -> None:
        other = IntegrityService(b"another-secret")
        self.assertNotEqual(other.generate("x"), self.integrity.generate("x"))

    def test_empty_secret_rejected(self) -> None:
        with self.assertRaises(ValueError):
            IntegrityService(b"")

    def test_record_helpers(self) -> None:
        tag = self.integrity.tag_job("Deploy", "X123")
        self.assertTrue(self.integrity.verify_job("Deploy", "X123", tag))
        self.assertFalse(self.integrity.verify_job("Deploy2", "X123", tag))
        user_tag = self.integrity.tag_user("alice", "a@example.com", "Alice")
        self.assertTrue(self.integrity.verify_user("alice", "a@example.com", "Alice", user_tag))
        self.assertFalse(self.integrity.verify_user("alice", "evil@example.com", "Alice", user_tag))


class TestAuditScan(unittest.TestCase):
    """Three stored jobs, one altered directly in storage."""

    def setUp(self) -> None:
        self.db = make_db()
        self.cipher = make_cipher()
        self.integrity = make_integrity()
        activity, _ = recording_logger()
        self.owner = add_user(self.db, "alice", role="user")
        service = JobService(self.db, self.cipher, self.integrity, activity)
        ctx = context_for(self.owner)
        self.job_ids = [
            service.submit_job(ctx, f"Job {n}", f"OPN-{n}", "").jobid for n in range(3)
        ]

    def tearDown(self) -> None:
        self.db.close()

    def _jobs(self) -> list[Job]:
        return self.db.query(Job).order_by(Job.id).all()

    def test_clean_store_reports_nothing(self) -> None:
        self.assertEqual(audit_scan(self._jobs(), self.cipher, self.integrity), [])

    def test_overwritten_ciphertext_is_reported(self) -> None:
        target = self.db.get(Job, self.job_ids[1])
        target.opn_number_encrypted = self.cipher.encrypt("OPN-999")
        self.db.commit()

        compromised = audit_scan(self._jobs(), self.cipher, self.integrity)

        self.assertEqual(len(compromised), 1)
        self.assertEqual(compromised[0].jobid, self.job_ids[1])
        self.assertEqual(compromised[0].job_name, "Job 1")
        self.assertIn(compromised[0].reason, (REASON_DECRYPTION_FAILED, REASON_HMAC_MISMATCH))

    def test_garbage_ciphertext_is_decryption_failure(self) -> None:
        target = self.db.get(Job, self.job_ids[0])
        target.opn_number_encrypted = "not base64!!"
        self.db.commit()

        compromised = audit_scan(self._jobs(), self.cipher, self.integrity)

        self.assertEqual([c.reason for c in compromised], [REASON_DECRYPTION_FAILED])

    def test_edited_public_field_is_hmac_mismatch(self) -> None:
        target = self.db.get(Job, self.job_ids[2])
        target.job_name = "Renamed"
        self.db.commit()

        compromised = audit_scan(self._jobs(), self.cipher, self.integrity)

        self.assertEqual([(c.jobid, c.reason) for c in compromised], [(self.job_ids[2], REASON_HMAC_MISMATCH)])

    def test_scan_does_not_modify_rows(self) -> None:
        before = [(j.job_name, j.opn_number_encrypted, j.data_hmac) for j in self._jobs()]
        audit_scan(self._jobs(), self.cipher, self.integrity)
        after = [(j.job_name, j.opn_number_encrypted, j.data_hmac) for j in self._jobs()]
        self.assertEqual(before, after)

    def test_unexpected_error_is_reported_and_scan_continues(self) -> None:
        bad = SimpleNamespace(id=99, job_name="Broken", opn_number_encrypted="", data_hmac=123)
        compromised = audit_scan([bad, *self._jobs()], self.cipher, self.integrity)
        self.assertEqual([(c.jobid, c.reason) for c in compromised], [(99, REASON_VERIFICATION_ERROR)])
