"""Tests for AES-256-CBC field encryption."""

import base64
import unittest

from db_support import TEST_AES_KEY, make_cipher

from portal.core.errors import CryptographicFailure
from portal.services.encryption import IV_BYTES, FieldCipher


class TestFieldCipherRoundTrip(unittest.TestCase):
    def setUp(self) -> None:
        self.cipher = make_cipher()

    def test_round_trip(self) -> None:
        for value in ("X123", "a" * 1000, "naïve ✓ 日本"):
            with self.subTest(value=value[:10]):
                self.assertEqual(self.cipher.decrypt(self.cipher.encrypt(value)), value)

    def test_empty_maps_to_empty(self) -> None:
        self.assertEqual(self.cipher.encrypt(""), "")
        self.assertEqual(self.cipher.decrypt(""), "")

    def test_fresh_iv_per_call(self) -> None:
        self.assertNotEqual(self.cipher.encrypt("X123"), self.cipher.encrypt("X123"))

    def test_blob_is_iv_then_block_aligned_ciphertext(self) -> None:
        raw = base64.b64decode(self.cipher.encrypt("X123"))
        self.assertEqual(len(raw), IV_BYTES + 16)

    def test_injected_iv_is_deterministic(self) -> None:
        fixed = make_cipher(iv_source=lambda n: b"\x01" * n)
        first = fixed.encrypt("X123")
        self.assertEqual(first, fixed.encrypt("X123"))
        self.assertTrue(base64.b64decode(first).startswith(b"\x01" * IV_BYTES))


class TestFieldCipherFailures(unittest.TestCase):
    def setUp(self) -> None:
        self.cipher = make_cipher()

    def test_invalid_base64(self) -> None:
        with self.assertRaises(CryptographicFailure):
            self.cipher.decrypt("***not-base64***")

    def test_too_short(self) -> None:
        with self.assertRaises(CryptographicFailure):
            self.cipher.decrypt(base64.b64encode(b"\x00" * 10).decode())

    def test_iv_without_ciphertext(self) -> None:
        with self.assertRaises(CryptographicFailure):
            self.cipher.decrypt(base64.b64encode(b"\x00" * IV_BYTES).decode())

    def test_misaligned_ciphertext(self) -> None:
        with self.assertRaises(CryptographicFailure):
            self.cipher.decrypt(base64.b64encode(b"\x00" * (IV_BYTES + 15)).decode())

    def test_wrong_key(self) -> None:
        # Decrypting under another key almost always breaks padding; a fixed IV
        # and plaintext keep the outcome reproducible.
        blob = make_cipher(iv_source=lambda n: b"\x02" * n).encrypt("X123")
        other = FieldCipher(bytes(reversed(TEST_AES_KEY)))
        try:
            result = other.decrypt(blob)
        except CryptographicFailure:
            return
        self.assertNotEqual(result, "X123")

    def test_key_must_be_32_bytes(self) -> None:
        with self.assertRaises(ValueError):
            FieldCipher(b"short")

    def test_failure_is_not_a_generic_value_error(self) -> None:
        with self.assertRaises(CryptographicFailure) as cm:
            self.cipher.decrypt("AAAA")
        self.assertTrue(cm.exception.message)
