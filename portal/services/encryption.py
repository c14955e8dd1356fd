"""Field encryption: AES-256-CBC with a fresh random IV per call.

Stored format is base64(IV (16 bytes) || ciphertext). The empty string encrypts to
the empty string and back.
"""

import base64
import binascii
import logging
import os
from collections.abc import Callable
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from portal.core.errors import CryptographicFailure

if TYPE_CHECKING:
    from portal.core.config import Settings

logger = logging.getLogger(__name__)

KEY_BYTES = 32
IV_BYTES = 16
BLOCK_BITS = 128


class FieldCipher:
    """
    Stateless encrypt/decrypt of a single text field under a fixed 256-bit key.

    iv_source is injectable so tests can pin the IV; production uses os.urandom.
    """

    def __init__(self, key: bytes, iv_source: Callable[[int], bytes] = os.urandom) -> None:
        if len(key) != KEY_BYTES:
            raise ValueError(f"AES-256 key must be {KEY_BYTES} bytes, got {len(key)}")
        self._key = key
        self._iv_source = iv_source

    @classmethod
    def from_settings(cls, settings: "Settings") -> "FieldCipher":
        return cls(bytes.fromhex(settings.AES_KEY.get_secret_value()))

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        iv = self._iv_source(IV_BYTES)
        if len(iv) != IV_BYTES:
            raise ValueError(f"IV must be {IV_BYTES} bytes")
        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(iv + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a stored blob.

        Raises CryptographicFailure on bad base64, a truncated or misaligned blob,
        a padding/key mismatch, or plaintext that is not UTF-8.
        """
        if not blob:
            return ""
        try:
            data = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptographicFailure("Invalid encrypted data format", cause=e) from e
        iv, ciphertext = data[:IV_BYTES], data[IV_BYTES:]
        if len(iv) != IV_BYTES or not ciphertext or len(ciphertext) % (BLOCK_BITS // 8):
            raise CryptographicFailure("Invalid encrypted data length")
        try:
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
            raw = unpadder.update(padded) + unpadder.finalize()
            return raw.decode("utf-8")
        except ValueError as e:
            # Covers bad padding and UnicodeDecodeError (a ValueError subclass).
            logger.debug("Field decryption failed: %s", type(e).__name__)
            raise CryptographicFailure(cause=e) from e
