"""Password hashing and server-issued secrets for session authentication."""

import secrets
from functools import lru_cache

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Session id, session token and CSRF token are each 32 random bytes (256 bits), hex-encoded.
SECRET_BYTES = 32


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash (bcrypt compares in constant time)."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Hash checked when the username is unknown, so both failures cost one bcrypt run."""
    return hash_password(secrets.token_hex(16))


def burn_password_check(plain_password: str) -> None:
    """Spend the same work as a real check; the result is always discarded."""
    verify_password(plain_password, dummy_password_hash())


def generate_secret() -> str:
    """Return a fresh 256-bit secret as 64 hex characters."""
    return secrets.token_hex(SECRET_BYTES)
