"""Error taxonomy for the access-control core.

Routers translate these into HTTP status codes; services never raise HTTPException.
Integrity mismatches are not exceptions: they surface as ``hmac_status = "failed"``.
"""

from datetime import datetime


class PortalError(Exception):
    """Base class for core failures; ``message`` is safe to return to the caller."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationFailure(PortalError):
    """Bad credentials or an invalid/expired session. Never says which."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class AuthorizationFailure(PortalError):
    """RBAC denial."""

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message)


class RoleChangeDenied(AuthorizationFailure):
    """Role change attempted by a non-root actor or against the root identity."""

    def __init__(self, message: str = "Forbidden: Only root user can change roles") -> None:
        super().__init__(message)


class ValidationFailure(PortalError):
    """Malformed, oversized or disallowed input, rejected before crypto or storage."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class CryptographicFailure(PortalError):
    """Decryption failed (bad encoding, padding or key). Treated like an integrity failure."""

    def __init__(self, message: str = "Decryption failed", cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class RateLimitExceeded(PortalError):
    """Too many attempts for (source, action); retry after ``reset_at``."""

    def __init__(self, reset_at: datetime, message: str = "Too many attempts. Please try again later.") -> None:
        self.reset_at = reset_at
        super().__init__(message)


class StorageFailure(PortalError):
    """Persistence layer unavailable."""

    def __init__(self, message: str = "Storage unavailable", cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class NotFound(PortalError):
    """Requested entity does not exist (or is not visible to the requester)."""


class DuplicateIdentity(PortalError):
    """Username already taken."""
