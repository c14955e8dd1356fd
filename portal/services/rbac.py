"""Role-based access control: a flat role → capability table and the root-identity rule.

Each capability is declared per role; nothing is inherited between roles.
"""

from dataclasses import asdict, dataclass
from typing import Literal, Protocol

Role = Literal["admin", "user", "guest"]

ROLE_ADMIN: Role = "admin"
ROLE_USER: Role = "user"
ROLE_GUEST: Role = "guest"

VALID_ROLES: tuple[Role, ...] = (ROLE_ADMIN, ROLE_USER, ROLE_GUEST)
DEFAULT_ROLE: Role = ROLE_GUEST


@dataclass(frozen=True)
class Capabilities:
    """What a role may do. Field names are returned to clients as the permissions map."""

    view_sensitive: bool
    view_plaintext: bool
    view_encrypted_metadata: bool
    submit_records: bool
    access_audit_log: bool
    manage_identities: bool

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)


CAPABILITY_TABLE: dict[str, Capabilities] = {
    ROLE_ADMIN: Capabilities(
        view_sensitive=True,
        view_plaintext=True,
        view_encrypted_metadata=True,
        submit_records=True,
        access_audit_log=True,
        manage_identities=True,
    ),
    ROLE_USER: Capabilities(
        view_sensitive=False,
        view_plaintext=True,
        view_encrypted_metadata=False,
        submit_records=True,
        access_audit_log=False,
        manage_identities=False,
    ),
    ROLE_GUEST: Capabilities(
        view_sensitive=False,
        view_plaintext=False,
        view_encrypted_metadata=False,
        submit_records=False,
        access_audit_log=False,
        manage_identities=False,
    ),
}


class RoleHolder(Protocol):
    is_root: bool


def is_valid_role(role: str | None) -> bool:
    return role in VALID_ROLES


def normalize_role(role: str | None) -> Role:
    """Missing or unknown roles fall back to guest (deny by default)."""
    if is_valid_role(role):
        return role  # type: ignore[return-value]
    return DEFAULT_ROLE


def capabilities(role: str | None) -> Capabilities:
    return CAPABILITY_TABLE[normalize_role(role)]


def can_change_role(actor: RoleHolder, target: RoleHolder) -> bool:
    """
    Only the root identity may change roles, and never its own.

    Both halves are required: the first stops escalation by anyone else, the
    second means the root identity can never lose its role.
    """
    return bool(actor.is_root) and not bool(target.is_root)
