"""Identity administration: registration, root provisioning, role changes, deletion, listing.

Profile tags (username|email|name) are computed once at creation and never
recomputed, so any later out-of-band edit to those columns shows up as "failed".
"""

import logging

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.errors import (
    AuthorizationFailure,
    DuplicateIdentity,
    NotFound,
    RoleChangeDenied,
    StorageFailure,
    ValidationFailure,
)
from portal.core.security import BCRYPT_ROUNDS, hash_password
from portal.models import AuthSession, Job, User
from portal.schemas.auth import CurrentUser
from portal.schemas.users import RoleChangeResponse, UserListItem
from portal.services.audit import ActivityLogger, EventKind
from portal.services.integrity import IntegrityService
from portal.services.rbac import DEFAULT_ROLE, ROLE_ADMIN, can_change_role, capabilities, is_valid_role
from portal.services.validation import validate_email, validate_name, validate_password, validate_username

logger = logging.getLogger(__name__)


class IdentityService:
    """Request-scoped identity operations; bcrypt_rounds is lowered only in tests."""

    def __init__(
        self,
        db: Session,
        integrity: IntegrityService,
        activity: ActivityLogger,
        default_email_domain: str = "secure-internal.local",
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self._db = db
        self._integrity = integrity
        self._activity = activity
        self._default_email_domain = default_email_domain
        self._bcrypt_rounds = bcrypt_rounds

    def register_user(
        self,
        username: object,
        password: object,
        name: object,
        email: object = None,
    ) -> User:
        """Self-registration. The new identity is always a guest; an admin promotes it later."""
        user = self._create(username, password, name, email, role=DEFAULT_ROLE, is_root=False)
        self._activity.log_registration(user.id, user.username, user.role)
        return user

    def create_user(
        self,
        username: object,
        password: object,
        name: object,
        email: object = None,
        role: str = DEFAULT_ROLE,
    ) -> User:
        """Operator-created identity with an explicit role (no event: there is no acting identity)."""
        if not is_valid_role(role):
            raise ValidationFailure("role", "Invalid role. Must be admin, user, or guest")
        return self._create(username, password, name, email, role=role, is_root=False)

    def provision_root(
        self,
        username: object,
        password: object,
        name: object,
        email: object = None,
    ) -> User:
        """Create the single root identity (admin). Refuses when one already exists."""
        try:
            existing = self._db.query(User.id).filter(User.is_root.is_(True)).first()
        except SQLAlchemyError as e:
            logger.exception("Root lookup failed")
            raise StorageFailure(cause=e) from e
        if existing is not None:
            raise DuplicateIdentity("A root identity already exists")
        user = self._create(username, password, name, email, role=ROLE_ADMIN, is_root=True)
        logger.info("Provisioned root identity '%s' (ID: %s)", user.username, user.id)
        return user

    def change_role(self, actor: CurrentUser, target_id: int, new_role: str) -> RoleChangeResponse:
        """
        Change another identity's role. Only the root identity may do this, and the
        root identity's own role never changes; every refusal is recorded.
        """
        self._require_manager(actor, EventKind.ROLE_CHANGE_DENIED, f"role change of user ID {target_id}")
        new_role = (new_role or "").strip()
        if not is_valid_role(new_role):
            raise ValidationFailure("role", "Invalid role. Must be admin, user, or guest")
        target = self._get_user(target_id)
        old_role = target.role
        if old_role == new_role:
            raise ValidationFailure("role", "User already has this role")
        if not can_change_role(actor, target):
            self._activity.log_role_change_denied(actor.id, target.username, target.id, old_role, new_role)
            raise RoleChangeDenied()

        target.role = new_role
        try:
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Role update failed for user %s", target_id)
            raise StorageFailure("Failed to update user role", cause=e) from e
        self._activity.log_role_change(actor.id, target.username, target.id, old_role, new_role)
        return RoleChangeResponse(
            message=f"User role changed from '{old_role}' to '{new_role}'",
            userid=target.id,
            old_role=old_role,
            new_role=new_role,
        )

    def delete_user(self, actor: CurrentUser, target_id: int) -> None:
        """Remove an identity together with its sessions and jobs. Audit rows are kept."""
        self._require_manager(actor, EventKind.USER_DELETE, f"deletion of user ID {target_id}")
        if target_id == actor.id:
            raise ValidationFailure("userid", "You cannot delete your own account")
        target = self._get_user(target_id)
        if target.is_root:
            self._activity.log_access_denied(
                actor.id, EventKind.USER_DELETE, f"deletion of root user '{target.username}' (ID: {target.id})"
            )
            raise AuthorizationFailure("Cannot delete the Root User account")

        username = target.username
        try:
            self._db.execute(delete(AuthSession).where(AuthSession.user_id == target_id))
            self._db.execute(delete(Job).where(Job.user_id == target_id))
            self._db.delete(target)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Failed to delete user %s", target_id)
            raise StorageFailure("Failed to delete user", cause=e) from e
        self._activity.log_user_delete(actor.id, username, target_id)

    def list_users_with_integrity(self, viewer: CurrentUser) -> list[UserListItem]:
        """All identities, newest first, each with a live profile tag check."""
        self._require_manager(viewer, EventKind.DATA_TRANSFER, "USER_DATA list")
        try:
            users = self._db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
        except SQLAlchemyError as e:
            logger.exception("User listing failed")
            raise StorageFailure(cause=e) from e

        items: list[UserListItem] = []
        for user in users:
            if not user.data_hmac:
                verified, status = False, "not_available"
            else:
                verified = self._integrity.verify_user(user.username, user.email, user.name, user.data_hmac)
                status = "verified" if verified else "failed"
                if not verified:
                    self._activity.log_hmac_verification(
                        viewer.id,
                        False,
                        f"User data integrity check failed for user '{user.username}' (ID: {user.id})",
                    )
            items.append(
                UserListItem(
                    userid=user.id,
                    username=user.username,
                    email=user.email,
                    name=user.name,
                    role=user.role,
                    is_root=bool(user.is_root),
                    hmac_verified=verified,
                    hmac_status=status,
                    created_at=user.created_at,
                )
            )
        return items

    def _require_manager(self, actor: CurrentUser, kind: EventKind, action: str) -> None:
        if not capabilities(actor.role).manage_identities:
            self._activity.log_access_denied(actor.id, kind, action)
            raise AuthorizationFailure("Forbidden: Admin access required")

    def _get_user(self, user_id: int) -> User:
        try:
            user = self._db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.exception("User lookup failed")
            raise StorageFailure(cause=e) from e
        if user is None:
            raise NotFound("User not found")
        return user

    def _create(
        self,
        username: object,
        password: object,
        name: object,
        email: object,
        role: str,
        is_root: bool,
    ) -> User:
        username = validate_username(username)
        password = validate_password(password)
        name = validate_name(name)
        if email is None or (isinstance(email, str) and not email.strip()):
            email = f"{username}@{self._default_email_domain}"
        email = validate_email(email)

        try:
            taken = self._db.query(User.id).filter(User.username == username).first()
        except SQLAlchemyError as e:
            logger.exception("Username lookup failed")
            raise StorageFailure(cause=e) from e
        if taken is not None:
            raise DuplicateIdentity(f"Username '{username}' is already taken")

        user = User(
            username=username,
            password_hash=hash_password(password, rounds=self._bcrypt_rounds),
            email=email,
            name=name,
            role=role,
            is_root=is_root,
            data_hmac=self._integrity.tag_user(username, email, name),
        )
        try:
            self._db.add(user)
            self._db.commit()
        except IntegrityError as e:
            self._db.rollback()
            raise DuplicateIdentity(f"Username '{username}' is already taken") from e
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("User insert failed")
            raise StorageFailure("Registration failed", cause=e) from e
        return user
