"""
Create an identity from the command line (e.g. the root administrator). Run from project root:
  python -m portal.scripts.create_user USERNAME PASSWORD [role] [--root] [--name NAME] [--email EMAIL]
Example:
  python -m portal.scripts.create_user root_admin 'a-long-secure-password' --root --name "Root Admin"
"""
import argparse
import sys

from portal.core.config import get_settings
from portal.core.database import SessionLocal
from portal.core.errors import PortalError
from portal.services.audit import ActivityLogger, DatabaseAuditSink, RequestSource
from portal.services.identities import IdentityService
from portal.services.integrity import IntegrityService
from portal.services.rbac import VALID_ROLES


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a portal identity.")
    parser.add_argument("username", help="Username (3-50 chars: letters, digits, underscore)")
    parser.add_argument("password", help="Password (10-255 chars)")
    parser.add_argument("role", nargs="?", default="user", choices=VALID_ROLES)
    parser.add_argument("--root", action="store_true", help="Provision the single root identity (role admin)")
    parser.add_argument("--name", default=None, help="Display name (defaults to the username)")
    parser.add_argument("--email", default=None, help="Email (defaults to USERNAME@DEFAULT_EMAIL_DOMAIN)")
    args = parser.parse_args(argv)

    settings = get_settings()
    db = SessionLocal()
    try:
        identities = IdentityService(
            db,
            IntegrityService.from_settings(settings),
            ActivityLogger(
                DatabaseAuditSink(db),
                source=RequestSource(user_agent="create_user"),
                enabled=settings.ACTIVITY_LOGGING_ENABLED,
            ),
            default_email_domain=settings.DEFAULT_EMAIL_DOMAIN,
        )
        name = args.name or args.username
        try:
            if args.root:
                user = identities.provision_root(args.username, args.password, name, args.email)
            else:
                user = identities.create_user(args.username, args.password, name, args.email, role=args.role)
        except PortalError as e:
            print(e.message, file=sys.stderr)
            return 1
        suffix = " (root)" if user.is_root else ""
        print(f"Created user '{user.username}' with role '{user.role}'{suffix}.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
