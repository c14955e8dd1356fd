"""Input validation for identities and jobs. Rejects before anything reaches crypto or storage."""

import re

from portal.core.errors import ValidationFailure

USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 10
PASSWORD_MAX_LEN = 255
JOB_NAME_MAX_LEN = 255
OPN_NUMBER_MAX_LEN = 1000
CLEAR_TEXT_MAX_LEN = 1000
EMAIL_MAX_LEN = 100
NAME_MAX_LEN = 100

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
# Characters used for markup/attribute injection in the portal's pages.
JOB_NAME_FORBIDDEN = re.compile(r"[<>\"']")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _require_str(value: object, field: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailure(field, f"{label} is required")
    return value.strip()


def validate_username(value: object) -> str:
    username = _require_str(value, "username", "Username")
    if len(username) < USERNAME_MIN_LEN:
        raise ValidationFailure("username", f"Username must be at least {USERNAME_MIN_LEN} characters")
    if len(username) > USERNAME_MAX_LEN:
        raise ValidationFailure("username", f"Username must be no more than {USERNAME_MAX_LEN} characters")
    if not USERNAME_PATTERN.match(username):
        raise ValidationFailure("username", "Username can only contain letters, numbers, and underscores")
    return username


def validate_password(value: object) -> str:
    """Passwords are not stripped: surrounding whitespace is part of the secret."""
    if not isinstance(value, str) or not value:
        raise ValidationFailure("password", "Password is required")
    if len(value) < PASSWORD_MIN_LEN:
        raise ValidationFailure("password", f"Password must be at least {PASSWORD_MIN_LEN} characters")
    if len(value) > PASSWORD_MAX_LEN:
        raise ValidationFailure("password", "Password is too long")
    return value


def validate_job_name(value: object) -> str:
    job_name = _require_str(value, "job_name", "Job name")
    if len(job_name) > JOB_NAME_MAX_LEN:
        raise ValidationFailure("job_name", f"Job name must be no more than {JOB_NAME_MAX_LEN} characters")
    if JOB_NAME_FORBIDDEN.search(job_name):
        raise ValidationFailure("job_name", "Job name contains invalid characters")
    return job_name


def validate_opn_number(value: object) -> str:
    opn_number = _require_str(value, "opn_number", "OPN number")
    if len(opn_number) > OPN_NUMBER_MAX_LEN:
        raise ValidationFailure(
            "opn_number", f"OPN number is too long (max {OPN_NUMBER_MAX_LEN} characters)"
        )
    return opn_number


def validate_clear_text(value: object) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationFailure("clear_text_data", "Description must be text")
    text = value.strip()
    if len(text) > CLEAR_TEXT_MAX_LEN:
        raise ValidationFailure(
            "clear_text_data", f"Description is too long (max {CLEAR_TEXT_MAX_LEN} characters)"
        )
    return text


def validate_email(value: object) -> str:
    email = _require_str(value, "email", "Email")
    if len(email) > EMAIL_MAX_LEN:
        raise ValidationFailure("email", "Email is too long")
    if not EMAIL_PATTERN.match(email):
        raise ValidationFailure("email", "Invalid email format")
    return email


def validate_name(value: object) -> str:
    name = _require_str(value, "name", "Name")
    if len(name) > NAME_MAX_LEN:
        raise ValidationFailure("name", f"Name must be no more than {NAME_MAX_LEN} characters")
    return name
