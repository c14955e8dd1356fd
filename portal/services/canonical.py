"""Canonical serialization: the exact string an integrity tag is computed over.

Field order and field set are part of the tag protocol. Generation and verification
must pass the same tuple in the same order.
"""

FIELD_SEPARATOR = "|"
_ESCAPE = "\\"


def _escape(field: str) -> str:
    return field.replace(_ESCAPE, _ESCAPE + _ESCAPE).replace(FIELD_SEPARATOR, _ESCAPE + FIELD_SEPARATOR)


def canonicalize(*fields: str | None) -> str:
    """
    Join fields with '|' in the given order.

    None becomes ''. A backslash or '|' inside a field is backslash-escaped so two
    different tuples can never produce the same string.
    """
    return FIELD_SEPARATOR.join(_escape(f if f is not None else "") for f in fields)


def canonical_job(job_name: str, opn_number: str) -> str:
    return canonicalize(job_name, opn_number)


def canonical_user(username: str, email: str, name: str) -> str:
    return canonicalize(username, email, name)
