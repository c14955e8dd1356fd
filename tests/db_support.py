"""Shared test doubles: in-memory SQLite sessions, fixed-key crypto, a recording audit sink."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portal.core.security import hash_password
from portal.models import Base, User
from portal.schemas.auth import CurrentUser
from portal.services.audit import ActivityLogger, AuditEvent, RequestSource
from portal.services.context import RequestContext
from portal.services.encryption import FieldCipher
from portal.services.integrity import IntegrityService
from portal.services.sessions import to_current_user

TEST_AES_KEY = bytes(range(32))
TEST_HMAC_SECRET = b"0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_PASSWORD = "correct-horse-battery"
# bcrypt's minimum cost keeps the suite fast.
TEST_BCRYPT_ROUNDS = 4


def make_db() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def make_cipher(iv_source: Callable[[int], bytes] | None = None) -> FieldCipher:
    if iv_source is None:
        return FieldCipher(TEST_AES_KEY)
    return FieldCipher(TEST_AES_KEY, iv_source=iv_source)


def make_integrity() -> IntegrityService:
    return IntegrityService(TEST_HMAC_SECRET)


def add_user(
    db: Session,
    username: str,
    role: str = "user",
    is_root: bool = False,
    password: str = TEST_PASSWORD,
    integrity: IntegrityService | None = None,
) -> User:
    email = f"{username}@example.com"
    name = username.title()
    user = User(
        username=username,
        password_hash=hash_password(password, rounds=TEST_BCRYPT_ROUNDS),
        email=email,
        name=name,
        role=role,
        is_root=is_root,
        data_hmac=(integrity or make_integrity()).tag_user(username, email, name),
    )
    db.add(user)
    db.commit()
    return user


def context_for(user: User | CurrentUser, session_id: str = "test-session") -> RequestContext:
    current = user if isinstance(user, CurrentUser) else to_current_user(user)
    return RequestContext(
        user=current,
        session_id=session_id,
        source=RequestSource(ip_address="127.0.0.1", user_agent="unittest"),
    )


class RecordingSink:
    """AuditSink that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


def recording_logger() -> tuple[ActivityLogger, RecordingSink]:
    sink = RecordingSink()
    return ActivityLogger(sink, RequestSource(ip_address="127.0.0.1", user_agent="unittest")), sink


class FakeClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)
