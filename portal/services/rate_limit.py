"""Fixed-window attempt limiter keyed by (source_key, action), stored in the database.

The window is anchored at the first attempt and does not slide: a burst straddling
a window boundary can reach 2 x max_attempts. The limiter is a coarse defence, so
concurrent writers racing on a reset are allowed to overwrite each other.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.clock import Clock, ensure_utc, utcnow
from portal.core.errors import RateLimitExceeded, StorageFailure
from portal.models import RateLimitCounter

logger = logging.getLogger(__name__)

ACTION_LOGIN = "login"
ACTION_REGISTER = "register"


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: datetime


class RateLimiter:
    """
    check_limit counts one attempt and says whether it may proceed.

    fail_open decides what happens when the counter store cannot be reached:
    True allows the attempt (availability first), False denies it.
    """

    def __init__(self, db: Session, fail_open: bool = True, clock: Clock = utcnow) -> None:
        self._db = db
        self._fail_open = fail_open
        self._clock = clock

    def check_limit(self, source_key: str, action: str, max_attempts: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        window = timedelta(seconds=window_seconds)
        try:
            return self._count_attempt(source_key, action, max_attempts, window, now)
        except (SQLAlchemyError, StorageFailure):
            self._safe_rollback()
            logger.exception("Rate limit store unavailable (action=%s); failing %s", action,
                             "open" if self._fail_open else "closed")
            if self._fail_open:
                return RateLimitResult(allowed=True, remaining=max_attempts, reset_at=now + window)
            return RateLimitResult(allowed=False, remaining=0, reset_at=now + window)

    def ensure_allowed(self, source_key: str, action: str, max_attempts: int, window_seconds: int) -> RateLimitResult:
        """check_limit, raising RateLimitExceeded when the attempt is refused."""
        result = self.check_limit(source_key, action, max_attempts, window_seconds)
        if not result.allowed:
            logger.warning("Rate limit exceeded: source=%s action=%s", source_key, action)
            raise RateLimitExceeded(result.reset_at)
        return result

    def reset_limit(self, source_key: str, action: str) -> None:
        """Clear the counter early, e.g. after a successful login."""
        try:
            self._db.execute(
                delete(RateLimitCounter).where(
                    RateLimitCounter.source_key == source_key,
                    RateLimitCounter.action == action,
                )
            )
            self._db.commit()
        except SQLAlchemyError:
            self._safe_rollback()
            logger.exception("Rate limit reset failed (action=%s)", action)

    def _count_attempt(
        self,
        source_key: str,
        action: str,
        max_attempts: int,
        window: timedelta,
        now: datetime,
        create: bool = True,
    ) -> RateLimitResult:
        key = (RateLimitCounter.source_key == source_key, RateLimitCounter.action == action)
        cutoff = now - window

        # Single-statement increment inside a live, non-exhausted window.
        bumped = self._db.execute(
            update(RateLimitCounter)
            .where(*key, RateLimitCounter.window_start > cutoff, RateLimitCounter.attempts < max_attempts)
            .values(attempts=RateLimitCounter.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 1:
            attempts, window_start = self._db.execute(
                select(RateLimitCounter.attempts, RateLimitCounter.window_start).where(*key)
            ).one()
            self._db.commit()
            return RateLimitResult(
                allowed=True,
                remaining=max(0, max_attempts - attempts),
                reset_at=ensure_utc(window_start) + window,
            )

        row = self._db.execute(
            select(RateLimitCounter.attempts, RateLimitCounter.window_start).where(*key)
        ).first()
        if row is None:
            if not create:
                raise StorageFailure("Rate limit counter vanished during creation race")
            return self._create_counter(source_key, action, max_attempts, window, now)

        window_start = ensure_utc(row.window_start)
        if now - window_start >= window:
            self._db.execute(
                update(RateLimitCounter)
                .where(*key)
                .values(attempts=1, window_start=now)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
            return RateLimitResult(allowed=True, remaining=max_attempts - 1, reset_at=now + window)

        self._db.commit()
        return RateLimitResult(allowed=False, remaining=0, reset_at=window_start + window)

    def _create_counter(
        self,
        source_key: str,
        action: str,
        max_attempts: int,
        window: timedelta,
        now: datetime,
    ) -> RateLimitResult:
        try:
            self._db.add(
                RateLimitCounter(source_key=source_key, action=action, attempts=1, window_start=now)
            )
            self._db.commit()
        except IntegrityError:
            # A concurrent request created the counter first; count against it instead.
            self._db.rollback()
            return self._count_attempt(source_key, action, max_attempts, window, now, create=False)
        return RateLimitResult(allowed=True, remaining=max_attempts - 1, reset_at=now + window)

    def _safe_rollback(self) -> None:
        try:
            self._db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed after rate limit store error")
