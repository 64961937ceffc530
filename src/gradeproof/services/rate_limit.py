"""Per-IP attempt counting with a time-boxed lockout."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from gradeproof.core.settings import settings
from gradeproof.db.time import from_epoch
from gradeproof.services.session_store import InMemoryStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRecord:
    """Failed attempts recorded for a single client address."""

    attempts: int = 0
    last_attempt: float = 0.0
    blocked_until: float | None = None

    def block_elapsed(self, now: float) -> bool:
        return self.blocked_until is not None and now >= self.blocked_until


@dataclass(frozen=True)
class RateLimitStatus:
    """Answer to "may this address try again?"."""

    allowed: bool
    attempts: int
    blocked: bool = False
    minutes_left: int | None = None
    remaining: int | None = None

    @property
    def message(self) -> str | None:
        if not self.blocked or self.minutes_left is None:
            return None
        plural = "s" if self.minutes_left > 1 else ""
        return f"Too many attempts. Try again in {self.minutes_left} minute{plural}."


class RateLimiter:
    """Track failed verification attempts per client IP.

    Granularity is the address, not the email, so the limiter cannot be used
    to find out which emails exist.
    """

    def __init__(
        self,
        store: SessionStore[str, RateLimitRecord] | None = None,
        *,
        max_attempts: int | None = None,
        block_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store: SessionStore[str, RateLimitRecord] = store or InMemoryStore()
        self.max_attempts = int(max_attempts or settings.client_max_attempts)
        self.block_seconds = int(block_seconds or settings.client_block_seconds)
        self._clock = clock

    def check(self, ip: str) -> RateLimitStatus:
        """Return whether `ip` may attempt another verification."""
        now = self._clock()

        def _drop_elapsed(record: RateLimitRecord | None) -> RateLimitRecord | None:
            if record is not None and record.block_elapsed(now):
                return None
            return record

        record = self._store.update(ip, _drop_elapsed)
        if record is None:
            return RateLimitStatus(allowed=True, attempts=0)

        if record.blocked_until is not None:
            minutes_left = math.ceil((record.blocked_until - now) / 60)
            return RateLimitStatus(
                allowed=False,
                attempts=record.attempts,
                blocked=True,
                minutes_left=minutes_left,
                remaining=0,
            )

        return RateLimitStatus(
            allowed=record.attempts < self.max_attempts,
            attempts=record.attempts,
            remaining=max(0, self.max_attempts - record.attempts),
        )

    def record_attempt(self, ip: str, success: bool = False) -> RateLimitRecord | None:
        """Register the outcome of an attempt from `ip`.

        A success wipes the record entirely. A failure increments the counter
        and starts the lockout once the threshold is reached.

        Returns:
            The stored record, or None after a success.
        """
        if success:
            self._store.delete(ip)
            return None

        now = self._clock()

        def _increment(record: RateLimitRecord | None) -> RateLimitRecord:
            current = record or RateLimitRecord()
            updated = replace(current, attempts=current.attempts + 1, last_attempt=now)
            if updated.attempts >= self.max_attempts:
                updated = replace(updated, blocked_until=now + self.block_seconds)
            return updated

        record = self._store.update(ip, _increment)
        if record is not None and record.blocked_until is not None:
            logger.warning(
                "Client IP blocked after repeated attempts: ip=%s attempts=%d blocked_until=%s",
                ip,
                record.attempts,
                from_epoch(record.blocked_until).isoformat(),
            )
        return record

    def sweep_expired(self) -> int:
        """Drop records whose lockout has elapsed."""
        now = self._clock()
        removed = self._store.sweep(lambda record: record.block_elapsed(now))
        if removed:
            logger.info("Released %d expired IP blocks", removed)
        return removed


class _RateLimiterSingleton:
    _instance: RateLimiter | None = None

    @classmethod
    def get_instance(cls) -> RateLimiter:
        if cls._instance is None:
            cls._instance = RateLimiter()
        return cls._instance


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide client rate limiter."""
    return _RateLimiterSingleton.get_instance()
