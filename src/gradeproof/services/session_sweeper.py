"""Background purge of expired client sessions and elapsed IP blocks."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from gradeproof.core.settings import settings
from gradeproof.services.access_tokens import AccessTokenService, get_access_token_service
from gradeproof.services.rate_limit import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Periodically sweeps the in-memory token and rate-limit stores.

    The loop is an explicit asyncio task owned by the application: `start`
    launches it on startup and `stop` wakes it immediately and waits for it to
    finish on shutdown.
    """

    def __init__(
        self,
        token_service: AccessTokenService | None = None,
        rate_limiter: RateLimiter | None = None,
        *,
        interval_seconds: float | None = None,
    ) -> None:
        self.token_service = token_service or get_access_token_service()
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.interval_seconds = max(
            0.01,
            float(interval_seconds or settings.session_sweep_interval_seconds),
        )
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""

        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    def sweep_once(self) -> tuple[int, int]:
        """Run a single sweep; return (sessions removed, blocks released)."""
        return self.token_service.sweep_expired(), self.rate_limiter.sweep_expired()

    async def _run(self) -> None:
        while not self._stopping.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            if self._stopping.is_set():
                break
            try:
                self.sweep_once()
            except (ValueError, TypeError, AttributeError) as e:
                logger.error("SessionSweeper failed to sweep stores: %s", e, exc_info=True)
