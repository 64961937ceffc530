# tests/services/test_session_sweeper.py
import asyncio

import pytest

from gradeproof.services.access_tokens import AccessTokenService
from gradeproof.services.rate_limit import RateLimiter
from gradeproof.services.session_sweeper import SessionSweeper


@pytest.fixture
def sweeper(token_service: AccessTokenService, rate_limiter: RateLimiter) -> SessionSweeper:
    return SessionSweeper(token_service, rate_limiter, interval_seconds=0.01)


def test_sweep_once_purges_both_stores(sweeper, token_service, rate_limiter, clock):
    token_service.issue("PSA1", "jane.doe@example.com", "1.1.1.1")
    for _ in range(5):
        rate_limiter.record_attempt("2.2.2.2")

    assert sweeper.sweep_once() == (0, 0)

    clock.advance(3600)

    assert sweeper.sweep_once() == (1, 1)
    assert len(token_service) == 0
    assert rate_limiter.check("2.2.2.2").attempts == 0


@pytest.mark.asyncio
async def test_background_loop_sweeps_and_stops(sweeper, token_service, clock):
    token_service.issue("PSA1", "jane.doe@example.com", "1.1.1.1")
    clock.advance(3600)

    await sweeper.start()
    assert sweeper.running is True

    for _ in range(100):
        if len(token_service) == 0:
            break
        await asyncio.sleep(0.01)

    await sweeper.stop()

    assert len(token_service) == 0
    assert sweeper.running is False


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(sweeper):
    await sweeper.stop()
    assert sweeper.running is False


@pytest.mark.asyncio
async def test_start_twice_keeps_single_task(sweeper):
    await sweeper.start()
    first = sweeper._task
    await sweeper.start()

    assert sweeper._task is first

    await sweeper.stop()
