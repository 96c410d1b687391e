"""
Tests for the admin brute-force limiter.

Time is simulated with FrozenClock; expiry is decided by comparing stored
timestamps with the clock, so advancing the clock is all it takes.
"""

import logging

import pytest

from golinks.core.clock import ensure_utc
from golinks.services.rate_limiter import RateLimiter

IP = "203.0.113.7"
OTHER_IP = "198.51.100.23"


@pytest.fixture
def limiter(session_maker, clock):
    return RateLimiter(session_maker, max_attempts=10, window_minutes=15, block_duration_minutes=60, clock=clock)


async def fail(limiter: RateLimiter, times: int, ip: str = IP) -> None:
    for _ in range(times):
        await limiter.record_failure(ip)


class TestCheck:
    """check() reads state; it only writes when materializing a block."""

    @pytest.mark.asyncio
    async def test_unknown_ip_is_clean(self, limiter):
        status = await limiter.check(IP)
        assert not status.blocked
        assert status.retry_after is None

    @pytest.mark.asyncio
    async def test_below_threshold_is_not_blocked(self, limiter, db):
        await fail(limiter, 9)

        assert not (await limiter.check(IP)).blocked
        record = await db.rate_limit(IP)
        assert record.failed_attempts == 9
        assert record.blocked_until is None

    @pytest.mark.asyncio
    async def test_block_is_written_by_check_not_by_record_failure(self, limiter, db, clock):
        """The failure reaching max_attempts is recorded; the block appears on the next check."""
        await fail(limiter, 10)
        record = await db.rate_limit(IP)
        assert record.failed_attempts == 10
        assert record.blocked_until is None

        status = await limiter.check(IP)

        assert status.blocked
        assert status.retry_after == 3600
        assert "10 failed attempts within 15 minutes" in status.message
        record = await db.rate_limit(IP)
        assert (ensure_utc(record.blocked_until) - clock()).total_seconds() == 3600

    @pytest.mark.asyncio
    async def test_blocked_reports_remaining_time(self, limiter, clock):
        await fail(limiter, 10)
        await limiter.check(IP)

        clock.advance(minutes=30)
        status = await limiter.check(IP)

        assert status.blocked
        assert status.retry_after == 1800
        assert "Blocked for 30 more minute(s)" in status.message

    @pytest.mark.asyncio
    async def test_block_expires_after_block_duration(self, limiter, clock):
        await fail(limiter, 10)
        assert (await limiter.check(IP)).blocked

        clock.advance(minutes=59, seconds=59)
        assert (await limiter.check(IP)).blocked

        clock.advance(seconds=1)
        assert not (await limiter.check(IP)).blocked

    @pytest.mark.asyncio
    async def test_expired_window_is_not_blocked_and_not_rewritten(self, limiter, clock, db):
        await fail(limiter, 10)
        clock.advance(minutes=16)

        assert not (await limiter.check(IP)).blocked
        record = await db.rate_limit(IP)
        assert record.failed_attempts == 10
        assert record.blocked_until is None

    @pytest.mark.asyncio
    async def test_other_ips_are_independent(self, limiter):
        await fail(limiter, 10)

        assert (await limiter.check(IP)).blocked
        assert not (await limiter.check(OTHER_IP)).blocked

    @pytest.mark.asyncio
    async def test_store_failure_fails_open(self, broken_session_maker, clock, caplog):
        limiter = RateLimiter(broken_session_maker, clock=clock)

        with caplog.at_level(logging.ERROR):
            status = await limiter.check(IP)

        assert not status.blocked
        assert "[RATE_LIMIT] Rate limit check failed" in caplog.text


class TestRecordFailure:
    """record_failure() creates, increments, or restarts the window."""

    @pytest.mark.asyncio
    async def test_first_failure_creates_record(self, limiter, db, clock):
        await limiter.record_failure(IP)

        record = await db.rate_limit(IP)
        assert record.failed_attempts == 1
        assert ensure_utc(record.first_attempt_at) == clock()
        assert ensure_utc(record.last_attempt_at) == clock()
        assert record.blocked_until is None

    @pytest.mark.asyncio
    async def test_failures_within_window_increment(self, limiter, db, clock):
        await limiter.record_failure(IP)
        clock.advance(minutes=5)
        await limiter.record_failure(IP)

        record = await db.rate_limit(IP)
        assert record.failed_attempts == 2
        assert ensure_utc(record.last_attempt_at) == clock()
        assert (clock() - ensure_utc(record.first_attempt_at)).total_seconds() == 300

    @pytest.mark.asyncio
    async def test_window_boundary_is_inclusive(self, limiter, db, clock):
        await limiter.record_failure(IP)
        clock.advance(minutes=15)
        await limiter.record_failure(IP)

        assert (await db.rate_limit(IP)).failed_attempts == 2

    @pytest.mark.asyncio
    async def test_failure_after_window_restarts_count(self, limiter, db, clock):
        await fail(limiter, 5)
        clock.advance(minutes=15, seconds=1)

        await limiter.record_failure(IP)

        record = await db.rate_limit(IP)
        assert record.failed_attempts == 1
        assert ensure_utc(record.first_attempt_at) == clock()

    @pytest.mark.asyncio
    async def test_failure_after_block_expiry_clears_block(self, limiter, db, clock):
        await fail(limiter, 10)
        await limiter.check(IP)
        clock.advance(minutes=61)

        await limiter.record_failure(IP)

        record = await db.rate_limit(IP)
        assert record.failed_attempts == 1
        assert record.blocked_until is None
        assert not (await limiter.check(IP)).blocked

    @pytest.mark.asyncio
    async def test_threshold_logged(self, limiter, caplog):
        with caplog.at_level(logging.WARNING):
            await fail(limiter, 10)

        assert "[AUTH] Failed attempt 1/10 from IP 203.0.113.7" in caplog.text
        assert "[AUTH] Failed attempt 10/10 from IP 203.0.113.7 - RATE LIMIT TRIGGERED" in caplog.text

    @pytest.mark.asyncio
    async def test_store_failure_is_logged_not_raised(self, broken_session_maker, clock, caplog):
        limiter = RateLimiter(broken_session_maker, clock=clock)

        with caplog.at_level(logging.ERROR):
            await limiter.record_failure(IP)

        assert "[RATE_LIMIT] Failed to record attempt" in caplog.text


class TestClear:
    """clear() removes the record so the next failure starts fresh."""

    @pytest.mark.asyncio
    async def test_clear_deletes_record(self, limiter, db):
        await fail(limiter, 7)

        await limiter.clear(IP)

        assert await db.rate_limit(IP) is None

    @pytest.mark.asyncio
    async def test_failure_after_clear_starts_new_window(self, limiter, db, clock):
        await fail(limiter, 7)
        await limiter.clear(IP)
        clock.advance(minutes=1)

        await limiter.record_failure(IP)

        record = await db.rate_limit(IP)
        assert record.failed_attempts == 1
        assert ensure_utc(record.first_attempt_at) == clock()

    @pytest.mark.asyncio
    async def test_clear_unknown_ip_is_noop(self, limiter):
        await limiter.clear(IP)

    @pytest.mark.asyncio
    async def test_store_failure_is_logged_not_raised(self, broken_session_maker, clock, caplog):
        limiter = RateLimiter(broken_session_maker, clock=clock)

        with caplog.at_level(logging.ERROR):
            await limiter.clear(IP)

        assert "[RATE_LIMIT] Failed to clear rate limit" in caplog.text
