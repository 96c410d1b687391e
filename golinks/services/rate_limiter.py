"""
Admin Authentication Rate Limiter

Per-IP brute-force protection for the admin key check, backed by the
rate_limit table.

State is derived lazily from stored timestamps on every call:
- Clean: no record, or the window expired and no block is active
- Tracking: fewer than max_attempts failures inside the window
- Blocked: blocked_until is set and still in the future

Design Decisions:
- check() fails open: if the store cannot be read the caller is not blocked
- record_failure() and clear() log storage errors and never raise
- The block is written by check(), not by record_failure(): the failure that
  reaches max_attempts is answered with 401, and the next check() blocks
- check-then-act is not locked; concurrent failures from one IP may be
  under-counted
- Each operation runs in its own short session, separate from the request's
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from golinks.core.clock import Clock, ensure_utc, utc_now
from golinks.db.models import RateLimitRecord

logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    """Outcome of RateLimiter.check()."""
    blocked: bool
    retry_after: Optional[int] = None  # seconds
    message: Optional[str] = None


NOT_BLOCKED = RateLimitStatus(blocked=False)


class RateLimiter:
    """
    Brute-force limiter for a single admin key, scoped by source IP.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        max_attempts: int = 10,
        window_minutes: int = 15,
        block_duration_minutes: int = 60,
        clock: Clock = utc_now,
    ):
        self.session_maker = session_maker
        self.max_attempts = max_attempts
        self.window = timedelta(minutes=window_minutes)
        self.block_duration = timedelta(minutes=block_duration_minutes)
        self.clock = clock

    def _window_expired(self, record: RateLimitRecord, now: datetime) -> bool:
        return now > ensure_utc(record.first_attempt_at) + self.window

    async def _get_record(self, session, ip: str) -> Optional[RateLimitRecord]:
        result = await session.execute(
            select(RateLimitRecord).where(RateLimitRecord.ip_address == ip)
        )
        return result.scalar_one_or_none()

    async def check(self, ip: str) -> RateLimitStatus:
        """
        Decide whether requests from this IP are currently blocked.

        An expired window is reported as not blocked without touching the
        row; the next failure starts a fresh window. When the failure count
        has reached max_attempts inside the window, the block is written here.

        Returns:
            RateLimitStatus; NOT_BLOCKED on any storage error
        """
        try:
            async with self.session_maker() as session:
                record = await self._get_record(session, ip)
                if record is None:
                    return NOT_BLOCKED

                now = self.clock()

                blocked_until = ensure_utc(record.blocked_until)
                if blocked_until and now < blocked_until:
                    retry_after = math.ceil((blocked_until - now).total_seconds())
                    minutes_left = math.ceil(retry_after / 60)
                    return RateLimitStatus(
                        blocked=True,
                        retry_after=retry_after,
                        message=(
                            f"Too many failed authentication attempts from IP {ip}. "
                            f"Blocked for {minutes_left} more minute(s). "
                            f"Please try again at {blocked_until.isoformat()}."
                        ),
                    )

                if self._window_expired(record, now):
                    return NOT_BLOCKED

                if record.failed_attempts >= self.max_attempts:
                    block_until = now + self.block_duration
                    await session.execute(
                        update(RateLimitRecord)
                        .where(RateLimitRecord.ip_address == ip)
                        .values(blocked_until=block_until)
                    )
                    await session.commit()
                    logger.warning(f"[AUTH] IP {ip} blocked until {block_until.isoformat()}")

                    window_minutes = int(self.window.total_seconds() // 60)
                    block_minutes = int(self.block_duration.total_seconds() // 60)
                    return RateLimitStatus(
                        blocked=True,
                        retry_after=int(self.block_duration.total_seconds()),
                        message=(
                            f"Rate limit exceeded: {record.failed_attempts} failed attempts within "
                            f"{window_minutes} minutes. IP {ip} is now blocked for {block_minutes} minutes. "
                            f"Try again at {block_until.isoformat()}."
                        ),
                    )

                return NOT_BLOCKED
        except Exception as e:
            logger.error(f"[RATE_LIMIT] Rate limit check failed for IP {ip}: {e}", exc_info=True)
            return NOT_BLOCKED

    async def record_failure(self, ip: str) -> None:
        """
        Count one failed authentication for this IP.

        Creates the row on the first failure, restarts the window (and clears
        any stale block) when the previous window has expired, and otherwise
        increments the counter in place.
        """
        try:
            async with self.session_maker() as session:
                now = self.clock()
                record = await self._get_record(session, ip)

                if record is None:
                    session.add(RateLimitRecord(
                        ip_address=ip,
                        failed_attempts=1,
                        first_attempt_at=now,
                        last_attempt_at=now,
                    ))
                    await session.commit()
                    logger.warning(f"[AUTH] Failed attempt 1/{self.max_attempts} from IP {ip}")
                    return

                if self._window_expired(record, now):
                    await session.execute(
                        update(RateLimitRecord)
                        .where(RateLimitRecord.ip_address == ip)
                        .values(
                            failed_attempts=1,
                            first_attempt_at=now,
                            last_attempt_at=now,
                            blocked_until=None,
                        )
                    )
                    await session.commit()
                    logger.warning(f"[AUTH] Failed attempt 1/{self.max_attempts} from IP {ip} (window reset)")
                    return

                attempts = record.failed_attempts + 1
                # Database-level increment so concurrent failures are not lost
                await session.execute(
                    update(RateLimitRecord)
                    .where(RateLimitRecord.ip_address == ip)
                    .values(
                        failed_attempts=RateLimitRecord.failed_attempts + 1,
                        last_attempt_at=now,
                    )
                )
                await session.commit()
                triggered = " - RATE LIMIT TRIGGERED" if attempts >= self.max_attempts else ""
                logger.warning(f"[AUTH] Failed attempt {attempts}/{self.max_attempts} from IP {ip}{triggered}")
        except Exception as e:
            logger.error(f"[RATE_LIMIT] Failed to record attempt for IP {ip}: {e}", exc_info=True)

    async def clear(self, ip: str) -> None:
        """Delete the IP's record after a successful authentication."""
        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    delete(RateLimitRecord).where(RateLimitRecord.ip_address == ip)
                )
                await session.commit()
                if result.rowcount:
                    logger.info(f"[AUTH] Successful login from IP {ip} - rate limit cleared")
        except Exception as e:
            logger.error(f"[RATE_LIMIT] Failed to clear rate limit for IP {ip}: {e}", exc_info=True)
