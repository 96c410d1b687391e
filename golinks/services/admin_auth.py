"""
Admin Authentication Gate

Shared-secret check for administrative endpoints, protected by the
per-IP RateLimiter.

Sequence:
1. RateLimiter.check() -> blocked IPs are rejected before the key is compared
2. Missing key -> rejected
3. Wrong key -> failure recorded, rejected
4. Correct key -> rate-limit record cleared, request proceeds
"""

import secrets
from typing import Optional

from golinks.core.exceptions import AuthenticationFailedError, RateLimitExceededError
from golinks.services.rate_limiter import RateLimiter


class AdminAuthGate:
    """
    Verifies the admin key for one request.
    """

    def __init__(self, rate_limiter: RateLimiter, admin_key: str):
        self.rate_limiter = rate_limiter
        self.admin_key = admin_key

    def key_matches(self, key: Optional[str]) -> bool:
        # An unconfigured admin key never matches
        if not key or not self.admin_key:
            return False
        return secrets.compare_digest(key.encode(), self.admin_key.encode())

    async def verify(self, ip: str, key: Optional[str], missing_key_is_failure: bool = False) -> None:
        """
        Run the gate for a request.

        Args:
            ip: Resolved client IP
            key: Admin key supplied with the request
            missing_key_is_failure: Count an absent key as a failed attempt
                (the per-link analytics page does, the admin API does not)

        Raises:
            RateLimitExceededError: IP is blocked
            AuthenticationFailedError: key missing or wrong
        """
        status = await self.rate_limiter.check(ip)
        if status.blocked:
            raise RateLimitExceededError(status.retry_after, status.message)

        if not key:
            if missing_key_is_failure:
                await self.rate_limiter.record_failure(ip)
            raise AuthenticationFailedError(
                "Authentication required: Missing admin key",
                error_code="MISSING_ADMIN_KEY",
                hint="Add ?key=YOUR_ADMIN_KEY to the URL.",
            )

        if not self.key_matches(key):
            await self.rate_limiter.record_failure(ip)
            raise AuthenticationFailedError(
                "Authentication failed: Invalid admin key",
                error_code="INVALID_ADMIN_KEY",
                hint="Check that your admin key is correct. Keys are case-sensitive.",
            )

        await self.rate_limiter.clear(ip)
