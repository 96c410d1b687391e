"""
Client IP Resolution and Request Throttle

Every per-IP decision (the admin brute-force limiter, the slowapi request
throttle, request logs, click analytics) uses get_client_ip().

Design Decisions:
- The socket peer is the client unless it is one of TRUSTED_PROXIES; only
  then are CF-Connecting-IP / X-Forwarded-For honored
- A forwarded value that is not a valid IP address is ignored
- One slowapi Limiter per application instance, built from Settings, applied
  as a router dependency so the health check can stay unthrottled
- In-memory storage: the throttle is per process, not shared across instances
"""

import ipaddress
from typing import Callable, Optional, Sequence

from fastapi import Request
from slowapi import Limiter

from golinks.core.setting import Settings

FORWARDED_IP_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For")


def _parse_ip(value: str) -> Optional[str]:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def is_trusted_proxy(peer: str, trusted_proxies: Sequence[str]) -> bool:
    """True when the peer address falls inside one of the trusted IPs/networks."""
    peer_ip = _parse_ip(peer)
    if peer_ip is None:
        return False
    address = ipaddress.ip_address(peer_ip)
    return any(address in ipaddress.ip_network(entry, strict=False) for entry in trusted_proxies)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Behind a trusted proxy the edge header (CF-Connecting-IP) wins, then
    the first entry of X-Forwarded-For. Anyone else is identified by the
    socket peer, whatever headers they send.

    Args:
        request: FastAPI Request object

    Returns:
        IP address as string
    """
    peer = request.client.host if request.client else "unknown"
    settings: Settings = request.app.state.settings
    if not is_trusted_proxy(peer, settings.TRUSTED_PROXIES):
        return peer

    for header in FORWARDED_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            # X-Forwarded-For can contain multiple IPs, take the first one
            forwarded = _parse_ip(value.split(",")[0])
            if forwarded:
                return forwarded

    return peer


def build_limiter(settings: Settings) -> Limiter:
    """Create the slowapi limiter for one application instance."""
    return Limiter(key_func=get_client_ip, enabled=settings.REQUEST_THROTTLE_ENABLED)


def build_request_throttle(limiter: Limiter, limit: str) -> Callable:
    """
    Create the dependency that counts a request against the caller's budget.

    All throttled routes share one bucket per client IP. Exceeding it raises
    slowapi's RateLimitExceeded, answered with 429 by the app's handler.
    """

    @limiter.limit(limit)
    async def request_throttle(request: Request) -> None:
        return None

    return request_throttle
