"""
FastAPI Dependencies

Builds the per-request service objects from what create_app() stored on
app.state (settings, session factory, clock). Nothing here is a global.
"""

from typing import Optional

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from golinks.core.clock import Clock
from golinks.core.rate_limit import get_client_ip
from golinks.core.setting import Settings
from golinks.services.admin_auth import AdminAuthGate
from golinks.services.analytics_recorder import AnalyticsRecorder, RequestMetadata
from golinks.services.rate_limiter import RateLimiter
from golinks.services.redirect_resolver import RedirectResolver


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_session_maker(request: Request) -> async_sessionmaker:
    return request.app.state.session_maker


def get_rate_limiter(
    settings: Settings = Depends(get_settings),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    clock: Clock = Depends(get_clock),
) -> RateLimiter:
    return RateLimiter(
        session_maker,
        max_attempts=settings.RATE_LIMIT_MAX_ATTEMPTS,
        window_minutes=settings.RATE_LIMIT_WINDOW_MINUTES,
        block_duration_minutes=settings.RATE_LIMIT_BLOCK_DURATION_MINUTES,
        clock=clock,
    )


def get_auth_gate(
    settings: Settings = Depends(get_settings),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> AdminAuthGate:
    return AdminAuthGate(rate_limiter, settings.ADMIN_KEY)


def get_redirect_resolver(
    settings: Settings = Depends(get_settings),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    clock: Clock = Depends(get_clock),
) -> RedirectResolver:
    recorder = AnalyticsRecorder(session_maker, timezone_name=settings.DEFAULT_TIMEZONE, clock=clock)
    return RedirectResolver(session_maker, recorder, settings.DEFAULT_REDIRECT, clock=clock)


async def require_admin(
    request: Request,
    key: Optional[str] = Query(default=None, description="Admin key"),
    gate: AdminAuthGate = Depends(get_auth_gate),
) -> None:
    """
    Router-level dependency guarding every /api/admin endpoint.

    Raises RateLimitExceededError / AuthenticationFailedError, rendered as
    JSON by the application exception handler.
    """
    await gate.verify(get_client_ip(request), key)


def _header_float(request: Request, name: str) -> Optional[float]:
    value = request.headers.get(name)
    try:
        return float(value) if value else None
    except ValueError:
        return None


def _ray_colo(ray_id: Optional[str]) -> str:
    # CF-Ray looks like "8a1b2c3d4e5f6789-SJC"; the suffix is the data center
    if ray_id and "-" in ray_id:
        return ray_id.rsplit("-", 1)[1]
    return ""


def get_request_metadata(request: Request) -> RequestMetadata:
    """
    Collect click attributes from the request and the edge proxy headers.
    """
    headers = request.headers
    http_version = request.scope.get("http_version")
    return RequestMetadata(
        ip_address=get_client_ip(request),
        user_agent=headers.get("User-Agent", ""),
        referer=headers.get("Referer", ""),
        country=headers.get("CF-IPCountry", ""),
        city=headers.get("CF-IPCity", ""),
        region=headers.get("CF-Region", ""),
        region_code=headers.get("CF-Region-Code", ""),
        continent=headers.get("CF-IPContinent", ""),
        timezone=headers.get("CF-Timezone", ""),
        postal_code=headers.get("CF-Postal-Code", ""),
        latitude=_header_float(request, "CF-IPLatitude"),
        longitude=_header_float(request, "CF-IPLongitude"),
        colo=_ray_colo(headers.get("CF-Ray")),
        http_protocol=f"HTTP/{http_version}" if http_version else "",
    )
