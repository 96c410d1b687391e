"""
Public Endpoints

- GET /health                  unconditional "OK"
- GET /analytics/{short_code}  per-link analytics, admin key required
- GET /{short_code}            redirect (301), "/" goes to the default destination

These endpoints answer in plain text on errors. The health check has its
own router so the request throttle does not apply to it. The redirect
route is a catch-all and must be registered after every other router.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from golinks.api.dependencies import get_auth_gate, get_redirect_resolver, get_request_metadata
from golinks.core.exceptions import (
    AuthenticationFailedError,
    LinkNotFoundError,
    RateLimitExceededError,
    ServiceError,
)
from golinks.core.rate_limit import get_client_ip
from golinks.db.session import get_session
from golinks.services.admin_auth import AdminAuthGate
from golinks.services.analytics_recorder import RequestMetadata
from golinks.services.analytics_service import AnalyticsService
from golinks.services.redirect_resolver import RedirectResolver

logger = logging.getLogger(__name__)

health_router = APIRouter()
router = APIRouter()

NOT_FOUND_TEXT = (
    "Short link not found: /{short_code}\n\n"
    "This short link does not exist. Please check the URL and try again."
)
SERVICE_ERROR_TEXT = (
    "Service Error\n\n"
    "An error occurred while processing your request. Please try again later.\n\n"
    "Error Code: {error_code}"
)


@health_router.get("/health", tags=["Health"], response_class=PlainTextResponse)
async def health_check():
    """Health check; touches no other component."""
    return PlainTextResponse("OK")


@router.get(
    "/analytics/{short_code:path}",
    tags=["Analytics"],
    summary="Per-link analytics",
    description="Summary of recent clicks on one link. Requires ?key=ADMIN_KEY.",
)
async def link_analytics(
    short_code: str,
    request: Request,
    key: Optional[str] = Query(default=None),
    gate: AdminAuthGate = Depends(get_auth_gate),
    session: AsyncSession = Depends(get_session),
):
    """
    Serve the analytics summary for a short code.

    Unlike the admin API, a missing key (or a missing short code) is
    counted as a failed attempt here.
    """
    short_code = short_code.split("/")[0]
    client_ip = get_client_ip(request)

    try:
        await gate.verify(client_ip, key if short_code else None, missing_key_is_failure=True)
    except RateLimitExceededError as e:
        return PlainTextResponse(
            f"Too many failed attempts. Please try again in {e.retry_after_minutes} minutes.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers={"Retry-After": str(e.retry_after)},
        )
    except AuthenticationFailedError:
        return PlainTextResponse("Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        return await AnalyticsService(session).link_summary(short_code)
    except LinkNotFoundError:
        return PlainTextResponse("Link not found", status_code=status.HTTP_404_NOT_FOUND)
    except ServiceError:
        return PlainTextResponse(
            "Error loading analytics",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


@router.get(
    "/{short_code:path}",
    status_code=status.HTTP_301_MOVED_PERMANENTLY,
    tags=["Redirect"],
    summary="Redirect to destination URL",
    description="Resolves a short code, records the click and redirects permanently",
)
async def redirect_to_destination(
    short_code: str,
    request: Request,
    resolver: RedirectResolver = Depends(get_redirect_resolver),
    metadata: RequestMetadata = Depends(get_request_metadata),
):
    """
    Redirect to the destination for a short code.

    Returns:
        RedirectResponse (HTTP 301), or plain-text 404 / 500
    """
    query_string = request.url.query

    try:
        result = await resolver.resolve(short_code, query_string, metadata)
    except LinkNotFoundError:
        return PlainTextResponse(
            NOT_FOUND_TEXT.format(short_code=short_code),
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except ServiceError as e:
        logger.error(
            f"[REDIRECT] Error processing redirect for {short_code}: {e.original_error}",
            exc_info=e.original_error,
        )
        return PlainTextResponse(
            SERVICE_ERROR_TEXT.format(error_code=e.error_code),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return RedirectResponse(url=result.location, status_code=result.status_code)
