"""
FastAPI Application Entry Point

create_app() builds a fully wired application:
- Settings, database engine, session factory and clock on app.state
- Request logging and CORS middleware
- Request throttle (slowapi) on every router except the health check
- Admin API router, then the public router with the redirect catch-all
- Exception handler rendering GoLinksException as JSON

Interactive docs live under /api so that every top-level path is free
for short codes.

Run with: uvicorn golinks.main:app
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from golinks.api import admin, endpoints
from golinks.core.clock import Clock, utc_now
from golinks.core.exceptions import GoLinksException, RateLimitExceededError, ServiceError
from golinks.core.rate_limit import build_limiter, build_request_throttle
from golinks.core.setting import Settings
from golinks.db.session import create_engine_from_url, create_session_maker, create_tables
from golinks.middleware.logging import add_logging_middleware, configure_logging

logger = logging.getLogger(__name__)


async def golinks_exception_handler(request: Request, exc: GoLinksException) -> JSONResponse:
    """Render service exceptions as {error, errorCode, hint, ...} JSON."""
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after)}
    if isinstance(exc, ServiceError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.original_error}", exc_info=exc.original_error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def create_app(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; loaded from the environment when omitted
        clock: Source of "now" for rate limiting and analytics (tests pass a FrozenClock)
    """
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="go-links",
        description="Short link redirect service with click analytics",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    engine = create_engine_from_url(settings.DATABASE_URL)
    app.state.settings = settings
    app.state.clock = clock or utc_now
    app.state.engine = engine
    app.state.session_maker = create_session_maker(engine)

    limiter = build_limiter(settings)
    app.state.limiter = limiter
    throttle = Depends(build_request_throttle(limiter, settings.REQUEST_THROTTLE_LIMIT))
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(GoLinksException, golinks_exception_handler)

    add_logging_middleware(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # The public router ends with the /{short_code} catch-all and goes last
    app.include_router(endpoints.health_router)
    app.include_router(admin.router, dependencies=[throttle])
    app.include_router(endpoints.router, dependencies=[throttle])

    @app.on_event("startup")
    async def startup_event():
        if settings.DATABASE_AUTO_CREATE:
            await create_tables(engine)
            logger.info("Database tables created")

    @app.on_event("shutdown")
    async def shutdown_event():
        await engine.dispose()

    return app


app = create_app()
