"""
Redirect Resolver

Maps a short code to its destination and accounts for the click.

Flow:
1. Empty short code -> redirect to the configured default destination
2. Look the link up by exact short_code; unknown -> LinkNotFoundError
3. Record the analytics event and bump click_count/last_clicked
   concurrently, on separate sessions, without a shared transaction
4. Append the request's query string unless the destination has its own

Either effect of step 3 may fail on its own; failures are logged and the
redirect still succeeds. A failure of the lookup in step 2 is a ServiceError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from golinks.core.clock import Clock, utc_now
from golinks.core.exceptions import LinkNotFoundError, ServiceError
from golinks.db.models import Link
from golinks.services.analytics_recorder import AnalyticsRecorder, RequestMetadata

logger = logging.getLogger(__name__)

PERMANENT_REDIRECT = 301


@dataclass
class RedirectResult:
    """Where to send the client."""
    location: str
    status_code: int = PERMANENT_REDIRECT


def build_destination(destination_url: str, query_string: str) -> str:
    """
    Compose the final redirect target.

    A destination that already carries a query component is used unmodified;
    otherwise the original request's query string is appended verbatim.
    """
    if "?" in destination_url or not query_string:
        return destination_url
    return f"{destination_url}?{query_string.lstrip('?')}"


class RedirectResolver:
    """
    Resolves short codes for the public redirect endpoint.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        recorder: AnalyticsRecorder,
        default_redirect: str,
        clock: Clock = utc_now,
    ):
        self.session_maker = session_maker
        self.recorder = recorder
        self.default_redirect = default_redirect
        self.clock = clock

    async def get_link(self, short_code: str) -> Optional[Link]:
        """
        Look a link up by exact (case-sensitive) short code.

        Raises:
            ServiceError: If the store cannot be read
        """
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(Link).where(Link.short_code == short_code))
                return result.scalar_one_or_none()
        except Exception as e:
            raise ServiceError(
                f"Failed to look up short code '{short_code}'",
                original_error=e,
                error_code="REDIRECT_FAILED",
            ) from e

    async def increment_click_count(self, link: Link) -> None:
        """Database-level increment of click_count, stamping last_clicked."""
        async with self.session_maker() as session:
            await session.execute(
                update(Link)
                .where(Link.id == link.id)
                .values(click_count=Link.click_count + 1, last_clicked=self.clock())
            )
            await session.commit()

    async def _count_click(self, link: Link) -> None:
        try:
            await self.increment_click_count(link)
        except Exception as e:
            logger.error(f"[REDIRECT] Failed to increment click count for {link.short_code}: {e}", exc_info=True)

    async def resolve(
        self,
        short_code: str,
        query_string: str = "",
        metadata: Optional[RequestMetadata] = None,
    ) -> RedirectResult:
        """
        Resolve a short code to a redirect.

        Args:
            short_code: Path segment identifying the link
            query_string: Raw query string of the incoming request (without "?")
            metadata: Platform-supplied request attributes for analytics

        Returns:
            RedirectResult with a 301 status

        Raises:
            LinkNotFoundError: Unknown short code (nothing is written)
            ServiceError: The lookup itself failed
        """
        if not short_code:
            return RedirectResult(location=self.default_redirect)

        link = await self.get_link(short_code)
        if link is None:
            logger.warning(f"[REDIRECT] Short code not found: {short_code}")
            raise LinkNotFoundError(short_code=short_code)

        # Both effects are issued together; neither failure reaches the caller
        await asyncio.gather(
            self.recorder.record(metadata or RequestMetadata(), link),
            self._count_click(link),
        )

        location = build_destination(link.destination_url, query_string)
        logger.info(f"[REDIRECT] {short_code} -> {link.destination_url} (click #{link.click_count + 1})")
        return RedirectResult(location=location)
