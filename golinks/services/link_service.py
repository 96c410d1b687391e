"""
Link Management Service

Admin CRUD for links plus the statistics reset.

Design Decisions:
- Destination URLs are validated here, never on the redirect path
- Short codes are unique and case-sensitive; conflicts raise
  ShortCodeConflictError before touching the row
- Deleting or resetting a link removes its analytics rows explicitly, so
  the behaviour does not depend on foreign-key enforcement in SQLite
"""

import logging
import math
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from golinks.core.clock import Clock, utc_now
from golinks.core.exceptions import (
    LinkNotFoundError,
    MissingFieldsError,
    ServiceError,
    ShortCodeConflictError,
)
from golinks.core.validators import validate_destination_url
from golinks.db.models import AnalyticsEvent, Link

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def require_fields(short_code: Optional[str], destination_url: Optional[str]) -> None:
    """Raise MissingFieldsError naming every empty required field."""
    missing = [
        name for name, value in (("shortCode", short_code), ("destinationUrl", destination_url))
        if not value
    ]
    if missing:
        raise MissingFieldsError(missing)


class LinkService:
    """
    Service for creating, editing, deleting and resetting links.
    """

    def __init__(self, session: AsyncSession, clock: Clock = utc_now):
        self.session = session
        self.clock = clock

    async def _find_conflict(self, short_code: str, exclude_id: Optional[int] = None) -> Optional[int]:
        statement = select(Link.id).where(Link.short_code == short_code)
        if exclude_id is not None:
            statement = statement.where(Link.id != exclude_id)
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def get_link(self, link_id: int) -> Link:
        link = await self.session.get(Link, link_id)
        if link is None:
            raise LinkNotFoundError(link_id=link_id)
        return link

    async def list_links(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        List links newest first.

        Args:
            page: 1-based page number
            limit: Page size, capped at MAX_PAGE_SIZE
            search: Substring matched against short code and destination

        Returns:
            {"links": [...], "pagination": {page, limit, total, pages}}
        """
        page = max(page, 1)
        limit = max(min(limit, MAX_PAGE_SIZE), 1)

        statement = select(Link)
        count_statement = select(func.count()).select_from(Link)
        if search:
            pattern = f"%{search}%"
            condition = or_(Link.short_code.like(pattern), Link.destination_url.like(pattern))
            statement = statement.where(condition)
            count_statement = count_statement.where(condition)

        statement = statement.order_by(Link.created_at.desc(), Link.id.desc()).limit(limit).offset((page - 1) * limit)

        try:
            links = (await self.session.execute(statement)).scalars().all()
            total = (await self.session.execute(count_statement)).scalar_one()
        except Exception as e:
            logger.error(f"[API] Failed to fetch links: {e}", exc_info=True)
            raise ServiceError("Failed to fetch links", original_error=e, error_code="DB_QUERY_FAILED") from e

        return {
            "links": list(links),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }

    async def create_link(
        self,
        short_code: Optional[str],
        destination_url: Optional[str],
        notes: Optional[str] = None,
    ) -> Link:
        """
        Create a new link.

        Raises:
            MissingFieldsError: short code or destination missing
            InvalidDestinationURLError: destination violates the URL policy
            ShortCodeConflictError: short code already taken
            ServiceError: database failure
        """
        require_fields(short_code, destination_url)
        validate_destination_url(destination_url)

        existing_id = await self._find_conflict(short_code)
        if existing_id is not None:
            raise ShortCodeConflictError(short_code, existing_id)

        link = Link(
            short_code=short_code,
            destination_url=destination_url,
            notes=notes or None,
            click_count=0,
            created_at=self.clock(),
        )
        try:
            self.session.add(link)
            await self.session.commit()
            await self.session.refresh(link)
        except Exception as e:
            await self.session.rollback()
            logger.error(f"[API] Failed to create link {short_code}: {e}", exc_info=True)
            raise ServiceError("Failed to create link", original_error=e, error_code="DB_INSERT_FAILED") from e

        logger.info(f"[API] Created link: {short_code} -> {destination_url} (ID: {link.id})")
        return link

    async def update_link(
        self,
        link_id: int,
        short_code: Optional[str],
        destination_url: Optional[str],
    ) -> Link:
        """
        Change a link's short code and destination.

        Raises:
            MissingFieldsError, InvalidDestinationURLError, ShortCodeConflictError,
            LinkNotFoundError, ServiceError
        """
        require_fields(short_code, destination_url)
        validate_destination_url(destination_url)

        existing_id = await self._find_conflict(short_code, exclude_id=link_id)
        if existing_id is not None:
            raise ShortCodeConflictError(short_code, existing_id, current_link_id=link_id)

        try:
            result = await self.session.execute(
                update(Link)
                .where(Link.id == link_id)
                .values(short_code=short_code, destination_url=destination_url)
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"[API] Failed to update link ID {link_id}: {e}", exc_info=True)
            raise ServiceError("Failed to update link", original_error=e, error_code="DB_UPDATE_FAILED") from e

        if result.rowcount == 0:
            raise LinkNotFoundError(link_id=link_id)

        logger.info(f"[API] Updated link ID {link_id}: {short_code} -> {destination_url}")
        return await self.get_link(link_id)

    async def delete_link(self, link_id: int) -> None:
        """Delete a link and its analytics rows."""
        try:
            await self.session.execute(delete(AnalyticsEvent).where(AnalyticsEvent.link_id == link_id))
            result = await self.session.execute(delete(Link).where(Link.id == link_id))
            if result.rowcount == 0:
                await self.session.rollback()
                raise LinkNotFoundError(link_id=link_id)
            await self.session.commit()
        except LinkNotFoundError:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"[API] Failed to delete link ID {link_id}: {e}", exc_info=True)
            raise ServiceError("Failed to delete link", original_error=e, error_code="DB_DELETE_FAILED") from e

        logger.info(f"[API] Deleted link ID {link_id}")

    async def reset_stats(self, link_id: int) -> int:
        """
        Reset click_count and last_clicked and delete the link's analytics.

        Returns:
            Number of analytics rows deleted
        """
        try:
            result = await self.session.execute(
                update(Link)
                .where(Link.id == link_id)
                .values(click_count=0, last_clicked=None)
            )
            if result.rowcount == 0:
                await self.session.rollback()
                raise LinkNotFoundError(link_id=link_id)

            deleted = await self.session.execute(
                delete(AnalyticsEvent).where(AnalyticsEvent.link_id == link_id)
            )
            await self.session.commit()
        except LinkNotFoundError:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"[API] Failed to reset link stats for ID {link_id}: {e}", exc_info=True)
            raise ServiceError(
                "Failed to reset link statistics", original_error=e, error_code="DB_RESET_FAILED"
            ) from e

        logger.info(f"[API] Reset stats for link ID {link_id}: {deleted.rowcount} analytics records deleted")
        return deleted.rowcount
