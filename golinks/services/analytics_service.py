"""
Analytics Query Service

Read-only views over recorded click events:
- Filtered, paginated listing for the admin API
- Per-link summary served on /analytics/{short_code}
"""

import logging
import math
from collections import Counter
from typing import Any, Optional
from urllib.parse import urlparse

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from golinks.core.exceptions import LinkNotFoundError, ServiceError
from golinks.db.models import AnalyticsEvent, Link

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
SUMMARY_EVENT_LIMIT = 100
SUMMARY_RECENT_LIMIT = 50


def referer_source(referer: Optional[str]) -> str:
    """Hostname of the referring page, "Direct" when there is none."""
    if not referer:
        return "Direct"
    return urlparse(referer).hostname or referer


def event_to_dict(event: AnalyticsEvent, link: Optional[Link] = None) -> dict[str, Any]:
    data = event.model_dump()
    if link is not None:
        data["short_code"] = link.short_code
        data["destination_url"] = link.destination_url
    return data


class AnalyticsService:
    """
    Service for reading analytics events.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_events(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        link_id: Optional[int] = None,
        country: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        List events joined with their link, newest first.

        date_from/date_to are compared with the stored ISO timestamps as
        strings, so they should use the same format and zone.

        Returns:
            {"analytics": [...], "pagination": {...}, "filters": {...}}
        """
        page = max(page, 1)
        limit = max(min(limit, MAX_PAGE_SIZE), 1)

        conditions = []
        if link_id is not None:
            conditions.append(AnalyticsEvent.link_id == link_id)
        if country:
            conditions.append(AnalyticsEvent.country == country)
        if date_from:
            conditions.append(AnalyticsEvent.timestamp >= date_from)
        if date_to:
            conditions.append(AnalyticsEvent.timestamp <= date_to)

        statement = (
            select(AnalyticsEvent, Link)
            .join(Link, AnalyticsEvent.link_id == Link.id)
            .order_by(AnalyticsEvent.timestamp.desc(), AnalyticsEvent.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        count_statement = (
            select(func.count())
            .select_from(AnalyticsEvent)
            .join(Link, AnalyticsEvent.link_id == Link.id)
        )
        if conditions:
            statement = statement.where(*conditions)
            count_statement = count_statement.where(*conditions)

        try:
            rows = (await self.session.execute(statement)).all()
            total = (await self.session.execute(count_statement)).scalar_one()
        except Exception as e:
            logger.error(f"[API] Failed to fetch analytics: {e}", exc_info=True)
            raise ServiceError("Failed to fetch analytics", original_error=e, error_code="DB_QUERY_FAILED") from e

        return {
            "analytics": [event_to_dict(event, link) for event, link in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
            "filters": {
                "linkId": link_id,
                "country": country or None,
                "dateFrom": date_from or None,
                "dateTo": date_to or None,
            },
        }

    async def link_summary(self, short_code: str) -> dict[str, Any]:
        """
        Summarize the most recent clicks on one link.

        Raises:
            LinkNotFoundError: Unknown short code
            ServiceError: database failure
        """
        try:
            result = await self.session.execute(select(Link).where(Link.short_code == short_code))
            link = result.scalar_one_or_none()
            if link is None:
                raise LinkNotFoundError(short_code=short_code)

            events = (await self.session.execute(
                select(AnalyticsEvent)
                .where(AnalyticsEvent.link_id == link.id)
                .order_by(AnalyticsEvent.timestamp.desc(), AnalyticsEvent.id.desc())
                .limit(SUMMARY_EVENT_LIMIT)
            )).scalars().all()
        except LinkNotFoundError:
            raise
        except Exception as e:
            logger.error(f"[API] Failed to load analytics for {short_code}: {e}", exc_info=True)
            raise ServiceError("Failed to load analytics", original_error=e, error_code="DB_QUERY_FAILED") from e

        countries = Counter(event.country for event in events if event.country)
        devices = Counter(event.device_type or "unknown" for event in events)
        sources = Counter(referer_source(event.referer) for event in events)

        return {
            "link": link.model_dump(),
            "totalClicks": len(events),
            "uniqueVisitors": len({event.ip_address for event in events}),
            "countries": dict(countries.most_common()),
            "devices": dict(devices.most_common()),
            "referrers": dict(sources.most_common()),
            "recent": [event_to_dict(event) for event in events[:SUMMARY_RECENT_LIMIT]],
        }
