"""
Analytics Recorder

Records one AnalyticsEvent per resolved redirect. Recording is best-effort:
any failure is logged and discarded so the redirect is never affected.

Design Decisions:
- Geo/network attributes are taken as supplied by the edge proxy, with no
  validation; missing text values become "" and missing numbers None
- Device type is a first-match keyword scan of the user agent
- Timestamps are rendered in the configured time zone, falling back to UTC
  when the zone name is unknown
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import async_sessionmaker

from golinks.core.clock import Clock, utc_now
from golinks.db.models import AnalyticsEvent, Link

logger = logging.getLogger(__name__)

# Order matters: the first group that matches wins. An iPad user agent that
# also advertises "Mobile" is therefore classified as mobile, not tablet.
DEVICE_KEYWORDS = (
    ("mobile", ("mobile", "android", "iphone")),
    ("tablet", ("tablet", "ipad")),
    ("bot", ("bot", "crawler", "spider")),
)


@dataclass
class RequestMetadata:
    """Per-click request attributes supplied by the hosting platform."""
    ip_address: str = ""
    user_agent: str = ""
    referer: str = ""
    country: str = ""
    city: str = ""
    region: str = ""
    region_code: str = ""
    continent: str = ""
    timezone: str = ""
    postal_code: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    asn: Optional[int] = None
    as_organization: str = ""
    colo: str = ""
    http_protocol: str = ""
    tls_version: str = ""
    bot_category: str = ""
    client_tcp_rtt: Optional[int] = None


def get_device_type(user_agent: Optional[str]) -> str:
    """
    Classify a user agent as mobile, tablet, bot or desktop.

    Returns "unknown" when no user agent was sent.
    """
    if not user_agent:
        return "unknown"

    ua = user_agent.lower()
    for device_type, keywords in DEVICE_KEYWORDS:
        if any(keyword in ua for keyword in keywords):
            return device_type
    return "desktop"


def _iso_utc(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def get_timestamp_in_timezone(tz_name: str, now: Optional[datetime] = None) -> str:
    """
    Render the current instant as an ISO 8601 string in the given zone.

    UTC is rendered as "YYYY-MM-DDTHH:MM:SS.mmmZ"; other zones keep their
    wall-clock time with the zone's offset ("2024-01-01T07:00:00.000-05:00").
    An unknown zone falls back to UTC and is logged.
    """
    now = now or utc_now()
    if tz_name == "UTC":
        return _iso_utc(now)

    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Invalid timezone, falling back to UTC: {tz_name}")
        return _iso_utc(now)

    return now.astimezone(zone).isoformat(timespec="milliseconds")


class AnalyticsRecorder:
    """
    Appends click events to the analytics table.

    Uses its own session so it can run alongside the click-count update.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        timezone_name: str = "UTC",
        clock: Clock = utc_now,
    ):
        self.session_maker = session_maker
        self.timezone_name = timezone_name
        self.clock = clock

    def build_event(self, metadata: RequestMetadata, link: Link) -> AnalyticsEvent:
        """Build the event row for a click on a link."""
        return AnalyticsEvent(
            link_id=link.id,
            device_type=get_device_type(metadata.user_agent),
            timestamp=get_timestamp_in_timezone(self.timezone_name, self.clock()),
            **asdict(metadata),
        )

    async def record(self, metadata: RequestMetadata, link: Link) -> None:
        """
        Record a click. Never raises.
        """
        try:
            event = self.build_event(metadata, link)
            async with self.session_maker() as session:
                session.add(event)
                await session.commit()
        except Exception as e:
            logger.error(f"Analytics tracking failed for link {link.short_code}: {e}", exc_info=True)
