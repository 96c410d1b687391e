"""
Database Models for the go-links Service

This module defines the SQLModel database schemas for:
- Link: Maps a short code to its destination URL, with click accounting
- AnalyticsEvent: One row per resolved redirect (click provenance)
- RateLimitRecord: Failed admin-key attempts per IP address

Design Decisions:
- click_count denormalized in Link for quick stats without joins
- AnalyticsEvent.timestamp is stored as text, already rendered in the
  configured time zone
- RateLimitRecord keyed by IP; expiry is decided by timestamp comparison
  at read time, there is no sweeper
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlmodel import Column, Field, SQLModel

from golinks.core.clock import utc_now


class Link(SQLModel, table=True):
    """
    Short-code-to-destination mapping.

    Indexes:
    - short_code: Unique, case-sensitive lookup key (redirect hot path)
    - created_at: Admin listing is ordered newest first
    """
    __tablename__ = "links"

    id: Optional[int] = Field(default=None, primary_key=True)
    short_code: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True)
    )
    destination_url: str = Field(sa_column=Column(Text, nullable=False))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    click_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_clicked: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )


class AnalyticsEvent(SQLModel, table=True):
    """
    Click event recorded for each successful redirect.

    Geo/network attributes come from the edge proxy headers and are stored
    as given. Text attributes default to "" and numeric ones to NULL.
    Rows are append-only; they are removed only when their link is reset
    or deleted.
    """
    __tablename__ = "analytics"

    id: Optional[int] = Field(default=None, primary_key=True)
    link_id: int = Field(
        sa_column=Column(Integer, ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    ip_address: str = Field(default="", sa_column=Column(String(45), nullable=False, default=""))  # IPv6 max length
    user_agent: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    referer: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    country: str = Field(default="", sa_column=Column(String(8), nullable=False, default="", index=True))
    city: str = Field(default="", sa_column=Column(String(255), nullable=False, default=""))
    region: str = Field(default="", sa_column=Column(String(255), nullable=False, default=""))
    region_code: str = Field(default="", sa_column=Column(String(16), nullable=False, default=""))
    continent: str = Field(default="", sa_column=Column(String(8), nullable=False, default=""))
    timezone: str = Field(default="", sa_column=Column(String(64), nullable=False, default=""))
    postal_code: str = Field(default="", sa_column=Column(String(32), nullable=False, default=""))
    latitude: Optional[float] = Field(default=None, sa_column=Column(Float, nullable=True))
    longitude: Optional[float] = Field(default=None, sa_column=Column(Float, nullable=True))
    asn: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    as_organization: str = Field(default="", sa_column=Column(String(255), nullable=False, default=""))
    colo: str = Field(default="", sa_column=Column(String(16), nullable=False, default=""))
    http_protocol: str = Field(default="", sa_column=Column(String(16), nullable=False, default=""))
    tls_version: str = Field(default="", sa_column=Column(String(16), nullable=False, default=""))
    bot_category: str = Field(default="", sa_column=Column(String(64), nullable=False, default=""))
    device_type: str = Field(default="unknown", sa_column=Column(String(16), nullable=False, default="unknown"))
    client_tcp_rtt: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    timestamp: str = Field(sa_column=Column(String(40), nullable=False, index=True))


class RateLimitRecord(SQLModel, table=True):
    """
    Brute-force tracking for the admin key, one row per IP.

    failed_attempts counts failures since first_attempt_at. While
    blocked_until lies in the future the IP is blocked regardless of the
    count. The row is deleted on a successful authentication.
    """
    __tablename__ = "rate_limit"

    ip_address: str = Field(sa_column=Column(String(45), primary_key=True))
    failed_attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    first_attempt_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    last_attempt_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    blocked_until: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
