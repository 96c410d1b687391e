"""
Tests for short code resolution and click accounting.

The analytics insert and the click-count update are independent: either may
fail without affecting the other or the redirect.
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from golinks.core.clock import ensure_utc
from golinks.core.exceptions import LinkNotFoundError, ServiceError
from golinks.services.analytics_recorder import AnalyticsRecorder, RequestMetadata
from golinks.services.redirect_resolver import RedirectResolver, build_destination

DEFAULT_REDIRECT = "https://www.example.org"


class BrokenCounterResolver(RedirectResolver):
    async def increment_click_count(self, link):
        raise OperationalError("UPDATE links", {}, Exception("database is locked"))


@pytest.fixture
def recorder(session_maker, clock):
    return AnalyticsRecorder(session_maker, clock=clock)


@pytest.fixture
def resolver(session_maker, recorder, clock):
    return RedirectResolver(session_maker, recorder, DEFAULT_REDIRECT, clock=clock)


class TestBuildDestination:
    """Query strings are appended only to destinations without their own."""

    def test_appends_query_string(self):
        assert build_destination("https://example.com", "utm=1") == "https://example.com?utm=1"

    def test_appends_to_path(self):
        assert build_destination("https://example.com/docs/", "a=1&b=2") == "https://example.com/docs/?a=1&b=2"

    def test_destination_query_wins(self):
        assert build_destination("https://example.com/?ref=go", "utm=1") == "https://example.com/?ref=go"

    def test_no_query_string(self):
        assert build_destination("https://example.com", "") == "https://example.com"

    def test_query_string_is_verbatim(self):
        assert build_destination("https://example.com", "q=a%20b&x") == "https://example.com?q=a%20b&x"


class TestResolve:
    """RedirectResolver.resolve()"""

    @pytest.mark.asyncio
    async def test_hit_redirects_permanently(self, resolver, make_link):
        await make_link("docs", "https://example.com/docs")

        result = await resolver.resolve("docs", "utm_source=slack")

        assert result.status_code == 301
        assert result.location == "https://example.com/docs?utm_source=slack"

    @pytest.mark.asyncio
    async def test_hit_counts_click_and_records_event(self, resolver, make_link, db, clock):
        link = await make_link("docs", "https://example.com/docs")
        clock.advance(minutes=3)

        await resolver.resolve("docs", "", RequestMetadata(ip_address="203.0.113.7", user_agent="curl/8.4.0"))

        stored = await db.link("docs")
        assert stored.click_count == 1
        assert ensure_utc(stored.last_clicked) == clock()
        events = await db.events(link.id)
        assert len(events) == 1
        assert events[0].ip_address == "203.0.113.7"
        assert events[0].device_type == "desktop"

    @pytest.mark.asyncio
    async def test_each_resolution_adds_exactly_one(self, resolver, make_link, db):
        link = await make_link()

        for _ in range(3):
            await resolver.resolve("test")

        assert (await db.link("test")).click_count == 3
        assert len(await db.events(link.id)) == 3

    @pytest.mark.asyncio
    async def test_empty_short_code_goes_to_default(self, resolver, db):
        result = await resolver.resolve("", "utm=1")

        assert result.location == DEFAULT_REDIRECT
        assert result.status_code == 301
        assert await db.event_count() == 0

    @pytest.mark.asyncio
    async def test_unknown_short_code_changes_nothing(self, resolver, make_link, db):
        await make_link("test")

        with pytest.raises(LinkNotFoundError):
            await resolver.resolve("missing")

        assert (await db.link("test")).click_count == 0
        assert await db.event_count() == 0

    @pytest.mark.asyncio
    async def test_short_codes_are_case_sensitive(self, resolver, make_link):
        await make_link("Docs", "https://example.com/docs")

        with pytest.raises(LinkNotFoundError):
            await resolver.resolve("docs")

    @pytest.mark.asyncio
    async def test_stored_destination_is_not_revalidated(self, resolver, make_link):
        await make_link("legacy", "http://intranet.example.com/wiki")

        result = await resolver.resolve("legacy")

        assert result.location == "http://intranet.example.com/wiki"


class TestFailureIsolation:
    """Partial completion of the click effects is an accepted outcome."""

    @pytest.mark.asyncio
    async def test_analytics_failure_still_counts_and_redirects(
        self, session_maker, broken_session_maker, clock, make_link, db
    ):
        await make_link()
        resolver = RedirectResolver(
            session_maker,
            AnalyticsRecorder(broken_session_maker, clock=clock),
            DEFAULT_REDIRECT,
            clock=clock,
        )

        result = await resolver.resolve("test", "utm=1")

        assert result.location == "https://example.com?utm=1"
        assert (await db.link("test")).click_count == 1
        assert await db.event_count() == 0

    @pytest.mark.asyncio
    async def test_click_count_failure_still_records_and_redirects(
        self, session_maker, recorder, clock, make_link, db, caplog
    ):
        link = await make_link()
        resolver = BrokenCounterResolver(session_maker, recorder, DEFAULT_REDIRECT, clock=clock)

        with caplog.at_level(logging.ERROR):
            result = await resolver.resolve("test")

        assert result.location == "https://example.com"
        assert (await db.link("test")).click_count == 0
        assert len(await db.events(link.id)) == 1
        assert "Failed to increment click count for test" in caplog.text

    @pytest.mark.asyncio
    async def test_lookup_failure_is_service_error(self, broken_session_maker, recorder, clock):
        resolver = RedirectResolver(broken_session_maker, recorder, DEFAULT_REDIRECT, clock=clock)

        with pytest.raises(ServiceError) as exc_info:
            await resolver.resolve("test")

        assert exc_info.value.error_code == "REDIRECT_FAILED"
        assert isinstance(exc_info.value.original_error, OperationalError)
