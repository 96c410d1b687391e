"""
Shared test fixtures.

Every test gets its own SQLite file under tmp_path, a FrozenClock pinned to
2024-01-01 12:00 UTC, and (for HTTP tests) an httpx AsyncClient talking to
an app built with create_app(settings, clock). The client connects from
127.0.0.1, which the settings list as a trusted proxy, so tests choose the
client IP with a CF-Connecting-IP header.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from golinks.core.clock import FrozenClock
from golinks.core.setting import Settings
from golinks.db.models import AnalyticsEvent, Link, RateLimitRecord
from golinks.db.session import create_engine_from_url, create_session_maker, create_tables
from golinks.main import create_app

ADMIN_KEY = "s3cret-admin-key"
START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FailingSession:
    """Stands in for a session whose database is unreachable."""

    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

    async def __aexit__(self, *exc_info):
        return False


def failing_session_maker():
    return FailingSession()


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'golinks-test.db'}",
        ADMIN_KEY=ADMIN_KEY,
        DEFAULT_REDIRECT="https://www.example.org",
        DEFAULT_TIMEZONE="UTC",
        REQUEST_THROTTLE_ENABLED=False,
        TRUSTED_PROXIES=["127.0.0.1"],
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_engine_from_url(settings.DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def app(settings, clock, engine):
    app = create_app(settings, clock=clock)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def make_link(session_maker, clock):
    """Insert a link row directly, bypassing the admin API."""

    async def _make_link(short_code="test", destination_url="https://example.com", **kwargs) -> Link:
        link = Link(short_code=short_code, destination_url=destination_url, created_at=clock(), **kwargs)
        async with session_maker() as session:
            session.add(link)
            await session.commit()
            await session.refresh(link)
        return link

    return _make_link


@pytest.fixture
def db(session_maker):
    """Small read helpers for asserting on table contents."""

    class DB:
        async def link(self, short_code: str) -> Link:
            async with session_maker() as session:
                result = await session.execute(select(Link).where(Link.short_code == short_code))
                return result.scalar_one_or_none()

        async def events(self, link_id: int) -> list[AnalyticsEvent]:
            async with session_maker() as session:
                result = await session.execute(
                    select(AnalyticsEvent).where(AnalyticsEvent.link_id == link_id).order_by(AnalyticsEvent.id)
                )
                return list(result.scalars().all())

        async def event_count(self) -> int:
            async with session_maker() as session:
                return (await session.execute(select(func.count()).select_from(AnalyticsEvent))).scalar_one()

        async def rate_limit(self, ip: str) -> RateLimitRecord:
            async with session_maker() as session:
                return await session.get(RateLimitRecord, ip)

    return DB()


@pytest.fixture
def broken_session_maker():
    """Session factory for a database that cannot be reached."""
    return failing_session_maker
