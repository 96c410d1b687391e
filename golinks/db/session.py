"""
Database Session Management

This module handles async database connections using SQLAlchemy's async engine.
Uses a database abstraction layer to support different database backends.

Nothing here is created at import time: create_app() calls
create_engine_from_url() and create_session_maker() once and keeps the
results on app.state, so tests can point an app at a throwaway database.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from golinks.db.sqlite_adapter import get_database_adapter


def create_engine_from_url(database_url: str) -> AsyncEngine:
    """Create the async engine through the adapter for this URL."""
    adapter = get_database_adapter(database_url)
    return adapter.create_engine(database_url)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """
    Create async session factory.

    Each service opens short-lived sessions from this factory; no transaction
    spans more than one logical operation.
    """
    return async_sessionmaker(
        engine,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,  # Prevents SQLAlchemy from expiring objects after commit
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create missing tables from the SQLModel metadata (development and tests)."""
    from golinks.db import models  # noqa: F401  register tables on the metadata

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI to get database session.

    This function:
    - Creates a new async session from the app's factory
    - Yields it to the endpoint
    - Commits on success, rolls back on exception
    """
    session_maker = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
