"""
SQLite Database Adapter

This module implements the DatabaseAdapter interface for SQLite.
All SQLite-specific configuration and behavior is encapsulated here.

Key characteristics:
- File-based (single .db file)
- No server required
- Single writer at a time (file locking)
- Does not preserve tzinfo on DateTime columns (see core.clock.ensure_utc)
"""

from typing import Any

from sqlalchemy.pool import NullPool

from golinks.db.interface import DatabaseAdapter


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter implementation.

    Uses NullPool so every session opens its own aiosqlite connection; the
    redirect path relies on this to run the click-count update and the
    analytics insert on separate sessions at the same time.
    """

    def get_pool_class(self) -> type[NullPool]:
        return NullPool

    def get_connect_args(self) -> dict[str, Any]:
        return {
            "check_same_thread": False
        }

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False  # Set to True only for SQL debugging in development
        }

    def get_dialect_name(self) -> str:
        return "sqlite"


def get_database_adapter(database_url: str) -> DatabaseAdapter:
    """
    Factory function to get the database adapter for a connection string.

    Returns:
        SQLiteAdapter for sqlite URLs, PostgreSQLAdapter otherwise
    """
    if database_url.startswith("sqlite"):
        return SQLiteAdapter()

    from golinks.db.postgresql_adapter import PostgreSQLAdapter
    return PostgreSQLAdapter()
