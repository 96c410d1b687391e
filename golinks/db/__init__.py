"""
Database module with abstraction layer.

This module provides:
- DatabaseAdapter interface: Abstract base class for database implementations
- SQLiteAdapter / PostgreSQLAdapter: Backend-specific implementations
- Session management: Engine and session factory creation
"""

from golinks.db.interface import DatabaseAdapter
from golinks.db.session import (
    create_engine_from_url,
    create_session_maker,
    create_tables,
    get_session,
)

__all__ = [
    "DatabaseAdapter",
    "create_engine_from_url",
    "create_session_maker",
    "create_tables",
    "get_session",
]
