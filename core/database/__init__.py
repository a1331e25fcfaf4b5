"""
Database abstraction layer.

Usage:
    from core.database import get_db_backend

    backend = get_db_backend("storybook")
    backend.init_schema(SCHEMA)
    with backend.connection() as conn:
        conn.execute("SELECT COUNT(*) FROM templates")
"""

from .config import get_db_backend
from .protocol import DatabaseBackend, DBConnection
from .sqlite_backend import SQLiteBackend
