"""
DatabaseBackend protocol: the contract every backend must satisfy.

Usage:
    with backend.connection() as conn:
        conn.execute("SELECT * FROM templates WHERE id = ?", (template_id,))
        row = conn.fetchone()
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol, runtime_checkable


@runtime_checkable
class DBConnection(Protocol):
    """Minimal connection interface returned by DatabaseBackend.connection()."""

    def execute(self, sql: str, parameters: Any = ...) -> Any: ...
    def executescript(self, script: str) -> Any: ...
    def fetchone(self) -> Optional[Any]: ...
    def fetchall(self) -> list: ...
    @property
    def rowcount(self) -> int: ...


@runtime_checkable
class DatabaseBackend(Protocol):
    """
    Protocol that all database backends must implement.

    connection() yields a DBConnection that commits on success and rolls
    back on exception. init_schema() is idempotent.
    """

    @contextmanager
    def connection(self) -> Iterator[DBConnection]: ...

    def init_schema(self, script: str) -> None: ...

    def close(self) -> None: ...
