from __future__ import annotations

from typing import Any, Iterator, Mapping, Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.expression import Executable


@runtime_checkable
class ExecutionBackend(Protocol):
    """
    Capability interface over a SQL-capable store.

    Statements always carry bound parameters; values are never interpolated
    into SQL text. Implementations hold no cache.
    """

    def execute(
        self,
        sql: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Execute a non-SELECT statement and return affected row count."""
        ...

    def query(
        self,
        sql: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Lazily yield rows of a SELECT. Safe to abandon early."""
        ...


class EngineBackend:
    """
    Non-transactional ExecutionBackend over a SQLAlchemy Engine.

    Every execute() runs in, and commits, its own transaction. A failure
    mid-way through a multi-statement strategy therefore leaves the
    statements before it committed; strategies report those as
    ``rows_committed``.

    Usage:
        backend = EngineBackend(engine)
        affected = backend.execute("UPDATE orders SET status = :s WHERE id = :id", {...})
        for row in backend.query("SELECT id FROM orders"):
            ...
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def execute(
        self,
        sql: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        stmt = text(sql) if isinstance(sql, str) else sql
        with self.engine.begin() as conn:
            result = conn.execute(stmt, params or {})
            try:
                if result.rowcount is None:
                    raise RuntimeError(
                        "execute() received None rowcount for statement. "
                        "This may indicate a DDL statement or unsupported operation type."
                    )
                return int(result.rowcount)
            finally:
                result.close()

    def query(
        self,
        sql: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> Iterator[dict[str, Any]]:
        stmt = text(sql) if isinstance(sql, str) else sql
        with self.engine.connect() as conn:
            result = conn.execution_options(stream_results=True).execute(stmt, params or {})
            try:
                for row in result.mappings():
                    yield dict(row)
            finally:
                result.close()
