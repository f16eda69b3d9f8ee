from __future__ import annotations

from typing import Any, Iterator, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.expression import Executable


class DbSession:
    """
    Transactional wrapper around a SQLAlchemy Engine connection.

    Satisfies :class:`bulkops.db.backend.ExecutionBackend`, so a whole
    mutation can run inside one transaction:

        with DbSession(engine) as session:
            report = MutationEngine(session).execute(request)

    Rows reported by a strategy only become durable when the session commits;
    an exception inside the block rolls everything back.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None

    def __enter__(self) -> "DbSession":
        if self._conn is not None:
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._tx is not None:
                if exc_type:
                    self._tx.rollback()
                else:
                    self._tx.commit()
        finally:
            if self._conn is not None:
                self._conn.close()

            self._conn = None
            self._tx = None

        # propagate exceptions (if any)
        return False

    def _connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DbSession is not active; use within a context manager")
        return self._conn

    def execute(
        self,
        sql: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Execute a non-SELECT statement and return affected row count.
        """
        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
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
        """
        Lazily yield rows of a SELECT as dicts. Abandoning the iterator
        closes the underlying result.
        """
        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        result = conn.execute(stmt, params or {})
        try:
            for row in result.mappings():
                yield dict(row)
        finally:
            result.close()
