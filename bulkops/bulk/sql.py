from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from sqlalchemy import Table

from ..db.backend import ExecutionBackend
from ..db.helpers import compile_keys_delete, compile_keys_update
from ..errors import PartialFailure
from ..models import OperationKind, key_column
from .base import BulkBackend

logger = logging.getLogger(__name__)


class SqlBulkBackend(BulkBackend):
    """
    BulkBackend built from multi-row statements over an ExecutionBackend.

    DELETE batches become one ``DELETE ... WHERE key IN (...)``. UPDATE
    batches are grouped by identical payload and each group becomes one
    ``UPDATE ... WHERE key IN (...)``, so a batch where every row receives
    the same values costs a single statement.

    A multi-group UPDATE batch on a non-transactional backend can fail after
    some groups were applied; that raises PartialFailure carrying the rows
    applied so far.
    """

    def __init__(self, backend: ExecutionBackend) -> None:
        self.backend = backend

    def submit_batch(
        self,
        table: Table,
        operation_kind: OperationKind,
        rows: Sequence[Mapping[str, Any]],
    ) -> int:
        if not rows:
            return 0

        key = key_column(table)

        if operation_kind == OperationKind.DELETE:
            stmt = compile_keys_delete(table, [row[key] for row in rows])
            return self.backend.execute(stmt)

        if operation_kind == OperationKind.UPDATE:
            groups: dict[tuple, list[Any]] = {}
            payloads: dict[tuple, dict[str, Any]] = {}
            for row in rows:
                payload = {c: v for c, v in row.items() if c != key}
                group = tuple(sorted(payload.items()))
                groups.setdefault(group, []).append(row[key])
                payloads[group] = payload

            affected = 0
            for group, keys in groups.items():
                stmt = compile_keys_update(table, payloads[group], keys)
                try:
                    affected += self.backend.execute(stmt)
                except Exception as exc:
                    if affected:
                        raise PartialFailure(
                            f"Bulk UPDATE on {table.name} failed after {affected} row(s) "
                            f"of this batch were committed: {exc}",
                            rows_committed=affected,
                        ) from exc
                    raise

            logger.debug(
                "Bulk UPDATE on %s: %d rows in %d statement(s)",
                table.name,
                len(rows),
                len(groups),
            )
            return affected

        raise ValueError(f"Unsupported operation kind: {operation_kind}")
