from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional, Sequence

from ..db.backend import ExecutionBackend
from ..db.helpers import compile_key_update, compile_keys_delete, compile_page_select
from ..errors import PartialFailure
from ..models import MutationRequest, OperationKind, RowHook, StrategyKind, StrategyResult
from .base import MutationStrategy, is_cancelled

logger = logging.getLogger(__name__)


class RowByRowStrategy(MutationStrategy):
    """
    Naive baseline: materialize matching rows, mutate them in memory and
    persist them one statement per row (one statement per page for DELETE).

    It is the only strategy that runs per-row hooks: each
    hook receives the materialized row dict, already carrying the new values
    for UPDATE. Fields a hook changes are persisted along with the
    assignments. A hook raising aborts the run.

    Rows are read in key order, ``page_size`` at a time, so memory stays
    bounded whatever the row-set size.
    """

    kind = StrategyKind.ROW_BY_ROW
    stale_reads = False

    def __init__(self, page_size: int = 500, hooks: Sequence[RowHook] = ()) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self.page_size = page_size
        self.hooks = tuple(hooks)

    def run(
        self,
        backend: ExecutionBackend,
        request: MutationRequest,
        values: Mapping[str, Any],
        cancel: Optional[threading.Event] = None,
    ) -> StrategyResult:
        key = request.key
        columns = list(request.schema.c.keys())
        committed = 0
        after = None
        page_no = 0

        while True:
            if is_cancelled(cancel):
                logger.info(
                    "Row-by-row %s on %s cancelled after %d row(s)",
                    request.operation_kind.value,
                    request.table,
                    committed,
                )
                return StrategyResult(rows_affected=committed, cancelled=True)

            stmt = compile_page_select(
                request.schema, request.predicates, columns, self.page_size, after
            )
            try:
                page = list(backend.query(stmt))
            except Exception as exc:
                if committed:
                    raise PartialFailure(
                        f"Reading page {page_no + 1} of {request.table} failed "
                        f"after {committed} row(s) were committed: {exc}",
                        rows_committed=committed,
                    ) from exc
                raise

            if not page:
                break
            page_no += 1

            if request.operation_kind == OperationKind.UPDATE:
                committed = self._update_page(backend, request, values, page, committed)
            else:
                committed = self._delete_page(backend, request, page, committed)

            logger.debug(
                "Row-by-row %s on %s: page %d done, %d row(s) committed",
                request.operation_kind.value,
                request.table,
                page_no,
                committed,
            )

            after = page[-1][key]
            if len(page) < self.page_size:
                break

        return StrategyResult(rows_affected=committed)

    def _run_hooks(self, row: dict[str, Any], committed: int, table: str) -> None:
        for hook in self.hooks:
            try:
                hook(row)
            except Exception as exc:
                raise PartialFailure(
                    f"Row hook {getattr(hook, '__name__', hook)!r} rejected a row of {table} "
                    f"after {committed} row(s) were committed: {exc}",
                    rows_committed=committed,
                ) from exc

    def _update_page(
        self,
        backend: ExecutionBackend,
        request: MutationRequest,
        values: Mapping[str, Any],
        page: list[dict[str, Any]],
        committed: int,
    ) -> int:
        key = request.key

        for row in page:
            original = dict(row)
            row.update(values)
            self._run_hooks(row, committed, request.table)

            # Persist the assignments plus whatever the hooks touched.
            changes = {
                col: row[col]
                for col in original
                if col != key and (col in values or row[col] != original[col])
            }
            stmt = compile_key_update(request.schema, changes, original[key])
            try:
                committed += backend.execute(stmt)
            except Exception as exc:
                if committed:
                    raise PartialFailure(
                        f"UPDATE of {request.table} row {original[key]!r} failed "
                        f"after {committed} row(s) were committed: {exc}",
                        rows_committed=committed,
                    ) from exc
                raise

        return committed

    def _delete_page(
        self,
        backend: ExecutionBackend,
        request: MutationRequest,
        page: list[dict[str, Any]],
        committed: int,
    ) -> int:
        for row in page:
            self._run_hooks(row, committed, request.table)

        stmt = compile_keys_delete(request.schema, [row[request.key] for row in page])
        try:
            return committed + backend.execute(stmt)
        except Exception as exc:
            if committed:
                raise PartialFailure(
                    f"DELETE of a page of {request.table} failed "
                    f"after {committed} row(s) were committed: {exc}",
                    rows_committed=committed,
                ) from exc
            raise
