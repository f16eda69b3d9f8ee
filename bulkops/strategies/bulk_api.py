from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from ..bulk.base import BulkBackend
from ..db.backend import ExecutionBackend
from ..db.helpers import compile_page_select
from ..db.metrics import observe_bulk_batch
from ..errors import BackendUnavailable, PartialFailure
from ..models import MutationRequest, OperationKind, StrategyKind, StrategyResult
from .base import MutationStrategy, is_cancelled

logger = logging.getLogger(__name__)


class BulkApiStrategy(MutationStrategy):
    """
    Project matching rows to ``key + changed fields`` and hand them to a
    BulkBackend, ``batch_size`` rows at a time.

    Batches are read and submitted in key order, one after another, so
    "batches before the failing one" is always well defined. A failing batch
    raises PartialFailure carrying the sum of the batches that succeeded,
    plus any rows the backend reports it applied from the failing batch.
    """

    kind = StrategyKind.BULK_API
    stale_reads = True

    def __init__(self, bulk_backend: Optional[BulkBackend], batch_size: int = 1000) -> None:
        if bulk_backend is None:
            raise BackendUnavailable(
                "BulkApiStrategy requires a registered bulk backend; "
                "pass bulk_backend= when constructing the engine"
            )
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.bulk_backend = bulk_backend
        self.batch_size = batch_size

    def run(
        self,
        backend: ExecutionBackend,
        request: MutationRequest,
        values: Mapping[str, Any],
        cancel: Optional[threading.Event] = None,
    ) -> StrategyResult:
        key = request.key
        op_type = request.operation_kind.value
        committed = 0
        after = None
        batch_no = 0

        while True:
            if is_cancelled(cancel):
                logger.info(
                    "Bulk %s on %s cancelled after %d batch(es), %d row(s)",
                    op_type,
                    request.table,
                    batch_no,
                    committed,
                )
                return StrategyResult(rows_affected=committed, cancelled=True)

            stmt = compile_page_select(
                request.schema, request.predicates, [key], self.batch_size, after
            )
            try:
                keys = [row[key] for row in backend.query(stmt)]
            except Exception as exc:
                if committed:
                    raise PartialFailure(
                        f"Projecting batch {batch_no + 1} of {request.table} failed "
                        f"after {committed} row(s) were committed: {exc}",
                        rows_committed=committed,
                    ) from exc
                raise

            if not keys:
                break
            batch_no += 1

            if request.operation_kind == OperationKind.UPDATE:
                rows = [{key: k, **values} for k in keys]
            else:
                rows = [{key: k} for k in keys]

            try:
                affected = self.bulk_backend.submit_batch(
                    request.schema, request.operation_kind, rows
                )
            except Exception as exc:
                observe_bulk_batch(request.table, op_type, "error")
                if isinstance(exc, PartialFailure):
                    committed += exc.rows_committed
                raise PartialFailure(
                    f"Bulk {op_type} batch {batch_no} on {request.table} failed; "
                    f"{committed} row(s) were committed before the failure: {exc}",
                    rows_committed=committed,
                ) from exc

            observe_bulk_batch(request.table, op_type, "success")
            committed += affected
            logger.debug(
                "Bulk %s on %s: batch %d applied %d row(s)",
                op_type,
                request.table,
                batch_no,
                affected,
            )

            after = keys[-1]
            if len(keys) < self.batch_size:
                break

        return StrategyResult(rows_affected=committed)
