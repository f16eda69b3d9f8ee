from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from ..db.backend import ExecutionBackend
from ..db.helpers import compile_delete, compile_update
from ..models import MutationRequest, OperationKind, StrategyKind, StrategyResult
from .base import MutationStrategy, is_cancelled

logger = logging.getLogger(__name__)


class SetBasedStrategy(MutationStrategy):
    """
    One parameterized UPDATE or DELETE for the whole row-set.

    The statement is a single backend call and cannot be cancelled once
    submitted; cancelling before submission yields zero rows.
    """

    kind = StrategyKind.SET_BASED
    stale_reads = True

    def run(
        self,
        backend: ExecutionBackend,
        request: MutationRequest,
        values: Mapping[str, Any],
        cancel: Optional[threading.Event] = None,
    ) -> StrategyResult:
        if is_cancelled(cancel):
            return StrategyResult(rows_affected=0, cancelled=True)

        if request.operation_kind == OperationKind.UPDATE:
            stmt = compile_update(request.schema, request.predicates, values)
        else:
            stmt = compile_delete(request.schema, request.predicates)

        logger.debug("Set-based %s on %s: %s", request.operation_kind.value, request.table, stmt)
        return StrategyResult(rows_affected=backend.execute(stmt))
