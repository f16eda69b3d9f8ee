from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from .bulk.base import BulkBackend
from .config import MutationConfig
from .db.backend import ExecutionBackend
from .db.helpers import compile_count
from .db.metrics import observe_mutation
from .errors import BackendError, BackendUnavailable, BulkOpsError, PartialFailure, ValidationError
from .models import MutationReport, MutationRequest, RowHook, StrategyKind
from .strategies.selector import make_strategy, select_strategy

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, the value NOW assignments resolve to by default."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MutationEngine:
    """
    Caller-facing entry point: estimate, pick a strategy, run it, report.

    The backend is passed in explicitly; the engine holds no session or
    cache of its own, so one engine can serve any number of requests.

    Usage:
        engine = MutationEngine(EngineBackend(sa_engine), bulk_backend=SqlBulkBackend(...))
        report = engine.execute(request)
        if report.stale_read_warning:
            ...  # reload any rows held in memory

    Failures are surfaced, never retried: retrying a non-idempotent UPDATE or
    DELETE is the caller's decision.
    """

    def __init__(
        self,
        backend: ExecutionBackend,
        config: Optional[MutationConfig] = None,
        bulk_backend: Optional[BulkBackend] = None,
        clock: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.backend = backend
        self.config = config or MutationConfig()
        self.bulk_backend = bulk_backend
        self.clock = clock or utcnow

    def estimate(self, request: MutationRequest) -> int:
        """
        Count rows currently matching the request's predicates.

        Raises:
            BackendError: If the count query fails
        """
        stmt = compile_count(request.schema, request.predicates)
        try:
            rows = list(self.backend.query(stmt))
        except Exception as exc:
            raise BackendError(f"Estimating rows of {request.table} failed: {exc}") from exc
        if not rows:
            return 0
        return int(rows[0]["row_count"])

    def execute(
        self,
        request: MutationRequest,
        *,
        strategy: Optional[StrategyKind] = None,
        hooks: Sequence[RowHook] = (),
        cancel: Optional[threading.Event] = None,
    ) -> MutationReport:
        """
        Execute ``request`` and return its MutationReport.

        Args:
            request: A request built by ``build_request``
            strategy: Force a strategy instead of letting the selector choose
            hooks: Per-row callables; only the row-by-row strategy runs them
            cancel: Event checked before submission and between pages/batches

        Raises:
            BackendUnavailable: If BULK_API is forced without a bulk backend
            ValidationError: If ``strategy`` is unknown, or hooks are combined with
                a strategy that cannot run them
            PartialFailure: If a failure happens after rows were committed
            BackendError: If the backend fails before anything was committed
        """
        start = time.monotonic()
        hooks = tuple(hooks)

        if strategy is not None:
            try:
                strategy = StrategyKind(strategy)
            except ValueError:
                raise ValidationError(f"Unknown strategy {strategy!r}") from None
            if strategy == StrategyKind.BULK_API and self.bulk_backend is None:
                raise BackendUnavailable(
                    "BULK_API was requested but no bulk backend is registered"
                )
            if hooks and strategy != StrategyKind.ROW_BY_ROW:
                raise ValidationError(
                    f"Row hooks cannot run under {strategy.value}; use ROW_BY_ROW"
                )

        try:
            estimated = self.estimate(request)
        except BackendError as exc:
            # Nothing ran; report the strategy an empty row-set would get.
            kind = strategy or select_strategy(
                request,
                0,
                self.config,
                bulk_available=self.bulk_backend is not None,
                has_hooks=bool(hooks),
            )[0]
            exc.report = self._report(request, kind, False, 0, start, 0)
            self._observe(request, kind, "error", 0, start)
            raise

        if strategy is None:
            kind, reason = select_strategy(
                request,
                estimated,
                self.config,
                bulk_available=self.bulk_backend is not None,
                has_hooks=bool(hooks),
            )
        else:
            kind, reason = strategy, "requested by caller"

        logger.info(
            "%s on %s: ~%d matching row(s), using %s (%s)",
            request.operation_kind.value.upper(),
            request.table,
            estimated,
            kind.value,
            reason,
        )

        impl = make_strategy(kind, self.config, self.bulk_backend, hooks)
        values = request.resolve_assignments(self.clock())

        status = "success"
        rows = 0
        try:
            result = impl.run(self.backend, request, values, cancel=cancel)
            rows = result.rows_affected
            report = self._report(
                request, kind, impl.stale_reads, rows, start, estimated, result.cancelled
            )
            if result.cancelled:
                status = "cancelled"
        except PartialFailure as exc:
            status = "partial"
            rows = exc.rows_committed
            exc.report = self._report(request, kind, impl.stale_reads, rows, start, estimated)
            logger.warning(
                "%s on %s via %s failed after %d committed row(s): %s",
                request.operation_kind.value.upper(),
                request.table,
                kind.value,
                rows,
                exc,
            )
            raise
        except BulkOpsError:
            status = "error"
            raise
        except Exception as exc:
            status = "error"
            report = self._report(request, kind, impl.stale_reads, 0, start, estimated)
            raise BackendError(
                f"{kind.value} {request.operation_kind.value} on {request.table} failed: {exc}",
                report=report,
            ) from exc
        finally:
            self._observe(request, kind, status, rows, start)

        if report.stale_read_warning:
            logger.info(
                "%s on %s bypassed in-memory rows; copies read earlier may be stale",
                kind.value,
                request.table,
            )
        return report

    def _report(
        self,
        request: MutationRequest,
        kind: StrategyKind,
        stale: bool,
        rows: int,
        start: float,
        estimated: int,
        cancelled: bool = False,
    ) -> MutationReport:
        warnings = []
        if stale:
            warnings.append(
                f"Rows of {request.table} read before this {kind.value} mutation may be stale; "
                "reload them before use"
            )
        if cancelled:
            warnings.append(f"Cancelled after {rows} row(s) were committed")

        return MutationReport(
            rows_affected=rows,
            strategy_used=kind,
            elapsed_millis=(time.monotonic() - start) * 1000.0,
            stale_read_warning=stale,
            estimated_rows=estimated,
            cancelled=cancelled,
            warnings=tuple(warnings),
        )

    def _observe(
        self,
        request: MutationRequest,
        kind: StrategyKind,
        status: str,
        rows: int,
        start: float,
    ) -> None:
        observe_mutation(
            table=request.table,
            op_type=request.operation_kind.value,
            strategy=kind.value,
            status=status,
            rows=rows,
            latency_s=time.monotonic() - start,
        )
