from __future__ import annotations

import logging

from ..metrics.registry import (
    BULK_BATCH_TOTAL,
    MUTATION_LATENCY_SECONDS,
    MUTATION_ROWS_TOTAL,
    MUTATION_TOTAL,
)

logger = logging.getLogger(__name__)


def observe_mutation(
    table: str,
    op_type: str,
    strategy: str,
    status: str,
    rows: int,
    latency_s: float,
) -> None:
    """
    Record one mutation execution. Never raises; a metrics failure must not
    mask the outcome of the mutation itself.
    """
    try:
        MUTATION_TOTAL.labels(
            table=table, op_type=op_type, strategy=strategy, status=status
        ).inc()
        if rows:
            MUTATION_ROWS_TOTAL.labels(
                table=table, op_type=op_type, strategy=strategy
            ).inc(rows)
        MUTATION_LATENCY_SECONDS.labels(
            table=table, op_type=op_type, strategy=strategy
        ).observe(latency_s)
    except Exception:
        logger.debug("Failed to record mutation metrics", exc_info=True)


def observe_bulk_batch(table: str, op_type: str, status: str) -> None:
    try:
        BULK_BATCH_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
    except Exception:
        logger.debug("Failed to record bulk batch metrics", exc_info=True)
