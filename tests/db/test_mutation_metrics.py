from __future__ import annotations

from bulkops.db.metrics import observe_bulk_batch, observe_mutation
from bulkops.metrics.registry import (
    BULK_BATCH_TOTAL,
    MUTATION_LATENCY_SECONDS,
    MUTATION_ROWS_TOTAL,
    MUTATION_TOTAL,
)


class TestObserveMutation:
    """Tests for observe_mutation()."""

    def test_increments_counter_with_correct_labels(self) -> None:
        labels = dict(table="metrics_orders", op_type="update", strategy="set_based", status="success")
        initial = MUTATION_TOTAL.labels(**labels)._value.get()

        observe_mutation(
            table="metrics_orders",
            op_type="update",
            strategy="set_based",
            status="success",
            rows=3,
            latency_s=0.1,
        )

        assert MUTATION_TOTAL.labels(**labels)._value.get() == initial + 1

    def test_adds_rows_affected(self) -> None:
        labels = dict(table="metrics_rows", op_type="delete", strategy="row_by_row")
        initial = MUTATION_ROWS_TOTAL.labels(**labels)._value.get()

        observe_mutation(status="success", rows=7, latency_s=0.01, **labels)
        observe_mutation(status="partial", rows=2, latency_s=0.01, **labels)

        assert MUTATION_ROWS_TOTAL.labels(**labels)._value.get() == initial + 9

    def test_records_latency_in_histogram(self) -> None:
        observe_mutation(
            table="metrics_latency",
            op_type="update",
            strategy="bulk_api",
            status="success",
            rows=0,
            latency_s=0.25,
        )

        samples = list(MUTATION_LATENCY_SECONDS.labels(
            table="metrics_latency", op_type="update", strategy="bulk_api"
        ).collect())
        assert len(samples) > 0

    def test_error_status_tracked_separately(self) -> None:
        base = dict(table="metrics_status", op_type="update", strategy="set_based")
        observe_mutation(status="success", rows=1, latency_s=0.1, **base)
        success = MUTATION_TOTAL.labels(status="success", **base)._value.get()

        observe_mutation(status="error", rows=0, latency_s=0.1, **base)

        assert MUTATION_TOTAL.labels(status="error", **base)._value.get() >= 1
        assert MUTATION_TOTAL.labels(status="success", **base)._value.get() == success


def test_observe_bulk_batch_counts_by_status() -> None:
    before = BULK_BATCH_TOTAL.labels(table="metrics_batches", op_type="delete", status="error")._value.get()

    observe_bulk_batch("metrics_batches", "delete", "error")

    after = BULK_BATCH_TOTAL.labels(table="metrics_batches", op_type="delete", status="error")._value.get()
    assert after == before + 1
