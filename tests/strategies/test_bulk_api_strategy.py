from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from bulkops.builder import build_request
from bulkops.bulk import BulkBackend, SqlBulkBackend
from bulkops.db.backend import EngineBackend
from bulkops.errors import BackendUnavailable, PartialFailure
from bulkops.models import OperationKind
from bulkops.strategies import BulkApiStrategy

T = datetime(2026, 4, 1, 12, 0, 0)
OLD = T - timedelta(days=30)
NOW = datetime(2026, 10, 1, 8, 30, 0)


def _archive(orders):
    return build_request(
        orders,
        [("created_on", "<", T), ("status", "=", "New")],
        OperationKind.UPDATE,
        {"status": "Archived", "archived_on": NOW},
    )


def test_requires_bulk_backend_at_construction() -> None:
    with pytest.raises(BackendUnavailable):
        BulkApiStrategy(None, batch_size=10)


def test_updates_in_key_ordered_batches(engine, orders, seed, snapshot, flaky_bulk_backend) -> None:
    seed(orders, count=25, status="New", created_on=OLD)
    bulk = flaky_bulk_backend()
    request = _archive(orders)

    result = BulkApiStrategy(bulk, batch_size=10).run(
        EngineBackend(engine), request, request.resolve_assignments(NOW)
    )

    assert result.rows_affected == 25
    assert bulk.batches == [10, 10, 5]
    rows = snapshot(orders)
    assert {r["status"] for r in rows} == {"Archived"}
    assert {r["archived_on"] for r in rows} == {NOW}


def test_projects_only_key_and_changed_fields(engine, orders, seed) -> None:
    seed(orders, count=3, status="New", created_on=OLD)
    submitted = []

    class RecordingBulk(BulkBackend):
        def submit_batch(self, table, operation_kind, rows) -> int:
            submitted.extend(rows)
            return len(rows)

    request = _archive(orders)
    BulkApiStrategy(RecordingBulk()).run(EngineBackend(engine), request, request.resolve_assignments(NOW))

    assert submitted == [
        {"id": i, "status": "Archived", "archived_on": NOW} for i in (1, 2, 3)
    ]


def test_deletes_by_key(engine, orders, seed, snapshot, flaky_bulk_backend) -> None:
    seed(orders, count=12, status="Archived", created_on=OLD)
    seed(orders, count=1, start_id=99, status="New", created_on=OLD)
    request = build_request(orders, [("status", "=", "Archived")], OperationKind.DELETE)

    result = BulkApiStrategy(flaky_bulk_backend(), batch_size=5).run(
        EngineBackend(engine), request, {}
    )

    assert result.rows_affected == 12
    assert [r["id"] for r in snapshot(orders)] == [99]


def test_failing_batch_reports_earlier_batches_only(engine, orders, seed, snapshot, flaky_bulk_backend) -> None:
    seed(orders, count=25, status="New", created_on=OLD)
    request = _archive(orders)

    with pytest.raises(PartialFailure) as excinfo:
        BulkApiStrategy(flaky_bulk_backend(fail_on_batch=2), batch_size=10).run(
            EngineBackend(engine), request, request.resolve_assignments(NOW)
        )

    assert excinfo.value.rows_committed == 10
    assert [r["status"] for r in snapshot(orders)].count("Archived") == 10


def test_failing_first_batch_reports_zero(engine, orders, seed, flaky_bulk_backend) -> None:
    seed(orders, count=3, status="New", created_on=OLD)
    request = _archive(orders)

    with pytest.raises(PartialFailure) as excinfo:
        BulkApiStrategy(flaky_bulk_backend(fail_on_batch=1)).run(
            EngineBackend(engine), request, request.resolve_assignments(NOW)
        )

    assert excinfo.value.rows_committed == 0


def test_cancel_between_batches(engine, orders, seed) -> None:
    seed(orders, count=30, status="New", created_on=OLD)
    cancel = threading.Event()
    inner = SqlBulkBackend(EngineBackend(engine))

    class CancelAfterFirst(BulkBackend):
        def submit_batch(self, table, operation_kind, rows) -> int:
            affected = inner.submit_batch(table, operation_kind, rows)
            cancel.set()
            return affected

    request = _archive(orders)
    result = BulkApiStrategy(CancelAfterFirst(), batch_size=10).run(
        EngineBackend(engine), request, request.resolve_assignments(NOW), cancel=cancel
    )

    assert result.rows_affected == 10
    assert result.cancelled is True


def test_rows_applied_by_a_failing_batch_are_counted(engine, orders, seed) -> None:
    seed(orders, count=15, status="New", created_on=OLD)
    inner = SqlBulkBackend(EngineBackend(engine))

    class HalfAppliedSecondBatch(BulkBackend):
        calls = 0

        def submit_batch(self, table, operation_kind, rows) -> int:
            self.calls += 1
            if self.calls == 2:
                applied = inner.submit_batch(table, operation_kind, rows[:3])
                raise PartialFailure("second half failed", rows_committed=applied)
            return inner.submit_batch(table, operation_kind, rows)

    request = _archive(orders)
    with pytest.raises(PartialFailure) as excinfo:
        BulkApiStrategy(HalfAppliedSecondBatch(), batch_size=10).run(
            EngineBackend(engine), request, request.resolve_assignments(NOW)
        )

    assert excinfo.value.rows_committed == 13
