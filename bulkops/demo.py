#!/usr/bin/env python3
"""
Compare the three bulk mutation strategies on an ``orders`` table.

Archives old "New" orders and then deletes old "Archived" ones, first row by
row, then with one set-based statement, then through the bulk backend,
reseeding the table before each pair.

    python -m bulkops.demo --rows 20000
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, create_engine
from sqlalchemy.engine import Engine

from .builder import build_request
from .bulk import SqlBulkBackend
from .config import MutationConfig
from .db.backend import EngineBackend
from .engine import MutationEngine, utcnow
from .models import NOW, MutationReport, MutationRequest, OperationKind, StrategyKind

logger = logging.getLogger("bulkops.demo")

metadata = MetaData()

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("status", String(32), nullable=False),
    Column("created_on", DateTime, nullable=False),
    Column("archived_on", DateTime, nullable=True),
)


def seed_orders(engine: Engine, rows: int, threshold: datetime) -> None:
    """
    Recreate ``orders`` with ``rows`` rows: every other row is older than
    ``threshold``; statuses cycle through New, New, Archived, Shipped.
    """
    metadata.drop_all(engine, tables=[orders])
    metadata.create_all(engine, tables=[orders])

    statuses = ("New", "New", "Archived", "Shipped")
    payload = []
    for i in range(1, rows + 1):
        created_on = threshold - timedelta(days=30) if i % 2 else threshold + timedelta(days=1)
        payload.append({
            "id": i,
            "status": statuses[i % len(statuses)],
            "created_on": created_on,
            "archived_on": None,
        })

    with engine.begin() as conn:
        if payload:
            conn.execute(orders.insert(), payload)


def archive_request(threshold: datetime) -> MutationRequest:
    return build_request(
        orders,
        [("created_on", "<", threshold), ("status", "=", "New")],
        OperationKind.UPDATE,
        {"status": "Archived", "archived_on": NOW},
    )


def purge_request(threshold: datetime) -> MutationRequest:
    return build_request(
        orders,
        [("created_on", "<", threshold), ("status", "=", "Archived")],
        OperationKind.DELETE,
    )


def _log_report(label: str, report: MutationReport) -> None:
    logger.info(
        "%s: %d row(s) via %s in %.1f ms%s",
        label,
        report.rows_affected,
        report.strategy_used.value,
        report.elapsed_millis,
        " (in-memory rows may now be stale)" if report.stale_read_warning else "",
    )


def run_demo(db_url: str, rows: int, months: int, config: MutationConfig) -> int:
    engine = create_engine(db_url)
    threshold = utcnow() - timedelta(days=30 * months)

    backend = EngineBackend(engine)
    mutations = MutationEngine(backend, config=config, bulk_backend=SqlBulkBackend(backend))

    demos = [
        ("Naive", StrategyKind.ROW_BY_ROW),
        ("Set-based SQL", StrategyKind.SET_BASED),
        ("Bulk API", StrategyKind.BULK_API),
    ]

    logger.info("Bulk UPDATE/DELETE demo started (%d rows, threshold %s)", rows, threshold)
    try:
        for label, kind in demos:
            seed_orders(engine, rows, threshold)
            _log_report(
                f"{label} update",
                mutations.execute(archive_request(threshold), strategy=kind),
            )
            _log_report(
                f"{label} delete",
                mutations.execute(purge_request(threshold), strategy=kind),
            )
    finally:
        engine.dispose()

    logger.info("Done.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Compare bulk UPDATE/DELETE strategies")
    parser.add_argument(
        "--db-url",
        type=str,
        default="sqlite:///bulkops_demo.db",
        help="SQLAlchemy database URL (the orders table is dropped and recreated)",
    )
    parser.add_argument(
        "--rows",
        type=int,
        default=10_000,
        help="Rows to seed before each strategy (default 10000)",
    )
    parser.add_argument(
        "--months",
        type=int,
        default=6,
        help="Orders older than this many months are affected (default 6)",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=500,
        help="Rows per page for the row-by-row strategy",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=1000,
        help="Rows per batch for the bulk strategy",
    )
    parser.add_argument("--verbose", action="store_true", help="Log per-page progress")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = MutationConfig(page_size=args.page_size, batch_size=args.batch_size)
    sys.exit(run_demo(args.db_url, args.rows, args.months, config))
