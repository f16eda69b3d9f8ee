from prometheus_client import Counter, Histogram

MUTATION_TOTAL = Counter(
    "bulkops_mutation_total",
    "Bulk mutation executions by outcome",
    ["table", "op_type", "strategy", "status"],
)

MUTATION_ROWS_TOTAL = Counter(
    "bulkops_mutation_rows_total",
    "Rows reported as affected by bulk mutations",
    ["table", "op_type", "strategy"],
)

MUTATION_LATENCY_SECONDS = Histogram(
    "bulkops_mutation_latency_seconds",
    "Wall-clock latency of bulk mutation executions",
    ["table", "op_type", "strategy"],
)

BULK_BATCH_TOTAL = Counter(
    "bulkops_bulk_batch_total",
    "Batches submitted to a bulk backend by outcome",
    ["table", "op_type", "status"],
)
