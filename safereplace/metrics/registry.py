from prometheus_client import Counter, Histogram

DB_ROWS_SCANNED_TOTAL = Counter(
    "safereplace_db_rows_scanned_total",
    "Rows read by the replace engine",
    ["table"],
)

DB_CHANGES_TOTAL = Counter(
    "safereplace_db_changes_total",
    "Column values whose content changed after search/replace",
    ["table", "dry_run"],
)

DB_UPDATES_TOTAL = Counter(
    "safereplace_db_updates_total",
    "Rows written back to the database",
    ["table"],
)

DB_PAGE_FETCH_LATENCY_SECONDS = Histogram(
    "safereplace_db_page_fetch_latency_seconds",
    "Latency of a single keyset page SELECT",
    ["table"],
)

DB_TABLE_CONVERSIONS_TOTAL = Counter(
    "safereplace_db_table_conversions_total",
    "Engine/collation ALTER outcomes",
    ["kind", "status"],
)

RUN_ERRORS_TOTAL = Counter(
    "safereplace_run_errors_total",
    "Errors recorded in the run error log",
    ["category"],
)
