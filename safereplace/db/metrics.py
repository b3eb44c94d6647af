from __future__ import annotations

from ..metrics.registry import (
    DB_CHANGES_TOTAL,
    DB_PAGE_FETCH_LATENCY_SECONDS,
    DB_ROWS_SCANNED_TOTAL,
    DB_TABLE_CONVERSIONS_TOTAL,
    DB_UPDATES_TOTAL,
    RUN_ERRORS_TOTAL,
)


def observe_page_fetch(table: str, rows: int, latency_s: float) -> None:
    DB_ROWS_SCANNED_TOTAL.labels(table=table).inc(rows)
    DB_PAGE_FETCH_LATENCY_SECONDS.labels(table=table).observe(latency_s)


def observe_change(table: str, dry_run: bool) -> None:
    DB_CHANGES_TOTAL.labels(table=table, dry_run=str(dry_run).lower()).inc()


def observe_update(table: str) -> None:
    DB_UPDATES_TOTAL.labels(table=table).inc()


def observe_conversion(kind: str, success: bool) -> None:
    DB_TABLE_CONVERSIONS_TOTAL.labels(kind=kind, status="success" if success else "error").inc()


def observe_error(category: str) -> None:
    RUN_ERRORS_TOTAL.labels(category=category).inc()
