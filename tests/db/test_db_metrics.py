from __future__ import annotations

from safereplace.db.metrics import (
    observe_change,
    observe_conversion,
    observe_error,
    observe_page_fetch,
    observe_update,
)
from safereplace.metrics.registry import (
    DB_CHANGES_TOTAL,
    DB_PAGE_FETCH_LATENCY_SECONDS,
    DB_ROWS_SCANNED_TOTAL,
    DB_TABLE_CONVERSIONS_TOTAL,
    DB_UPDATES_TOTAL,
    RUN_ERRORS_TOTAL,
)


class TestObservePageFetch:
    """Tests for observe_page_fetch() function."""

    def test_adds_page_rows_to_counter(self) -> None:
        table = "metrics_rows_table"
        initial = DB_ROWS_SCANNED_TOTAL.labels(table=table)._value.get()

        observe_page_fetch(table, rows=25, latency_s=0.01)

        assert DB_ROWS_SCANNED_TOTAL.labels(table=table)._value.get() == initial + 25

    def test_records_latency_in_histogram(self) -> None:
        observe_page_fetch("metrics_latency_table", rows=1, latency_s=0.2)
        samples = list(DB_PAGE_FETCH_LATENCY_SECONDS.labels(table="metrics_latency_table").collect())
        assert len(samples) > 0


class TestObserveWrites:
    """Tests for change/update counters."""

    def test_dry_run_changes_tracked_separately(self) -> None:
        table = "metrics_change_table"
        dry = DB_CHANGES_TOTAL.labels(table=table, dry_run="true")._value.get()
        wet = DB_CHANGES_TOTAL.labels(table=table, dry_run="false")._value.get()

        observe_change(table, dry_run=True)

        assert DB_CHANGES_TOTAL.labels(table=table, dry_run="true")._value.get() == dry + 1
        assert DB_CHANGES_TOTAL.labels(table=table, dry_run="false")._value.get() == wet

    def test_update_increments_counter(self) -> None:
        table = "metrics_update_table"
        initial = DB_UPDATES_TOTAL.labels(table=table)._value.get()
        observe_update(table)
        assert DB_UPDATES_TOTAL.labels(table=table)._value.get() == initial + 1


class TestObserveOutcomes:
    """Tests for conversion and error counters."""

    def test_conversion_status_labels(self) -> None:
        ok = DB_TABLE_CONVERSIONS_TOTAL.labels(kind="engine", status="success")._value.get()
        failed = DB_TABLE_CONVERSIONS_TOTAL.labels(kind="engine", status="error")._value.get()

        observe_conversion("engine", True)
        observe_conversion("engine", False)

        assert DB_TABLE_CONVERSIONS_TOTAL.labels(kind="engine", status="success")._value.get() == ok + 1
        assert DB_TABLE_CONVERSIONS_TOTAL.labels(kind="engine", status="error")._value.get() == failed + 1

    def test_error_counter_by_category(self) -> None:
        initial = RUN_ERRORS_TOTAL.labels(category="metrics_test")._value.get()
        observe_error("metrics_test")
        assert RUN_ERRORS_TOTAL.labels(category="metrics_test")._value.get() == initial + 1
