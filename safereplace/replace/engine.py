from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..config import DEFAULT_PAGE_SIZE, SearchSpec, TableFilter
from ..db.helpers import update_row
from ..db.introspect import SchemaIntrospector
from ..db.metrics import observe_change, observe_update
from ..db.models import RowChange
from ..db.scanner import RowScanner
from ..db.session import DbSession
from ..errors import ConfigError, QueryError, SchemaError
from ..report import (
    CATEGORY_QUERY,
    CATEGORY_SCHEMA,
    EVENT_RUN_END,
    EVENT_TABLE_END,
    EVENT_TABLE_START,
    ErrorLog,
    EventSink,
    RunReport,
    TableReport,
    null_sink,
)
from .patterns import build_replacers
from .rewrite import ValueRewriter

logger = logging.getLogger(__name__)


def _payload(values: list[str]) -> str | list[str]:
    return values[0] if len(values) == 1 else values


class ReplaceEngine:
    """
    Search/replace across every selected table, row and column.

    Tables are processed one after another; within a table, pages are read
    in primary key order and each changed row is written back with its own
    single-row UPDATE keyed on the primary key values it was read with.
    There is no transaction spanning rows or tables: a failure or an
    interrupt leaves rows already updated in place and the rest unvisited,
    and a concurrent writer can observe a partially rewritten table.

    Per table:
        Scanning -> Evaluating -> Updating | SkippedDryRun -> next page | Done

    ``stop()`` requests cancellation; it is honoured between pages and
    between tables, never in the middle of a row.

    Usage:
        with DbSession(engine) as session:
            report = ReplaceEngine(session, sink=LoggingEventSink()).run(
                SearchSpec.from_values("http://old", "https://new"),
                TableFilter(tables=["wp_options", "wp_posts"]),
                dry_run=True,
            )
    """

    def __init__(
        self,
        session: DbSession,
        sink: EventSink | None = None,
        errors: ErrorLog | None = None,
        charset: str = "utf8mb4",
        on_change: Callable[[RowChange], None] | None = None,
    ) -> None:
        self.session = session
        self.sink = sink or null_sink
        self.errors = errors if errors is not None else ErrorLog(self.sink)
        self.charset = charset
        self.on_change = on_change
        self.introspector = SchemaIntrospector(session)
        self.scanner = RowScanner(session)
        self._stopping = threading.Event()

    def stop(self) -> None:
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def run(
        self,
        spec: SearchSpec,
        table_filter: TableFilter | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        dry_run: bool = False,
    ) -> RunReport:
        if page_size <= 0:
            raise ConfigError(f"page_size must be > 0, got {page_size}")
        table_filter = table_filter or TableFilter()
        rewriter = ValueRewriter(build_replacers(spec), self.charset, spec.replace)
        search, replace = _payload(spec.search), _payload(spec.replace)

        report = RunReport().begin()
        try:
            tables = self.introspector.list_tables(table_filter)
        except QueryError as exc:
            self.errors.add(CATEGORY_QUERY, str(exc))
            tables = []

        for table in tables:
            if self.stopping:
                logger.info("Stop requested; %s and later tables not visited", table)
                break
            table_report = TableReport(table).begin()
            self.sink(EVENT_TABLE_START, table, search, replace)
            try:
                self._process_table(table_report, table_filter, rewriter, page_size, dry_run)
            except SchemaError as exc:
                self.errors.add(CATEGORY_SCHEMA, str(exc), table=table)
            except QueryError as exc:
                self.errors.add(CATEGORY_QUERY, str(exc), table=table)
            table_report.finish()
            report.add_table(table_report)
            logger.info(
                "%s: %d rows, %d changes, %d updates",
                table, table_report.rows, table_report.change, table_report.updates,
            )
            self.sink(EVENT_TABLE_END, table, table_report.as_dict())

        report.finish(cancelled=self.stopping)
        self.sink(EVENT_RUN_END, search, replace, report.as_dict())
        return report

    def _process_table(
        self,
        report: TableReport,
        table_filter: TableFilter,
        rewriter: ValueRewriter,
        page_size: int,
        dry_run: bool,
    ) -> None:
        table = report.table
        if not self.introspector.has_table(table):
            raise SchemaError(f"Table {table} does not exist")

        columns = [col.name for col in self.introspector.list_columns(table, table_filter)]
        key_columns = self.introspector.primary_key(table)
        if not key_columns:
            raise SchemaError(
                f"Table {table} has no primary key; changes will have to be made manually"
            )
        if not columns:
            logger.info("No columns selected in %s; skipping", table)
            return

        # keys given to rows whose key columns were rewritten; such a row can
        # reappear on a later page and must not be visited twice
        moved: set[tuple[Any, ...]] = set()
        cursor = self.scanner.open(table, key_columns, columns, page_size)
        while not self.stopping:
            page = self.scanner.next_page(cursor)
            if page is None:
                break
            rows, cursor = page
            for row in rows:
                if moved and tuple(row[col] for col in key_columns) in moved:
                    continue
                report.add_rows(1)
                new_key = self._process_row(report, row, key_columns, columns, rewriter, dry_run)
                if new_key is not None:
                    moved.add(new_key)

    def _process_row(
        self,
        report: TableReport,
        row: dict[str, Any],
        key_columns: Sequence[str],
        columns: Sequence[str],
        rewriter: ValueRewriter,
        dry_run: bool,
    ) -> tuple[Any, ...] | None:
        """
        Rewrite one row. Returns the row's new key when an UPDATE changed
        one of its key columns, otherwise None.
        """
        table = report.table
        key = tuple(row[col] for col in key_columns)
        updates: dict[str, Any] = {}

        for column in columns:
            original = row[column]
            if not isinstance(original, (str, bytes)):
                continue
            result = rewriter.rewrite(original)
            if not result.changed:
                continue
            report.add_change()
            observe_change(table, dry_run)
            updates[column] = result.value
            if not result.round_tripped:
                logger.warning(
                    "%s.%s %r: serialized value had stale string lengths; rewritten with corrected lengths",
                    table, column, key,
                )
            if self.on_change is not None:
                self.on_change(
                    RowChange(
                        table=table,
                        key=key,
                        column=column,
                        original=original,
                        new=result.value,
                        matched=True,
                        round_tripped=result.round_tripped,
                    )
                )

        if not updates:
            return None
        if dry_run:
            logger.debug("Dry run: skipping update of %s %r (%s)", table, key, ", ".join(updates))
            return None

        try:
            rowcount = update_row(self.session, table, key_columns, key, updates)
        except SQLAlchemyError as exc:
            raise QueryError(f"Failed to update {table} row {key!r}: {exc}") from exc
        if not rowcount:
            logger.info("Row %r of %s was not updated; it may have been deleted", key, table)
            return None
        report.add_update()
        observe_update(table)
        new_key = tuple(updates.get(col, row[col]) for col in key_columns)
        return new_key if new_key != key else None
