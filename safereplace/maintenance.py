from __future__ import annotations

import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from .config import MaintenanceSpec, TableFilter, validate_plain_name
from .db.introspect import SchemaIntrospector
from .db.metrics import observe_conversion
from .db.session import DbSession
from .errors import QueryError, SchemaError
from .report import (
    CATEGORY_QUERY,
    CATEGORY_SCHEMA,
    EVENT_COLLATION_CONVERTED,
    EVENT_ENGINE_CONVERTED,
    ErrorLog,
    EventSink,
    RunReport,
    TableReport,
    null_sink,
)

logger = logging.getLogger(__name__)


def collation_charset(collation: str) -> str:
    """Character set a collation belongs to, e.g. utf8mb4_unicode_ci -> utf8mb4."""
    return collation.split("_", 1)[0]


class TableMaintenance:
    """
    Change the storage engine or default collation of tables, one ALTER each.

    A failure on one table is recorded in the error log and marks that table
    as not converted; the remaining tables are still processed.
    """

    def __init__(
        self,
        session: DbSession,
        sink: EventSink | None = None,
        errors: ErrorLog | None = None,
    ) -> None:
        self.session = session
        self.sink = sink or null_sink
        self.errors = errors if errors is not None else ErrorLog(self.sink)
        self.introspector = SchemaIntrospector(session)
        self._stopping = threading.Event()

    def stop(self) -> None:
        self._stopping.set()

    def alter_engine(self, table: str, engine_name: str, dry_run: bool = False) -> bool:
        engine_name = validate_plain_name(engine_name, "engine name")
        return self._alter(
            table,
            kind="engine",
            target=engine_name,
            current=self.introspector.current_engine,
            ddl=f"ALTER TABLE {self.session.quote(table)} ENGINE = {engine_name}",
            dry_run=dry_run,
        )

    def alter_collation(self, table: str, collation_name: str, dry_run: bool = False) -> bool:
        collation_name = validate_plain_name(collation_name, "collation name")
        charset = collation_charset(collation_name)
        return self._alter(
            table,
            kind="collation",
            target=collation_name,
            current=self.introspector.current_collation,
            ddl=(
                f"ALTER TABLE {self.session.quote(table)} "
                f"CONVERT TO CHARACTER SET {charset} COLLATE {collation_name}"
            ),
            dry_run=dry_run,
        )

    def _alter(self, table, kind, target, current, ddl, dry_run) -> bool:
        try:
            if not self.introspector.has_table(table):
                raise SchemaError(f"Table {table} does not exist; cannot change {kind} to {target}")
            if current(table) == target:
                logger.info("%s already uses %s %s", table, kind, target)
                return True
            if dry_run:
                logger.info("Dry run: would run %s", ddl)
                return True
            try:
                self.session.execute(ddl)
            except SQLAlchemyError as exc:
                raise QueryError(f"Failed to change {kind} of {table} to {target}: {exc}") from exc
        except SchemaError as exc:
            self.errors.add(CATEGORY_SCHEMA, str(exc), table=table, kind=kind)
            observe_conversion(kind, False)
            return False
        except QueryError as exc:
            self.errors.add(CATEGORY_QUERY, str(exc), table=table, kind=kind)
            observe_conversion(kind, False)
            return False

        logger.info("%s converted to %s %s", table, kind, target)
        observe_conversion(kind, True)
        return True

    def run(
        self,
        spec: MaintenanceSpec,
        table_filter: TableFilter | None = None,
        dry_run: bool = False,
    ) -> RunReport:
        """
        Apply ``spec`` to every selected table.

        The report holds one TableReport per table carrying only its
        ``converted`` flag; row counters stay at zero.
        """
        table_filter = table_filter or TableFilter()
        report = RunReport().begin()
        try:
            tables = self.introspector.list_tables(table_filter)
        except QueryError as exc:
            self.errors.add(CATEGORY_QUERY, str(exc))
            tables = []

        for table in tables:
            if self._stopping.is_set():
                break
            table_report = TableReport(table).begin()
            if spec.engine is not None:
                table_report.converted = self.alter_engine(table, spec.engine, dry_run)
                event, target = EVENT_ENGINE_CONVERTED, spec.engine
            else:
                table_report.converted = self.alter_collation(table, spec.collation, dry_run)
                event, target = EVENT_COLLATION_CONVERTED, spec.collation
            report.add_table(table_report.finish())
            self.sink(event, table, report.converted_payload(table), target)

        return report.finish(cancelled=self._stopping.is_set())
