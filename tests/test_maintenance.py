from __future__ import annotations

import pytest

from safereplace.config import MaintenanceSpec, TableFilter
from safereplace.db.session import DbSession
from safereplace.errors import ConfigError
from safereplace.maintenance import TableMaintenance, collation_charset
from safereplace.report import RecordingEventSink


@pytest.mark.parametrize(
    "collation, charset",
    [
        ("utf8mb4_unicode_ci", "utf8mb4"),
        ("latin1_swedish_ci", "latin1"),
        ("binary", "binary"),
    ],
)
def test_collation_charset(collation: str, charset: str) -> None:
    assert collation_charset(collation) == charset


def test_missing_table_is_not_converted_and_run_continues(engine, table_factory) -> None:
    existing = table_factory("id INTEGER PRIMARY KEY", name="t2")
    sink = RecordingEventSink()

    with DbSession(engine) as session:
        maintenance = TableMaintenance(session, sink)
        report = maintenance.run(MaintenanceSpec(engine="InnoDB"), TableFilter(tables=["t1", existing]))

    assert report.converted["t1"] is False
    assert maintenance.errors.by_category("schema")[0].message.startswith("Table t1 does not exist")
    # SQLite has no storage engines, so the ALTER for t2 is rejected
    assert report.converted["t2"] is False
    assert [e.category for e in maintenance.errors] == ["schema", "query"]
    assert sink.of("engine_converted") == [
        ("t1", {"converted": {"t1": False}}, "InnoDB"),
        ("t2", {"converted": {"t2": False}}, "InnoDB"),
    ]


def test_dry_run_reports_existing_tables_as_converted(engine, table_factory) -> None:
    table = table_factory("id INTEGER PRIMARY KEY")
    sink = RecordingEventSink()

    with DbSession(engine) as session:
        maintenance = TableMaintenance(session, sink)
        report = maintenance.run(
            MaintenanceSpec(collation="utf8mb4_unicode_ci"), TableFilter(tables=[table]), dry_run=True
        )

    assert len(maintenance.errors) == 0
    assert report.converted == {table: True}
    assert report.rows == 0
    assert sink.of("collation_converted") == [
        (table, {"converted": {table: True}}, "utf8mb4_unicode_ci")
    ]


def test_alter_engine_rejects_unsafe_names(engine, table_factory) -> None:
    table = table_factory("id INTEGER PRIMARY KEY")
    with DbSession(engine) as session:
        with pytest.raises(ConfigError):
            TableMaintenance(session).alter_engine(table, "InnoDB; DROP TABLE x")


def test_stop_before_run_visits_no_tables(engine, table_factory) -> None:
    table = table_factory("id INTEGER PRIMARY KEY")
    with DbSession(engine) as session:
        maintenance = TableMaintenance(session)
        maintenance.stop()
        report = maintenance.run(MaintenanceSpec(engine="InnoDB"), TableFilter(tables=[table]))

    assert report.tables == []
    assert report.cancelled is True
