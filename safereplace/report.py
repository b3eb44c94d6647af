"""
Run reports, the error log, and the event sink boundary.

The replace engine and table maintenance never render output themselves.
They call an injected ``EventSink`` with one of the events below; console,
file or structured-log renderers implement that single callable.

| event                 | arguments                                             |
|-----------------------|-------------------------------------------------------|
| error                 | category, message                                     |
| table_start           | table, search, replace                                |
| table_end             | table, {rows, change, updates, start, end}            |
| run_end               | search, replace, {tables, rows, change, updates, ...} |
| engine_converted      | table, {converted: {table: bool}}, engine             |
| collation_converted   | table, {converted: {table: bool}}, collation          |
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Protocol

from .db.metrics import observe_error

logger = logging.getLogger(__name__)

EVENT_ERROR = "error"
EVENT_TABLE_START = "table_start"
EVENT_TABLE_END = "table_end"
EVENT_RUN_END = "run_end"
EVENT_ENGINE_CONVERTED = "engine_converted"
EVENT_COLLATION_CONVERTED = "collation_converted"

CATEGORY_CONFIG = "config"
CATEGORY_CONNECTION = "connection"
CATEGORY_SCHEMA = "schema"
CATEGORY_QUERY = "query"
CATEGORY_CODEC = "codec"

# categories that mean the requested work was not (fully) done
RESULT_CATEGORIES = frozenset({CATEGORY_CONNECTION, CATEGORY_SCHEMA, CATEGORY_QUERY})


class EventSink(Protocol):
    def __call__(self, event: str, *args: Any) -> None:
        ...


def null_sink(event: str, *args: Any) -> None:
    return None


class LoggingEventSink:
    """
    Forward events to a logger with the event name and payload as extras.
    """

    def __init__(self, logger_: logging.Logger | None = None) -> None:
        self.logger = logger_ or logging.getLogger("safereplace.events")

    def __call__(self, event: str, *args: Any) -> None:
        level = logging.ERROR if event == EVENT_ERROR else logging.INFO
        self.logger.log(level, "%s %r", event, args, extra={"event": event, "payload": args})


class RecordingEventSink:
    """Keep every event in order, e.g. for rendering after the run."""

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []

    def __call__(self, event: str, *args: Any) -> None:
        self.events.append((event, args))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, event: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.events if name == event]


@dataclass(frozen=True)
class ErrorEntry:
    category: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


class ErrorLog:
    """
    Append-only, ordered record of every error caught during a run.

    Each append is also forwarded to the event sink as an ``error`` event.
    """

    def __init__(self, sink: EventSink | None = None) -> None:
        self._entries: list[ErrorEntry] = []
        self.sink = sink or null_sink

    def add(self, category: str, message: str, **context: Any) -> ErrorEntry:
        entry = ErrorEntry(category, message, dict(context))
        self._entries.append(entry)
        observe_error(category)
        logger.warning("%s error: %s", category, message)
        self.sink(EVENT_ERROR, category, message)
        return entry

    def __iter__(self) -> Iterator[ErrorEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[ErrorEntry, ...]:
        return tuple(self._entries)

    def by_category(self, category: str) -> list[ErrorEntry]:
        return [e for e in self._entries if e.category == category]

    def result_errors(self) -> list[ErrorEntry]:
        return [e for e in self._entries if e.category in RESULT_CATEGORIES]


def duration(start: float | None, end: float | None, scope: str = "") -> float | None:
    """
    Elapsed seconds between two timestamps.

    A negative duration is returned as-is and logged: it means a clock or
    ordering anomaly, not something to normalize away.
    """
    if start is None or end is None:
        return None
    elapsed = end - start
    if elapsed < 0:
        logger.warning(
            "Negative duration %.6fs for %s (start=%r, end=%r)",
            elapsed, scope or "report", start, end,
        )
    return elapsed


class _Finishable:
    _frozen: bool = False

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeError(f"{type(self).__name__} is finished and can no longer change")


@dataclass
class TableReport(_Finishable):
    table: str
    rows: int = 0
    change: int = 0
    updates: int = 0
    start: float | None = None
    end: float | None = None
    converted: bool | None = None

    def begin(self) -> "TableReport":
        self._check_open()
        self.start = time.time()
        return self

    def add_rows(self, count: int) -> None:
        self._check_open()
        self.rows += count

    def add_change(self) -> None:
        self._check_open()
        self.change += 1

    def add_update(self) -> None:
        self._check_open()
        self.updates += 1

    def finish(self) -> "TableReport":
        self._check_open()
        self.end = time.time()
        self._frozen = True
        return self

    @property
    def finished(self) -> bool:
        return self._frozen

    @property
    def elapsed(self) -> float | None:
        return duration(self.start, self.end, f"table {self.table}")

    def as_dict(self) -> dict[str, Any]:
        return {
            "rows": self.rows,
            "change": self.change,
            "updates": self.updates,
            "start": self.start,
            "end": self.end,
        }


@dataclass
class RunReport(_Finishable):
    tables: list[TableReport] = field(default_factory=list)
    start: float | None = None
    end: float | None = None
    converted: dict[str, bool] = field(default_factory=dict)
    cancelled: bool = False

    def begin(self) -> "RunReport":
        self._check_open()
        self.start = time.time()
        return self

    def add_table(self, report: TableReport) -> None:
        self._check_open()
        self.tables.append(report)
        if report.converted is not None:
            self.converted[report.table] = report.converted

    def finish(self, cancelled: bool = False) -> "RunReport":
        self._check_open()
        self.end = time.time()
        self.cancelled = cancelled
        self._frozen = True
        return self

    @property
    def finished(self) -> bool:
        return self._frozen

    @property
    def rows(self) -> int:
        return sum(t.rows for t in self.tables)

    @property
    def change(self) -> int:
        return sum(t.change for t in self.tables)

    @property
    def updates(self) -> int:
        return sum(t.updates for t in self.tables)

    @property
    def elapsed(self) -> float | None:
        return duration(self.start, self.end, "run")

    def table(self, name: str) -> TableReport | None:
        for report in self.tables:
            if report.table == name:
                return report
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "tables": len(self.tables),
            "rows": self.rows,
            "change": self.change,
            "updates": self.updates,
            "start": self.start,
            "end": self.end,
        }

    def converted_payload(self, table: str) -> dict[str, Any]:
        return {"converted": {table: self.converted.get(table, False)}}


def run_succeeded(errors: ErrorLog, dry_run: bool) -> bool:
    """
    Exit-status rule: a dry run always succeeds, otherwise success means no
    result-affecting errors were recorded.
    """
    return dry_run or not errors.result_errors()
