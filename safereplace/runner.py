from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.engine import Engine

from .config import ConnectionConfig, RunConfig
from .db.session import DbSession
from .errors import DbConnectionError
from .maintenance import TableMaintenance
from .replace.engine import ReplaceEngine
from .report import CATEGORY_CONNECTION, ErrorLog, EventSink, RunReport, null_sink, run_succeeded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    report: RunReport
    errors: ErrorLog
    dry_run: bool

    @property
    def succeeded(self) -> bool:
        return run_succeeded(self.errors, self.dry_run)


def run(
    config: RunConfig,
    connection: ConnectionConfig | Engine,
    sink: EventSink | None = None,
) -> RunResult:
    """
    Open one connection and run either search/replace or table maintenance.

    The process is never terminated here; the caller decides the exit status
    from ``RunResult.succeeded``.

    Raises:
        DbConnectionError: If the database cannot be reached. The failure is
            recorded and emitted as an ``error`` event first.
    """
    sink = sink or null_sink
    errors = ErrorLog(sink)
    if isinstance(connection, ConnectionConfig):
        engine = connection.create_engine()
        charset = connection.charset
    else:
        engine = connection
        charset = "utf8mb4"

    try:
        with DbSession(engine) as session:
            if config.is_maintenance:
                report = TableMaintenance(session, sink, errors).run(
                    config.maintenance, config.filter, dry_run=config.dry_run
                )
            else:
                report = ReplaceEngine(session, sink, errors, charset=charset).run(
                    config.search, config.filter, config.page_size, config.dry_run
                )
    except DbConnectionError as exc:
        errors.add(CATEGORY_CONNECTION, str(exc))
        raise
    finally:
        if isinstance(connection, ConnectionConfig):
            engine.dispose()

    return RunResult(report=report, errors=errors, dry_run=config.dry_run)
