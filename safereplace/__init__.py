from .config import ConnectionConfig, MaintenanceSpec, RunConfig, SearchSpec, TableFilter
from .maintenance import TableMaintenance
from .replace.engine import ReplaceEngine
from .report import ErrorLog, LoggingEventSink, RecordingEventSink, RunReport, TableReport
from .runner import RunResult, run

__all__ = [
    "ConnectionConfig",
    "ErrorLog",
    "LoggingEventSink",
    "MaintenanceSpec",
    "RecordingEventSink",
    "ReplaceEngine",
    "RunConfig",
    "RunReport",
    "RunResult",
    "SearchSpec",
    "TableFilter",
    "TableMaintenance",
    "TableReport",
    "run",
]
