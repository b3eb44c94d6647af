from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import TextClause

from ..errors import DbConnectionError

Params = Mapping[str, Any]


class DbSession:
    """
    One database connection held for the length of a run, in AUTOCOMMIT mode.

    There is no enclosing transaction. Each statement commits on its own, so
    an UPDATE that went through stays applied when a later statement fails or
    the run is interrupted.

    Use as:
        with DbSession(engine) as session:
            rows = session.fetch_all("SELECT ...", {...})
            session.execute("UPDATE ...", {...})
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None

    def __enter__(self) -> "DbSession":
        if self._conn is not None:
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        try:
            raw = self.engine.connect()
        except SQLAlchemyError as exc:
            raise DbConnectionError(f"Could not connect to {self.engine.url!r}: {exc}") from exc
        self._conn = raw.execution_options(isolation_level="AUTOCOMMIT")
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()
        return False

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DbSession is not active; use within a context manager")
        return self._conn

    def quote(self, identifier: str) -> str:
        """Quote a table or column name for the connected dialect."""
        return self.engine.dialect.identifier_preparer.quote_identifier(identifier)

    def _run(self, sql: str | TextClause, params: Params | None) -> CursorResult:
        stmt = text(sql) if isinstance(sql, str) else sql
        return self.connection().execute(stmt, params or {})

    def execute(self, sql: str | TextClause, params: Params | None = None) -> int:
        """
        Run a statement that returns no rows and give back the affected row
        count. DDL reports no count and yields 0.
        """
        result = self._run(sql, params)
        try:
            rowcount = result.rowcount
        finally:
            result.close()
        if rowcount is None or rowcount < 0:
            return 0
        return int(rowcount)

    def execute_scalar(self, sql: str | TextClause, params: Params | None = None) -> Any:
        return self._run(sql, params).scalar_one_or_none()

    def fetch_one(self, sql: str | TextClause, params: Params | None = None) -> dict[str, Any] | None:
        """Zero or one row as a dict; more than one row raises."""
        row = self._run(sql, params).mappings().one_or_none()
        return None if row is None else dict(row)

    def fetch_all(self, sql: str | TextClause, params: Params | None = None) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(sql, params).mappings()]
