from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy import inspect
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from ..config import TableFilter
from ..errors import QueryError, SchemaError
from .session import DbSession

logger = logging.getLogger(__name__)


class Column(NamedTuple):
    name: str
    is_primary_key: bool


class SchemaIntrospector:
    """
    Lists tables, columns and primary keys for the connected database.

    A fresh SQLAlchemy Inspector is used per call so a table dropped while a
    run is in progress is noticed on the next lookup instead of being served
    from reflection cache.
    """

    def __init__(self, session: DbSession) -> None:
        self.session = session

    def _inspector(self) -> Inspector:
        return inspect(self.session.connection())

    def list_tables(self, table_filter: TableFilter | None = None) -> list[str]:
        """
        Return selected table names in lexical order.

        Names on an allow-list are returned even when the table does not
        exist, so that callers can report them individually.
        """
        table_filter = table_filter or TableFilter()
        try:
            existing = self._inspector().get_table_names()
        except SQLAlchemyError as exc:
            raise QueryError(f"Could not list tables: {exc}") from exc
        candidates = list(table_filter.tables) if table_filter.tables is not None else existing
        return sorted(table_filter.select_tables(candidates))

    def has_table(self, table: str) -> bool:
        try:
            return self._inspector().has_table(table)
        except SQLAlchemyError as exc:
            raise QueryError(f"Could not look up table {table}: {exc}") from exc

    def primary_key(self, table: str) -> tuple[str, ...]:
        try:
            inspector = self._inspector()
            if not inspector.has_table(table):
                raise NoSuchTableError(table)
            pk = inspector.get_pk_constraint(table) or {}
        except NoSuchTableError as exc:
            raise SchemaError(f"Table {table} does not exist") from exc
        except SQLAlchemyError as exc:
            raise QueryError(f"Could not read primary key of {table}: {exc}") from exc
        return tuple(pk.get("constrained_columns") or ())

    def list_columns(self, table: str, table_filter: TableFilter | None = None) -> list[Column]:
        """
        Return the table's columns in declaration order, filtered by the
        column allow/deny lists.
        """
        table_filter = table_filter or TableFilter()
        inspector = self._inspector()
        try:
            if not inspector.has_table(table):
                raise NoSuchTableError(table)
            columns = [col["name"] for col in inspector.get_columns(table)]
            pk = inspector.get_pk_constraint(table) or {}
        except NoSuchTableError as exc:
            raise SchemaError(f"Table {table} does not exist") from exc
        except SQLAlchemyError as exc:
            raise QueryError(f"Could not read columns of {table}: {exc}") from exc

        pk_columns = set(pk.get("constrained_columns") or ())
        return [
            Column(name, name in pk_columns)
            for name in table_filter.select_columns(columns)
        ]

    def _table_status(self, table: str) -> dict | None:
        if self.session.dialect_name not in ("mysql", "mariadb"):
            return None
        try:
            row = self.session.fetch_one(
                "SELECT ENGINE AS table_engine, TABLE_COLLATION AS table_collation "
                "FROM information_schema.TABLES "
                "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table",
                {"table": table},
            )
        except SQLAlchemyError as exc:
            raise QueryError(f"Could not read status of {table}: {exc}") from exc
        if row is None:
            raise SchemaError(f"Table {table} does not exist")
        return row

    def current_engine(self, table: str) -> str | None:
        """Storage engine of ``table``; None where the dialect has no such notion."""
        status = self._table_status(table)
        return status["table_engine"] if status else None

    def current_collation(self, table: str) -> str | None:
        status = self._table_status(table)
        return status["table_collation"] if status else None
