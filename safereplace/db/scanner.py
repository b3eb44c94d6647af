from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Iterator, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..errors import QueryError, SchemaError
from .helpers import key_params, select_page_sql
from .metrics import observe_page_fetch
from .models import PageCursor
from .session import DbSession

logger = logging.getLogger(__name__)


class RowScanner:
    """
    Keyset pagination over a table, ordered by its primary key.

    Each page is fetched with "key greater than the last key seen" and a
    LIMIT, never with OFFSET, so rows inserted or deleted elsewhere in the
    table during the scan cannot shift a row into an already-read page.

    Usage:
        scanner = RowScanner(session)
        cursor = scanner.open("posts", ("id",), ("content",), page_size=500)
        while (page := scanner.next_page(cursor)) is not None:
            rows, cursor = page
    """

    def __init__(self, session: DbSession) -> None:
        self.session = session

    def open(
        self,
        table: str,
        key_columns: Sequence[str],
        columns: Sequence[str],
        page_size: int,
    ) -> PageCursor:
        if not key_columns:
            raise SchemaError(f"Table {table} has no primary key to paginate on")
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")
        return PageCursor(
            table=table,
            key_columns=tuple(key_columns),
            columns=tuple(columns),
            page_size=page_size,
        )

    def next_page(self, cursor: PageCursor) -> tuple[list[dict[str, Any]], PageCursor] | None:
        """
        Fetch the page after ``cursor``.

        Returns the rows and the advanced cursor, or None once the scan is
        over. The advanced cursor is marked exhausted when the page came back
        short, so the following call returns None without a query.

        Raises:
            QueryError: If the SELECT fails.
        """
        if cursor.exhausted:
            return None

        sql = select_page_sql(
            self.session,
            cursor.table,
            cursor.key_columns,
            cursor.columns,
            after_key=cursor.last_key is not None,
        )
        params: dict[str, Any] = {"limit": cursor.page_size}
        if cursor.last_key is not None:
            params.update(key_params(cursor.key_columns, cursor.last_key, "k"))

        start_time = time.monotonic()
        try:
            rows = self.session.fetch_all(sql, params)
        except SQLAlchemyError as exc:
            raise QueryError(f"Failed to fetch page from {cursor.table}: {exc}") from exc
        observe_page_fetch(cursor.table, len(rows), time.monotonic() - start_time)

        if not rows:
            return None

        last_key = tuple(rows[-1][col] for col in cursor.key_columns)
        logger.debug("Fetched %d rows from %s after key %r", len(rows), cursor.table, cursor.last_key)
        advanced = replace(
            cursor,
            last_key=last_key,
            exhausted=len(rows) < cursor.page_size,
        )
        return rows, advanced

    def iter_pages(
        self,
        table: str,
        key_columns: Sequence[str],
        columns: Sequence[str],
        page_size: int,
    ) -> Iterator[list[dict[str, Any]]]:
        cursor = self.open(table, key_columns, columns, page_size)
        while True:
            page = self.next_page(cursor)
            if page is None:
                return
            rows, cursor = page
            yield rows
