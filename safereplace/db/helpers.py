from __future__ import annotations

from typing import Any, Mapping, Sequence

from .session import DbSession


def key_params(key_columns: Sequence[str], values: Sequence[Any], prefix: str) -> dict[str, Any]:
    return {f"{prefix}{i}": value for i, value in enumerate(values)}


def keyset_predicate(session: DbSession, key_columns: Sequence[str], prefix: str = "k") -> str:
    """
    Build a "strictly after this key" predicate for a (possibly composite) key.

    For key columns (a, b, c) and last-seen values (:k0, :k1, :k2):

        (a > :k0) OR (a = :k0 AND b > :k1) OR (a = :k0 AND b = :k1 AND c > :k2)
    """
    quoted = [session.quote(col) for col in key_columns]
    terms = []
    for i, col in enumerate(quoted):
        parts = [f"{quoted[j]} = :{prefix}{j}" for j in range(i)]
        parts.append(f"{col} > :{prefix}{i}")
        terms.append("(" + " AND ".join(parts) + ")")
    return " OR ".join(terms)


def key_equals(session: DbSession, key_columns: Sequence[str], prefix: str = "w") -> str:
    return " AND ".join(
        f"{session.quote(col)} = :{prefix}{i}" for i, col in enumerate(key_columns)
    )


def select_page_sql(
    session: DbSession,
    table: str,
    key_columns: Sequence[str],
    columns: Sequence[str],
    after_key: bool,
) -> str:
    selected = list(key_columns) + [c for c in columns if c not in key_columns]
    col_sql = ", ".join(session.quote(c) for c in selected)
    order_sql = ", ".join(session.quote(c) for c in key_columns)
    sql = f"SELECT {col_sql} FROM {session.quote(table)}"
    if after_key:
        sql += f" WHERE {keyset_predicate(session, key_columns)}"
    return f"{sql} ORDER BY {order_sql} LIMIT :limit"


def update_row(
    session: DbSession,
    table: str,
    key_columns: Sequence[str],
    key_values: Sequence[Any],
    updates: Mapping[str, Any],
) -> int:
    """
    Update one row identified by its original primary key values.

    Column values bind as ``:v0..:vN`` and key values as ``:w0..:wN`` so a key
    column that is itself being rewritten can appear on both sides.
    """
    if not updates:
        return 0

    params: dict[str, Any] = key_params(key_columns, key_values, "w")
    set_clauses = []
    for i, (col, val) in enumerate(updates.items()):
        set_clauses.append(f"{session.quote(col)} = :v{i}")
        params[f"v{i}"] = val

    sql = (
        f"UPDATE {session.quote(table)} SET {', '.join(set_clauses)} "
        f"WHERE {key_equals(session, key_columns)}"
    )
    return session.execute(sql, params)
