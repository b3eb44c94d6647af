from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import URL, Engine

from .errors import ConfigError

DEFAULT_PAGE_SIZE = 50_000


@dataclass(frozen=True)
class ConnectionConfig:
    host: str
    user: str
    database: str
    password: str = ""
    port: int = 3306
    charset: str = "utf8mb4"

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigError("host is required")
        if not self.user:
            raise ConfigError("user is required")
        if not self.database:
            raise ConfigError("database name is required")
        if not 0 < self.port < 65536:
            raise ConfigError(f"port must be in 1..65535, got {self.port}")

    def url(self) -> URL:
        return URL.create(
            "mysql+pymysql",
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database,
            query={"charset": self.charset},
        )

    def create_engine(self, **kwargs) -> Engine:
        kwargs.setdefault("pool_pre_ping", True)
        return sa_create_engine(self.url(), **kwargs)


def _names(values: Sequence[str] | str | None) -> tuple[str, ...] | None:
    if values is None:
        return None
    if isinstance(values, str):
        values = values.split(",")
    names = tuple(dict.fromkeys(v.strip() for v in values if v and v.strip()))
    return names or None


@dataclass(frozen=True)
class TableFilter:
    """
    Allow/deny lists for tables and columns.

    An allow-list, when given, is authoritative: only the listed names are
    considered. The deny-list is then removed from whatever remains, so a
    name present in both lists is excluded.
    """

    tables: tuple[str, ...] | None = None
    exclude_tables: tuple[str, ...] | None = None
    include_columns: tuple[str, ...] | None = None
    exclude_columns: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        # accept lists or comma separated strings from callers
        for name in ("tables", "exclude_tables", "include_columns", "exclude_columns"):
            object.__setattr__(self, name, _names(getattr(self, name)))

    def select_tables(self, available: Sequence[str]) -> list[str]:
        return self._select(available, self.tables, self.exclude_tables)

    def select_columns(self, available: Sequence[str]) -> list[str]:
        return self._select(available, self.include_columns, self.exclude_columns)

    @staticmethod
    def _select(
        available: Sequence[str],
        allow: tuple[str, ...] | None,
        deny: tuple[str, ...] | None,
    ) -> list[str]:
        if allow is not None:
            selected = [name for name in available if name in allow]
        else:
            selected = list(available)
        if deny is not None:
            selected = [name for name in selected if name not in deny]
        return selected


@dataclass(frozen=True)
class SearchSpec:
    """
    Ordered (pattern, replacement) pairs applied one full pass at a time.
    """

    pairs: tuple[tuple[str, str], ...]
    regex: bool = False

    def __post_init__(self) -> None:
        pairs = tuple((str(s), str(r)) for s, r in self.pairs)
        if not pairs:
            raise ConfigError("at least one search pattern is required")
        for pattern, _ in pairs:
            if pattern == "":
                raise ConfigError("search pattern cannot be empty")
        object.__setattr__(self, "pairs", pairs)
        # compile up front so an invalid regex fails before scanning
        from .replace.patterns import build_replacers

        build_replacers(self)

    @classmethod
    def from_values(
        cls,
        search: str | Sequence[str],
        replace: str | Sequence[str],
        regex: bool = False,
    ) -> "SearchSpec":
        """
        Normalize "string or list of strings" search/replace values.

        Lists are paired positionally. A single replacement string is used
        for every search string.
        """
        searches = [search] if isinstance(search, str) else list(search)
        if isinstance(replace, str):
            replaces = [replace] * len(searches)
        else:
            replaces = list(replace)
        if len(searches) != len(replaces):
            raise ConfigError(
                f"search and replace lists differ in length ({len(searches)} != {len(replaces)})"
            )
        return cls(pairs=tuple(zip(searches, replaces)), regex=regex)

    @property
    def search(self) -> list[str]:
        return [s for s, _ in self.pairs]

    @property
    def replace(self) -> list[str]:
        return [r for _, r in self.pairs]


_PLAIN_NAME = re.compile(r"^[A-Za-z0-9_]+$")


def validate_plain_name(name: str, what: str) -> str:
    """
    Validate an engine or collation name before it is interpolated into DDL.
    """
    if not isinstance(name, str) or not name:
        raise ConfigError(f"{what} cannot be empty")
    if not _PLAIN_NAME.match(name) or len(name) > 64:
        raise ConfigError(f"Invalid {what} {name!r}: only letters, digits and underscores are allowed")
    return name


@dataclass(frozen=True)
class MaintenanceSpec:
    engine: str | None = None
    collation: str | None = None

    def __post_init__(self) -> None:
        if (self.engine is None) == (self.collation is None):
            raise ConfigError("exactly one of engine or collation must be given")
        if self.engine is not None:
            validate_plain_name(self.engine, "engine name")
        if self.collation is not None:
            validate_plain_name(self.collation, "collation name")


@dataclass(frozen=True)
class RunConfig:
    search: SearchSpec | None = None
    maintenance: MaintenanceSpec | None = None
    filter: TableFilter = field(default_factory=TableFilter)
    page_size: int = DEFAULT_PAGE_SIZE
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.search is not None and self.maintenance is not None:
            raise ConfigError(
                "search/replace and engine/collation changes cannot run together"
            )
        if self.search is None and self.maintenance is None:
            raise ConfigError("nothing to do: give search/replace values or an engine/collation")
        if self.page_size <= 0:
            raise ConfigError(f"page_size must be > 0, got {self.page_size}")

    @property
    def is_maintenance(self) -> bool:
        return self.maintenance is not None
