from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class PageCursor:
    """
    Position of a keyset scan: the last primary key seen and the page size.
    """
    table: str
    key_columns: tuple[str, ...]
    columns: tuple[str, ...]
    page_size: int
    last_key: Optional[tuple[Any, ...]] = None
    exhausted: bool = False


@dataclass(frozen=True)
class RowChange:
    """
    A single column value that the replace engine rewrote (or would rewrite).

    Only values whose content changes are reported; a pattern that matches
    but yields identical text produces no RowChange, so ``matched`` is always
    True for instances built by the engine.
    """
    table: str
    key: tuple[Any, ...]  # original primary key values
    column: str
    original: Any
    new: Any
    matched: bool
    # False when the serialized value needed length repair to parse
    round_tripped: bool = True
