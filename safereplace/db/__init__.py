from .introspect import Column, SchemaIntrospector
from .models import PageCursor, RowChange
from .scanner import RowScanner
from .session import DbSession

__all__ = [
    "Column",
    "DbSession",
    "PageCursor",
    "RowChange",
    "RowScanner",
    "SchemaIntrospector",
]
