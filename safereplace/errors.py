class SafeReplaceError(Exception):
    """Base exception for safereplace errors."""


class ConfigError(SafeReplaceError, ValueError):
    """Invalid run configuration, raised before any table is touched."""


class DbConnectionError(SafeReplaceError):
    """The database connection could not be established."""


class SchemaError(SafeReplaceError):
    """A table or column is missing, or a table has no usable pagination key."""


class QueryError(SafeReplaceError):
    """A SELECT page, UPDATE or ALTER statement failed."""


class ParseError(SafeReplaceError, ValueError):
    """Input is not a well-formed serialized value."""

    def __init__(self, message: str, offset: int = 0) -> None:
        super().__init__(f"{message} (at byte {offset})")
        self.offset = offset
