"""Exception hierarchy shared by every sqlgraph module."""

from __future__ import annotations

import sqlite3
from typing import Dict, Optional, Type


class ErrorCode:
    """Error codes attached to every :class:`GraphError`."""
    UNKNOWN = "UNKNOWN"
    SQL = "SQL"
    CONSTRAINT = "CONSTRAINT"
    CODEC = "CODEC"
    COLUMN_NOT_FOUND = "COLUMN_NOT_FOUND"
    SHAPE_MISMATCH = "SHAPE_MISMATCH"
    IO = "IO"
    CLOSED = "CLOSED"
    ID_CONFLICT = "ID_CONFLICT"
    COMMAND = "COMMAND"


class GraphError(Exception):
    """Base exception class for all sqlgraph errors."""

    def __init__(self, message: str, code: str = ErrorCode.UNKNOWN):
        super().__init__(message)
        self.code = code


class SqlError(GraphError):
    """Error raised when SQLite rejects or fails a statement."""

    def __init__(self, message: str, statement: Optional[str] = None, code: str = ErrorCode.SQL):
        if statement is not None:
            message = f"{message} (in SQL '{statement}')"
        super().__init__(message, code)
        self.statement = statement


class ConstraintError(SqlError):
    """Error raised when a statement violates a table constraint (e.g. a duplicate id)."""

    def __init__(self, message: str, statement: Optional[str] = None):
        super().__init__(message, statement, ErrorCode.CONSTRAINT)


class CodecError(GraphError):
    """Error raised when hex content is malformed."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.CODEC)


class ColumnNotFoundError(GraphError):
    """Error raised when a result column is looked up by a name it does not have."""

    def __init__(self, column: str):
        super().__init__(f"Header value '{column}' is not present in results", ErrorCode.COLUMN_NOT_FOUND)
        self.column = column


class ShapeMismatchError(GraphError):
    """Error raised when rows cannot be lined up with headers or with another result."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.SHAPE_MISMATCH)


class IoError(GraphError):
    """Error raised when a store or export path cannot be opened."""

    def __init__(self, message: str, path: Optional[str] = None):
        if path is not None:
            message = f"{message}: '{path}'"
        super().__init__(message, ErrorCode.IO)
        self.path = path


class ClosedError(GraphError):
    """Error raised when operations are attempted on a closed graph."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.CLOSED)


class IdConflictError(GraphError):
    """Error raised when an explicit id is already taken and ids are checked."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.ID_CONFLICT)


class CommandError(GraphError):
    """Error raised by the command interpreter."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.COMMAND)


# Map of error code strings to their corresponding exception classes
_ERROR_CLASS_MAP: Dict[str, Type[GraphError]] = {
    ErrorCode.UNKNOWN: GraphError,
    ErrorCode.SQL: SqlError,
    ErrorCode.CONSTRAINT: ConstraintError,
    ErrorCode.CODEC: CodecError,
    ErrorCode.COLUMN_NOT_FOUND: ColumnNotFoundError,
    ErrorCode.SHAPE_MISMATCH: ShapeMismatchError,
    ErrorCode.IO: IoError,
    ErrorCode.CLOSED: ClosedError,
    ErrorCode.ID_CONFLICT: IdConflictError,
    ErrorCode.COMMAND: CommandError,
}


def error_class(code: str) -> Type[GraphError]:
    """Return the exception class registered for ``code``."""
    return _ERROR_CLASS_MAP.get(code, GraphError)


def wrap_sqlite_error(err: BaseException, statement: Optional[str] = None) -> GraphError:
    """Translate an exception raised by :mod:`sqlite3` into the sqlgraph taxonomy.

    Args:
        err: The exception raised while executing ``statement``
        statement: The SQL text that failed, kept on the returned error

    Returns:
        A typed GraphError subclass instance
    """
    if isinstance(err, GraphError):
        return err
    message = str(err)
    if isinstance(err, sqlite3.IntegrityError):
        return ConstraintError(message, statement)
    if isinstance(err, sqlite3.Error):
        return SqlError(message, statement)
    return GraphError(message, ErrorCode.UNKNOWN)
