"""Property-graph query algebra compiled to SQL for SQLite."""

__version__ = "0.1.0"

from .errors import (  # noqa: E402
    # Error types
    ErrorCode,
    GraphError,
    SqlError,
    ConstraintError,
    CodecError,
    ColumnNotFoundError,
    ShapeMismatchError,
    IoError,
    ClosedError,
    IdConflictError,
    CommandError,
    wrap_sqlite_error,
)
from .config import GraphOptions  # noqa: E402
from .graph import Graph, open_graph  # noqa: E402
from .query import Edges, Vertices  # noqa: E402
from .result import Result  # noqa: E402
from .traversal import label_eq, tag_eq  # noqa: E402

__all__ = [
    "version",
    "Graph",
    "GraphOptions",
    "Vertices",
    "Edges",
    "Result",
    "open_graph",
    "label_eq",
    "tag_eq",
    # Error types
    "ErrorCode",
    "GraphError",
    "SqlError",
    "ConstraintError",
    "CodecError",
    "ColumnNotFoundError",
    "ShapeMismatchError",
    "IoError",
    "ClosedError",
    "IdConflictError",
    "CommandError",
    "wrap_sqlite_error",
]


def version() -> str:
    """Return the package version string."""
    return __version__
