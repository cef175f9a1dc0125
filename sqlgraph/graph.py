"""Graph session: one SQLite connection, explicit transactions, id counters."""

from __future__ import annotations

import logging
import os
import sqlite3
from typing import Any, List, Optional, Tuple, Union

from .config import DEFAULT_PATH, GraphOptions, normalize_options
from .errors import ClosedError, IdConflictError, IoError, SqlError, wrap_sqlite_error
from .query import Edges, Vertices, _ensure_id
from .result import Result

LOG = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_MEMORY = ":memory:"

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS nodes ("
    "id INTEGER NOT NULL PRIMARY KEY, "
    "label TEXT DEFAULT '', "
    "tags TEXT DEFAULT '{}')",
    "CREATE TABLE IF NOT EXISTS edges ("
    "id INTEGER NOT NULL PRIMARY KEY, "
    "source INTEGER NOT NULL, "
    "target INTEGER NOT NULL, "
    "label TEXT DEFAULT '', "
    "tags TEXT DEFAULT '{}')",
    "CREATE INDEX IF NOT EXISTS edge_source ON edges(source)",
    "CREATE INDEX IF NOT EXISTS edge_target ON edges(target)",
    "CREATE INDEX IF NOT EXISTS edge_label ON edges(label)",
    "CREATE INDEX IF NOT EXISTS node_label ON nodes(label)",
    "CREATE INDEX IF NOT EXISTS node_id ON nodes(id)",
)


def _cell(value: Any) -> str:
    if value is None:
        return "NULL"
    return str(value)


def _is_memory(path: str) -> bool:
    return path in ("", _MEMORY)


def _remove_store(path: str) -> None:
    if _is_memory(path) or not os.path.exists(path):
        return
    try:
        os.remove(path)
    except OSError as err:
        raise IoError(f"Failed to remove graph store ({err.strerror})", path) from err


class Graph:
    """A property graph persisted in a SQLite store.

    Every session runs inside an open transaction; :meth:`commit` and
    :meth:`rollback` end it and start the next one.
    """

    def __init__(
        self,
        path: PathLike = DEFAULT_PATH,
        erase: bool = False,
        persistent: bool = True,
        **options: Any,
    ) -> None:
        self._options: GraphOptions = normalize_options(options)
        self._path = os.fspath(path)
        self._persistent = persistent
        self._closed = True
        self._conn: Optional[sqlite3.Connection] = None
        self.sql_call_counter = 0
        self.next_vertex_id = 1
        self.next_edge_id = 1

        if erase:
            _remove_store(self._path)
        try:
            self._conn = sqlite3.connect(
                self._path, timeout=self._options["timeout"], isolation_level=None
            )
        except sqlite3.Error as err:
            raise IoError(f"Failed to open graph store ({err})", self._path) from err
        self._closed = False
        try:
            for statement in _SCHEMA:
                self._sql(statement)
            self.next_vertex_id = self._max_id("nodes") + 1
            self.next_edge_id = self._max_id("edges") + 1
            self._sql("BEGIN")
        except SqlError as err:
            self._conn.close()
            self._closed = True
            raise IoError(f"Failed to open graph store ({err})", self._path) from err
        LOG.debug(
            "opened graph store %s (next vertex %d, next edge %d)",
            self._path,
            self.next_vertex_id,
            self.next_edge_id,
        )

    @classmethod
    def open(cls, path: PathLike = DEFAULT_PATH, **options: Any) -> "Graph":
        """Open (or create) the store at ``path``.

        ``erase`` and ``persistent`` are accepted here alongside the
        :class:`~sqlgraph.config.GraphOptions` keys.
        """
        erase = options.pop("erase", False)
        persistent = options.pop("persistent", True)
        return cls(path, erase=erase, persistent=persistent, **options)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Graph({self._path!r}, {state})"

    # Session

    @property
    def path(self) -> str:
        return self._path

    @property
    def persistent(self) -> bool:
        return self._persistent

    @property
    def options(self) -> GraphOptions:
        return dict(self._options)  # type: ignore[return-value]

    @property
    def bounce_threshold(self) -> Optional[int]:
        return self._options["bounce_threshold"]

    @property
    def id_policy(self) -> str:
        return self._options["id_policy"]

    @property
    def is_closed(self) -> bool:
        """Returns True if the graph has been closed."""
        return self._closed

    def _assert_open(self) -> None:
        if self._closed:
            raise ClosedError("graph is closed")

    def commit(self) -> None:
        """Commit the open transaction and begin a new one."""
        self._sql("COMMIT")
        self._sql("BEGIN")

    def rollback(self) -> None:
        """Discard the open transaction and begin a new one."""
        self._sql("ROLLBACK")
        self._sql("BEGIN")

    def close(self) -> None:
        """Commit, release the connection and drop a non-persistent store.

        Calling close() more than once is safe.
        """
        if self._closed or self._conn is None:
            return
        try:
            if self._conn.in_transaction:
                self._sql("COMMIT")
        finally:
            self._conn.close()
            self._closed = True
            LOG.debug("closed graph store %s after %d statements", self._path, self.sql_call_counter)
        if not self._persistent:
            _remove_store(self._path)

    def __enter__(self) -> "Graph":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the graph, discarding the open transaction if the block raised."""
        if exc_type is not None and not self._closed:
            try:
                self.rollback()
            finally:
                self.close()
            return
        self.close()

    # Executor

    def _run(self, statement: str) -> Tuple[List[str], List[Tuple[Any, ...]], int]:
        self._assert_open()
        self.sql_call_counter += 1
        LOG.debug("sql #%d: %s", self.sql_call_counter, statement)
        try:
            cursor = self._conn.execute(statement)
            rows = cursor.fetchall()
        except sqlite3.Error as err:
            LOG.error("In SQL '%s': %s", statement, err)
            raise wrap_sqlite_error(err, statement) from err
        headers = [column[0] for column in cursor.description or ()]
        return headers, rows, cursor.rowcount

    def _sql(self, statement: str) -> Result:
        """Run one statement and return its rows as strings."""
        headers, rows, _ = self._run(statement)
        return Result(headers, [[_cell(value) for value in row] for row in rows])

    def _max_id(self, table: str) -> int:
        value = self._sql(f"SELECT COALESCE(MAX(id), 0) AS m FROM {table}").column("m")[0]
        return int(value)

    def _first_free_id(self, table: str, counter: int) -> int:
        if self.id_policy == "check":
            return max(counter, self._max_id(table) + 1)
        return counter

    def _claim_id(self, table: str, entity_id: int) -> None:
        if self.id_policy != "check":
            return
        taken = self._sql(f"SELECT id FROM {table} WHERE id = {entity_id}")
        if not taken.is_empty():
            kind = "vertex" if table == "nodes" else "edge"
            raise IdConflictError(f"{kind} id {entity_id} is already in use")

    def _add_edge_product(self, left_sql: str, right_sql: str) -> Tuple[int, int]:
        """Insert an edge for every (left, right) pair; return (first id, count)."""
        first = self._first_free_id("edges", self.next_edge_id)
        _, _, count = self._run(
            "INSERT INTO edges (id, source, target) "
            f"SELECT {first - 1} + ROW_NUMBER() OVER (ORDER BY l.id, r.id), l.id, r.id "
            f"FROM ({left_sql}) AS l CROSS JOIN ({right_sql}) AS r"
        )
        count = max(count, 0)
        self.next_edge_id = first + count
        return first, count

    # Graph

    def all_vertices(self) -> Vertices:
        return self.v()

    def v(self, where: Optional[str] = None) -> Vertices:
        """Every vertex, or those satisfying the raw SQL condition ``where``."""
        self._assert_open()
        if where is None:
            return Vertices(self, "SELECT * FROM nodes")
        return Vertices(self, f"SELECT * FROM nodes WHERE {where}")

    def all_edges(self) -> Edges:
        return self.e()

    def e(self, where: Optional[str] = None) -> Edges:
        """Every edge, or those satisfying the raw SQL condition ``where``."""
        self._assert_open()
        if where is None:
            return Edges(self, "SELECT * FROM edges")
        return Edges(self, f"SELECT * FROM edges WHERE {where}")

    def add_vertex(self, vertex_id: Optional[int] = None) -> Vertices:
        """Insert a vertex with an empty label and no tags.

        Without ``vertex_id`` the next counter value is used.
        """
        if vertex_id is None:
            vertex_id = self._first_free_id("nodes", self.next_vertex_id)
            self._sql(f"INSERT INTO nodes (id, label, tags) VALUES ({vertex_id}, '', '{{}}')")
            self.next_vertex_id = vertex_id + 1
        else:
            _ensure_id(vertex_id, "add_vertex()")
            self._claim_id("nodes", vertex_id)
            self._sql(f"INSERT INTO nodes (id, label, tags) VALUES ({vertex_id}, '', '{{}}')")
        return Vertices(self, f"SELECT * FROM nodes WHERE id = {vertex_id}")

    def add_edge(self, source: int, target: int, edge_id: Optional[int] = None) -> Edges:
        """Insert an edge from ``source`` to ``target`` with an empty label and no tags."""
        _ensure_id(source, "add_edge()")
        _ensure_id(target, "add_edge()")
        auto = edge_id is None
        if auto:
            edge_id = self._first_free_id("edges", self.next_edge_id)
        else:
            _ensure_id(edge_id, "add_edge()")
            self._claim_id("edges", edge_id)
        self._sql(
            "INSERT INTO edges (id, source, target, label, tags) "
            f"VALUES ({edge_id}, {source}, {target}, '', '{{}}')"
        )
        if auto:
            self.next_edge_id = edge_id + 1
        return Edges(self, f"SELECT * FROM edges WHERE id = {edge_id}")

    def graphviz(self, path: PathLike) -> None:
        """Write the whole graph as Graphviz DOT to ``path``."""
        from .export import write_graphviz

        write_graphviz(self, path)


def open_graph(path: PathLike = DEFAULT_PATH, **options: Any) -> Graph:
    """Convenience wrapper for :meth:`Graph.open`."""
    return Graph.open(path, **options)


__all__ = ["Graph", "open_graph"]
