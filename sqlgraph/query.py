"""Lazy vertex and edge sets compiled to nested SQL fragments.

A set is a graph reference plus the text of a ``SELECT`` over the ``nodes`` or
``edges`` table. Combinators wrap that text in a new ``SELECT`` and return a
new set; nothing runs until a terminal read or mutation. When the pending text
outgrows the graph's bounce threshold, the set is resolved to its ids once and
continues from ``SELECT * FROM <table> WHERE id IN (...)``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Callable, List, Sequence, Tuple, TypeVar, Union

from .codec import TextInput, as_text, decode_tags, decode_text
from .result import Result
from .traversal import ALWAYS, backward_reachability, forward_reachability, sql_literal, tag_path

if TYPE_CHECKING:
    from .graph import Graph

LOG = logging.getLogger(__name__)

_UNSET = object()

SetT = TypeVar("SetT", bound="_EntitySet")
TagKeys = Union[TextInput, Sequence[TextInput]]


def ids_fragment(table: str, ids: Sequence[int]) -> str:
    """Flat fragment selecting exactly ``ids``; an empty list matches nothing."""
    if not ids:
        return f"SELECT * FROM {table} WHERE 0"
    return f"SELECT * FROM {table} WHERE id IN ({','.join(str(int(i)) for i in ids)})"


def _ensure_id(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{ctx} requires a non-negative integer id")
    return value


def _ensure_count(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{ctx} requires a non-negative integer")
    return value


def _ensure_sql(value: Any, ctx: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{ctx} requires a non-empty SQL string")
    return value


def _render_tags(blob: str) -> str:
    if blob == "NULL":
        return blob
    return json.dumps(decode_tags(blob), ensure_ascii=False, sort_keys=True)


def _decode_columns(
    result: Result,
    labels: Sequence[str] = ("label",),
    blobs: Sequence[str] = ("tags",),
) -> Result:
    """Decode hex label cells and tags blobs in place, leaving ``NULL`` alone."""
    for idx, header in enumerate(result.headers):
        if header in labels:
            for row in result.body:
                if row[idx] != "NULL":
                    row[idx] = decode_text(row[idx])
        elif header in blobs:
            for row in result.body:
                row[idx] = _render_tags(row[idx])
    return result


class _EntitySet:
    """Shared behaviour of :class:`Vertices` and :class:`Edges`."""

    _TABLE = ""
    _COLUMNS: Tuple[str, ...] = ()

    __slots__ = ("_graph", "_sql")

    def __init__(self, graph: "Graph", sql: str) -> None:
        self._graph = graph
        self._sql = sql
        threshold = graph.bounce_threshold
        if threshold is not None and len(sql) > threshold:
            ids = self.id()
            LOG.debug("bounced %s fragment of %d chars to %d ids", self._TABLE, len(sql), len(ids))
            self._sql = ids_fragment(self._TABLE, ids)

    @property
    def graph(self) -> "Graph":
        return self._graph

    @property
    def sql(self) -> str:
        """The pending SQL text this set stands for."""
        return self._sql

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._sql!r})"

    def _derive(self: SetT, sql: str) -> SetT:
        return type(self)(self._graph, sql)

    def _pinned(self: SetT, entity_id: int) -> SetT:
        return self._derive(f"SELECT * FROM {self._TABLE} WHERE id = {entity_id}")

    def _check_peer(self, other: Any, ctx: str) -> None:
        if not isinstance(other, type(self)):
            raise TypeError(f"{ctx} requires a {type(self).__name__} set")
        if other._graph is not self._graph:
            raise ValueError(f"{ctx} cannot combine sets from different graphs")

    def _query(self, sql: str) -> Result:
        return self._graph._sql(sql)

    # Combinators

    def where(self: SetT, predicate: Union[str, Callable[[SetT], Any]]) -> SetT:
        """Narrow to rows where ``predicate`` holds.

        A string is spliced in as a raw SQL ``WHERE`` condition. A callable is
        called with every single-row set from :meth:`each`; the rows for which
        it returns a truthy value form the new set.
        """
        if callable(predicate):
            matched = [entity_id for entity_id in self.id() if predicate(self._pinned(entity_id))]
            return self._derive(ids_fragment(self._TABLE, matched))
        condition = _ensure_sql(predicate, "where()")
        return self._derive(f"SELECT * FROM ({self._sql}) WHERE {condition}")

    def limit(self: SetT, n: int) -> SetT:
        count = _ensure_count(n, "limit()")
        return self._derive(f"SELECT * FROM ({self._sql}) LIMIT {count}")

    def with_label(self: SetT, label: TextInput) -> SetT:
        return self._derive(f"SELECT * FROM ({self._sql}) WHERE label = {sql_literal(label)}")

    def with_tag(self: SetT, key: TextInput, value: TextInput) -> SetT:
        return self._derive(
            f"SELECT * FROM ({self._sql}) WHERE json_extract(tags, {tag_path(key)}) = {sql_literal(value)}"
        )

    def with_id(self: SetT, entity_id: int) -> SetT:
        checked = _ensure_id(entity_id, "with_id()")
        return self._derive(f"SELECT * FROM ({self._sql}) WHERE id = {checked}")

    def join(self: SetT, other: SetT) -> SetT:
        """Rows in this set, in ``other``, or in both."""
        self._check_peer(other, "join()")
        return self._derive(f"SELECT * FROM ({self._sql}) UNION SELECT * FROM ({other._sql})")

    def intersection(self: SetT, other: SetT) -> SetT:
        """Rows in both this set and ``other``."""
        self._check_peer(other, "intersection()")
        return self._derive(f"SELECT * FROM ({self._sql}) INTERSECT SELECT * FROM ({other._sql})")

    def complement(self: SetT, universe: SetT) -> SetT:
        """Rows in ``universe`` but not in this set."""
        self._check_peer(universe, "complement()")
        return self._derive(
            f"SELECT * FROM ({universe._sql}) WHERE id NOT IN (SELECT id FROM ({self._sql}))"
        )

    def excluding(self: SetT, other: SetT) -> SetT:
        """Rows in this set but not in ``other``."""
        self._check_peer(other, "excluding()")
        return self._derive(
            f"SELECT * FROM ({self._sql}) WHERE id NOT IN (SELECT id FROM ({other._sql}))"
        )

    # Reads

    def id(self) -> List[int]:
        """Ids of every row in this set, ascending."""
        result = self._query(f"SELECT id FROM ({self._sql}) ORDER BY id")
        return [int(value) for value in result.column("id")]

    def keys(self) -> List[str]:
        """Every tag key used by some row of this set, sorted by encoded bytes."""
        result = self._query(
            f"SELECT DISTINCT j.key AS key FROM ({self._sql}) AS s, json_each(s.tags) AS j ORDER BY j.key"
        )
        return [decode_text(key) for key in result.column("key")]

    def label(self: SetT, value: Any = _UNSET) -> Union[Result, SetT]:
        """Read labels as ``id|label`` rows, or set every label to ``value``."""
        if value is _UNSET:
            return _decode_columns(self._query(f"SELECT id, label FROM ({self._sql}) ORDER BY id"))
        self._query(
            f"UPDATE {self._TABLE} SET label = {sql_literal(value)} "
            f"WHERE id IN (SELECT id FROM ({self._sql}))"
        )
        return self

    def tag(self: SetT, key: TagKeys, value: Any = _UNSET) -> Union[Result, SetT]:
        """Read or write tags.

        ``tag(key)`` returns ``id|<key>`` rows, ``NULL`` where the tag is
        missing. ``tag([k1, k2])`` returns one column per key; the table's own
        column names select those columns instead of tags. ``tag(key, value)``
        stores ``value`` under ``key`` on every row and returns this set.
        """
        if isinstance(key, (list, tuple)):
            if value is not _UNSET:
                raise TypeError("tag() takes a single key when assigning a value")
            return self._read_tags(key, passthrough=True)
        if value is _UNSET:
            return self._read_tags([key], passthrough=False)
        self._query(
            f"UPDATE {self._TABLE} SET tags = json_set(tags, {tag_path(key)}, {sql_literal(value)}) "
            f"WHERE id IN (SELECT id FROM ({self._sql}))"
        )
        return self

    def _read_tags(self, keys: Sequence[TextInput], passthrough: bool) -> Result:
        if not keys:
            raise ValueError("tag() requires at least one key")
        columns: List[str] = []
        headers: List[str] = []
        labels: List[str] = []
        blobs: List[str] = []
        if not passthrough:
            columns.append("id")
            headers.append("id")
        for idx, key in enumerate(keys):
            name = as_text(key)
            alias = f"c{idx}"
            if passthrough and name in self._COLUMNS:
                columns.append(f"{name} AS {alias}")
                if name == "label":
                    labels.append(alias)
                elif name == "tags":
                    blobs.append(alias)
            else:
                columns.append(f"json_extract(tags, {tag_path(key)}) AS {alias}")
                labels.append(alias)
            headers.append(name)
        result = self._query(f"SELECT {', '.join(columns)} FROM ({self._sql}) ORDER BY id")
        _decode_columns(result, labels=labels, blobs=blobs)
        result.headers = headers
        return result

    def select(self, columns: str = "*") -> Result:
        """Rows of ``SELECT id, <columns>`` over this set, ordered by id.

        ``label`` columns come back decoded and ``tags`` columns as the JSON
        text of the decoded map.
        """
        what = _ensure_sql(columns, "select()")
        return _decode_columns(self._query(f"SELECT id, {what} FROM ({self._sql}) ORDER BY id"))

    def each(self: SetT) -> List[SetT]:
        """One set per row, each pinned to a single id."""
        return [self._pinned(entity_id) for entity_id in self.id()]

    # Mutations

    def lemma(self: SetT, fn: Callable[[SetT], Any]) -> SetT:
        """Call ``fn`` with this set, then return this set."""
        if not callable(fn):
            raise TypeError("lemma() requires a callable")
        fn(self)
        return self

    def erase(self) -> None:
        """Delete every row in this set."""
        self._query(f"DELETE FROM {self._TABLE} WHERE id IN (SELECT id FROM ({self._sql}))")


class Vertices(_EntitySet):
    """A lazy set of vertices."""

    _TABLE = "nodes"
    _COLUMNS = ("id", "label", "tags")

    __slots__ = ()

    def erase(self) -> None:
        """Delete these vertices and every edge left without a source or target."""
        super().erase()
        self._query(
            "DELETE FROM edges WHERE source NOT IN (SELECT id FROM nodes) "
            "OR target NOT IN (SELECT id FROM nodes)"
        )

    def in_(self) -> "Edges":
        """Edges whose target is in this set."""
        return Edges(self._graph, f"SELECT * FROM edges WHERE target IN (SELECT id FROM ({self._sql}))")

    def out(self) -> "Edges":
        """Edges whose source is in this set."""
        return Edges(self._graph, f"SELECT * FROM edges WHERE source IN (SELECT id FROM ({self._sql}))")

    def _with_degree(self, end: str, count: int, edge_where: str) -> "Vertices":
        return self._derive(
            f"WITH n AS ({self._sql}) "
            "SELECT id, label, tags FROM ("
            "SELECT n.*, COUNT(e.id) AS c "
            f"FROM n LEFT JOIN (SELECT * FROM edges WHERE {edge_where}) e "
            f"ON e.{end} = n.id "
            f"GROUP BY n.id) t WHERE t.c = {count}"
        )

    def _degree(self, end: str, column: str, edge_where: str) -> Result:
        return self._query(
            f"WITH n AS ({self._sql}) "
            f"SELECT t.id AS id, t.c AS {column} FROM ("
            "SELECT n.id AS id, COUNT(e.id) AS c "
            f"FROM n LEFT JOIN (SELECT * FROM edges WHERE {edge_where}) e "
            f"ON e.{end} = n.id "
            "GROUP BY n.id) t ORDER BY id"
        )

    def with_in_degree(self, count: int, edge_where: str = ALWAYS) -> "Vertices":
        """Vertices with exactly ``count`` incoming edges satisfying ``edge_where``."""
        return self._with_degree(
            "target", _ensure_count(count, "with_in_degree()"), _ensure_sql(edge_where, "with_in_degree()")
        )

    def with_out_degree(self, count: int, edge_where: str = ALWAYS) -> "Vertices":
        """Vertices with exactly ``count`` outgoing edges satisfying ``edge_where``."""
        return self._with_degree(
            "source", _ensure_count(count, "with_out_degree()"), _ensure_sql(edge_where, "with_out_degree()")
        )

    def in_degree(self, edge_where: str = ALWAYS) -> Result:
        """``id|in_degree`` rows counting incoming edges satisfying ``edge_where``."""
        return self._degree("target", "in_degree", _ensure_sql(edge_where, "in_degree()"))

    def out_degree(self, edge_where: str = ALWAYS) -> Result:
        """``id|out_degree`` rows counting outgoing edges satisfying ``edge_where``."""
        return self._degree("source", "out_degree", _ensure_sql(edge_where, "out_degree()"))

    def add_edge(self, other: "Vertices") -> "Edges":
        """Add an edge from every vertex here to every vertex in ``other``.

        Returns:
            The edges just inserted, and only those
        """
        self._check_peer(other, "add_edge()")
        first, count = self._graph._add_edge_product(self._sql, other._sql)
        if count == 0:
            return Edges(self._graph, ids_fragment("edges", []))
        return Edges(self._graph, f"SELECT * FROM edges WHERE id BETWEEN {first} AND {first + count - 1}")

    def traverse(self, node_where: str = ALWAYS, edge_where: str = ALWAYS) -> "Vertices":
        """This set plus every vertex reachable from it along admissible edges.

        ``edge_where`` may refer to the crossed edge as ``edges`` and
        ``node_where`` to the vertex it leads to as ``nodes``.
        """
        return self._derive(
            forward_reachability(
                self._sql, _ensure_sql(node_where, "traverse()"), _ensure_sql(edge_where, "traverse()")
            )
        )

    def r_traverse(self, node_where: str = ALWAYS, edge_where: str = ALWAYS) -> "Vertices":
        """This set plus every vertex that reaches it along admissible edges."""
        return self._derive(
            backward_reachability(
                self._sql, _ensure_sql(node_where, "r_traverse()"), _ensure_sql(edge_where, "r_traverse()")
            )
        )


class Edges(_EntitySet):
    """A lazy set of edges."""

    _TABLE = "edges"
    _COLUMNS = ("id", "source", "target", "label", "tags")

    __slots__ = ()

    def _check_vertices(self, vertices: Any, ctx: str) -> Vertices:
        if not isinstance(vertices, Vertices):
            raise TypeError(f"{ctx} requires a Vertices set")
        if vertices.graph is not self._graph:
            raise ValueError(f"{ctx} cannot combine sets from different graphs")
        return vertices

    def with_source(self, vertices: Vertices) -> "Edges":
        """Edges of this set whose source is in ``vertices``."""
        checked = self._check_vertices(vertices, "with_source()")
        return self._derive(f"SELECT * FROM ({self._sql}) WHERE source IN (SELECT id FROM ({checked.sql}))")

    def with_target(self, vertices: Vertices) -> "Edges":
        """Edges of this set whose target is in ``vertices``."""
        checked = self._check_vertices(vertices, "with_target()")
        return self._derive(f"SELECT * FROM ({self._sql}) WHERE target IN (SELECT id FROM ({checked.sql}))")

    def source(self) -> Vertices:
        """Vertices that are the source of some edge in this set."""
        return Vertices(self._graph, f"SELECT * FROM nodes WHERE id IN (SELECT source FROM ({self._sql}))")

    def target(self) -> Vertices:
        """Vertices that are the target of some edge in this set."""
        return Vertices(self._graph, f"SELECT * FROM nodes WHERE id IN (SELECT target FROM ({self._sql}))")


__all__ = ["Vertices", "Edges", "ids_fragment"]
