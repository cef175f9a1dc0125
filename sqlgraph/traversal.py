"""Recursive reachability fragments and SQL predicate helpers.

Traversal predicates are raw SQL evaluated inside the recursive step, where
the edge being crossed is visible as ``edges`` and the vertex it leads to as
``nodes``::

    g.v("id = 1").traverse("nodes.id != 4", label_eq("edges", "DUMMY", negate=True))
"""

from __future__ import annotations

from typing import Optional

from .codec import TextInput, hex_encode

ALWAYS = "1"


def sql_literal(value: TextInput) -> str:
    """Quote the hex encoding of ``value`` as a SQL string literal."""
    return f"'{hex_encode(value)}'"


def tag_path(key: TextInput) -> str:
    """JSON path addressing the tag ``key`` inside a ``tags`` blob."""
    return f"'$.\"{hex_encode(key)}\"'"


def _column(table: Optional[str], name: str) -> str:
    return f"{table}.{name}" if table else name


def label_eq(table: Optional[str], label: TextInput, *, negate: bool = False) -> str:
    """Predicate matching rows whose label is ``label``.

    ``table`` qualifies the column (``"nodes"``/``"edges"`` inside a
    traversal); pass ``None`` for plain ``where`` clauses.
    """
    op = "!=" if negate else "="
    return f"{_column(table, 'label')} {op} {sql_literal(label)}"


def tag_eq(table: Optional[str], key: TextInput, value: TextInput) -> str:
    """Predicate matching rows whose tag ``key`` holds ``value``."""
    return f"json_extract({_column(table, 'tags')}, {tag_path(key)}) = {sql_literal(value)}"


def _reachability(start_sql: str, node_where: str, edge_where: str, forward: bool) -> str:
    near, far = ("source", "target") if forward else ("target", "source")
    return (
        "WITH RECURSIVE reach(id) AS ("
        f"SELECT id FROM ({start_sql}) "
        "UNION "
        f"SELECT edges.{far} FROM reach "
        f"JOIN edges ON edges.{near} = reach.id "
        f"JOIN nodes ON nodes.id = edges.{far} "
        f"WHERE ({edge_where}) AND ({node_where})"
        ") SELECT * FROM nodes WHERE id IN (SELECT id FROM reach)"
    )


def forward_reachability(start_sql: str, node_where: str = ALWAYS, edge_where: str = ALWAYS) -> str:
    """Vertices reachable from ``start_sql`` along admissible edges, start included."""
    return _reachability(start_sql, node_where, edge_where, forward=True)


def backward_reachability(start_sql: str, node_where: str = ALWAYS, edge_where: str = ALWAYS) -> str:
    """Vertices that reach ``start_sql`` along admissible edges, start included."""
    return _reachability(start_sql, node_where, edge_where, forward=False)


__all__ = [
    "ALWAYS",
    "sql_literal",
    "tag_path",
    "label_eq",
    "tag_eq",
    "forward_reachability",
    "backward_reachability",
]
