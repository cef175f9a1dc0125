"""Divisibility graph: which numbers divide which, and which are prime."""

from __future__ import annotations

import argparse
import tempfile
from pathlib import Path

from sqlgraph import Graph


def temp_db_path() -> str:
    directory = Path(tempfile.mkdtemp())
    return str(directory / "division.db")


def build(g: Graph, limit: int) -> None:
    for i in range(2, limit):
        g.add_vertex(i).label(str(i))
        for j in range(2, i):
            if i % j == 0:
                g.add_edge(j, i)
    g.e().where("source = target").erase()


def mark_primes(g: Graph) -> None:
    g.v().with_in_degree(0).tag("prime", "true")


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the divisibility graph of 2..N.")
    parser.add_argument("--limit", type=int, default=102, help="Exclusive upper bound (default: 102)")
    parser.add_argument("--dot", default=None, help="Write the graph as Graphviz DOT to this path")
    args = parser.parse_args()

    with Graph(temp_db_path(), persistent=False) as g:
        build(g, args.limit)
        mark_primes(g)
        if args.dot:
            g.graphviz(args.dot)
            print("Wrote", args.dot)
        print("Primes:")
        print(g.v().with_tag("prime", "true").label())
        print("Multiples of 7:", g.v().with_id(7).out().target().id())
        print("SQL calls:", g.sql_call_counter)


if __name__ == "__main__":
    main()
