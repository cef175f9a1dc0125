"""Short walkthrough of vertex and edge sets."""

from __future__ import annotations

import tempfile
from pathlib import Path

from sqlgraph import Graph, label_eq


def temp_db_path() -> str:
    directory = Path(tempfile.mkdtemp())
    return str(directory / "walkthrough.db")


def main() -> None:
    with Graph(temp_db_path(), erase=True) as g:
        (first,) = g.add_vertex().id()
        g.add_vertex(123)
        g.add_edge(first, 123).label("knows")

        print("All nodes:", g.v().id())
        print("Edge targets:", g.e().target().id())

        for label in ("foo", "fizz", "buzz"):
            g.v().where(lambda v: v.id()[0] < 100).label(label)
        print(g.v().label())

        g.v().with_id(123).tag("color", "red")
        print("Tag keys:", g.v().keys())
        print(g.v().select("label, tags"))

        reachable = g.v().with_id(first).traverse(edge_where=label_eq("edges", "knows"))
        print("Reachable from", first, ":", reachable.id())
        g.commit()


if __name__ == "__main__":
    main()
