"""Primality stress benchmark: one Cartesian add_edge per number."""

from __future__ import annotations

import os
import tempfile
import time
from pathlib import Path

from sqlgraph import Graph

START = 2
DB_PATH = Path(tempfile.gettempdir()) / "sqlgraph-stress.db"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


END = _env_int("BENCH_END", 20_000)
COMMIT_EVERY = _env_int("BENCH_COMMIT_EVERY", 5_000)
BOUNCE_THRESHOLD = _env_int("BENCH_BOUNCE_THRESHOLD", 128)


def main() -> None:
    with Graph(str(DB_PATH), erase=True, bounce_threshold=BOUNCE_THRESHOLD) as g:
        started = time.perf_counter()
        for cur in range(START, END):
            if cur % COMMIT_EVERY == 0:
                print(f"Processing {cur} of {END} ({100.0 * cur / END:.1f}%)")
                g.commit()
            g.add_vertex(cur).label(str(cur))
            (
                g.v()
                .where(f"id * id <= {cur}")
                .where(f"{cur} % id = 0")
                .add_edge(g.v(f"id = {cur}"))
            )

        g.e().where("source = target").erase()
        g.v().with_in_degree(0).tag("prime", "true")
        elapsed = time.perf_counter() - started

        primes = g.v().with_tag("prime", "true").id()
        calls = g.sql_call_counter
        print(
            f"Checked {END - START} numbers in {elapsed:.2f}s with {calls} SQL calls; "
            f"{len(g.v().id())} vertices, {len(g.e().id())} edges, {len(primes)} primes"
        )
        if calls:
            print(f"Average ms / SQL call: {1_000.0 * elapsed / calls:.3f}")


if __name__ == "__main__":
    main()
