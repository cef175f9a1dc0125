import tempfile
from pathlib import Path
from typing import Iterator

import pytest

from sqlgraph import Graph


def temp_db_path() -> str:
    tmp_dir = Path(tempfile.mkdtemp())
    return str(tmp_dir / "graph.db")


@pytest.fixture
def graph() -> Iterator[Graph]:
    g = Graph(temp_db_path())
    yield g
    g.close()


@pytest.fixture
def flat_graph() -> Iterator[Graph]:
    """A graph that never bounces, so pending SQL stays nested."""
    g = Graph(temp_db_path(), bounce_threshold=None)
    yield g
    g.close()
