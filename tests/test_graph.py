import logging
import os
import tempfile
from pathlib import Path

import pytest

from sqlgraph import (
    ClosedError,
    ConstraintError,
    ErrorCode,
    Graph,
    IdConflictError,
    IoError,
    SqlError,
    open_graph,
)

from conftest import temp_db_path


def test_fresh_graph_starts_counters_at_one(graph: Graph) -> None:
    assert graph.next_vertex_id == 1
    assert graph.next_edge_id == 1
    assert graph.add_vertex().id() == [1]
    assert graph.add_vertex().id() == [2]
    assert graph.add_edge(1, 2).id() == [1]
    assert graph.next_vertex_id == 3
    assert graph.next_edge_id == 2


def test_explicit_ids_leave_counters_alone(graph: Graph) -> None:
    assert graph.add_vertex(10).id() == [10]
    assert graph.add_edge(10, 10, edge_id=7).id() == [7]
    assert graph.next_vertex_id == 1
    assert graph.next_edge_id == 1
    assert graph.add_vertex().id() == [1]


def test_new_rows_have_empty_label_and_no_tags(graph: Graph) -> None:
    graph.add_vertex()
    graph.add_edge(1, 1)
    assert graph.v().select("label, tags").body == [["1", "", "{}"]]
    assert graph.e().select("source, target, label, tags").body == [["1", "1", "1", "", "{}"]]


def test_reopening_continues_after_existing_ids() -> None:
    path = temp_db_path()
    with Graph(path) as g:
        for _ in range(3):
            g.add_vertex()
        g.add_edge(1, 2).label("x")
    with Graph(path) as g:
        assert g.v().id() == [1, 2, 3]
        assert g.e().label().body == [["1", "x"]]
        assert g.next_vertex_id == 4
        assert g.next_edge_id == 2
        assert g.add_vertex().id() == [4]


def test_rollback_discards_and_reopens_a_transaction(graph: Graph) -> None:
    graph.add_vertex()
    graph.commit()
    graph.add_vertex()
    graph.rollback()
    assert graph.v().id() == [1]
    graph.add_vertex(5)
    graph.commit()
    assert graph.v().id() == [1, 5]


def test_context_manager_rolls_back_on_error() -> None:
    path = temp_db_path()
    with Graph(path) as g:
        g.add_vertex()
    with pytest.raises(RuntimeError):
        with Graph(path) as g:
            g.add_vertex()
            raise RuntimeError("boom")
    assert g.is_closed
    with Graph(path) as g:
        assert g.v().id() == [1]


def test_close_commits_and_is_idempotent() -> None:
    path = temp_db_path()
    g = Graph(path)
    g.add_vertex()
    g.close()
    g.close()
    assert g.is_closed
    with open_graph(path) as reopened:
        assert reopened.v().id() == [1]


def test_operations_after_close_raise() -> None:
    g = Graph(temp_db_path())
    g.add_vertex()
    vertices = g.v()
    g.close()
    with pytest.raises(ClosedError) as excinfo:
        g.v()
    assert excinfo.value.code == ErrorCode.CLOSED
    with pytest.raises(ClosedError):
        vertices.id()
    with pytest.raises(ClosedError):
        g.add_vertex()
    with pytest.raises(ClosedError):
        g.commit()


def test_non_persistent_store_is_deleted_on_close() -> None:
    path = temp_db_path()
    g = Graph(path, persistent=False)
    g.add_vertex()
    assert os.path.exists(path)
    g.close()
    assert not os.path.exists(path)


def test_erase_starts_from_an_empty_store() -> None:
    path = temp_db_path()
    with Graph(path) as g:
        g.add_vertex()
    with Graph.open(path, erase=True) as g:
        assert g.v().id() == []
        assert g.next_vertex_id == 1


def test_in_memory_graph() -> None:
    with Graph(":memory:", persistent=False) as g:
        g.add_vertex().label("m")
        assert g.v().label().body == [["1", "m"]]
        assert g.path == ":memory:"


def test_trusted_duplicate_id_raises_constraint_error(graph: Graph) -> None:
    graph.add_vertex(1)
    with pytest.raises(ConstraintError) as excinfo:
        graph.add_vertex()
    err = excinfo.value
    assert isinstance(err, SqlError)
    assert err.code == ErrorCode.CONSTRAINT
    assert err.statement is not None and err.statement.startswith("INSERT INTO nodes")
    assert "(in SQL 'INSERT INTO nodes" in str(err)


def test_checked_ids_reject_conflicts() -> None:
    with Graph(temp_db_path(), id_policy="check") as g:
        assert g.id_policy == "check"
        g.add_vertex(5)
        with pytest.raises(IdConflictError) as excinfo:
            g.add_vertex(5)
        assert excinfo.value.code == ErrorCode.ID_CONFLICT
        assert g.add_vertex().id() == [6]
        g.add_edge(5, 6, edge_id=3)
        with pytest.raises(IdConflictError):
            g.add_edge(6, 5, edge_id=3)
        assert g.add_edge(6, 5).id() == [4]
        assert g.v().add_edge(g.v().with_id(5)).id() == [5, 6]


def test_add_rejects_invalid_ids(graph: Graph) -> None:
    with pytest.raises(ValueError):
        graph.add_vertex(-3)
    with pytest.raises(ValueError):
        graph.add_edge(1, "2")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        graph.add_edge(1, 2, edge_id=True)


def test_sql_errors_carry_the_statement(graph: Graph, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="sqlgraph.graph"):
        with pytest.raises(SqlError) as excinfo:
            graph.v("no_such_column = 1").id()
    assert excinfo.value.code == ErrorCode.SQL
    assert "no_such_column" in (excinfo.value.statement or "")
    assert "no_such_column" in caplog.text


def test_executor_renders_cells_as_text(graph: Graph) -> None:
    before = graph.sql_call_counter
    result = graph._sql("SELECT NULL AS a, 1 AS b, 'x' AS c, 2.5 AS d")
    assert graph.sql_call_counter == before + 1
    assert result.headers == ["a", "b", "c", "d"]
    assert result.body == [["NULL", "1", "x", "2.5"]]
    assert graph._sql("CREATE TABLE IF NOT EXISTS scratch (x)").headers == []


def test_unopenable_path_raises_io_error() -> None:
    missing = str(Path(tempfile.mkdtemp()) / "missing" / "graph.db")
    with pytest.raises(IoError) as excinfo:
        Graph(missing)
    assert excinfo.value.path == missing
    assert excinfo.value.code == ErrorCode.IO


def test_non_database_file_raises_io_error() -> None:
    path = temp_db_path()
    with open(path, "wb") as handle:
        handle.write(b"this is not a database file " * 64)
    with pytest.raises(IoError) as excinfo:
        Graph(path)
    assert excinfo.value.path == path


def test_options_are_validated_before_opening() -> None:
    path = temp_db_path()
    with pytest.raises(ValueError):
        Graph(path, colour="blue")
    with pytest.raises(ValueError):
        Graph(path, bounce_threshold=0)
    with pytest.raises(TypeError):
        Graph(path, bounce_threshold="64")
    with pytest.raises(ValueError):
        Graph(path, id_policy="sometimes")
    with pytest.raises(ValueError):
        Graph(path, timeout=-1)
    assert not os.path.exists(path)


def test_options_read_environment_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQLGRAPH_BOUNCE_THRESHOLD", "64")
    monkeypatch.setenv("SQLGRAPH_ID_POLICY", "CHECK")
    with Graph(temp_db_path()) as g:
        assert g.bounce_threshold == 64
        assert g.id_policy == "check"
    monkeypatch.setenv("SQLGRAPH_BOUNCE_THRESHOLD", "lots")
    monkeypatch.setenv("SQLGRAPH_ID_POLICY", "maybe")
    with Graph(temp_db_path(), timeout=1) as g:
        assert g.bounce_threshold == 128
        assert g.id_policy == "trust"
        assert g.options["timeout"] == 1.0


def test_explicit_options_override_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQLGRAPH_BOUNCE_THRESHOLD", "64")
    with Graph(temp_db_path(), bounce_threshold=None) as g:
        assert g.bounce_threshold is None


def test_repr(graph: Graph) -> None:
    assert repr(graph).endswith(", open)")
