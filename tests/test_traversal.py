from sqlgraph import Graph, label_eq, tag_eq
from sqlgraph.traversal import backward_reachability, forward_reachability, sql_literal, tag_path

from test_query import build_diamond


def test_predicate_helpers_encode_operands() -> None:
    assert sql_literal("a'b") == "'612762'"
    assert tag_path("k") == "'$.\"6B\"'"
    assert label_eq(None, "a") == "label = '61'"
    assert label_eq("edges", "a", negate=True) == "edges.label != '61'"
    assert tag_eq("nodes", "k", "v") == "json_extract(nodes.tags, '$.\"6B\"') = '76'"


def test_reachability_fragments_are_recursive() -> None:
    forward = forward_reachability("SELECT * FROM nodes")
    backward = backward_reachability("SELECT * FROM nodes", "nodes.id > 0", "edges.id > 0")
    assert forward.startswith("WITH RECURSIVE")
    assert "JOIN edges ON edges.source = reach.id" in forward
    assert "JOIN edges ON edges.target = reach.id" in backward
    assert "WHERE (edges.id > 0) AND (nodes.id > 0)" in backward


def test_traverse_reaches_everything_downstream(graph: Graph) -> None:
    build_diamond(graph)
    assert graph.v().with_id(1).traverse().id() == [1, 2, 3, 4]
    assert graph.v().with_id(3).traverse().id() == [3, 4]
    assert graph.v().with_id(4).traverse().id() == [4]


def test_traverse_respects_edge_predicate(graph: Graph) -> None:
    build_diamond(graph)
    only_b = label_eq("edges", "b")
    assert graph.v().with_id(2).traverse(edge_where=only_b).id() == [2, 3]
    assert graph.v().with_id(1).traverse(edge_where=only_b).id() == [1, 3]


def test_traverse_respects_node_predicate(graph: Graph) -> None:
    build_diamond(graph)
    graph.v().with_id(3).label("wall")
    reachable = graph.v().with_id(1).traverse(label_eq("nodes", "wall", negate=True))
    assert reachable.id() == [1, 2]


def test_r_traverse_walks_edges_backwards(graph: Graph) -> None:
    build_diamond(graph)
    assert graph.v().with_id(4).r_traverse().id() == [1, 2, 3, 4]
    assert graph.v().with_id(3).r_traverse("nodes.id != 2").id() == [1, 3]
    assert graph.v().with_id(1).r_traverse().id() == [1]


def test_traversal_terminates_on_cycles_and_self_loops(graph: Graph) -> None:
    build_diamond(graph)
    graph.add_edge(4, 1)
    graph.add_edge(2, 2)
    assert graph.v().with_id(3).traverse().id() == [1, 2, 3, 4]
    assert graph.v().with_id(2).r_traverse().id() == [1, 2, 3, 4]


def test_traversal_from_empty_set(graph: Graph) -> None:
    build_diamond(graph)
    assert graph.v().where("0").traverse().id() == []


def test_traversal_result_composes(flat_graph: Graph) -> None:
    build_diamond(flat_graph)
    flat_graph.v().with_id(4).label("leaf")
    downstream = flat_graph.v().with_id(2).traverse()
    assert downstream.with_label("leaf").id() == [4]
    assert downstream.out().id() == [2, 3]
    assert downstream.traverse().id() == [2, 3, 4]


def test_tag_predicate_in_where(graph: Graph) -> None:
    build_diamond(graph)
    graph.v().with_id(2).tag("kind", "hub")
    assert graph.v().where(tag_eq(None, "kind", "hub")).id() == [2]
