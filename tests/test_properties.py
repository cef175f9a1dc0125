import pytest

from sqlgraph import Graph, label_eq
from sqlgraph.codec import hex_decode, hex_encode


@pytest.mark.parametrize("raw", [b"", b"\x00", b"a\x00b", bytes(range(256)), "naïve".encode("utf-8")])
def test_codec_round_trip(raw: bytes) -> None:
    encoded = hex_encode(raw)
    assert len(encoded) == 2 * len(raw)
    assert hex_decode(encoded) == raw


def test_set_algebra_laws(graph: Graph) -> None:
    for _ in range(8):
        graph.add_vertex()
    u = graph.v()
    a = graph.v().where("id % 2 = 0")
    b = graph.v().where("id > 4")
    a_ids, b_ids = set(a.id()), set(b.id())

    assert len(a.join(b).id()) == len(a_ids) + len(b_ids) - len(a_ids & b_ids)
    assert a.intersection(b).id() == sorted(a_ids & b_ids)
    symmetric = a.excluding(b).join(b.excluding(a)).join(a.intersection(b))
    assert symmetric.id() == a.join(b).id()
    assert a.complement(u).id() == u.excluding(a).id()


def test_cascading_erase(graph: Graph) -> None:
    graph.add_vertex(1)
    graph.add_vertex(2)
    graph.add_edge(1, 2)
    graph.v().with_id(1).erase()
    assert graph.v().id() == [2]
    assert graph.e().id() == []


def test_degree_queries_pick_the_right_vertex(graph: Graph) -> None:
    graph.add_vertex(1)
    graph.add_vertex(2)
    graph.add_vertex(3)
    graph.add_edge(1, 2)
    graph.add_edge(1, 3)
    graph.add_edge(3, 2)
    assert graph.v().with_in_degree(0).id() == [1]
    assert graph.v().with_out_degree(0).id() == [2]


def test_traversal_fixpoint_on_a_path(graph: Graph) -> None:
    for vertex_id in range(4):
        graph.add_vertex(vertex_id)
    graph.add_edge(0, 1).label("keep")
    graph.add_edge(1, 2).label("cut")
    graph.add_edge(2, 3).label("keep")
    assert graph.v().with_id(0).traverse().id() == [0, 1, 2, 3]
    assert graph.v().with_id(3).r_traverse().id() == [0, 1, 2, 3]
    keep = label_eq("edges", "cut", negate=True)
    assert graph.v().with_id(0).traverse(edge_where=keep).id() == [0, 1]


def test_transaction_discipline(graph: Graph) -> None:
    graph.add_vertex()
    graph.rollback()
    assert graph.v().id() == []
    graph.add_vertex()
    graph.commit()
    graph.rollback()
    assert graph.v().id() == [2]
