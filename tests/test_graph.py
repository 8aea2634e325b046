from dataclasses import dataclass

import pytest

from commandgraph import ConstantCommand, ExecutableGraph
from commandgraph.exceptions import (
    CyclicGraphError,
    DuplicateEdgeError,
    DuplicateVertexError,
    UnknownVertexError,
)


@dataclass(frozen=True)
class Key:
    name: str


@pytest.fixture
def commands():
    return {name: ConstantCommand(name, label=name) for name in "ABCD"}


def test_place_is_idempotent(commands):
    graph = ExecutableGraph()

    assert graph.place(commands["A"]) is commands["A"]
    assert graph.place(commands["A"]) is commands["A"]
    assert graph.get_vertices() == (commands["A"],)
    assert len(graph) == 1
    assert commands["A"] in graph


def test_place_colliding_vertex():
    graph = ExecutableGraph()
    graph.place(Key("a"))

    with pytest.raises(DuplicateVertexError):
        graph.place(Key("a"))

    assert graph.size("vertices") == 1


def test_connect_places_vertices(commands):
    graph = ExecutableGraph()
    edge = graph.connect(commands["A"], commands["B"], label="document")

    assert graph.get_vertices() == (commands["A"], commands["B"])
    assert graph.get_edges() == (edge,)
    assert edge.source is commands["A"]
    assert edge.destination is commands["B"]
    assert edge.label == "document"
    assert not graph.is_optional(edge)


def test_connect_cycle(commands):
    graph = ExecutableGraph()
    a, b = commands["A"], commands["B"]
    graph.connect(a, b)

    with pytest.raises(CyclicGraphError) as exc_info:
        graph.connect(b, a)

    assert exc_info.value.cycle == ("B", "A", "B")
    assert "B -> A -> B" in str(exc_info.value)
    assert graph.size("edges") == 1
    assert graph.get_predecessors(a) == ()


def test_connect_transitive_cycle(commands):
    graph = ExecutableGraph()
    a, b, c = commands["A"], commands["B"], commands["C"]
    graph.connect(a, b)
    graph.connect(b, c)

    with pytest.raises(CyclicGraphError) as exc_info:
        graph.connect(c, a)

    assert exc_info.value.cycle == ("C", "A", "B", "C")
    assert graph.size("edges") == 2


def test_connect_self_loop(commands):
    graph = ExecutableGraph()

    with pytest.raises(CyclicGraphError):
        graph.connect(commands["A"], commands["A"])

    assert len(graph) == 0


def test_connect_duplicate_edge(commands):
    graph = ExecutableGraph()
    graph.connect(commands["A"], commands["B"])

    with pytest.raises(DuplicateEdgeError):
        graph.connect(commands["A"], commands["B"], optional=True)

    assert graph.size("edges") == 1


def test_queries(commands):
    graph = ExecutableGraph()
    a, b, c, d = commands["A"], commands["B"], commands["C"], commands["D"]
    ab = graph.connect(a, b)
    ac = graph.connect(a, c, optional=True)
    graph.connect(b, d)
    graph.connect(c, d)

    assert graph.get_successors(a) == (b, c)
    assert graph.get_predecessors(d) == (b, c)
    assert graph.get_outgoing(a) == (ab, ac)
    assert graph.get_incoming(c) == (ac,)
    assert graph.is_optional(ac)
    assert graph.has_outgoing(a) and not graph.has_incoming(a)
    assert graph.has_incoming(d) and not graph.has_outgoing(d)
    assert graph.levels() == [[a], [b, c], [d]]
    assert graph.size("edges") == 4


def test_unknown_vertex(commands):
    graph = ExecutableGraph()
    graph.place(commands["A"])

    with pytest.raises(UnknownVertexError):
        graph.get_successors(commands["B"])


def test_find(commands):
    graph = ExecutableGraph()
    for command in commands.values():
        graph.place(command)

    assert graph.find(lambda command: command.label == "C") is commands["C"]
    assert graph.find(lambda command: command.label == "Z") is None

    fallback = ConstantCommand("Z", label="Z")
    assert (
        graph.find_or_default(
            lambda command: command.label == "Z", lambda: graph.place(fallback)
        )
        is fallback
    )
    assert fallback in graph


def test_text_rendering(commands):
    graph = ExecutableGraph()
    graph.connect(commands["A"], commands["B"])

    text = str(graph)

    assert "A" in text
    assert "B" in text


def test_generic_vertices():
    graph = ExecutableGraph()
    graph.connect("parse", "convert")
    graph.connect("convert", "upload")

    assert graph.levels() == [["parse"], ["convert"], ["upload"]]
