import pydot
import pytest

from commandgraph import (
    ChainingGraphLogger,
    ConstantCommand,
    ExecutableGraph,
    FunctionCommand,
    graph_to_dot,
)


async def _boom() -> str:
    raise RuntimeError("boom")


@pytest.fixture
async def failed_graph():
    a = FunctionCommand(_boom, label="A")
    b = ConstantCommand("b", label="B")
    c = ConstantCommand("c", label="C")
    d = ConstantCommand("d", label="D")
    e = ConstantCommand("e", label="E")

    graph = ExecutableGraph()
    graph.connect(a, b)
    graph.connect(b, c)
    graph.connect(d, e, optional=True, label="screenshots")

    return graph, await graph.execute(), (a, b, c, d, e)


@pytest.mark.anyio
async def test_log_cause_chains(failed_graph, log_messages):
    graph, result, _ = failed_graph

    ChainingGraphLogger().log_result(graph, result)

    assert log_messages == [
        ("WARNING", "Skipping C: B was skipped."),
        ("WARNING", "  Skipping B: A failed."),
        ("ERROR", "    boom"),
    ]


@pytest.mark.anyio
async def test_log_priority_vertices_first(failed_graph, log_messages):
    graph, result, (_, b, _, _, _) = failed_graph

    ChainingGraphLogger(has_priority=lambda vertex: vertex is b, indent=4).log_result(
        graph, result
    )

    assert log_messages[:2] == [
        ("WARNING", "Skipping B: A failed."),
        ("ERROR", "    boom"),
    ]
    assert ("WARNING", "Skipping C: B was skipped.") in log_messages


@pytest.mark.anyio
async def test_log_nothing_on_success(log_messages):
    graph = ExecutableGraph()
    graph.connect(ConstantCommand(1), ConstantCommand(2))

    ChainingGraphLogger().log_result(graph, await graph.execute())

    assert log_messages == []


@pytest.mark.anyio
async def test_log_skips_vertices_placed_later(failed_graph, log_messages):
    graph, result, (_, _, c, _, _) = failed_graph
    graph.connect(c, ConstantCommand("late", label="Late"))

    ChainingGraphLogger().log_result(graph, result)

    assert log_messages == [
        ("WARNING", "Skipping C: B was skipped."),
        ("WARNING", "  Skipping B: A failed."),
        ("ERROR", "    boom"),
    ]


def _attribute(element, name: str) -> str | None:
    value = element.get(name)
    return None if value is None else value.strip('"')


@pytest.mark.anyio
async def test_graph_to_dot(failed_graph):
    graph, result, _ = failed_graph

    dot = graph_to_dot(graph, result=result)
    (parsed,) = pydot.graph_from_dot_data(dot)

    assert parsed.get_type() == "digraph"
    assert "rankdir=TD" in dot
    assert [
        (_attribute(node, "label"), _attribute(node, "fillcolor"))
        for node in (parsed.get_node(f"v{i}")[0] for i in range(5))
    ] == [
        ("A", "salmon"),
        ("B", "lightgrey"),
        ("C", "lightgrey"),
        ("D", "darkolivegreen3"),
        ("E", "darkolivegreen3"),
    ]
    assert [
        (
            edge.get_source(),
            edge.get_destination(),
            _attribute(edge, "style"),
            _attribute(edge, "label"),
        )
        for edge in parsed.get_edges()
    ] == [
        ("v0", "v1", None, None),
        ("v1", "v2", None, None),
        ("v3", "v4", "dashed", "screenshots"),
    ]


def test_graph_to_dot_without_result():
    graph = ExecutableGraph()
    graph.place(ConstantCommand('say "hi"', label='say "hi"'))

    (parsed,) = pydot.graph_from_dot_data(graph_to_dot(graph))
    (node,) = parsed.get_node("v0")

    assert 'say \\"hi\\"' in node.get("label")
    assert node.get("fillcolor") is None
