from typing import TYPE_CHECKING

import pydot

from .computable import ComputableState
from .graph import vertex_label

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable
    from typing import Any

    from .graph import ExecutableGraph
    from .result import ExecutionResult

STATE_COLORS = {
    ComputableState.PENDING: "khaki",
    ComputableState.RUNNING: "khaki",
    ComputableState.SUCCEEDED: "darkolivegreen3",
    ComputableState.FAILED: "salmon",
    ComputableState.SKIPPED: "lightgrey",
}


def to_pydot(
    graph: "ExecutableGraph[Any]",
    labeller: "Callable[[Any], str]" = vertex_label,
    result: "ExecutionResult | None" = None,
) -> pydot.Dot:
    """
    Build a pydot graph of the vertices and edges. When an execution result is given,
    vertices are filled according to their outcome. Optional edges are dashed.
    """
    ids = {id(vertex): f"v{i}" for i, vertex in enumerate(graph.get_vertices())}

    dot = pydot.Dot("CommandGraph", graph_type="digraph", rankdir="TD")
    dot.set_node_defaults(shape="box", style="filled", fillcolor="white")

    for vertex in graph.get_vertices():
        attributes = {"label": labeller(vertex)}
        if result is not None and vertex in result:
            attributes["fillcolor"] = STATE_COLORS[result[vertex].state]

        dot.add_node(pydot.Node(ids[id(vertex)], **attributes))

    for edge in graph.get_edges():
        attributes = {"arrowhead": "vee", "arrowsize": "0.75"}
        if edge.optional:
            attributes["style"] = "dashed"
        if edge.label:
            attributes["label"] = edge.label

        dot.add_edge(
            pydot.Edge(ids[id(edge.source)], ids[id(edge.destination)], **attributes)
        )

    return dot


def graph_to_dot(
    graph: "ExecutableGraph[Any]",
    labeller: "Callable[[Any], str]" = vertex_label,
    result: "ExecutionResult | None" = None,
) -> str:
    """Render a graph as Graphviz DOT source."""
    return to_pydot(graph, labeller, result).to_string()
