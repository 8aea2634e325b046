"""
Dependency graph of computables and the scheduler executing it.
"""

import warnings
from collections import deque
from contextlib import nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

import anyio
import networkx as nx
import sniffio

from .computable import Command, ComputableState
from .config import Config
from .exceptions import (
    CyclicGraphError,
    DuplicateEdgeError,
    DuplicateVertexError,
    SkippedError,
    UnknownVertexError,
    is_skipped_error,
)
from .result import ExecutionResult, VertexOutcome

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable
    from typing import Any, Literal

    from anyio.abc import TaskGroup

V = TypeVar("V")


def vertex_label(vertex: "Any") -> str:
    return getattr(vertex, "label", None) or repr(vertex)


@dataclass(frozen=True, kw_only=True, slots=True)
class Edge(Generic[V]):
    """`destination` depends on `source`."""

    source: V
    destination: V
    optional: bool = False
    """Whether `destination` should still compute when `source` does not succeed."""
    label: str | None = None
    """Which input of `destination` the edge feeds."""


class _VertexState(Enum):
    QUEUED = "queued"
    COMPUTED = "computed"
    FORBIDDEN = "forbidden"


class ExecutableGraph(Generic[V]):
    """
    A directed acyclic graph executed top-down: vertices without incoming edges start
    right away, every other vertex starts as soon as all of its predecessors settled.

    Failures stay local. A vertex whose required predecessor fails or is skipped is
    skipped as well and never computes; optional edges let the destination compute
    regardless. Vertices can keep being placed and connected while a pass runs, they
    are started as soon as they become ready.
    """

    def __init__(self, **settings: "Any") -> None:
        self.config = Config(**settings)

        self._digraph = nx.DiGraph()
        # maps each vertex to the instance registered for it, vertices are unique by
        # identity even if they compare equal
        self._vertices: dict[V, V] = {}

        self._states: dict[V, _VertexState] = {}
        self._values: dict[V, "Any"] = {}
        self._errors: dict[V, BaseException] = {}
        self._skipped_because: dict[V, V] = {}
        # commands which were already computing when they should have been skipped, their
        # own outcome counts
        self._detached: set[V] = set()

        self._task_group: "TaskGroup | None" = None
        self._limiter: anyio.CapacityLimiter | None = None
        self._active = 0
        self._finished: anyio.Event | None = None
        self._result: ExecutionResult | None = None

    ##
    ## STRUCTURE
    ##

    def place(self, vertex: V) -> V:
        """
        Insert a vertex without connecting it. Placing the same vertex again is a no-op
        returning the registered vertex.
        """
        if not self._registered(vertex):
            self._add_vertex(vertex)
            self._changed()

        return vertex

    def connect(
        self,
        source: V,
        destination: V,
        *,
        optional: bool = False,
        label: str | None = None,
    ) -> Edge[V]:
        """
        Make `destination` depend on `source`, placing either vertex if it is not part of
        the graph yet. Raises if the edge exists already or would introduce a cycle, in
        which case the graph is left untouched.
        """
        source_known = self._registered(source)
        destination_known = self._registered(destination)

        if source is destination:
            raise CyclicGraphError([vertex_label(source), vertex_label(source)])
        elif source_known and destination_known:
            if self._digraph.has_edge(source, destination):
                raise DuplicateEdgeError(source, destination)
            elif nx.has_path(self._digraph, destination, source):
                path = nx.shortest_path(self._digraph, destination, source)
                raise CyclicGraphError([vertex_label(v) for v in (source, *path)])

        # placed without scheduling, the destination must not start before the edge exists
        if not source_known:
            self._add_vertex(source)
        if not destination_known:
            self._add_vertex(destination)

        edge = Edge(
            source=source, destination=destination, optional=optional, label=label
        )

        if (
            self._started(destination)
            and self._states.get(source) is not _VertexState.COMPUTED
        ):
            warnings.warn(
                f"{vertex_label(destination)} has already started executing, it will not"
                f" wait for its new dependency {vertex_label(source)}.",
                stacklevel=2,
            )

        self._digraph.add_edge(source, destination, edge=edge)

        if (
            not optional
            and self._states.get(source) is _VertexState.FORBIDDEN
            and self._skip(destination, because=source)
        ):
            self._forbid_successors(destination)

        self._changed()
        return edge

    def _add_vertex(self, vertex: V) -> None:
        self._vertices[vertex] = vertex
        self._digraph.add_node(vertex, label=vertex_label(vertex))

    def _registered(self, vertex: V) -> bool:
        if vertex not in self._vertices:
            return False
        elif self._vertices[vertex] is not vertex:
            raise DuplicateVertexError(vertex)

        return True

    def _started(self, vertex: V) -> bool:
        return vertex in self._states and vertex not in self._skipped_because

    def _known(self, vertex: V) -> V:
        if vertex not in self._vertices or self._vertices[vertex] is not vertex:
            raise UnknownVertexError(vertex)

        return vertex

    def _changed(self) -> None:
        self._result = None
        self._schedule_ready()

    ##
    ## QUERIES
    ##

    def get_vertices(self) -> tuple[V, ...]:
        return tuple(self._digraph.nodes)

    def get_edges(self) -> tuple[Edge[V], ...]:
        return tuple(edge for _, _, edge in self._digraph.edges(data="edge"))

    def get_incoming(self, vertex: V) -> tuple[Edge[V], ...]:
        return tuple(
            edge
            for _, _, edge in self._digraph.in_edges(self._known(vertex), data="edge")
        )

    def get_outgoing(self, vertex: V) -> tuple[Edge[V], ...]:
        return tuple(
            edge
            for _, _, edge in self._digraph.out_edges(self._known(vertex), data="edge")
        )

    def get_predecessors(self, vertex: V) -> tuple[V, ...]:
        return tuple(self._digraph.predecessors(self._known(vertex)))

    def get_successors(self, vertex: V) -> tuple[V, ...]:
        return tuple(self._digraph.successors(self._known(vertex)))

    def has_incoming(self, vertex: V) -> bool:
        return self._digraph.in_degree(self._known(vertex)) > 0

    def has_outgoing(self, vertex: V) -> bool:
        return self._digraph.out_degree(self._known(vertex)) > 0

    def is_optional(self, edge: Edge[V]) -> bool:
        data = self._digraph.get_edge_data(edge.source, edge.destination)
        return data is not None and data["edge"].optional

    def find(self, predicate: "Callable[[V], bool]") -> V | None:
        return next((vertex for vertex in self._digraph if predicate(vertex)), None)

    def find_or_default(
        self, predicate: "Callable[[V], bool]", fallback: "Callable[[], V]"
    ) -> V:
        if (vertex := self.find(predicate)) is not None:
            return vertex

        return fallback()

    def size(self, of: 'Literal["vertices", "edges"]' = "vertices") -> int:
        if of == "edges":
            return self._digraph.number_of_edges()

        return self._digraph.number_of_nodes()

    def levels(self) -> list[list[V]]:
        """Vertices grouped by topological depth, roots first, in placement order."""
        order = {id(vertex): i for i, vertex in enumerate(self._digraph)}
        return [
            sorted(generation, key=lambda vertex: order[id(vertex)])
            for generation in nx.topological_generations(self._digraph)
        ]

    def __len__(self) -> int:
        return self._digraph.number_of_nodes()

    def __contains__(self, vertex: object) -> bool:
        return vertex in self._vertices and self._vertices[vertex] is vertex

    def __str__(self) -> str:
        return "\n".join(
            nx.generate_network_text(
                self._digraph, with_labels=True, vertical_chains=True
            )
        )

    ##
    ## EXECUTION
    ##

    async def execute(self) -> ExecutionResult:
        """
        Run every vertex which has not run yet and return the outcome of all vertices.
        Once a pass finished and the graph did not change since, this returns the same
        result without computing anything.
        """
        if self._result is not None:
            return self._result
        elif self._finished is not None:
            # a pass is running already, share its result
            await self._finished.wait()
            return await self.execute()

        self._finished = anyio.Event()
        if self.config.max_concurrency is not None:
            self._limiter = anyio.CapacityLimiter(self.config.max_concurrency)

        try:
            # vertices placed after a task group drained but before it closed are picked
            # up by the next round
            while ready := self._ready_vertices():
                async with anyio.create_task_group() as tg:
                    self._task_group = tg
                    self._start(ready)

            self._result = self._collect()
        finally:
            self._task_group = None
            self._limiter = None
            finished, self._finished = self._finished, None
            finished.set()

        return self._result

    def execute_sync(
        self, backend: str = "asyncio", backend_options: dict[str, "Any"] | None = None
    ) -> ExecutionResult:
        """Run `execute` in a fresh event loop."""
        try:
            sniffio.current_async_library()
            raise RuntimeError(
                "Executing a graph synchronously within an event loop is forbidden as it"
                " would block that loop. Use `await graph.execute()` instead."
            )
        except sniffio.AsyncLibraryNotFoundError:
            return anyio.run(
                self.execute, backend=backend, backend_options=backend_options
            )

    def _ready_vertices(self) -> list[V]:
        return [vertex for vertex in self._digraph if self._can_queue(vertex)]

    def _can_queue(self, vertex: V) -> bool:
        if vertex in self._states:
            return False
        elif vertex in self._detached:
            return True

        # a predecessor edge is fine iff the source succeeded, or it failed and the
        # edge is optional
        for source, _, edge in self._digraph.in_edges(vertex, data="edge"):
            state = self._states.get(source)
            if state is _VertexState.COMPUTED:
                continue
            elif state is _VertexState.FORBIDDEN and edge.optional:
                continue

            return False

        return True

    def _schedule_ready(self) -> None:
        if self._task_group is not None:
            self._start(self._ready_vertices())

    def _start(self, vertices: list[V]) -> None:
        for vertex in vertices:
            self._states[vertex] = _VertexState.QUEUED
            self._active += 1
            self._task_group.start_soon(self._run, vertex, name=vertex_label(vertex))

    async def _run(self, vertex: V) -> None:
        try:
            async with self._limiter or nullcontext():
                value = await vertex.compute()
        except Exception as e:
            self._errors[vertex] = e
            self._states[vertex] = _VertexState.FORBIDDEN
            self._forbid_successors(vertex)
        else:
            self._values[vertex] = value
            self._states[vertex] = _VertexState.COMPUTED
        finally:
            self._active -= 1
            self._schedule_ready()

            if not self._active:
                # nothing left in flight, the task group is about to close
                self._task_group = None

    def _forbid_successors(self, vertex: V) -> None:
        forbidden = deque([vertex])

        while forbidden:
            because = forbidden.popleft()
            for _, destination, edge in self._digraph.out_edges(because, data="edge"):
                if not edge.optional and self._skip(destination, because=because):
                    forbidden.append(destination)

    def _skip(self, vertex: V, because: V) -> bool:
        """Mark a vertex skipped, returns whether it was. Does not touch successors."""
        if vertex in self._states:
            return False

        cause = self._errors[because]
        reason = SkippedError(
            f"Skipping {vertex_label(vertex)}: {vertex_label(because)}"
            f" {'was skipped' if is_skipped_error(cause) else 'failed'}.",
            cause,
        )

        if isinstance(vertex, Command) and not vertex.skip(reason):
            # computed outside of the graph already, collected once it settles
            self._detached.add(vertex)
            return False

        self._states[vertex] = _VertexState.FORBIDDEN
        self._errors[vertex] = reason
        self._skipped_because[vertex] = because
        return True

    def _collect(self) -> ExecutionResult:
        outcomes: list[VertexOutcome] = []

        for vertex in self._digraph:
            state = self._states.get(vertex)

            if state is _VertexState.COMPUTED:
                outcome = VertexOutcome(
                    vertex=vertex,
                    state=ComputableState.SUCCEEDED,
                    value=self._values[vertex],
                )
            elif state is _VertexState.FORBIDDEN:
                error = self._errors[vertex]
                outcome = VertexOutcome(
                    vertex=vertex,
                    state=(
                        ComputableState.SKIPPED
                        if is_skipped_error(error)
                        else ComputableState.FAILED
                    ),
                    error=error,
                    skipped_because=self._skipped_because.get(vertex),
                )
            else:
                outcome = VertexOutcome(
                    vertex=vertex,
                    state=(
                        ComputableState.RUNNING
                        if state is _VertexState.QUEUED
                        else ComputableState.PENDING
                    ),
                )

            outcomes.append(outcome)

        return ExecutionResult(outcomes=outcomes)
