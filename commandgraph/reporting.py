import textwrap
from collections import deque
from typing import TYPE_CHECKING, NamedTuple

from loguru import logger as default_logger

from .computable import ComputableState
from .config import Config
from .graph import vertex_label

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable
    from typing import Any

    from loguru import Logger

    from .graph import ExecutableGraph
    from .result import ExecutionResult, VertexOutcome


class LogMessage(NamedTuple):
    level: str
    text: str


class _ChainEntry(NamedTuple):
    vertex: "Any"
    depth: int
    message: LogMessage


class ChainingGraphLogger:
    """
    Reports the failed and skipped vertices of an execution result. Every report is
    followed by the reports of the predecessors that caused it, indented by one level per
    hop, so that a skipped upload reads as "skipped because X failed because Y failed".
    """

    def __init__(
        self,
        logger: "Logger | None" = None,
        has_priority: "Callable[[Any], bool] | None" = None,
        indent: int | None = None,
    ) -> None:
        self.logger = logger or default_logger
        self.has_priority = has_priority or (lambda vertex: False)
        self.indent = Config().log_indent if indent is None else indent

    def log_result(self, graph: "ExecutableGraph[Any]", result: "ExecutionResult") -> None:
        prioritized = sorted(
            (vertex for vertex in graph.get_vertices() if self.has_priority(vertex)),
            key=vertex_label,
        )
        bottom_up = [vertex for level in reversed(graph.levels()) for vertex in level]

        logged: set[int] = set()
        for vertex in (*prioritized, *bottom_up):
            if id(vertex) in logged or vertex not in result:
                continue

            for entry in self._message_chain(vertex, graph, result):
                logged.add(id(entry.vertex))
                self.logger.log(
                    entry.message.level,
                    textwrap.indent(
                        entry.message.text, " " * (self.indent * entry.depth)
                    ),
                )

    def get_log_message(
        self, vertex: "Any", outcome: "VertexOutcome"
    ) -> LogMessage | None:
        """Override to customise or add messages for specific vertices."""
        if outcome.error is None:
            return None

        return LogMessage(
            level="WARNING" if outcome.state is ComputableState.SKIPPED else "ERROR",
            text=str(outcome.error) or type(outcome.error).__name__,
        )

    def _message_chain(
        self,
        vertex: "Any",
        graph: "ExecutableGraph[Any]",
        result: "ExecutionResult",
    ) -> list[_ChainEntry]:
        chain: list[_ChainEntry] = []
        queue = deque([(vertex, 0)])
        seen = {id(vertex)}

        while queue:
            current, depth = queue.popleft()
            if current not in result:
                # placed after the result was produced
                continue
            elif (message := self.get_log_message(current, result[current])) is None:
                continue

            chain.append(_ChainEntry(current, depth, message))
            for predecessor in graph.get_predecessors(current):
                if id(predecessor) not in seen:
                    seen.add(id(predecessor))
                    queue.append((predecessor, depth + 1))

        return chain
