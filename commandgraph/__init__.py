from .commands import DestructureCommand, FallbackCommand, FunctionCommand
from .computable import Command, Computable, ComputableState, ConstantCommand
from .graph import Edge, ExecutableGraph
from .reporting import ChainingGraphLogger
from .result import ExecutionResult, VertexOutcome
from .visualisation import graph_to_dot, to_pydot

__all__ = [
    "ChainingGraphLogger",
    "Command",
    "Computable",
    "ComputableState",
    "ConstantCommand",
    "DestructureCommand",
    "Edge",
    "ExecutableGraph",
    "ExecutionResult",
    "FallbackCommand",
    "FunctionCommand",
    "VertexOutcome",
    "graph_to_dot",
    "to_pydot",
]
