from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Sequence
    from typing import Any


class CommandGraphError(Exception):
    def __init__(self, *args: "Any", **kwargs: "Any") -> None:
        super().__init__(*args, **kwargs)


##
## GRAPH CONFIGURATION
##


class GraphConfigurationError(CommandGraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class DuplicateVertexError(GraphConfigurationError):
    def __init__(self, vertex: "Any") -> None:
        super().__init__(
            f"Duplicate vertex detected: {vertex!r} collides with a different vertex"
            " already placed in the graph."
        )


class DuplicateEdgeError(GraphConfigurationError):
    def __init__(self, source: "Any", destination: "Any") -> None:
        super().__init__(
            f"Failed to connect vertices {source!r} -> {destination!r}:"
            " duplicate edge detected."
        )


class CyclicGraphError(GraphConfigurationError):
    def __init__(self, cycle: "Sequence[str]") -> None:
        self.cycle = tuple(cycle)
        super().__init__(
            "Graphs cannot contain dependency cycles. Offending cycle:\n"
            f"  {' -> '.join(cycle)}"
        )


class UnknownVertexError(GraphConfigurationError):
    def __init__(self, vertex: "Any") -> None:
        super().__init__(f"Unknown vertex: {vertex!r}")


##
## COMPUTATION
##


class CommandError(CommandGraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class SkippedError(CommandGraphError):
    """
    The terminal reason of a command which never computed its result because something it
    depends on did not succeed.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.__cause__ = cause


class CommandCancelledError(CommandError):
    def __init__(self, label: str) -> None:
        super().__init__(f"Computation of {label} was cancelled before it completed.")


def is_skipped_error(error: object) -> bool:
    return isinstance(error, SkippedError)


def describe_error(error: BaseException) -> str:
    """Render an error together with the errors it was caused by."""
    lines = [str(error) or type(error).__name__]
    seen = {id(error)}
    cause = error.__cause__

    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"Caused by: {str(cause) or type(cause).__name__}")
        cause = cause.__cause__

    return "\n".join(lines)
