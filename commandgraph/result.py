from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, PrivateAttr

from .computable import ComputableState
from .exceptions import CommandError, UnknownVertexError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterator


class VertexOutcome(BaseModel):
    vertex: Any
    state: ComputableState
    value: Any = None
    error: BaseException | None = None
    skipped_because: Any = None
    """The predecessor whose failure (or skip) caused this vertex to be skipped."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @property
    def succeeded(self) -> bool:
        return self.state is ComputableState.SUCCEEDED


class ExecutionResult(BaseModel):
    """
    The per-vertex outcome of one execution pass. Vertices are looked up by identity, in
    the order they were placed in the graph.
    """

    outcomes: list[VertexOutcome]

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    _index: dict[int, VertexOutcome] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._index = {id(outcome.vertex): outcome for outcome in self.outcomes}

    def outcome(self, vertex: Any) -> VertexOutcome:
        try:
            return self._index[id(vertex)]
        except KeyError:
            raise UnknownVertexError(vertex) from None

    def __getitem__(self, vertex: Any) -> VertexOutcome:
        return self.outcome(vertex)

    def __contains__(self, vertex: Any) -> bool:
        return id(vertex) in self._index

    def __len__(self) -> int:
        return len(self.outcomes)

    def _with_state(self, state: ComputableState) -> list[Any]:
        return [outcome.vertex for outcome in self.outcomes if outcome.state is state]

    @property
    def succeeded(self) -> list[Any]:
        return self._with_state(ComputableState.SUCCEEDED)

    @property
    def failed(self) -> list[Any]:
        return self._with_state(ComputableState.FAILED)

    @property
    def skipped(self) -> list[Any]:
        return self._with_state(ComputableState.SKIPPED)

    @property
    def pending(self) -> list[Any]:
        """Vertices the pass never settled."""
        return [
            outcome.vertex for outcome in self.outcomes if not outcome.state.terminal
        ]

    @property
    def ok(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    @property
    def errors(self) -> list[tuple[Any, BaseException]]:
        """Failed and skipped vertices paired with their errors."""
        return [
            (outcome.vertex, outcome.error)
            for outcome in self.outcomes
            if outcome.error is not None
        ]

    def value(self, vertex: Any) -> Any:
        """The computed value of a vertex, or its error raised."""
        outcome = self.outcome(vertex)
        if outcome.error is not None:
            raise outcome.error
        elif not outcome.succeeded:
            raise CommandError(
                f"{vertex!r} did not settle (state: {outcome.state.value})."
            )

        return outcome.value

    def cause_chain(self, vertex: Any) -> "Iterator[VertexOutcome]":
        """
        Walk from a vertex back to the failure which ultimately caused it to be skipped:
        the vertex itself first, the root cause last.
        """
        outcome: VertexOutcome | None = self.outcome(vertex)

        while outcome is not None:
            yield outcome
            outcome = (
                None
                if outcome.skipped_because is None
                else self.outcome(outcome.skipped_because)
            )
