import inspect
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar, cast, runtime_checkable

import anyio
from loguru import logger as default_logger

from .exceptions import CommandCancelledError, CommandError, SkippedError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable
    from typing import Any

    from loguru import Logger

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class ComputableState(Enum):
    PENDING = "pending"
    """Nobody has asked for the result yet."""
    RUNNING = "running"
    """The result is being computed."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    """The result was never computed because a required input did not succeed."""

    @property
    def terminal(self) -> bool:
        return self not in (ComputableState.PENDING, ComputableState.RUNNING)


@runtime_checkable
class Computable(Protocol[T_co]):
    """
    Something that can be asked any number of times to produce a value, computing it at
    most once.
    """

    async def compute(self) -> T_co: ...


class Command(ABC, Generic[T]):
    """
    A memoized asynchronous unit of work. Subclasses implement `compute_result`, which runs
    exactly once: on the first call to `compute`. Every other call, concurrent or later,
    observes that single outcome, including the very same error instance on failure.

    Commands do not declare their dependencies. They hold references to the computables
    they read from and `await dependency.compute()` inside `compute_result`; the graph
    edges only tell the scheduler about that relation.
    """

    def __init__(
        self, *, logger: "Logger | None" = None, label: str | None = None
    ) -> None:
        self._label = label
        self.logger: "Logger" = (logger or default_logger).bind(command=self.label)

        self._state = ComputableState.PENDING
        self._value: "T | None" = None
        self._reason: BaseException | None = None
        # created lazily, events need a running event loop
        self._settled: anyio.Event | None = None

        self.started_at: float | None = None
        self.finished_at: float | None = None

    @property
    def label(self) -> str:
        return self._label or type(self).__name__

    @property
    def state(self) -> ComputableState:
        return self._state

    @property
    def reason(self) -> BaseException:
        """The error a failed command raised, or the reason a command was skipped."""
        if self._state not in (ComputableState.FAILED, ComputableState.SKIPPED):
            raise CommandError(
                f"{self.label} was neither skipped, nor did it fail"
                f" (state: {self._state.value})."
            )

        return cast(BaseException, self._reason)

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None

        return self.finished_at - self.started_at

    async def compute(self) -> T:
        if self._state is ComputableState.PENDING:
            await self._run()
        elif self._state is ComputableState.RUNNING:
            await cast(anyio.Event, self._settled).wait()

        return self._outcome()

    def skip(self, reason: SkippedError) -> bool:
        """
        Mark the command skipped without ever computing it. Only possible while nobody has
        asked for its result yet; returns whether the command was skipped.
        """
        if self._state is not ComputableState.PENDING:
            return False

        self._state = ComputableState.SKIPPED
        self._reason = reason
        return True

    @abstractmethod
    async def compute_result(self) -> T:
        raise NotImplementedError()

    async def _run(self) -> None:
        # no checkpoint between the state change and the event creation, so concurrent
        # callers either see PENDING or find the event in place
        self._state = ComputableState.RUNNING
        self._settled = anyio.Event()
        self.started_at = anyio.current_time()

        try:
            value = await self.compute_result()
        except SkippedError as e:
            self._settle(ComputableState.SKIPPED, reason=e)
        except Exception as e:
            self._settle(ComputableState.FAILED, reason=e)
        except BaseException:
            # cancellation of the computing task must not leave other waiters hanging
            self._settle(
                ComputableState.FAILED, reason=CommandCancelledError(self.label)
            )
            raise
        else:
            self._settle(ComputableState.SUCCEEDED, value=value)

    def _settle(
        self,
        state: ComputableState,
        value: "T | None" = None,
        reason: BaseException | None = None,
    ) -> None:
        self._state = state
        self._value = value
        self._reason = reason
        self.finished_at = anyio.current_time()
        cast(anyio.Event, self._settled).set()

    def _outcome(self) -> T:
        if self._state is ComputableState.SUCCEEDED:
            return cast(T, self._value)

        raise cast(BaseException, self._reason)

    def __repr__(self) -> str:
        return f"<{self.label} ({self._state.value})>"


class ConstantCommand(Command[T]):
    """
    A command wrapping a value which is already known, or an awaitable producing it. Used
    to feed externally obtained data into a graph.
    """

    def __init__(self, value: "T | Awaitable[T]", **kwargs: "Any") -> None:
        super().__init__(**kwargs)
        self.value = value

    async def compute_result(self) -> T:
        if inspect.isawaitable(self.value):
            return await self.value

        return self.value
