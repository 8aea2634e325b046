from typing import TYPE_CHECKING, Generic, TypeVar

from .computable import Command, ComputableState
from .exceptions import CommandError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable, Callable, Collection, Mapping, Sequence
    from typing import Any

    from .computable import Computable

T = TypeVar("T")
U = TypeVar("U")


class FunctionCommand(Command[T]):
    """
    Wraps an async callable. The callable receives the input computables as they are and
    reads them itself, so it decides how to treat inputs that failed.

    ```python
    async def _greet(name: Computable[str]) -> str:
        return f"hello {await name.compute()}"

    greet = FunctionCommand(_greet, ConstantCommand("world"))
    ```
    """

    def __init__(
        self,
        fn: "Callable[..., Awaitable[T]]",
        *inputs: "Computable[Any]",
        **kwargs: "Any",
    ) -> None:
        kwargs.setdefault("label", getattr(fn, "__name__", None))
        super().__init__(**kwargs)
        self.fn = fn
        self.inputs = inputs

    async def compute_result(self) -> T:
        return await self.fn(*self.inputs)


class FallbackCommand(Command[T | U], Generic[T, U]):
    """
    Computes its input and returns a fallback value instead if the input ended up in one of
    the `fallback_on` states. Meant to sit behind an optional edge.
    """

    def __init__(
        self,
        input: "Command[T]",
        fallback_value: U,
        fallback_on: "Collection[ComputableState]" = (
            ComputableState.FAILED,
            ComputableState.SKIPPED,
        ),
        **kwargs: "Any",
    ) -> None:
        super().__init__(**kwargs)
        self.input = input
        self.fallback_value = fallback_value
        self.fallback_on = frozenset(fallback_on)

    async def compute_result(self) -> "T | U":
        try:
            return await self.input.compute()
        except Exception:
            if self.input.state not in self.fallback_on:
                raise

            self.logger.debug(
                "{} {}, falling back to {!r}",
                self.input.label,
                self.input.state.value,
                self.fallback_value,
            )
            return self.fallback_value


class DestructureCommand(Command[T]):
    """Returns a single element of the mapping or sequence its input computes."""

    def __init__(
        self,
        input: "Computable[Mapping[Any, T] | Sequence[T]]",
        key: "Any",
        **kwargs: "Any",
    ) -> None:
        super().__init__(**kwargs)
        self.input = input
        self.key = key

    async def compute_result(self) -> T:
        value = await self.input.compute()

        try:
            return value[self.key]
        except (KeyError, IndexError, TypeError) as e:
            raise CommandError(
                f"Failed to access element {self.key} in: {value!r}"
            ) from e
