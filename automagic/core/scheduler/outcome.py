"""Task outcomes and result combinators.

Outcome tells the scheduler whether a recurring task should run again.
Ok/Err let a chain of fallible async steps report failure as a value,
and combine_sequentially runs such steps strictly one after the other.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


class Outcome(str, Enum):
    """Signal returned by a task action after each run."""

    CONTINUE = "continue"
    STOP = "stop"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))

    def map_err(self, fn: Callable[[Any], Any]) -> Ok[T]:
        return self

    def and_then(self, fn: Callable[[T], Result[U, Any]]) -> Result[U, Any]:
        return fn(self.value)

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> Any:
        raise ValueError(f"Called unwrap_err on Ok({self.value!r})")


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result carrying an error."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self

    def map_err(self, fn: Callable[[E], U]) -> Err[U]:
        return Err(fn(self.error))

    def and_then(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self

    def unwrap(self) -> Any:
        raise ValueError(f"Called unwrap on Err({self.error!r})")

    def unwrap_err(self) -> E:
        return self.error


Result = Union[Ok[T], Err[E]]

Step = Callable[[], Union[Result[Any, Any], Awaitable[Result[Any, Any]]]]


async def combine_sequentially(steps: Sequence[Step]) -> Result[list[Any], Any]:
    """Run steps in order, stopping at the first failure.

    Each step is a zero-argument callable returning a Result or an
    awaitable of one. A step only starts after the previous one has
    completed, so its side effects are committed first.

    Args:
        steps: Steps to run, in order.

    Returns:
        Ok with the list of step values, or the first Err encountered.
    """
    values: list[Any] = []
    for step in steps:
        result = step()
        if inspect.isawaitable(result):
            result = await result
        if result.is_err():
            return result
        values.append(result.value)
    return Ok(values)


async def from_awaitable(
    awaitable: Awaitable[T],
    map_error: Callable[[Exception], E],
) -> Result[T, E]:
    """Await a coroutine and capture a raised exception as an Err.

    Args:
        awaitable: The operation to run.
        map_error: Converts the raised exception into the error value.

    Returns:
        Ok with the awaited value, or Err with the mapped exception.
    """
    try:
        return Ok(await awaitable)
    except Exception as e:
        return Err(map_error(e))


def error_if(flag: bool, error: E) -> Result[None, E]:
    """Return Err(error) when flag is set, Ok(None) otherwise."""
    return Err(error) if flag else Ok(None)


def expect_defined(value: T | None, error: E) -> Result[T, E]:
    """Return Ok(value) unless value is None or empty."""
    return Ok(value) if value else Err(error)
