"""Result type used at every component boundary of the core.

Provider calls, storage writes, retrieval and ingestion all return
``Result[T, CoreError]`` instead of raising, so callers branch on
``is_ok()`` / ``is_err()`` and the error taxonomy in ``src.core.errors``
travels as a value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:  # type: ignore[override]
        return self.value

    def unwrap_err(self) -> E:  # type: ignore[type-var]
        raise ValueError(f"Called unwrap_err on Ok: {self.value!r}")

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:  # type: ignore[type-var]
        return Ok(fn(self.value))

    def map_err(self, fn: Callable[[E], U]) -> Result[T, U]:  # type: ignore[type-var]
        return Ok(self.value)  # type: ignore[return-value]

    def and_then(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:  # type: ignore[type-var]
        return fn(self.value)


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed result carrying an error value (usually a ``CoreError``)."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:  # type: ignore[type-var]
        raise ValueError(f"Called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:  # type: ignore[type-var]
        return default

    def unwrap_err(self) -> E:
        return self.error

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:  # type: ignore[type-var]
        return Err(self.error)  # type: ignore[return-value]

    def map_err(self, fn: Callable[[E], U]) -> Result[T, U]:  # type: ignore[type-var]
        return Err(fn(self.error))  # type: ignore[return-value]

    def and_then(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:  # type: ignore[type-var]
        return Err(self.error)  # type: ignore[return-value]


Result = Union[Ok[T], Err[E]]
