"""Result of an operation at a component boundary."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from dbconsole.core.errors import ConsoleError

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success value or the ConsoleError that replaced it.

    Boundary operations never raise for remote failures; callers inspect
    `ok` and render `error.message`.
    """

    value: T | None = None
    error: ConsoleError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ConsoleError) -> "Outcome[T]":
        return cls(error=error)
