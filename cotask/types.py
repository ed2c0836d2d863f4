"""
Tagged unions shared across cotask.

``TaskState`` is the settlement state of a Task: exactly one of ``Pending``,
``Succeeded(value)`` or ``Failed(error)``. ``StepOutcome`` is what a stepwise
program reports after each run between suspension points: ``Suspended``,
``Done`` or ``Raised``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, NoReturn, TypeVar

from cotask.errors import TaskPendingError

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

ValueCallback = Callable[[Any], Any]
ErrorCallback = Callable[[BaseException], Any]


class TaskState(Generic[T_co]):
    """Sum type describing where a Task is in its lifecycle."""

    __slots__ = ()

    def is_pending(self) -> bool:
        """Return ``True`` while no outcome has been delivered."""

        return isinstance(self, _Pending)

    def is_settled(self) -> bool:
        """Return ``True`` once the state is ``Succeeded`` or ``Failed``."""

        return not isinstance(self, _Pending)

    def is_succeeded(self) -> bool:
        """Return ``True`` if the state is ``Succeeded``."""

        return isinstance(self, Succeeded)

    def is_failed(self) -> bool:
        """Return ``True`` if the state is ``Failed``."""

        return isinstance(self, Failed)

    def unwrap(self) -> T_co:
        """Return the value, re-raise the error, or fail if still pending."""

        if isinstance(self, Succeeded):
            return self.value
        if isinstance(self, Failed):
            raise self.error
        raise TaskPendingError("Task has not settled yet")

    def deliver(self, on_value: ValueCallback, on_error: ErrorCallback) -> None:
        """Hand a settled outcome to the matching callback."""

        if isinstance(self, Succeeded):
            on_value(self.value)
        elif isinstance(self, Failed):
            on_error(self.error)
        else:
            raise RuntimeError("Cannot deliver a pending state")


class _Pending(TaskState[NoReturn]):
    __slots__ = ()

    def __repr__(self) -> str:
        return "Pending"


Pending: TaskState[Any] = _Pending()


@dataclass(frozen=True)
class Succeeded(TaskState[T], Generic[T]):
    """Settled with a value."""

    value: T


@dataclass(frozen=True)
class Failed(TaskState[NoReturn]):
    """Settled with an error."""

    error: BaseException


class StepOutcome:
    """Result of running a program up to its next suspension point."""

    __slots__ = ()


@dataclass(frozen=True)
class Suspended(StepOutcome):
    """The program is waiting on ``awaited``."""

    awaited: Any


@dataclass(frozen=True)
class Done(StepOutcome, Generic[T]):
    """The program returned ``value``."""

    value: T


@dataclass(frozen=True)
class Raised(StepOutcome):
    """The program raised ``error`` without catching it."""

    error: Any


__all__ = [
    "Done",
    "ErrorCallback",
    "Failed",
    "Pending",
    "Raised",
    "StepOutcome",
    "Succeeded",
    "Suspended",
    "TaskState",
    "ValueCallback",
]
