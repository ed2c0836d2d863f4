from __future__ import annotations

from typing import Any


class CotaskError(Exception):
    """Base class for errors raised by cotask itself."""


class ComposerNotRegisteredError(CotaskError, KeyError):
    """Raised when no composer entry exists for a primitive type."""

    def __init__(self, primitive: Any) -> None:
        self.primitive = primitive
        name = getattr(primitive, "__qualname__", repr(primitive))
        super().__init__(
            f"No composer registered for {name}\n"
            f"Hint: register one via `registry.register({name}, ComposerEntry(...))`"
        )

    def __str__(self) -> str:
        return str(self.args[0])


class ComposerAlreadyRegisteredError(CotaskError, ValueError):
    """Raised when registering a primitive type twice without ``replace=True``."""

    def __init__(self, primitive: Any) -> None:
        self.primitive = primitive
        name = getattr(primitive, "__qualname__", repr(primitive))
        super().__init__(f"A composer is already registered for {name}")


class ProducerContractError(CotaskError, TypeError):
    """Raised when a producer returns something that is not a Subscription."""

    def __init__(self, producer: Any, returned: Any) -> None:
        self.producer = producer
        self.returned = returned
        name = getattr(producer, "__qualname__", repr(producer))
        super().__init__(
            f"Producer {name} returned {type(returned).__name__}; expected a "
            "Subscription, a dispose callable or None"
        )


class TaskPendingError(CotaskError, RuntimeError):
    """Raised when reading the result of a Task that has not settled."""


__all__ = [
    "ComposerAlreadyRegisteredError",
    "ComposerNotRegisteredError",
    "CotaskError",
    "ProducerContractError",
    "TaskPendingError",
]
