"""
The do decorator for cotask.

This module provides the @do decorator that turns a generator function into a
function returning a composed instance of a primitive (a Task by default).
"""

from __future__ import annotations

import inspect
import types
from collections.abc import Callable, Generator
from functools import partial
from typing import Any, Generic, ParamSpec, TypeVar

from cotask.driver import compose
from cotask.protocol import ComposerEntry
from cotask.registry import ComposerRegistry

P = ParamSpec("P")
T = TypeVar("T")


class ComposedFunction(Generic[P, T]):
    """Callable wrapper produced by :func:`do`."""

    def __init__(
        self,
        func: Callable[P, Generator[Any, Any, T] | T],
        primitive: Any = None,
        registry: ComposerRegistry | None = None,
    ) -> None:
        self.original_func = func
        self.primitive = primitive
        self.registry = registry

        for attr in ("__doc__", "__module__", "__name__", "__qualname__", "__annotations__"):
            value = getattr(func, attr, None)
            if value is not None:
                setattr(self, attr, value)
        self.__wrapped__ = func

        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError):
            signature = None
        if signature is not None:
            self.__signature__ = signature

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return types.MethodType(self, instance)

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> Any:
        # Arguments are bound now; the generator is created per production.
        return compose(
            partial(self.original_func, *args, **kwargs),
            self.primitive,
            registry=self.registry,
        )

    def __repr__(self) -> str:
        name = getattr(self, "__qualname__", repr(self.original_func))
        return f"<composed function {name}>"


def do(
    target: Any = None,
    *,
    registry: ComposerRegistry | None = None,
) -> Any:
    """
    Decorator that runs a generator function through the driver.

    Used bare, calls return a :class:`~cotask.task.Task`. Given a registered
    primitive type (or a :class:`ComposerEntry`), calls return that primitive
    instead.

    Usage:
        @do
        def total(a_task, b_task):
            a = yield a_task
            b = yield b_task
            return a + b

        total(fetch("a"), fetch("b"))  # Task settling to the sum

        @do(asyncio.Future)
        def eager():
            value = yield asyncio.sleep(0.1, result=3)
            return value * 2

    Errors delivered by an awaited expression are raised at its ``yield``, so
    ordinary ``try``/``except`` around a ``yield`` handles them.
    """

    if target is None or isinstance(target, (type, ComposerEntry)):
        return partial(ComposedFunction, primitive=target, registry=registry)
    if not callable(target):
        raise TypeError(f"@do expects a function or a primitive type, got {type(target).__name__}")
    return ComposedFunction(target, registry=registry)


__all__ = ["ComposedFunction", "do"]
