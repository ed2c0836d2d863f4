"""
Stepwise programs with explicit suspension points.

A program is a generator: each ``yield`` is a suspension point and the
yielded expression is what the program waits on. The driver never touches the
generator directly; it goes through :class:`StepProgram`, whose methods run
the program to its next suspension point and report a
:class:`~cotask.types.StepOutcome`.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Generator
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from cotask.types import Done, Raised, StepOutcome, Suspended

ProgramGenerator = Generator[Any, Any, Any]
ProgramFactory = Callable[[], Any]

log = logger.bind(component="program")


@runtime_checkable
class StepProgram(Protocol):
    def start(self) -> StepOutcome: ...

    def resume_with_value(self, value: Any) -> StepOutcome: ...

    def resume_with_error(self, error: Any) -> StepOutcome: ...

    def close(self) -> None: ...


class GeneratorProgram:
    """Adapts a generator factory to :class:`StepProgram`.

    ``factory`` is called by :meth:`start`. A factory that returns something
    other than a generator is treated as a program with no suspension points:
    its return value is the outcome.
    """

    def __init__(self, factory: ProgramFactory) -> None:
        if not callable(factory):
            raise TypeError(f"program factory must be callable, got {type(factory).__name__}")
        self._factory = factory
        self._gen: ProgramGenerator | None = None
        self._started = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def start(self) -> StepOutcome:
        if self._started:
            raise RuntimeError("program already started")
        self._started = True
        try:
            produced = self._factory()
        except Exception as exc:
            self._finished = True
            return Raised(exc)
        if not inspect.isgenerator(produced):
            self._finished = True
            return Done(produced)
        self._gen = produced
        return self._advance(produced.send, None)

    def resume_with_value(self, value: Any) -> StepOutcome:
        return self._advance(self._require_generator().send, value)

    def resume_with_error(self, error: Any) -> StepOutcome:
        gen = self._require_generator()
        if not isinstance(error, BaseException):
            # Only exceptions can be raised at a yield; any other error
            # payload ends the program and is passed through unchanged.
            self.close()
            return Raised(error)
        return self._advance(gen.throw, error)

    def close(self) -> None:
        """Abandon the program at its current suspension point."""

        if self._finished:
            return
        self._finished = True
        if self._gen is None:
            return
        try:
            self._gen.close()
        except Exception as exc:
            log.opt(exception=exc).warning("Program raised while being closed")

    def _require_generator(self) -> ProgramGenerator:
        if self._gen is None or self._finished:
            raise RuntimeError("program is not suspended")
        return self._gen

    def _advance(self, step: Callable[[Any], Any], arg: Any) -> StepOutcome:
        try:
            awaited = step(arg)
        except StopIteration as stop:
            self._finished = True
            return Done(stop.value)
        except Exception as exc:
            self._finished = True
            return Raised(exc)
        return Suspended(awaited)


__all__ = ["GeneratorProgram", "ProgramFactory", "ProgramGenerator", "StepProgram"]
