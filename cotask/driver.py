"""
The driver: runs a stepwise program against a primitive's composition protocol.

``compose(factory, primitive)`` returns one instance of ``primitive`` that
settles with the program's outcome. Each yielded expression is coerced with the
primitive's ``resolve`` and observed with its ``subscribe``; its value is sent
back into the program, its error is thrown into the program at the
suspension point.

Sub-instances that settle synchronously are handled by a trampoline: the
delivery only records the next step, and the loop in :meth:`Composition._pump`
runs it. Long runs of already-settled awaits therefore do not grow the Python
stack, and a resumption never starts while another is still executing.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from functools import partial
from typing import Any

from loguru import logger

from cotask.program import GeneratorProgram, ProgramFactory, StepProgram
from cotask.protocol import ComposerEntry
from cotask.registry import ComposerRegistry, default_registry
from cotask.subscription import Disposable, SerialSubscription, Subscription, as_subscription
from cotask.task import Task
from cotask.types import Done, ErrorCallback, Raised, StepOutcome, Suspended, ValueCallback

log = logger.bind(component="driver")


class DriverState(Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    SETTLED = "settled"
    DISPOSED = "disposed"


class Composition:
    """One execution of a program, settling through two delivery callbacks."""

    def __init__(
        self,
        program: StepProgram,
        entry: ComposerEntry,
        deliver_value: ValueCallback,
        deliver_error: ErrorCallback,
    ) -> None:
        self._program = program
        self._entry = entry
        self._deliver_value = deliver_value
        self._deliver_error = deliver_error
        self._state = DriverState.RUNNING
        self._pending = SerialSubscription()
        self._token: object | None = None
        self._next_step: Callable[[], StepOutcome] | None = None
        self._pumping = False
        self._stepping = False

    @property
    def state(self) -> DriverState:
        return self._state

    def run(self) -> Disposable:
        log.debug("Composition {} started", id(self))
        self._schedule(self._program.start)
        return Subscription(self.dispose)

    def dispose(self) -> None:
        if self._state in (DriverState.SETTLED, DriverState.DISPOSED):
            return
        log.debug("Composition {} disposed while {}", id(self), self._state.value)
        self._state = DriverState.DISPOSED
        self._token = None
        self._next_step = None
        self._pending.dispose()
        if not self._stepping:
            self._program.close()

    def _schedule(self, step: Callable[[], StepOutcome]) -> None:
        self._next_step = step
        if self._pumping:
            return
        self._pump()

    def _pump(self) -> None:
        self._pumping = True
        try:
            while self._next_step is not None and self._state is DriverState.RUNNING:
                step, self._next_step = self._next_step, None
                self._stepping = True
                try:
                    outcome = step()
                except Exception as exc:
                    outcome = Raised(exc)
                finally:
                    self._stepping = False
                if self._state is DriverState.DISPOSED:
                    # Disposed from inside the step; the program could not be
                    # closed while it was executing.
                    self._program.close()
                    return
                self._handle(outcome)
        finally:
            self._pumping = False

    def _handle(self, outcome: StepOutcome) -> None:
        if self._state is not DriverState.RUNNING:
            return
        if isinstance(outcome, Done):
            self._settle()
            log.debug("Composition {} returned {!r}", id(self), outcome.value)
            self._deliver_value(outcome.value)
        elif isinstance(outcome, Raised):
            self._settle()
            log.debug("Composition {} raised {!r}", id(self), outcome.error)
            self._deliver_error(outcome.error)
        elif isinstance(outcome, Suspended):
            self._suspend(outcome.awaited)
        else:
            self._settle()
            self._deliver_error(TypeError(f"Unknown step outcome: {outcome!r}"))

    def _settle(self) -> None:
        self._state = DriverState.SETTLED
        self._token = None

    def _suspend(self, awaited: Any) -> None:
        if self._state is not DriverState.RUNNING:
            return
        self._state = DriverState.SUSPENDED
        token = object()
        self._token = token
        log.debug("Composition {} suspended on {!r}", id(self), awaited)
        try:
            instance = self._entry.resolve(awaited)
            subscription = self._entry.subscribe(
                instance,
                partial(self._delivered, token, self._program.resume_with_value),
                partial(self._delivered, token, self._program.resume_with_error),
            )
            inner = as_subscription(subscription)
        except Exception as exc:
            if self._token is token:
                self._token = None
                self._state = DriverState.RUNNING
                self._next_step = partial(self._program.resume_with_error, exc)
            return
        if self._token is token or self._state is DriverState.DISPOSED:
            self._pending.replace(inner)

    def _delivered(
        self,
        token: object,
        resume: Callable[[Any], StepOutcome],
        payload: Any,
    ) -> None:
        if token is not self._token or self._state is not DriverState.SUSPENDED:
            log.debug("Composition {} dropped a late delivery", id(self))
            return
        self._token = None
        self._state = DriverState.RUNNING
        log.debug("Composition {} resumed", id(self))
        self._schedule(partial(resume, payload))


def _entry_for(primitive: Any, registry: ComposerRegistry | None) -> ComposerEntry:
    if isinstance(primitive, ComposerEntry):
        return primitive
    if registry is None:
        registry = default_registry
    return registry.lookup(primitive)


def drive(
    program_factory: Callable[[], StepProgram],
    primitive: Any = None,
    *,
    registry: ComposerRegistry | None = None,
) -> Any:
    """Compose an arbitrary :class:`StepProgram` into one primitive instance.

    ``program_factory`` is called once per production and must return a fresh
    program. ``primitive`` is a registered type or a :class:`ComposerEntry`
    (defaults to :class:`~cotask.task.Task`).
    """

    if not callable(program_factory):
        raise TypeError("program_factory must be callable")
    if primitive is None:
        primitive = Task
    entry = _entry_for(primitive, registry)

    def producer(deliver_value: ValueCallback, deliver_error: ErrorCallback) -> Disposable:
        try:
            program = program_factory()
        except Exception as exc:
            deliver_error(exc)
            return Subscription.empty()
        return Composition(program, entry, deliver_value, deliver_error).run()

    return entry.construct(producer)


def compose(
    factory: ProgramFactory,
    primitive: Any = None,
    *,
    registry: ComposerRegistry | None = None,
) -> Any:
    """Run the generator returned by ``factory`` against ``primitive``.

    Example::

        def program():
            a = yield fetch_a()
            b = yield fetch_b(a)
            return a + b

        task = compose(program)          # a Task
        task.get(print, print)
    """

    if not callable(factory):
        raise TypeError(f"factory must be callable, got {type(factory).__name__}")
    return drive(partial(GeneratorProgram, factory), primitive, registry=registry)


__all__ = ["Composition", "DriverState", "compose", "drive"]
