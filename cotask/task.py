"""
The Task primitive: a cancelable, memoizing, push-delivery value container.

A Task stores a *producer*, a function ``(deliver_value, deliver_error) ->
Subscription``, and runs it lazily when read with :meth:`Task.get`. The first
delivery is written into the Task's state before any reader callback runs, and
from then on every read is answered synchronously from that state.

Two pre-settlement read policies exist:

- shared (default): one production is multicast to every reader attached
  before settlement. Each reader gets its own Subscription; the production is
  disposed once the last reader detaches, and a later read starts over.
- one-shot (``shared=False``): every pre-settlement read invokes the producer
  independently; the first delivery from any production settles the Task.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from functools import partial
from typing import Any, Generic, TypeVar

from loguru import logger

from cotask import config
from cotask.protocol import ComposerEntry, chain_producer
from cotask.subscription import Disposable, SerialSubscription, Subscription, as_subscription
from cotask.types import (
    ErrorCallback,
    Failed,
    Pending,
    Succeeded,
    TaskState,
    ValueCallback,
)

T = TypeVar("T")
U = TypeVar("U")

Producer = Callable[[ValueCallback, ErrorCallback], Any]

log = logger.bind(component="task")


def _ignore(_: Any) -> None:
    return None


def _ensure_callable(value: Any, name: str) -> None:
    if not callable(value):
        raise TypeError(f"{name} must be callable, got {type(value).__name__}")


class _Reader:
    """One ``get()`` call waiting for an outcome."""

    __slots__ = ("on_value", "on_error", "active")

    def __init__(self, on_value: ValueCallback, on_error: ErrorCallback) -> None:
        self.on_value = on_value
        self.on_error = on_error
        self.active = True

    def receive(self, outcome: TaskState[Any]) -> None:
        if not self.active:
            return
        self.active = False
        outcome.deliver(self.on_value, self.on_error)


def _notify(readers: list[_Reader], outcome: TaskState[Any]) -> None:
    first_error: Exception | None = None
    for reader in readers:
        try:
            reader.receive(outcome)
        except Exception as exc:
            if first_error is None:
                first_error = exc
            else:
                log.opt(exception=exc).warning("Reader callback raised; later error dropped")
    if first_error is not None:
        raise first_error


class Task(Generic[T]):
    """A lazily produced value that settles at most once."""

    def __init__(self, producer: Producer, *, shared: bool | None = None) -> None:
        _ensure_callable(producer, "producer")
        self._producer: Producer | None = producer
        self._shared = config.settings.shared if shared is None else shared
        self._state: TaskState[T] = Pending
        # shared mode bookkeeping
        self._readers: list[_Reader] = []
        self._production: SerialSubscription | None = None
        self._token: object | None = None

    @classmethod
    def construct(cls, producer: Producer) -> "Task[Any]":
        return cls(producer)

    @classmethod
    def succeeded(cls, value: T) -> "Task[T]":
        task = cls(_never_called)
        task._settle(Succeeded(value))
        return task

    @classmethod
    def failed(cls, error: BaseException) -> "Task[Any]":
        if not isinstance(error, BaseException):
            raise TypeError(f"error must be an exception, got {type(error).__name__}")
        task = cls(_never_called)
        task._settle(Failed(error))
        return task

    @property
    def state(self) -> TaskState[T]:
        return self._state

    @property
    def shared(self) -> bool:
        return self._shared

    def done(self) -> bool:
        return self._state.is_settled()

    def result(self) -> T:
        """Return the value, re-raise the error, or raise ``TaskPendingError``."""

        return self._state.unwrap()

    def get(
        self,
        on_value: ValueCallback,
        on_error: ErrorCallback | None = None,
    ) -> Disposable:
        """Observe the Task, starting production if it has not settled.

        Exactly one of ``on_value`` / ``on_error`` is called, at most once.
        Without ``on_error`` a failure is not observed by this reader.
        """

        _ensure_callable(on_value, "on_value")
        if on_error is None:
            on_error = _ignore
        _ensure_callable(on_error, "on_error")

        if self._state.is_settled():
            self._state.deliver(on_value, on_error)
            return Subscription.empty()

        reader = _Reader(on_value, on_error)
        if self._shared:
            return self._get_shared(reader)
        return self._get_once(reader)

    def then(
        self,
        projection: Callable[[T], Any],
        recovery: Callable[[BaseException], Any] | None = None,
    ) -> "Task[Any]":
        return sequence(self, projection, recovery)

    def map(self, fn: Callable[[T], U]) -> "Task[U]":
        return sequence(self, fn)

    def catch(self, fn: Callable[[BaseException], Any]) -> "Task[Any]":
        return sequence(self, resolve, fn)

    def __await__(self) -> Generator[Any, None, T]:
        from cotask.futures import to_future

        return to_future(self).__await__()

    def __repr__(self) -> str:
        return f"Task({self._state!r})"

    def _settle(self, outcome: TaskState[T]) -> bool:
        if self._state.is_settled():
            return False
        self._state = outcome
        self._producer = None
        log.debug("Task {} settled: {!r}", id(self), outcome)
        return True

    def _run_producer(
        self,
        deliver_value: ValueCallback,
        deliver_error: ErrorCallback,
    ) -> Disposable:
        producer = self._producer
        if producer is None:
            return Subscription.empty()
        try:
            return as_subscription(producer(deliver_value, deliver_error), producer)
        except Exception as exc:
            if self._state.is_settled():
                log.opt(exception=exc).warning("Producer raised after delivering; dropped")
            else:
                deliver_error(exc)
            return Subscription.empty()

    def _get_once(self, reader: _Reader) -> Disposable:
        def deliver(outcome: TaskState[T]) -> None:
            if not reader.active:
                log.debug("Late delivery to Task {} dropped", id(self))
                return
            self._settle(outcome)
            reader.receive(self._state)

        log.debug("Task {} producing for a single reader", id(self))
        inner = self._run_producer(
            lambda value: deliver(Succeeded(value)),
            lambda error: deliver(Failed(error)),
        )
        if not reader.active:
            return Subscription.empty()

        def detach() -> None:
            if not reader.active:
                return
            reader.active = False
            inner.dispose()

        return Subscription(detach)

    def _get_shared(self, reader: _Reader) -> Disposable:
        self._readers.append(reader)
        if self._production is None:
            self._start_production()
        if not reader.active:
            return Subscription.empty()
        return Subscription(partial(self._detach, reader))

    def _start_production(self) -> None:
        token = object()
        slot = SerialSubscription()
        self._token = token
        self._production = slot
        log.debug("Task {} production started", id(self))
        inner = self._run_producer(
            lambda value: self._deliver_shared(token, Succeeded(value)),
            lambda error: self._deliver_shared(token, Failed(error)),
        )
        slot.replace(inner)

    def _deliver_shared(self, token: object, outcome: TaskState[T]) -> None:
        if token is not self._token or not self._settle(outcome):
            log.debug("Late delivery to Task {} dropped", id(self))
            return
        self._token = None
        self._production = None
        readers, self._readers = self._readers, []
        _notify(readers, outcome)

    def _detach(self, reader: _Reader) -> None:
        if not reader.active:
            return
        reader.active = False
        self._readers.remove(reader)
        if self._readers or self._production is None:
            return
        production, self._production = self._production, None
        self._token = None
        log.debug("Task {} production disposed", id(self))
        production.dispose()


def _subscribe(task: Task[Any], on_value: ValueCallback, on_error: ErrorCallback) -> Disposable:
    return task.get(on_value, on_error)


def _never_called(deliver_value: ValueCallback, deliver_error: ErrorCallback) -> None:
    raise AssertionError("settled Task has no producer")


def resolve(value: Any) -> Task[Any]:
    """Return ``value`` if it is a Task, else a Task already settled with it."""

    if isinstance(value, Task):
        return value
    return Task.succeeded(value)


def sequence(
    source: Any,
    projection: Callable[[Any], Any],
    recovery: Callable[[BaseException], Any] | None = None,
) -> Task[Any]:
    """Chain ``projection`` onto ``source``'s value.

    The projection runs synchronously on the delivered value; its result is
    resolved into a Task whose outcome becomes the chain's. A raising
    projection fails the chain. ``recovery`` treats source failures the same
    way; without it they pass straight through.
    """

    _ensure_callable(projection, "projection")
    if recovery is not None:
        _ensure_callable(recovery, "recovery")
    return Task(chain_producer(resolve, _subscribe, resolve(source), projection, recovery))


TASK_COMPOSER = ComposerEntry(
    construct=Task.construct,
    resolve=resolve,
    sequence=sequence,
    subscribe=_subscribe,
)


__all__ = ["Producer", "TASK_COMPOSER", "Task", "resolve", "sequence"]
