"""Ready-made Tasks built from common producer shapes."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cotask.subscription import Disposable, Subscription, as_subscription
from cotask.task import Task
from cotask.types import ErrorCallback, ValueCallback

T = TypeVar("T")


def succeeded(value: T) -> Task[T]:
    return Task.succeeded(value)


def failed(error: BaseException) -> Task[Any]:
    return Task.failed(error)


def never() -> Task[Any]:
    """A Task that never settles."""

    def producer(deliver_value: ValueCallback, deliver_error: ErrorCallback) -> Disposable:
        return Subscription.empty()

    return Task(producer)


def delay(
    seconds: float,
    value: T = None,  # type: ignore[assignment]
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Task[T]:
    """Deliver ``value`` after ``seconds`` on the event loop.

    The timer starts when the Task is first read; disposing cancels it.
    """

    if seconds < 0:
        raise ValueError("seconds must be >= 0")

    def producer(deliver_value: ValueCallback, deliver_error: ErrorCallback) -> Disposable:
        running = loop or asyncio.get_running_loop()
        handle = running.call_later(seconds, deliver_value, value)
        return Subscription(handle.cancel)

    return Task(producer)


def from_callback(register: Callable[[Callable[[Any], Any]], Any]) -> Task[Any]:
    """Adapt a ``register(callback) -> cancel`` API.

    ``callback`` receives the value; an exception instance passed to it is
    delivered as a failure. ``register`` may return a dispose callable, an
    object with ``dispose()`` or ``None``.
    """

    def producer(deliver_value: ValueCallback, deliver_error: ErrorCallback) -> Disposable:
        def callback(payload: Any) -> None:
            if isinstance(payload, BaseException):
                deliver_error(payload)
            else:
                deliver_value(payload)

        return as_subscription(register(callback), register)

    return Task(producer)


def from_awaitable(factory: Callable[[], Awaitable[T]]) -> Task[T]:
    """Run ``factory()`` as an asyncio task when the Task is read.

    Disposing cancels the asyncio task. A cancelled asyncio task that was not
    disposed through the Task fails it with ``asyncio.CancelledError``.
    """

    def producer(deliver_value: ValueCallback, deliver_error: ErrorCallback) -> Disposable:
        scheduled = asyncio.ensure_future(factory())
        disposed = False

        def on_done(done: asyncio.Future[Any]) -> None:
            if disposed:
                return
            if done.cancelled():
                deliver_error(asyncio.CancelledError())
                return
            error = done.exception()
            if error is not None:
                deliver_error(error)
            else:
                deliver_value(done.result())

        def cancel() -> None:
            nonlocal disposed
            disposed = True
            scheduled.cancel()

        scheduled.add_done_callback(on_done)
        return Subscription(cancel)

    return Task(producer)


__all__ = ["delay", "failed", "from_awaitable", "from_callback", "never", "succeeded"]
