"""
asyncio integration.

``FUTURE_COMPOSER`` lets the driver compose programs into ``asyncio.Future``
instances, the host's eager primitive: the producer runs as soon as the future
is constructed and there is no lazy start. ``to_future`` goes the other way and
exposes a Task's outcome as a future, which is also what makes ``await task``
work inside a coroutine.

All functions here need a running event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import weakref
from collections.abc import Callable
from typing import Any

from loguru import logger

from cotask.protocol import ComposerEntry, chain_producer
from cotask.subscription import Disposable, Subscription, as_subscription
from cotask.task import Producer, Task
from cotask.types import ErrorCallback, ValueCallback

log = logger.bind(component="futures")

# Futures created by resolve_future itself; disposing their only observer cancels them.
_owned: "weakref.WeakSet[asyncio.Future[Any]]" = weakref.WeakSet()


def _complete(future: asyncio.Future[Any], value: Any) -> None:
    if not future.done():
        future.set_result(value)


def _fail(future: asyncio.Future[Any], error: BaseException) -> None:
    if future.done():
        return
    if isinstance(error, asyncio.CancelledError):
        future.cancel()
    else:
        future.set_exception(error)


def construct_future(producer: Producer) -> asyncio.Future[Any]:
    """Create a future and run ``producer`` against it immediately.

    Cancelling the future disposes the producer's subscription.
    """

    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()
    try:
        subscription = as_subscription(
            producer(lambda value: _complete(future, value), lambda error: _fail(future, error)),
            producer,
        )
    except Exception as exc:
        _fail(future, exc)
        return future

    def on_done(done: asyncio.Future[Any]) -> None:
        if done.cancelled():
            subscription.dispose()

    future.add_done_callback(on_done)
    return future


def _own(future: asyncio.Future[Any]) -> asyncio.Future[Any]:
    _owned.add(future)
    return future


def resolve_future(value: Any) -> asyncio.Future[Any]:
    """Coerce ``value`` into a future.

    Futures pass through, Tasks are bridged with :func:`to_future`, other
    awaitables are scheduled with ``asyncio.ensure_future`` and plain values
    become completed futures. Futures created here for a Task or awaitable are
    cancelled when their subscriber disposes.
    """

    if asyncio.isfuture(value):
        return value
    if isinstance(value, Task):
        return _own(to_future(value))
    if inspect.isawaitable(value):
        return _own(asyncio.ensure_future(value))
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def subscribe_future(
    future: asyncio.Future[Any],
    on_value: ValueCallback,
    on_error: ErrorCallback,
) -> Disposable:
    """Observe ``future``.

    Disposing detaches the callback. Caller-supplied futures keep running;
    futures created by :func:`resolve_future` are cancelled.
    """

    def on_done(done: asyncio.Future[Any]) -> None:
        if done.cancelled():
            on_error(asyncio.CancelledError())
            return
        error = done.exception()
        if error is not None:
            on_error(error)
        else:
            on_value(done.result())

    def detach() -> None:
        future.remove_done_callback(on_done)
        if future in _owned and not future.done():
            future.cancel()

    future.add_done_callback(on_done)
    return Subscription(detach)


def sequence_future(
    future: Any,
    projection: Callable[[Any], Any],
    recovery: Callable[[BaseException], Any] | None = None,
) -> asyncio.Future[Any]:
    return construct_future(
        chain_producer(resolve_future, subscribe_future, resolve_future(future), projection, recovery)
    )


def to_future(task: Task[Any]) -> asyncio.Future[Any]:
    """Read ``task`` into a new future on the running loop.

    Cancelling the returned future disposes the Task subscription.
    """

    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    subscription = task.get(lambda value: _complete(future, value), lambda error: _fail(future, error))

    def on_done(done: asyncio.Future[Any]) -> None:
        if done.cancelled():
            log.debug("Future for Task {} cancelled; disposing", id(task))
            subscription.dispose()

    future.add_done_callback(on_done)
    return future


FUTURE_COMPOSER = ComposerEntry(
    construct=construct_future,
    resolve=resolve_future,
    sequence=sequence_future,
    subscribe=subscribe_future,
)


__all__ = [
    "FUTURE_COMPOSER",
    "construct_future",
    "resolve_future",
    "sequence_future",
    "subscribe_future",
    "to_future",
]
