"""
Disposal handles returned whenever a Task is observed.

``dispose()`` is idempotent on every kind of subscription. ``SerialSubscription``
is the mutable "active subscription" slot used by chains and the driver: it
forwards ``dispose()`` to whatever inner subscription it holds at the moment of
disposal, not the one it held when it was handed out.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from cotask.errors import ProducerContractError


@runtime_checkable
class Disposable(Protocol):
    def dispose(self) -> None: ...


class Subscription:
    """Runs ``on_dispose`` the first time ``dispose()`` is called."""

    __slots__ = ("_on_dispose", "_disposed")

    def __init__(self, on_dispose: Callable[[], Any] | None = None) -> None:
        self._on_dispose = on_dispose
        self._disposed = False

    @classmethod
    def empty(cls) -> "Subscription":
        """A subscription with nothing to cancel."""

        return cls()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        on_dispose, self._on_dispose = self._on_dispose, None
        if on_dispose is not None:
            on_dispose()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"{type(self).__name__}({state})"


class SerialSubscription(Subscription):
    """A slot holding the currently active inner subscription."""

    __slots__ = ("_current",)

    def __init__(self) -> None:
        super().__init__()
        self._current: Disposable | None = None

    @property
    def current(self) -> Disposable | None:
        return self._current

    def replace(self, inner: Disposable) -> None:
        """Make ``inner`` the active subscription.

        Once the slot is disposed, anything placed in it is disposed at once.
        """

        if self._disposed:
            inner.dispose()
            return
        self._current = inner

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        current, self._current = self._current, None
        if current is not None:
            current.dispose()


def as_subscription(returned: Any, producer: Any = None) -> Disposable:
    """Coerce a producer's return value into something with ``dispose()``."""

    if returned is None:
        return Subscription.empty()
    if isinstance(returned, Disposable):
        return returned
    if callable(returned):
        return Subscription(returned)
    raise ProducerContractError(producer, returned)


__all__ = ["Disposable", "SerialSubscription", "Subscription", "as_subscription"]
