"""
The composition protocol.

A primitive type takes part in driver-based composition by supplying a
:class:`ComposerEntry`: how to build an instance from a producer, how to coerce
any value into an instance, how to chain a projection onto an instance, and how
to observe an instance's outcome.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cotask.subscription import Disposable, SerialSubscription, as_subscription
from cotask.types import ErrorCallback, ValueCallback

Subscribe = Callable[[Any, ValueCallback, ErrorCallback], Any]


def chain_producer(
    resolve: Callable[[Any], Any],
    subscribe: Subscribe,
    source: Any,
    projection: Callable[[Any], Any],
    recovery: Callable[[BaseException], Any] | None = None,
) -> Callable[[ValueCallback, ErrorCallback], Disposable]:
    """Producer that feeds ``source``'s outcome through ``projection``.

    The returned subscription is a slot: it starts out holding the source's
    subscription and is switched to the projected instance's subscription once
    the source settles. If the source settles synchronously, the source's own
    subscription (returned afterwards) is never placed in the slot.
    """

    def producer(deliver_value: ValueCallback, deliver_error: ErrorCallback) -> Disposable:
        slot = SerialSubscription()
        advanced = False

        def forward(fn: Callable[[Any], Any], payload: Any) -> None:
            nonlocal advanced
            advanced = True
            if slot.disposed:
                return
            try:
                projected = resolve(fn(payload))
            except Exception as exc:
                deliver_error(exc)
                return
            slot.replace(as_subscription(subscribe(projected, deliver_value, deliver_error)))

        def on_value(value: Any) -> None:
            forward(projection, value)

        def on_error(error: BaseException) -> None:
            nonlocal advanced
            if recovery is not None:
                forward(recovery, error)
                return
            advanced = True
            if not slot.disposed:
                deliver_error(error)

        source_subscription = as_subscription(subscribe(source, on_value, on_error))
        if not advanced:
            slot.replace(source_subscription)
        return slot

    return producer


@dataclass(frozen=True)
class ComposerEntry:
    """Capabilities of one primitive type.

    Attributes:
        construct: ``construct(producer) -> instance``.
        resolve: ``resolve(value) -> instance``; instances pass through.
        sequence: ``sequence(instance, projection, recovery=None) -> instance``.
        subscribe: ``subscribe(instance, on_value, on_error) -> Subscription``;
            used by the driver to wait on a suspended expression.
    """

    construct: Callable[[Callable[[ValueCallback, ErrorCallback], Any]], Any]
    resolve: Callable[[Any], Any]
    sequence: Callable[..., Any]
    subscribe: Callable[[Any, ValueCallback, ErrorCallback], Any]

    def __post_init__(self) -> None:
        for name in ("construct", "resolve", "sequence", "subscribe"):
            if not callable(getattr(self, name)):
                raise TypeError(f"ComposerEntry.{name} must be callable")


__all__ = ["ComposerEntry", "Subscribe", "chain_producer"]
