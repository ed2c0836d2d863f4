"""
Shared helpers for cotask tests.

``ManualProducer`` is a producer the test settles by hand, counting how often
it is invoked and disposed. ``Recorder`` captures what readers receive.
"""

from __future__ import annotations

from typing import Any

import pytest

from cotask import Subscription, Task


class Recorder:
    """Collects deliveries made to ``on_value`` / ``on_error``."""

    def __init__(self) -> None:
        self.values: list[Any] = []
        self.errors: list[BaseException] = []

    def on_value(self, value: Any) -> None:
        self.values.append(value)

    def on_error(self, error: BaseException) -> None:
        self.errors.append(error)

    @property
    def calls(self) -> int:
        return len(self.values) + len(self.errors)

    def read(self, task: Task[Any]) -> Any:
        return task.get(self.on_value, self.on_error)


class ManualProducer:
    """A producer whose deliveries are triggered from the test."""

    def __init__(self) -> None:
        self.invocations = 0
        self.disposals = 0
        self._deliveries: list[tuple[Any, Any]] = []

    def __call__(self, deliver_value: Any, deliver_error: Any) -> Subscription:
        self.invocations += 1
        self._deliveries.append((deliver_value, deliver_error))
        return Subscription(self._disposed)

    def _disposed(self) -> None:
        self.disposals += 1

    def succeed(self, value: Any, production: int = -1) -> None:
        self._deliveries[production][0](value)

    def fail(self, error: BaseException, production: int = -1) -> None:
        self._deliveries[production][1](error)


class SyncProducer:
    """Delivers immediately, before returning its subscription."""

    def __init__(self, value: Any = None, error: BaseException | None = None) -> None:
        self.value = value
        self.error = error
        self.invocations = 0
        self.disposals = 0

    def __call__(self, deliver_value: Any, deliver_error: Any) -> Subscription:
        self.invocations += 1
        if self.error is not None:
            deliver_error(self.error)
        else:
            deliver_value(self.value)
        return Subscription(self._disposed)

    def _disposed(self) -> None:
        self.disposals += 1


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def manual() -> ManualProducer:
    return ManualProducer()
