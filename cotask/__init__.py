"""
cotask - Composable, cancelable Tasks driven by generators.

A Task is a lazy, memoizing value container with push delivery and
cooperative cancellation. Generator functions compose Tasks (or any other
primitive registered with a composition protocol) by yielding them: each
``yield`` suspends the program until the yielded instance settles.

Example:
    >>> from cotask import Task, do
    >>>
    >>> @do
    ... def add(a, b):
    ...     x = yield a
    ...     y = yield b
    ...     return x + y
    >>>
    >>> _ = add(Task.succeeded(2), Task.succeeded(3)).get(print)
    5
"""

from cotask.config import (
    CotaskSettings,
    apply_settings,
    disable_debug_logging,
    enable_debug_logging,
    load_settings,
    settings,
)
from cotask.errors import (
    ComposerAlreadyRegisteredError,
    ComposerNotRegisteredError,
    CotaskError,
    ProducerContractError,
    TaskPendingError,
)
from cotask.types import (
    Done,
    Failed,
    Pending,
    Raised,
    StepOutcome,
    Succeeded,
    Suspended,
    TaskState,
)
from cotask.subscription import Disposable, SerialSubscription, Subscription, as_subscription
from cotask.protocol import ComposerEntry, chain_producer
from cotask.task import TASK_COMPOSER, Producer, Task, resolve, sequence
from cotask.program import GeneratorProgram, StepProgram
from cotask.futures import FUTURE_COMPOSER, to_future
from cotask.registry import ComposerRegistry, default_registry
from cotask.driver import Composition, DriverState, compose, drive
from cotask.do import ComposedFunction, do
from cotask import producers

apply_settings(settings)

__version__ = "0.1.0"

__all__ = [
    # Settings
    "CotaskSettings",
    "apply_settings",
    "disable_debug_logging",
    "enable_debug_logging",
    "load_settings",
    "settings",
    # Errors
    "ComposerAlreadyRegisteredError",
    "ComposerNotRegisteredError",
    "CotaskError",
    "ProducerContractError",
    "TaskPendingError",
    # States
    "Done",
    "Failed",
    "Pending",
    "Raised",
    "StepOutcome",
    "Succeeded",
    "Suspended",
    "TaskState",
    # Subscriptions
    "Disposable",
    "SerialSubscription",
    "Subscription",
    "as_subscription",
    # Task primitive
    "Producer",
    "Task",
    "resolve",
    "sequence",
    # Composition protocol
    "ComposerEntry",
    "ComposerRegistry",
    "FUTURE_COMPOSER",
    "TASK_COMPOSER",
    "chain_producer",
    "default_registry",
    # Driver
    "ComposedFunction",
    "Composition",
    "DriverState",
    "GeneratorProgram",
    "StepProgram",
    "compose",
    "do",
    "drive",
    "to_future",
    "producers",
]
