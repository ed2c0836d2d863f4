"""
Registry of composition-protocol entries, keyed by primitive type.

Lookups read an immutable snapshot; ``register`` builds a new snapshot and
swaps it in, so a lookup never observes a half-applied registration.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any

from frozendict import frozendict
from loguru import logger

from cotask.errors import ComposerAlreadyRegisteredError, ComposerNotRegisteredError
from cotask.futures import FUTURE_COMPOSER
from cotask.program import ProgramFactory
from cotask.protocol import ComposerEntry
from cotask.task import TASK_COMPOSER, Task

log = logger.bind(component="registry")


class ComposerRegistry:
    """Maps primitive types to their :class:`ComposerEntry`."""

    def __init__(self, entries: dict[type, ComposerEntry] | None = None) -> None:
        self._entries: frozendict[type, ComposerEntry] = frozendict()
        for primitive, entry in (entries or {}).items():
            self.register(primitive, entry)

    def register(
        self,
        primitive: type,
        entry: ComposerEntry,
        *,
        replace: bool = False,
    ) -> None:
        if not isinstance(primitive, type):
            raise TypeError(f"primitive must be a type, got {type(primitive).__name__}")
        if not isinstance(entry, ComposerEntry):
            raise TypeError(f"entry must be a ComposerEntry, got {type(entry).__name__}")
        if primitive in self._entries and not replace:
            raise ComposerAlreadyRegisteredError(primitive)
        self._entries = self._entries.set(primitive, entry)
        log.debug("Registered composer for {}", primitive.__qualname__)

    def lookup(self, primitive: type) -> ComposerEntry:
        """Return the entry for ``primitive`` or the nearest registered base class."""

        entries = self._entries
        for candidate in getattr(primitive, "__mro__", (primitive,)):
            entry = entries.get(candidate)
            if entry is not None:
                return entry
        raise ComposerNotRegisteredError(primitive)

    def compose(self, factory: ProgramFactory, primitive: Any = None) -> Any:
        from cotask.driver import compose

        return compose(factory, primitive, registry=self)

    def snapshot(self) -> frozendict[type, ComposerEntry]:
        return self._entries

    def __contains__(self, primitive: object) -> bool:
        if not isinstance(primitive, type):
            return False
        try:
            self.lookup(primitive)
        except ComposerNotRegisteredError:
            return False
        return True

    def __iter__(self) -> Iterator[type]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        names = ", ".join(t.__qualname__ for t in self._entries)
        return f"ComposerRegistry({names})"


default_registry = ComposerRegistry({Task: TASK_COMPOSER, asyncio.Future: FUTURE_COMPOSER})


__all__ = ["ComposerRegistry", "default_registry"]
