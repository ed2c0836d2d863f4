"""
Runtime settings for cotask.

Settings are read from the environment once at import time:

- ``COTASK_DEBUG``: ``1``/``true``/``yes`` turns on the library's loguru output.
- ``COTASK_SHARED``: default read policy for Tasks built without an explicit
  ``shared=`` argument. Truthy (the default) multicasts one production to all
  readers; falsy runs the producer once per pre-settlement read.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from loguru import logger

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def _flag(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key, "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


@dataclass(frozen=True)
class CotaskSettings:
    debug: bool = False
    shared: bool = True


def load_settings(environ: Mapping[str, str] | None = None) -> CotaskSettings:
    """Build settings from ``environ`` (defaults to ``os.environ``)."""

    env = os.environ if environ is None else environ
    return CotaskSettings(
        debug=_flag(env, "COTASK_DEBUG", False),
        shared=_flag(env, "COTASK_SHARED", True),
    )


settings = load_settings()


def enable_debug_logging() -> None:
    logger.enable("cotask")


def disable_debug_logging() -> None:
    logger.disable("cotask")


def apply_settings(current: CotaskSettings) -> None:
    if current.debug:
        enable_debug_logging()
    else:
        disable_debug_logging()


__all__ = [
    "CotaskSettings",
    "apply_settings",
    "disable_debug_logging",
    "enable_debug_logging",
    "load_settings",
    "settings",
]
