"""Debounce primitive on asyncio timers.

A Debouncer holds a stable value and emits a new one only after the input
has stopped changing for ``delay`` seconds. Every change cancels the armed
timer and schedules a fresh one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class Debouncer(Generic[T]):
    """Stabilizes a rapidly changing value."""

    def __init__(
        self,
        delay: float,
        initial: T | None = None,
        on_settle: Callable[[T], None] | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._value = initial
        self._latest: object = initial
        self._on_settle = on_settle
        self._handle: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def value(self) -> T | None:
        """The last settled value; unchanged while a new one is pending."""
        return self._value

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        """Feed a new input. Must be called from a running event loop."""
        if self._closed:
            raise RuntimeError("Debouncer is closed")
        if self._latest is not _UNSET and value == self._latest:
            return
        self._latest = value
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, value)

    def cancel(self) -> None:
        """Drop any pending value. The next push always arms a timer."""
        self._cancel_timer()
        self._latest = _UNSET

    def close(self) -> None:
        """Cancel pending work and refuse further input."""
        self.cancel()
        self._closed = True

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, value: T) -> None:
        self._handle = None
        self._value = value
        logger.debug("Debounced value settled after %.2fs", self.delay)
        if self._on_settle is not None:
            self._on_settle(value)

    def __enter__(self) -> Debouncer[T]:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
