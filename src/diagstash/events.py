"""Outcome channel — user-facing feedback emitted by the repository and autosave.

The core only ever calls ``Notifier.notify``; delivery is best-effort and a
failing or missing notifier never affects persistence.
"""

from __future__ import annotations

import logging
import sys
from collections import deque
from dataclasses import dataclass
from typing import IO, Literal, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Level = Literal["success", "info", "warning", "error"]


@dataclass(frozen=True)
class Outcome:
    """Result of a repository or autosave operation."""

    action: str
    level: Level
    message: str
    diagram_id: str | None = None
    count: int | None = None


@runtime_checkable
class Notifier(Protocol):
    def notify(self, outcome: Outcome) -> None: ...


class EventLog:
    """Keeps the most recent outcomes in memory, for a UI or tests to read back."""

    def __init__(self, maxlen: int = 200) -> None:
        self._events: deque[Outcome] = deque(maxlen=maxlen)

    def notify(self, outcome: Outcome) -> None:
        self._events.append(outcome)

    @property
    def events(self) -> list[Outcome]:
        return list(self._events)

    def actions(self) -> list[str]:
        return [e.action for e in self._events]


class ConsoleNotifier:
    """Prints outcomes as one-line status messages."""

    _MARKERS = {"success": "✓", "info": "·", "warning": "!", "error": "✗"}

    def __init__(self, stream: IO[str] | None = None) -> None:
        self._stream = stream or sys.stderr

    def notify(self, outcome: Outcome) -> None:
        marker = self._MARKERS.get(outcome.level, "·")
        print(f"{marker} {outcome.message}", file=self._stream)


def emit(notifier: Notifier | None, outcome: Outcome) -> None:
    """Deliver an outcome, never letting the channel break the caller."""
    if notifier is None:
        return
    try:
        notifier.notify(outcome)
    except Exception as e:
        logger.warning("Notifier failed for %s: %s", outcome.action, e)
