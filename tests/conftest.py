"""Shared fixtures: a controllable clock and an in-memory repository."""

from __future__ import annotations

import pytest

from diagstash.config import RetentionConfig
from diagstash.events import EventLog
from diagstash.models import DiagramDraft
from diagstash.repository import DiagramRepository
from diagstash.storage.retention import RetentionPolicy
from diagstash.storage.store import MemoryEntityStore

# 2026-01-01T00:00:00Z
START_MS = 1_767_225_600_000


class FakeClock:
    """Epoch-millis clock that only moves when told to."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def make_draft(source: str = "@startuml\nA -> B\n@enduml", **kwargs) -> DiagramDraft:
    kwargs.setdefault("name", "Test diagram")
    kwargs.setdefault("diagram_type", "plantuml")
    kwargs.setdefault("output_format", "svg")
    return DiagramDraft(source=source, **kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def store() -> MemoryEntityStore:
    return MemoryEntityStore()


@pytest.fixture
def repo(store: MemoryEntityStore, clock: FakeClock, events: EventLog) -> DiagramRepository:
    return DiagramRepository(
        store, RetentionPolicy(RetentionConfig()), clock=clock, notifier=events
    )
