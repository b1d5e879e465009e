"""Shared fixtures: an engine wired to a bus, a fake clock, an event recorder."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.bus import AsyncIOBus
from core.models.events import Event
from scheduler.engine import Engine


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def set(self, when: datetime) -> None:
        self.now = when


class EventRecorder:
    """Bus subscriber that keeps every event it sees."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    async def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]


@pytest.fixture
def bus() -> AsyncIOBus:
    return AsyncIOBus()


@pytest.fixture
def recorder(bus: AsyncIOBus) -> EventRecorder:
    rec = EventRecorder()
    bus.subscribe("*", rec)
    return rec


@pytest.fixture
def engine(bus: AsyncIOBus) -> Engine:
    return Engine(bus=bus)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, 400000, tzinfo=timezone.utc))
