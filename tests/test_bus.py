"""Tests for the in-process event bus."""

import json

from core.bus import AsyncIOBus
from core.models.events import Event, EventTypes


def make_event(event_type: str = EventTypes.TASK_FAILED) -> Event:
    return Event(type=event_type, source="test", task_id="task_abc", payload={"error": "boom"})


class TestAsyncIOBus:
    """Pub/sub with isolated subscribers."""

    async def test_typed_and_wildcard_subscribers(self):
        bus = AsyncIOBus()
        typed, everything = [], []

        async def on_failed(event):
            typed.append(event)

        async def on_any(event):
            everything.append(event)

        bus.subscribe(EventTypes.TASK_FAILED, on_failed)
        bus.subscribe("*", on_any)

        await bus.publish(make_event())
        await bus.publish(make_event(EventTypes.TASK_FIRED))

        assert len(typed) == 1
        assert len(everything) == 2
        assert bus.subscriber_count() == 2
        assert bus.subscriber_count("*") == 1

    async def test_failing_subscriber_is_isolated(self):
        bus = AsyncIOBus()
        seen = []

        async def broken(event):
            raise RuntimeError("subscriber bug")

        async def healthy(event):
            seen.append(event)

        bus.subscribe(EventTypes.TASK_FAILED, broken)
        bus.subscribe(EventTypes.TASK_FAILED, healthy)

        await bus.publish(make_event())
        assert len(seen) == 1

    async def test_unsubscribe(self):
        bus = AsyncIOBus()
        seen = []

        async def handler(event):
            seen.append(event)

        bus.subscribe(EventTypes.TASK_FAILED, handler)
        bus.unsubscribe(EventTypes.TASK_FAILED, handler)
        bus.unsubscribe(EventTypes.TASK_FAILED, handler)

        await bus.publish(make_event())
        assert seen == []
        assert bus.subscriber_count(EventTypes.TASK_FAILED) == 0

    async def test_audit_log(self, tmp_path):
        bus = AsyncIOBus(events_dir=tmp_path / "events")
        await bus.publish(make_event())

        files = list((tmp_path / "events").glob("*.jsonl"))
        assert len(files) == 1
        record = json.loads(files[0].read_text().strip())
        assert record["type"] == EventTypes.TASK_FAILED
        assert record["task_id"] == "task_abc"
