"""AsyncIOBus -- in-process async pub/sub for scheduler events.

The engine never raises callback failures at its caller. Everything that
happens to a task after registration is published here as an Event:

    task.registered / task.paused / task.resumed / task.stopped
                        lifecycle changes from Engine and TaskHandle
    task.fired          a tick matched and the callback was started
    task.completed      the callback returned; payload carries the result
    task.failed         the callback raised; payload carries the error
    task.overrun        a tick matched while the previous run was in flight
    tick.skipped        the tick source dropped boundaries past max_catchup

Consumers are the control API's /events stream, which relays every
event over SSE, and whatever a host application subscribes. With an
events_dir each event is also appended to a daily JSONL file, so
failures can be audited after the process exits.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Coroutine

from core.models.events import Event

logger = logging.getLogger(__name__)

Callback = Callable[[Event], Coroutine[Any, Any, None]]


class AsyncIOBus:
    """Fan-out of task and tick events to async subscribers.

    Subscribers register per event type or with "*" for everything. A
    subscriber that raises is logged and dropped from that one delivery;
    the publishing engine and the other subscribers carry on.

    Usage:
        bus = AsyncIOBus()
        bus.subscribe(EventTypes.TASK_FAILED, alert_on_failure)
        engine = Engine(bus=bus)
    """

    def __init__(self, events_dir: Path | None = None) -> None:
        self._subscribers: dict[str, list[Callback]] = {}
        self._wildcard_subscribers: list[Callback] = []
        self._events_dir = events_dir
        if self._events_dir is not None:
            self._events_dir.mkdir(parents=True, exist_ok=True)

    async def publish(self, event: Event) -> None:
        """Append the event to the audit file if enabled, then deliver it."""
        if self._events_dir is not None:
            self._persist(event)

        callbacks = self._subscribers.get(event.type, []) + self._wildcard_subscribers
        if not callbacks:
            logger.debug("No subscribers for event type: %s", event.type)
            return

        logger.debug(
            "Publishing %s to %d subscriber(s) [task=%s]",
            event.type,
            len(callbacks),
            event.task_id,
        )

        # Subscriber failures never reach the publisher
        await asyncio.gather(
            *(self._safe_invoke(cb, event) for cb in callbacks),
            return_exceptions=True,
        )

    def subscribe(self, event_type: str, callback: Callback) -> None:
        """Register a callback for events of the given type.

        Use event_type="*" to subscribe to all events.
        """
        if event_type == "*":
            self._wildcard_subscribers.append(callback)
        else:
            self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug("Subscribed to '%s': %s", event_type, callback)

    def unsubscribe(self, event_type: str, callback: Callback) -> None:
        """Remove a previously registered callback."""
        if event_type == "*":
            if callback in self._wildcard_subscribers:
                self._wildcard_subscribers.remove(callback)
        elif callback in self._subscribers.get(event_type, []):
            self._subscribers[event_type].remove(callback)

    async def _safe_invoke(self, callback: Callback, event: Event) -> None:
        try:
            await callback(event)
        except Exception:
            logger.exception("Subscriber %r failed on %s [task=%s]", callback, event.type, event.task_id)

    def _persist(self, event: Event) -> None:
        """One JSON line per event, one file per UTC day."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        filepath = self._events_dir / f"{today}.jsonl"

        try:
            with open(filepath, "a") as f:
                f.write(event.model_dump_json() + "\n")
        except OSError:
            logger.exception("Failed to persist event to %s", filepath)

    def subscriber_count(self, event_type: str | None = None) -> int:
        """Return the number of subscribers, optionally filtered by event type."""
        if event_type is None:
            total = sum(len(cbs) for cbs in self._subscribers.values())
            return total + len(self._wildcard_subscribers)
        if event_type == "*":
            return len(self._wildcard_subscribers)
        return len(self._subscribers.get(event_type, []))
