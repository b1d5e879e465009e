"""Event model -- what the engine and runner report on the bus."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


class Event(BaseModel):
    """A typed event that flows through the EventBus.

    Task lifecycle changes, firings, failures and overruns are all Events.
    Subscribing to them is how callers receive callback errors.
    """

    id: str = Field(default_factory=lambda: f"evt_{uuid4().hex[:12]}")
    type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str
    task_id: str | None = None
    payload: dict = Field(default_factory=dict)


# -- Event type constants --

class EventTypes:
    """Well-known event type strings."""

    # Lifecycle
    TASK_REGISTERED = "task.registered"
    TASK_PAUSED = "task.paused"
    TASK_RESUMED = "task.resumed"
    TASK_STOPPED = "task.stopped"

    # Execution
    TASK_FIRED = "task.fired"
    TASK_COMPLETED = "task.completed"
    TASK_FAILED = "task.failed"
    TASK_OVERRUN = "task.overrun"

    # Tick source
    TICK_SKIPPED = "tick.skipped"
