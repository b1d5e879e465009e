"""Pydantic data models shared across all components."""

from core.models.events import Event, EventTypes
from core.models.tasks import TaskSnapshot, TaskState

__all__ = [
    "Event",
    "EventTypes",
    "TaskSnapshot",
    "TaskState",
]
