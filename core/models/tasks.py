"""Task models -- lifecycle states and read-only task snapshots."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel


class TaskState(str, Enum):
    """Scheduled <-> Paused, either -> Stopped (terminal)."""

    SCHEDULED = "scheduled"
    PAUSED = "paused"
    STOPPED = "stopped"


class TaskSnapshot(BaseModel):
    """Point-in-time view of a registered task, safe to serialize."""

    id: str
    name: str
    expression: str
    state: TaskState
    in_flight: bool = False

    # Execution history
    run_count: int = 0
    failure_count: int = 0
    overrun_count: int = 0
    last_run_at: datetime | None = None
    last_result: Literal["success", "error"] | None = None
