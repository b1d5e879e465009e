"""Scheduler runner -- asyncio tick source that drives an Engine.

Sleeps until the next second (or minute) boundary and delivers it to
``engine.on_tick``. Instants are wall-clock time at one fixed UTC offset.

Each boundary is delivered exactly once:
- If the loop wakes late, every missed boundary is replayed in order, as
  long as it is within ``max_catchup`` of now. Older ones are dropped and
  reported as a tick.skipped event.
- If the clock steps backwards, nothing is delivered until it passes the
  last delivered boundary again.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Awaitable, Callable, Literal

from core.bus import AsyncIOBus
from core.models.events import Event, EventTypes
from scheduler.engine import Engine

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]

_STEPS = {
    "second": timedelta(seconds=1),
    "minute": timedelta(minutes=1),
}


class Scheduler:
    """Async loop that ticks an Engine on every boundary.

    Usage:
        scheduler = Scheduler(engine, tz=timezone(timedelta(hours=2)))
        await scheduler.start()  # runs until stop()
    """

    def __init__(
        self,
        engine: Engine,
        bus: AsyncIOBus | None = None,
        resolution: Literal["second", "minute"] = "second",
        tz: tzinfo = timezone.utc,
        max_catchup: timedelta = timedelta(minutes=1),
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        if resolution not in _STEPS:
            raise ValueError(f"resolution must be one of {list(_STEPS)}, got {resolution!r}")
        self._engine = engine
        self._bus = bus
        self._step = _STEPS[resolution]
        self._tz = tz
        self._max_catchup = max(max_catchup, timedelta(0))
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep or asyncio.sleep
        self._last_tick: datetime | None = None
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick

    async def start(self) -> None:
        """Start the tick loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Scheduler started (tick every %ds, tz=%s)", self._step.total_seconds(), self._tz)

    async def stop(self) -> None:
        """Stop the tick loop. Callbacks already in flight keep running."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Scheduler stopped")

    async def _loop(self) -> None:
        """Main tick loop."""
        while self._running:
            try:
                await self.tick_once()
            except Exception:
                logger.exception("Error in scheduler loop")
            await self._sleep(self._delay_to_next_boundary())

    async def tick_once(self) -> int:
        """Deliver every boundary due since the last one. Returns how many."""
        now = self._floor(self._now())

        if self._last_tick is None:
            due = [now]
        elif now <= self._last_tick:
            return 0
        else:
            first = self._last_tick + self._step
            oldest = self._floor(now - self._max_catchup)
            if first < oldest:
                skipped = (oldest - first) // self._step
                logger.warning(
                    "Scheduler fell behind, dropping %d tick(s) from %s to %s",
                    skipped, first, oldest - self._step,
                )
                await self._report_skipped(first, oldest - self._step, skipped)
                first = oldest
            due = []
            tick = first
            while tick <= now:
                due.append(tick)
                tick += self._step

        for tick in due:
            await self._engine.on_tick(tick)
            self._last_tick = tick
        return len(due)

    def _now(self) -> datetime:
        return self._clock().astimezone(self._tz)

    def _floor(self, dt: datetime) -> datetime:
        dt = dt.replace(microsecond=0)
        if self._step >= timedelta(minutes=1):
            dt = dt.replace(second=0)
        return dt

    def _delay_to_next_boundary(self) -> float:
        now = self._now()
        return max(0.0, (self._floor(now) + self._step - now).total_seconds())

    async def _report_skipped(self, first: datetime, last: datetime, count: int) -> None:
        if self._bus is None:
            return
        await self._bus.publish(Event(
            type=EventTypes.TICK_SKIPPED,
            source="scheduler",
            payload={"first": first.isoformat(), "last": last.isoformat(), "count": count},
        ))
