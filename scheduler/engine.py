"""Scheduler engine -- holds registered tasks and fires them on each tick.

The engine does not keep time. A tick source (scheduler.runner.Scheduler,
or a test) calls ``await engine.on_tick(instant)``; every Scheduled task
whose expression matches the instant is started without waiting for it.

Invocation rules:
- Plain callables run in a worker thread, coroutine functions as asyncio
  tasks, so a slow callback never delays the next tick.
- A task is never run twice at once. If its previous invocation is still
  in flight when it matches again, the tick is skipped for that task and a
  task.overrun event is published.
- Callback exceptions are logged, counted and published as task.failed;
  they never reach the tick source or other tasks.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

from core.bus import AsyncIOBus
from core.models.events import Event, EventTypes
from core.models.tasks import TaskSnapshot, TaskState
from scheduler.cron import parse_cron
from scheduler.expression import (
    Expression,
    build_expression,
    check_satisfiable,
    every_days,
    every_hours,
    every_minutes,
    every_seconds,
)
from scheduler.matcher import Instant, matches

logger = logging.getLogger(__name__)

ErrorHook = Callable[["TaskHandle", BaseException], None]


class ScheduledTask:
    """A registered (expression, callback, bound arguments) triple.

    Owned by the Engine; callers only ever see a TaskHandle.
    """

    def __init__(
        self,
        name: str,
        expression: Expression,
        callback: Callable[..., Any],
        args: tuple,
        kwargs: dict,
    ) -> None:
        self.id = f"task_{uuid4().hex[:12]}"
        self.name = name
        self.expression = expression
        self.callback = callback
        self.args = args
        self.kwargs = kwargs
        self.state = TaskState.SCHEDULED
        self.inflight: asyncio.Task | None = None

        self.run_count = 0
        self.failure_count = 0
        self.overrun_count = 0
        self.last_run_at: datetime | None = None
        self.last_result: str | None = None

    def snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            id=self.id,
            name=self.name,
            expression=str(self.expression),
            state=self.state,
            in_flight=self.inflight is not None,
            run_count=self.run_count,
            failure_count=self.failure_count,
            overrun_count=self.overrun_count,
            last_run_at=self.last_run_at,
            last_result=self.last_result,
        )


class TaskHandle:
    """Caller-side reference to a registered task: pause, resume, stop."""

    def __init__(self, engine: Engine, task: ScheduledTask) -> None:
        self._engine = engine
        self._task = task

    @property
    def id(self) -> str:
        return self._task.id

    @property
    def name(self) -> str:
        return self._task.name

    @property
    def expression(self) -> Expression:
        return self._task.expression

    @property
    def state(self) -> TaskState:
        return self._task.state

    @property
    def is_running(self) -> bool:
        """True while the task is Scheduled (not paused, not stopped)."""
        return self._task.state is TaskState.SCHEDULED

    def pause(self) -> bool:
        return self._engine.pause(self)

    def resume(self) -> bool:
        return self._engine.resume(self)

    def stop(self) -> bool:
        return self._engine.stop(self)

    def snapshot(self) -> TaskSnapshot:
        return self._task.snapshot()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TaskHandle) and other._task is self._task

    def __hash__(self) -> int:
        return hash(self._task.id)

    def __repr__(self) -> str:
        return f"TaskHandle({self.id!r}, {self.name!r}, {self.state.value})"


class Engine:
    """Registry of scheduled tasks evaluated on every tick.

    Usage:
        engine = Engine(bus=bus)
        handle = engine.every_seconds(5, poll, "inbox")
        await engine.on_tick(datetime.now())
        handle.stop()
    """

    def __init__(self, bus: AsyncIOBus | None = None, on_error: ErrorHook | None = None) -> None:
        self._bus = bus
        self._on_error = on_error
        self._tasks: dict[str, ScheduledTask] = {}
        # Ticks read the task table, register/pause/resume/stop mutate it
        self._lock = threading.RLock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._inflight: set[asyncio.Task] = set()
        self._pending_events: set[asyncio.Task] = set()

    # -- registration -------------------------------------------------------

    def register(
        self,
        expression: Expression | str,
        callback: Callable[..., Any],
        *args: Any,
        name: str | None = None,
        **kwargs: Any,
    ) -> TaskHandle:
        """Register ``callback(*args, **kwargs)`` to fire whenever ``expression`` matches.

        ``expression`` may also be cron text. The task starts Scheduled and is
        eligible from the next tick.

        Raises:
            InvalidFieldError, InvalidExpressionError: malformed expression.
            UnsatisfiableExpressionError: the expression can never fire.
        """
        if isinstance(expression, str):
            expression = parse_cron(expression)
        elif isinstance(expression, Expression):
            check_satisfiable(expression)
        else:
            raise TypeError(f"Expected an Expression or cron text, got {type(expression).__name__}")
        if not callable(callback):
            raise TypeError(f"Callback is not callable: {callback!r}")

        task = ScheduledTask(
            name=name or getattr(callback, "__qualname__", repr(callback)),
            expression=expression,
            callback=callback,
            args=args,
            kwargs=kwargs,
        )
        with self._lock:
            self._tasks[task.id] = task

        logger.info("Registered task %s (%s) [%s]", task.name, task.id, expression)
        self._emit(EventTypes.TASK_REGISTERED, task, {"expression": str(expression)})
        return TaskHandle(self, task)

    def schedule(
        self,
        callback: Callable[..., Any],
        *args: Any,
        second: Any = None,
        minute: Any = None,
        hour: Any = None,
        day: Any = None,
        month: Any = None,
        day_of_week: Any = None,
        name: str | None = None,
        **kwargs: Any,
    ) -> TaskHandle:
        """Register a callback at explicit fields.

        Unset fields are wildcards, except ``second``: leaving it unset fires
        once per matching minute, second="*" fires every second of it.
        """
        expression = build_expression(
            second=second,
            minute=minute,
            hour=hour,
            day_of_month=day,
            month=month,
            day_of_week=day_of_week,
        )
        return self.register(expression, callback, *args, name=name, **kwargs)

    def every_seconds(
        self, n: int, callback: Callable[..., Any], *args: Any, name: str | None = None, **kwargs: Any,
    ) -> TaskHandle:
        return self.register(every_seconds(n), callback, *args, name=name, **kwargs)

    def every_minutes(
        self, n: int, callback: Callable[..., Any], *args: Any, name: str | None = None, **kwargs: Any,
    ) -> TaskHandle:
        return self.register(every_minutes(n), callback, *args, name=name, **kwargs)

    def every_hours(
        self, n: int, callback: Callable[..., Any], *args: Any, name: str | None = None, **kwargs: Any,
    ) -> TaskHandle:
        return self.register(every_hours(n), callback, *args, name=name, **kwargs)

    def every_days(
        self, n: int, callback: Callable[..., Any], *args: Any, name: str | None = None, **kwargs: Any,
    ) -> TaskHandle:
        return self.register(every_days(n), callback, *args, name=name, **kwargs)

    # -- lifecycle ------------------------------------------------------------

    def pause(self, handle: TaskHandle) -> bool:
        """Scheduled -> Paused. Returns False if nothing changed."""
        return self._transition(handle._task, TaskState.PAUSED, EventTypes.TASK_PAUSED)

    def resume(self, handle: TaskHandle) -> bool:
        """Paused -> Scheduled. Resuming a stopped task is a no-op."""
        return self._transition(handle._task, TaskState.SCHEDULED, EventTypes.TASK_RESUMED)

    def stop(self, handle: TaskHandle) -> bool:
        """Deregister the task. An invocation already in flight may finish."""
        return self._transition(handle._task, TaskState.STOPPED, EventTypes.TASK_STOPPED)

    def _transition(self, task: ScheduledTask, target: TaskState, event_type: str) -> bool:
        with self._lock:
            if task.state is TaskState.STOPPED or task.state is target:
                logger.debug("Task %s already %s, ignoring -> %s", task.id, task.state.value, target.value)
                return False
            task.state = target
            if target is TaskState.STOPPED:
                self._tasks.pop(task.id, None)

        logger.info("Task %s (%s) -> %s", task.name, task.id, target.value)
        self._emit(event_type, task)
        return True

    async def shutdown(self) -> None:
        """Stop every task and wait for in-flight invocations to finish."""
        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            self._transition(task, TaskState.STOPPED, EventTypes.TASK_STOPPED)
        await self.wait_idle()
        logger.info("Engine shut down (%d task(s) stopped)", len(tasks))

    # -- queries --------------------------------------------------------------

    def get(self, task_id: str) -> TaskHandle | None:
        with self._lock:
            task = self._tasks.get(task_id)
        return TaskHandle(self, task) if task is not None else None

    def list_tasks(self) -> list[TaskSnapshot]:
        with self._lock:
            return [task.snapshot() for task in self._tasks.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    # -- ticking --------------------------------------------------------------

    async def on_tick(self, instant: Instant | datetime) -> list[TaskHandle]:
        """Fire every Scheduled task matching ``instant``.

        Returns handles of the tasks started on this tick. Does not wait for
        their callbacks.
        """
        self._loop = asyncio.get_running_loop()
        if isinstance(instant, datetime):
            fired_at = instant
            instant = Instant.from_datetime(instant)
        else:
            fired_at = instant.as_datetime()

        fired: list[TaskHandle] = []
        with self._lock:
            for task in self._tasks.values():
                if task.state is not TaskState.SCHEDULED:
                    continue
                if not matches(task.expression, instant):
                    continue
                if self._fire(task, fired_at):
                    fired.append(TaskHandle(self, task))

        if fired:
            logger.debug("Tick %s fired %d task(s)", fired_at, len(fired))
        return fired

    def _fire(self, task: ScheduledTask, fired_at: datetime) -> bool:
        if task.inflight is not None:
            task.overrun_count += 1
            logger.warning(
                "Task %s (%s) still running, skipping tick %s", task.name, task.id, fired_at,
            )
            self._emit(EventTypes.TASK_OVERRUN, task, {"tick": fired_at.isoformat()})
            return False

        task.run_count += 1
        task.last_run_at = fired_at
        self._emit(EventTypes.TASK_FIRED, task, {"tick": fired_at.isoformat()})

        aio_task = self._loop.create_task(self._run(task, fired_at), name=f"skedula:{task.id}")
        task.inflight = aio_task
        self._inflight.add(aio_task)
        aio_task.add_done_callback(self._inflight.discard)
        return True

    async def _run(self, task: ScheduledTask, fired_at: datetime) -> None:
        """Invoke one task's callback, isolating any failure."""
        error: Exception | None = None
        try:
            if inspect.iscoroutinefunction(task.callback):
                await task.callback(*task.args, **task.kwargs)
            else:
                result = await asyncio.to_thread(task.callback, *task.args, **task.kwargs)
                if inspect.isawaitable(result):
                    await result
        except Exception as exc:
            error = exc
            task.failure_count += 1
            task.last_result = "error"
            logger.exception("Task %s (%s) failed on tick %s", task.name, task.id, fired_at)
            self._report_error(task, exc)
        else:
            task.last_result = "success"
        finally:
            task.inflight = None

        if error is None:
            await self._publish(EventTypes.TASK_COMPLETED, task, {"tick": fired_at.isoformat()})
        else:
            await self._publish(EventTypes.TASK_FAILED, task, {
                "tick": fired_at.isoformat(),
                "error": str(error),
                "error_type": type(error).__name__,
            })

    def _report_error(self, task: ScheduledTask, exc: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(TaskHandle(self, task), exc)
        except Exception:
            logger.exception("Error hook failed for task %s", task.id)

    async def wait_idle(self) -> None:
        """Wait until no callback is running and all events are delivered."""
        while self._inflight or self._pending_events:
            await asyncio.gather(*self._inflight, *self._pending_events, return_exceptions=True)

    # -- events ---------------------------------------------------------------

    def _event(self, event_type: str, task: ScheduledTask, payload: dict | None) -> Event:
        return Event(
            type=event_type,
            source="engine",
            task_id=task.id,
            payload={"task_name": task.name, **(payload or {})},
        )

    async def _publish(self, event_type: str, task: ScheduledTask, payload: dict | None = None) -> None:
        if self._bus is not None:
            await self._bus.publish(self._event(event_type, task, payload))

    def _emit(self, event_type: str, task: ScheduledTask, payload: dict | None = None) -> None:
        """Publish from synchronous code, on whichever loop is available."""
        if self._bus is None:
            return
        event = self._event(event_type, task, payload)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            pending = loop.create_task(self._bus.publish(event))
            self._pending_events.add(pending)
            pending.add_done_callback(self._pending_events.discard)
        elif self._loop is not None and not self._loop.is_closed():
            # Called from another thread while the tick loop runs
            asyncio.run_coroutine_threadsafe(self._bus.publish(event), self._loop)
        else:
            logger.debug("No event loop, dropping %s for task %s", event_type, task.id)
