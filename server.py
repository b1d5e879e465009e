"""Lightweight aiohttp server -- control API for a running engine.

Lists registered tasks and lets operators pause, resume or stop them.
No framework magic, no middleware stack.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    from core.bus import AsyncIOBus
    from scheduler.engine import Engine
    from scheduler.runner import Scheduler

logger = logging.getLogger(__name__)

_ACTIONS = ("pause", "resume", "stop")


def create_app(
    engine: Engine,
    bus: AsyncIOBus | None = None,
    scheduler: Scheduler | None = None,
) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application()

    # Store references for route handlers
    app["engine"] = engine
    app["bus"] = bus
    app["scheduler"] = scheduler

    app.router.add_get("/health", handle_health)
    app.router.add_get("/tasks", handle_list_tasks)
    app.router.add_get("/tasks/{task_id}", handle_get_task)
    app.router.add_post("/tasks/{task_id}/{action}", handle_task_action)
    if bus is not None:
        app.router.add_get("/events", handle_stream_events)

    return app


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

async def handle_health(request: web.Request) -> web.Response:
    """GET /health -- health check."""
    engine: Engine = request.app["engine"]
    scheduler: Scheduler | None = request.app["scheduler"]

    last_tick = scheduler.last_tick if scheduler is not None else None
    return web.json_response({
        "status": "ok",
        "tasks": len(engine),
        "ticking": scheduler.running if scheduler is not None else False,
        "last_tick": last_tick.isoformat() if last_tick else None,
    })


async def handle_list_tasks(request: web.Request) -> web.Response:
    """GET /tasks -- list all registered tasks."""
    engine: Engine = request.app["engine"]
    return web.json_response([t.model_dump(mode="json") for t in engine.list_tasks()])


async def handle_get_task(request: web.Request) -> web.Response:
    """GET /tasks/{task_id} -- one task's snapshot."""
    engine: Engine = request.app["engine"]
    handle = engine.get(request.match_info["task_id"])
    if handle is None:
        return web.json_response({"error": "Task not found"}, status=404)
    return web.json_response(handle.snapshot().model_dump(mode="json"))


async def handle_task_action(request: web.Request) -> web.Response:
    """POST /tasks/{task_id}/{pause|resume|stop} -- change a task's state."""
    engine: Engine = request.app["engine"]
    action = request.match_info["action"]
    task_id = request.match_info["task_id"]

    if action not in _ACTIONS:
        return web.json_response(
            {"error": f"Unknown action '{action}'. Must be one of: {list(_ACTIONS)}"},
            status=400,
        )

    handle = engine.get(task_id)
    if handle is None:
        return web.json_response({"error": "Task not found"}, status=404)

    changed = getattr(handle, action)()
    logger.info("Control API: %s %s (changed=%s)", action, task_id, changed)
    return web.json_response({
        "id": task_id,
        "state": handle.state.value,
        "changed": changed,
    })


async def handle_stream_events(request: web.Request) -> web.StreamResponse:
    """GET /events -- Server-Sent Events stream of engine events."""
    from core.models.events import Event

    bus: AsyncIOBus = request.app["bus"]

    response = web.StreamResponse(
        status=200,
        reason="OK",
        headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
    await response.prepare(request)

    queue: asyncio.Queue[Event] = asyncio.Queue()

    async def forward_event(event: Event) -> None:
        await queue.put(event)

    bus.subscribe("*", forward_event)

    try:
        while True:
            event = await queue.get()
            data = event.model_dump_json()
            await response.write(f"event: {event.type}\ndata: {data}\n\n".encode())
    except (asyncio.CancelledError, ConnectionResetError):
        pass
    finally:
        bus.unsubscribe("*", forward_event)

    return response
