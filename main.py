"""Skedula entrypoint -- wires the engine, tick source and control API together.

Usage:
    skedula
    skedula --config /path/to/config.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
from typing import Any, Callable

from aiohttp import web

from core.bus import AsyncIOBus
from core.config import AppConfig, TaskConfig, load_config
from core.errors import SkedulaError
from scheduler.engine import Engine
from scheduler.runner import Scheduler
from server import create_app


def setup_logging(level: str) -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet down noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Skedula cron-style job scheduler")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to config.yaml (default: ~/.skedula/config.yaml)",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Path to .env file (default: ~/.skedula/.env)",
    )
    return parser.parse_args()


def resolve_handler(path: str) -> Callable[..., Any]:
    """Import "package.module:attr" (attr may be dotted) and return the callable."""
    module_name, _, attr_path = path.partition(":")
    target: Any = importlib.import_module(module_name)
    for part in attr_path.split("."):
        target = getattr(target, part)
    if not callable(target):
        raise TypeError(f"Handler {path!r} is not callable")
    return target


def register_configured_tasks(engine: Engine, tasks: list[TaskConfig]) -> int:
    """Register tasks from config. Bad entries are logged and skipped."""
    logger = logging.getLogger("skedula.tasks")
    registered = 0
    for task_config in tasks:
        try:
            callback = resolve_handler(task_config.handler)
            handle = engine.register(
                task_config.schedule,
                callback,
                *task_config.args,
                name=task_config.name,
                **task_config.kwargs,
            )
        except (ImportError, AttributeError, TypeError, SkedulaError) as e:
            logger.error("Failed to register task %s: %s", task_config.name, e)
            continue
        if task_config.paused:
            handle.pause()
        registered += 1
    return registered


async def run(config_path: str | None = None, env_path: str | None = None) -> None:
    """Initialize all components and tick until interrupted."""
    config: AppConfig = load_config(config_path=config_path, env_path=env_path)
    logging.getLogger().setLevel(getattr(logging, config.logging.level.upper(), logging.INFO))
    logger = logging.getLogger("skedula")

    events_dir = config.home_path / "events" if config.logging.audit_events else None
    bus = AsyncIOBus(events_dir=events_dir)
    engine = Engine(bus=bus)

    count = register_configured_tasks(engine, config.tasks)
    logger.info("Registered %d of %d configured task(s)", count, len(config.tasks))

    scheduler = Scheduler(
        engine,
        bus=bus,
        resolution=config.scheduler.resolution,
        tz=config.scheduler.tz,
        max_catchup=config.scheduler.catchup,
    )
    await scheduler.start()

    runner: web.AppRunner | None = None
    if config.server.enabled:
        app = create_app(engine, bus=bus, scheduler=scheduler)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, config.server.host, config.server.port)
        await site.start()
        logger.info("Control API at http://%s:%d", config.server.host, config.server.port)

    # Run until interrupted
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        logger.info("Shutting down...")
        await scheduler.stop()
        await engine.shutdown()
        if runner is not None:
            await runner.cleanup()
        logger.info("Shutdown complete")


def main() -> None:
    args = parse_args()
    setup_logging("INFO")
    try:
        asyncio.run(run(config_path=args.config, env_path=args.env))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
