"""Tests for entrypoint wiring: handler resolution and configured tasks."""

import os.path

import pytest

from core.config import TaskConfig
from core.models.tasks import TaskState
from main import register_configured_tasks, resolve_handler


class TestResolveHandler:
    """'module:attr' strings resolve to callables."""

    def test_module_function(self):
        assert resolve_handler("os.path:join") is os.path.join

    def test_dotted_attribute(self):
        assert resolve_handler("os:path.basename") is os.path.basename

    def test_missing_module(self):
        with pytest.raises(ImportError):
            resolve_handler("no_such_module_here:run")

    def test_not_callable(self):
        with pytest.raises(TypeError):
            resolve_handler("os:sep")


class TestRegisterConfiguredTasks:
    """Bad entries are skipped, good ones registered."""

    def test_registers_and_skips(self, engine):
        tasks = [
            TaskConfig(name="ok", schedule="*/5 * * * *", handler="os.path:join", args=["a", "b"]),
            TaskConfig(name="paused", schedule="0 * * * *", handler="os.path:join", paused=True),
            TaskConfig(name="bad-cron", schedule="0 0 31 2 *", handler="os.path:join"),
            TaskConfig(name="bad-handler", schedule="* * * * *", handler="os.path:nope"),
        ]

        assert register_configured_tasks(engine, tasks) == 2

        by_name = {t.name: t for t in engine.list_tasks()}
        assert set(by_name) == {"ok", "paused"}
        assert by_name["ok"].state is TaskState.SCHEDULED
        assert by_name["paused"].state is TaskState.PAUSED
