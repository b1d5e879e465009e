"""Tests for the aiohttp control API."""

from datetime import datetime

from aiohttp import test_utils

from server import create_app


class TestControlApi:
    """Tasks can be listed and driven over HTTP."""

    async def test_health(self, engine):
        engine.every_seconds(1, lambda: None)
        async with test_utils.TestClient(test_utils.TestServer(create_app(engine))) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            body = await resp.json()
        assert body["status"] == "ok"
        assert body["tasks"] == 1
        assert body["ticking"] is False

    async def test_list_and_get(self, engine):
        handle = engine.register("*/15 * * * *", lambda: None, name="quarter")
        await engine.on_tick(datetime(2024, 1, 1, 0, 15, 0))
        await engine.wait_idle()

        async with test_utils.TestClient(test_utils.TestServer(create_app(engine))) as client:
            tasks = await (await client.get("/tasks")).json()
            one = await (await client.get(f"/tasks/{handle.id}")).json()

        assert [t["name"] for t in tasks] == ["quarter"]
        assert one["id"] == handle.id
        assert one["expression"] == "*/15 * * * *"
        assert one["state"] == "scheduled"
        assert one["run_count"] == 1
        assert one["last_result"] == "success"

    async def test_pause_resume_stop(self, engine):
        handle = engine.every_seconds(1, lambda: None)
        async with test_utils.TestClient(test_utils.TestServer(create_app(engine))) as client:
            resp = await client.post(f"/tasks/{handle.id}/pause")
            assert (await resp.json()) == {"id": handle.id, "state": "paused", "changed": True}

            resp = await client.post(f"/tasks/{handle.id}/pause")
            assert (await resp.json())["changed"] is False

            resp = await client.post(f"/tasks/{handle.id}/resume")
            assert (await resp.json())["state"] == "scheduled"

            resp = await client.post(f"/tasks/{handle.id}/stop")
            assert (await resp.json())["state"] == "stopped"

            resp = await client.post(f"/tasks/{handle.id}/resume")
            assert resp.status == 404

        await engine.wait_idle()
        assert not handle.is_running

    async def test_unknown_task_and_action(self, engine):
        handle = engine.every_seconds(1, lambda: None)
        async with test_utils.TestClient(test_utils.TestServer(create_app(engine))) as client:
            assert (await client.get("/tasks/task_missing")).status == 404
            assert (await client.post("/tasks/task_missing/stop")).status == 404
            assert (await client.post(f"/tasks/{handle.id}/explode")).status == 400
