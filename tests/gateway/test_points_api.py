"""积分、标签、自然语言动作与错误归一化 API 测试"""

from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
from todoagent.core.exceptions import StoreUnavailableError


class TestPointsApi:
    async def test_missing_account_placeholder(self, client: AsyncClient):
        resp = await client.get(
            "/api/points/entity-1", params={"roomId": "room-1", "worldId": "world-1"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"currentPoints": 0, "totalPointsEarned": 0}

    async def test_overview(self, client: AsyncClient, store_group):
        points = store_group.points_store
        await points.apply_transaction("entity-1", "world-1", "room-1", "todo-agent", 10, "a")
        await points.apply_transaction("entity-1", "world-1", "room-2", "todo-agent", 20, "b")

        resp = await client.get("/api/points/entity-1")

        data = resp.json()
        assert sorted(a["currentPoints"] for a in data["points"]) == [10, 20]
        assert {tx["reason"] for tx in data["history"]} == {"a", "b"}
        assert set(data["history"][0]) >= {"id", "accountId", "todoId", "points", "reason"}

    async def test_single_account(self, client: AsyncClient, store_group):
        await store_group.points_store.apply_transaction(
            "entity-1", "world-1", "room-1", "todo-agent", 15, "Completed task"
        )
        resp = await client.get(
            "/api/points/entity-1", params={"roomId": "room-1", "worldId": "world-1"}
        )
        data = resp.json()
        assert data["currentPoints"] == 15
        assert data["totalPointsEarned"] == 15
        assert data["lastPointUpdateReason"] == "Completed task"


class TestTagsApi:
    async def test_distinct_tags(self, client: AsyncClient):
        for body in (
            {"name": "A", "type": "one-off", "roomId": "room-1", "isUrgent": True},
            {"name": "B", "type": "daily", "roomId": "room-1"},
        ):
            await client.post("/api/todos", json=body)

        resp = await client.get("/api/tags")

        assert resp.json() == [
            "TODO",
            "daily",
            "one-off",
            "priority-4",
            "recurring-daily",
            "urgent",
        ]


class TestActionsApi:
    async def test_complete_from_text(self, client: AsyncClient):
        created = await client.post(
            "/api/todos", json={"name": "Finish taxes", "type": "one-off", "roomId": "room-1"}
        )
        task_id = created.json()["id"]

        resp = await client.post(
            "/api/actions/complete",
            json={
                "text": "I completed my taxes",
                "roomId": "room-1",
                "entityId": "entity-1",
                "worldId": "world-1",
            },
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["action"] == "COMPLETE_TODO"
        assert data["state"] == "RESOLVED"
        assert data["completion"]["taskId"] == task_id
        assert data["completion"]["pointsAwarded"] == 10

    async def test_missing_context(self, client: AsyncClient):
        resp = await client.post("/api/actions/complete", json={"text": "done"})
        assert resp.status_code == 200
        assert resp.json()["action"] == "COMPLETE_TODO_ERROR"
        assert resp.json()["completion"] is None

    async def test_empty_text(self, client: AsyncClient):
        resp = await client.post("/api/actions/complete", json={"text": ""})
        assert resp.status_code == 400


class TestErrorNormalization:
    async def test_unexpected_error_is_generic_500(self, app, store_group):
        store_group.task_store.list_tasks = AsyncMock(side_effect=RuntimeError("secret detail"))

        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as ac:
            resp = await ac.get("/api/todos")

        assert resp.status_code == 500
        assert resp.json() == {
            "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}
        }

    async def test_store_unavailable_is_503(self, app, store_group):
        store_group.task_store.list_tags = AsyncMock(side_effect=StoreUnavailableError())

        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as ac:
            resp = await ac.get("/api/tags")

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "STORE_UNAVAILABLE"
        assert "Backing store" not in resp.json()["error"]["message"]
