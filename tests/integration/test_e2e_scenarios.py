"""端到端场景测试 -- 通过 REST API 驱动完整流程"""

from datetime import UTC, datetime, timedelta

from httpx import AsyncClient
from todoagent.gateway.services.daily_reset import DailyResetScheduler
from todoagent.gateway.services.reminder_service import ReminderScheduler

CONTEXT = {"entityId": "entity-1", "roomId": "room-1", "worldId": "world-1"}


async def _create(client: AsyncClient, body: dict) -> str:
    resp = await client.post("/api/todos", json={"roomId": "room-1", **body})
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


async def _history(client: AsyncClient) -> list[dict]:
    resp = await client.get("/api/points/entity-1")
    return resp.json()["history"]


class TestDailyStreakScenario:
    async def test_three_consecutive_completions(self, client: AsyncClient, integration_app):
        task_id = await _create(client, {"name": "Meditate", "type": "daily"})
        reset = DailyResetScheduler(
            integration_app.state.store_group.task_store,
            integration_app.state.todo_config,
        )

        points = []
        streaks = []
        for _ in range(3):
            resp = await client.put(f"/api/todos/{task_id}/complete", json=CONTEXT)
            assert resp.status_code == 200
            result = resp.json()["result"]
            points.append(result["pointsAwarded"])
            streaks.append(result["newStreak"])
            assert await reset.run_once() == 1

        assert streaks == [1, 2, 3]
        assert points == [10, 15, 20]

        account = await client.get(
            "/api/points/entity-1", params={"roomId": "room-1", "worldId": "world-1"}
        )
        assert account.json()["currentPoints"] == 45
        assert account.json()["totalPointsEarned"] == 45

    async def test_second_completion_without_reset_rejected(self, client: AsyncClient):
        task_id = await _create(client, {"name": "Meditate", "type": "daily"})
        await client.put(f"/api/todos/{task_id}/complete", json=CONTEXT)

        resp = await client.put(f"/api/todos/{task_id}/complete", json=CONTEXT)

        assert resp.status_code == 400
        assert len(await _history(client)) == 1


class TestOneOffScenario:
    async def test_late_urgent_task_earns_flat_five(self, client: AsyncClient):
        yesterday = (datetime.now(UTC) - timedelta(days=1)).isoformat()
        task_id = await _create(
            client,
            {
                "name": "Renew passport",
                "type": "one-off",
                "priority": 1,
                "isUrgent": True,
                "dueDate": yesterday,
            },
        )

        resp = await client.put(f"/api/todos/{task_id}/complete", json=CONTEXT)

        result = resp.json()["result"]
        assert result["completedOnTime"] is False
        assert result["pointsAwarded"] == 5
        assert resp.json()["task"]["metadata"]["completedOnTime"] is False


class TestAspirationalScenario:
    async def test_fixed_fifty(self, client: AsyncClient):
        task_id = await _create(client, {"name": "Run a marathon", "type": "aspirational"})

        resp = await client.put(f"/api/todos/{task_id}/complete", json=CONTEXT)

        assert resp.json()["result"]["pointsAwarded"] == 50
        assert resp.json()["task"]["isCompleted"] is True
        history = await _history(client)
        assert len(history) == 1
        assert history[0]["points"] == 50
        assert history[0]["todoId"] == task_id


class TestResetIdempotence:
    async def test_nothing_to_reset(self, client: AsyncClient, integration_app):
        task_id = await _create(client, {"name": "Meditate", "type": "daily"})
        before = (await client.get("/api/todos")).json()

        reset = DailyResetScheduler(
            integration_app.state.store_group.task_store,
            integration_app.state.todo_config,
        )
        assert await reset.run_once() == 0

        after = (await client.get("/api/todos")).json()
        assert before == after
        assert task_id in str(after)


class TestReminderScenario:
    async def test_overdue_reminder_reaches_room_subscriber(
        self, client: AsyncClient, integration_app
    ):
        due = (datetime.now(UTC) - timedelta(hours=2)).isoformat()
        task_id = await _create(
            client, {"name": "Pay rent", "type": "one-off", "dueDate": due}
        )
        hub = integration_app.state.sse_hub
        queue = await hub.subscribe("room-1")
        scheduler = ReminderScheduler(
            integration_app.state.store_group.task_store,
            hub,
            integration_app.state.todo_config,
        )

        assert await scheduler.run_once() == 1
        assert await scheduler.run_once() == 0

        notification = queue.get_nowait()
        assert notification.task_id == task_id
        assert queue.empty()

        # 完成后不再提醒
        await client.put(f"/api/todos/{task_id}/complete", json=CONTEXT)
        assert await scheduler.run_once() == 0


class TestNaturalLanguageScenario:
    async def test_complete_by_text_then_uncomplete(self, client: AsyncClient):
        task_id = await _create(client, {"name": "Finish taxes", "type": "one-off", "priority": 1})

        resp = await client.post(
            "/api/actions/complete", json={"text": "finally did my taxes", **CONTEXT}
        )
        assert resp.json()["completion"]["taskId"] == task_id
        assert resp.json()["completion"]["pointsAwarded"] == 40

        undo = await client.put(f"/api/todos/{task_id}/uncomplete")
        assert undo.json()["task"]["isCompleted"] is False

        # 撤销完成不回滚积分，余额仍等于流水之和
        account = await client.get(
            "/api/points/entity-1", params={"roomId": "room-1", "worldId": "world-1"}
        )
        history = await _history(client)
        assert account.json()["currentPoints"] == sum(tx["points"] for tx in history) == 40
