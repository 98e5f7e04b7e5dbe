"""SSE 提醒流测试

EventSourceResponse 是无限流，直接驱动其生成器验证订阅、推送、心跳与取消订阅。
"""

import asyncio
import json

import pytest
from todoagent.gateway.routes import stream
from todoagent.gateway.services.sse_hub import ReminderNotification, SSEHub


async def _wait_for_subscriber(hub: SSEHub, room_id: str) -> None:
    for _ in range(100):
        if hub._subscribers.get(room_id):
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"no subscriber for {room_id}")


class TestRoomStream:
    async def test_reminder_event(self):
        hub = SSEHub()
        response = await stream.stream_room_reminders("room-1", sse_hub=hub)
        events = response.body_iterator

        pending = asyncio.create_task(anext(events))
        await _wait_for_subscriber(hub, "room-1")
        await hub.broadcast(
            "room-1",
            ReminderNotification(
                room_id="room-1",
                task_id="01JTASK000000000000000000A",
                task_name="Pay rent",
                text='Reminder: Your task "Pay rent" was due on 2026-03-09.',
            ),
        )
        event = await asyncio.wait_for(pending, timeout=1)

        assert event["event"] == "reminder"
        data = json.loads(event["data"])
        assert data["taskId"] == "01JTASK000000000000000000A"
        assert data["roomId"] == "room-1"
        assert data["text"].startswith("Reminder:")

        await events.aclose()
        assert "room-1" not in hub._subscribers

    async def test_heartbeat(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(stream, "SSE_HEARTBEAT_INTERVAL", 0.01)
        hub = SSEHub()
        response = await stream.stream_room_reminders("room-1", sse_hub=hub)
        events = response.body_iterator

        event = await asyncio.wait_for(anext(events), timeout=1)

        assert event == {"comment": "heartbeat"}
        await events.aclose()
