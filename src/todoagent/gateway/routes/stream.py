"""SSE 提醒流路由

GET /api/stream/room/{room_id}: 订阅指定 room 的逾期提醒。
每条提醒作为 event: reminder 推送，空闲时按 SSE_HEARTBEAT_INTERVAL 发送心跳注释。
"""

import asyncio
import json

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse
from todoagent.core.config import SSE_HEARTBEAT_INTERVAL

from ..deps import get_sse_hub
from ..services.sse_hub import ReminderNotification, SSEHub

router = APIRouter()


def _notification_to_sse_data(notification: ReminderNotification) -> dict:
    """将提醒转换为 SSE data JSON"""
    return {
        "id": notification.id,
        "roomId": notification.room_id,
        "taskId": notification.task_id,
        "taskName": notification.task_name,
        "text": notification.text,
        "dueDate": (
            notification.due_date.isoformat() if notification.due_date else None
        ),
        "sentAt": notification.sent_at.isoformat(),
    }


@router.get("/api/stream/room/{room_id}")
async def stream_room_reminders(
    room_id: str,
    sse_hub: SSEHub = Depends(get_sse_hub),
):
    """SSE 提醒流端点"""

    async def event_generator():
        queue = await sse_hub.subscribe(room_id)
        try:
            while True:
                try:
                    notification = await asyncio.wait_for(
                        queue.get(), timeout=SSE_HEARTBEAT_INTERVAL
                    )
                    yield {
                        "id": notification.id,
                        "event": "reminder",
                        "data": json.dumps(
                            _notification_to_sse_data(notification),
                            ensure_ascii=False,
                        ),
                    }
                except TimeoutError:
                    # 心跳保活
                    yield {"comment": "heartbeat"}
        finally:
            await sse_hub.unsubscribe(room_id, queue)

    return EventSourceResponse(event_generator())
