"""SSEHub -- 内存中提醒广播器

每个订阅者持有一个 asyncio.Queue，按 room_id 订阅；
同时实现提醒调度器所需的 NotificationSink 接口。
"""

import asyncio
from collections import defaultdict
from datetime import datetime

from pydantic import BaseModel, Field
from todoagent.core.clock import utc_now
from todoagent.core.models import Task
from ulid import ULID


class ReminderNotification(BaseModel):
    """推送给 room 订阅者的提醒"""

    id: str = Field(default_factory=lambda: str(ULID()), description="通知 ID")
    room_id: str = Field(description="目标 room")
    task_id: str = Field(description="被提醒的任务")
    task_name: str = Field(description="任务名称")
    text: str = Field(description="提醒文本")
    due_date: datetime | None = Field(default=None, description="任务截止时间")
    sent_at: datetime = Field(default_factory=utc_now, description="发送时间")


class SSEHub:
    """SSE 提醒广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # room_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, room_id: str) -> asyncio.Queue:
        """订阅指定 room 的提醒流

        Args:
            room_id: 要订阅的 room ID

        Returns:
            asyncio.Queue 实例，新提醒会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[room_id].add(queue)
        return queue

    async def unsubscribe(self, room_id: str, queue: asyncio.Queue) -> None:
        """取消订阅

        Args:
            room_id: room ID
            queue: 之前订阅时返回的队列
        """
        self._subscribers[room_id].discard(queue)
        if not self._subscribers[room_id]:
            del self._subscribers[room_id]

    async def broadcast(self, room_id: str, notification: ReminderNotification) -> int:
        """向指定 room 的所有订阅者广播提醒

        Returns:
            成功投递的订阅者数量
        """
        delivered = 0
        dead_queues = []
        for queue in self._subscribers.get(room_id, set()):
            try:
                queue.put_nowait(notification)
                delivered += 1
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[room_id].discard(q)
        if room_id in self._subscribers and not self._subscribers[room_id]:
            del self._subscribers[room_id]
        return delivered

    async def notify(self, room_id: str, task: Task, text: str) -> None:
        """NotificationSink 接口：把提醒广播到 room"""
        await self.broadcast(
            room_id,
            ReminderNotification(
                room_id=room_id,
                task_id=task.id,
                task_name=task.name,
                text=text,
                due_date=task.due_date,
            ),
        )
