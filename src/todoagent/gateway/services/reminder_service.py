"""ReminderScheduler -- 逾期任务提醒

固定周期扫描逾期的 one-off 任务：
1. 冷却期内（now - lastReminderSent < cooldown）跳过
2. 没有 room 的任务无处投递，记录日志后跳过
3. 通过 NotificationSink 发出提醒，并写入 metadata.lastReminderSent = now
单个任务失败只记录日志，不影响同一轮的其余任务，也不影响下一轮调度。
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

import structlog
from todoagent.core.clock import ensure_utc, to_db_ts, utc_now
from todoagent.core.config import TodoConfig
from todoagent.core.models import Task
from todoagent.core.store.protocols import TaskStore

from .scheduler import PeriodicJob

log = structlog.get_logger()


class NotificationSink(Protocol):
    """提醒投递接口"""

    async def notify(self, room_id: str, task: Task, text: str) -> None:
        """向 room 投递一条提醒"""
        ...


def reminder_text(task: Task) -> str:
    """提醒文案"""
    due = task.due_date.strftime("%Y-%m-%d") if task.due_date else "an unknown date"
    return f'Reminder: Your task "{task.name}" was due on {due}.'


def _last_reminder_sent(task: Task) -> datetime | None:
    raw = task.metadata.get("lastReminderSent")
    if not raw:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(str(raw)))
    except ValueError:
        log.warning(
            "invalid_last_reminder_sent",
            task_id=task.id,
            value=raw,
        )
        return None


class ReminderScheduler(PeriodicJob):
    """逾期提醒调度器"""

    job_name = "overdue_reminder"

    def __init__(
        self,
        task_store: TaskStore,
        sink: NotificationSink,
        config: TodoConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(config.reminder_check_interval_s)
        self._task_store = task_store
        self._sink = sink
        self._cooldown = timedelta(seconds=config.reminder_cooldown_s)
        self._clock = clock

    async def run_once(self) -> int:
        """执行一轮扫描，返回本轮发出的提醒数量"""
        now = ensure_utc(self._clock())
        try:
            overdue = await self._task_store.get_overdue_tasks(now)
        except Exception:
            log.exception("reminder_scan_failed")
            return 0

        sent = 0
        for task in overdue:
            try:
                if await self._remind(task, now):
                    sent += 1
            except Exception:
                log.exception("reminder_task_failed", task_id=task.id)

        await log.ainfo("reminder_scan_completed", overdue=len(overdue), sent=sent)
        return sent

    async def _remind(self, task: Task, now: datetime) -> bool:
        last_sent = _last_reminder_sent(task)
        if last_sent is not None and now - last_sent < self._cooldown:
            return False

        if not task.room_id:
            await log.ainfo("reminder_skipped_no_room", task_id=task.id)
            return False

        await self._sink.notify(task.room_id, task, reminder_text(task))
        await self._task_store.patch_metadata(
            task.id,
            {"lastReminderSent": to_db_ts(now)},
            now,
        )
        await log.ainfo("reminder_sent", task_id=task.id, room_id=task.room_id)
        return True
