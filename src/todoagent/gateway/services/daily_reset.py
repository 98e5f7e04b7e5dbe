"""DailyResetScheduler -- 每日任务完成状态翻转

固定周期（默认 24 小时）对当前 agent 调用 reset_daily_tasks。
只清除完成标记，streak 的中断判定在下一次完成时按日历日进行。
"""

from collections.abc import Callable
from datetime import datetime

import structlog
from todoagent.core.clock import utc_now
from todoagent.core.config import TodoConfig
from todoagent.core.store.protocols import TaskStore

from .scheduler import PeriodicJob

log = structlog.get_logger()


class DailyResetScheduler(PeriodicJob):
    """每日任务重置调度器"""

    job_name = "daily_reset"

    def __init__(
        self,
        task_store: TaskStore,
        config: TodoConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(config.daily_reset_interval_s)
        self._task_store = task_store
        self._agent_id = config.agent_id
        self._clock = clock

    async def run_once(self) -> int:
        """执行一次重置，返回重置的任务数量；失败时记录日志并返回 0"""
        try:
            count = await self._task_store.reset_daily_tasks(self._agent_id, self._clock())
        except Exception:
            log.exception("daily_reset_failed", agent_id=self._agent_id)
            return 0
        await log.ainfo("daily_reset_completed", agent_id=self._agent_id, count=count)
        return count
