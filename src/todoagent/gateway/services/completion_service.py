"""CompletionService -- 任务完成编排

单次完成请求的状态机：PENDING -> RESOLVED / NOT_FOUND / ALREADY_COMPLETE / REJECTED。

流程：
1. 查询任务，不存在 -> NOT_FOUND
2. 已完成 -> ALREADY_COMPLETE（幂等，不重复记分）
3. 条件更新“仅当未完成时标记完成”，抢占失败 -> ALREADY_COMPLETE
4. 按类型分派：daily（streak + 积分）/ one-off（准时或逾期）/ aspirational（固定 50 分）/ 其他（仅标记完成）
5. 返回积分、新 streak、是否准时与更新后的任务快照

步骤 4 中任何存储错误原样抛给调用方，不重试；抛出前撤回本次抢占，
恢复完成标记、metadata 与 streak，调用方重试时不会得到 ALREADY_COMPLETE。
"""

from collections.abc import Callable
from datetime import datetime

import structlog
from pydantic import BaseModel, Field
from todoagent.core.clock import ensure_utc, to_db_ts, utc_now
from todoagent.core.engine import (
    ASPIRATIONAL_POINTS,
    calculate_points,
    completion_outcome,
    is_streak_broken,
)
from todoagent.core.models import (
    DEFAULT_PRIORITY,
    CompletionOutcome,
    CompletionState,
    Streak,
    Task,
    TaskType,
    validate_transition,
)
from todoagent.core.store import StoreGroup

log = structlog.get_logger()


class CompletionContext(BaseModel):
    """完成上下文：积分记入 (entity, world, room) 账户"""

    entity_id: str = Field(min_length=1, description="完成者 entity")
    room_id: str = Field(min_length=1, description="room")
    world_id: str = Field(min_length=1, description="world")


class CompletionResult(BaseModel):
    """完成结果"""

    state: CompletionState = Field(description="终态")
    task_id: str = Field(description="请求完成的任务 ID")
    points_awarded: int = Field(default=0, description="本次获得积分")
    new_streak: int | None = Field(default=None, description="daily 任务完成后的 streak")
    completed_on_time: bool | None = Field(default=None, description="one-off 任务是否准时")
    task: Task | None = Field(default=None, description="更新后的任务快照")
    message: str = Field(default="", description="人类可读结果")


# 完成时可能写入的 metadata 键，失败时按完成前的值恢复
_COMPLETION_METADATA_KEYS = (
    "streak",
    "lastCompletedAt",
    "lastCompletedDate",
    "completedToday",
    "completedAt",
    "completedOnTime",
    "pointsAwarded",
)


def _plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


class CompletionService:
    """任务完成编排服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        agent_id: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._tasks = store_group.task_store
        self._streaks = store_group.streak_store
        self._points = store_group.points_store
        self._agent_id = agent_id
        self._clock = clock

    async def complete_task(
        self,
        task_id: str,
        context: CompletionContext | None = None,
    ) -> CompletionResult:
        """完成一个任务

        Args:
            task_id: 任务 ID
            context: 积分上下文；为 None 时只标记完成，不记分（daily 仍累计 streak）

        Returns:
            CompletionResult，state 为终态之一
        """
        task = await self._tasks.get_task(task_id)
        if task is None:
            return self._finish(
                CompletionState.NOT_FOUND,
                task_id=task_id,
                message=f"Task with id {task_id} does not exist",
            )

        if task.is_completed:
            return self._finish(
                CompletionState.ALREADY_COMPLETE,
                task_id=task_id,
                task=task,
                message=f'Task "{task.name}" is already completed.',
            )

        # 抢占前记录 streak 快照，失败时据此回滚
        streak_entity = context.entity_id if context is not None else task.entity_id
        streak_before = None
        if task.type == TaskType.DAILY:
            streak_before = await self._streaks.get_streak(task_id, streak_entity)

        now = ensure_utc(self._clock())
        claimed = await self._tasks.mark_completed_if_incomplete(task_id, now)
        if not claimed:
            # 并发请求先一步完成（或任务刚被删除）
            current = await self._tasks.get_task(task_id)
            if current is None:
                return self._finish(
                    CompletionState.NOT_FOUND,
                    task_id=task_id,
                    message=f"Task with id {task_id} does not exist",
                )
            return self._finish(
                CompletionState.ALREADY_COMPLETE,
                task_id=task_id,
                task=current,
                message=f'Task "{current.name}" is already completed.',
            )

        try:
            if context is None:
                result = await self._complete_without_context(task, now)
            elif task.type == TaskType.DAILY:
                result = await self._complete_daily(task, context, now)
            elif task.type == TaskType.ONE_OFF:
                result = await self._complete_one_off(task, context, now)
            elif task.type == TaskType.ASPIRATIONAL:
                result = await self._complete_aspirational(task, context, now)
            else:
                result = await self._complete_generic(task, now)
        except Exception:
            log.exception(
                "task_completion_failed",
                task_id=task_id,
                task_type=task.type,
            )
            await self._release(task, now, streak_entity, streak_before)
            raise

        await log.ainfo(
            "task_completed",
            task_id=task_id,
            task_type=task.type,
            points=result.points_awarded,
            streak=result.new_streak,
        )
        return result

    async def _release(
        self,
        task: Task,
        now: datetime,
        streak_entity: str,
        streak_before: Streak | None,
    ) -> None:
        """撤回失败的完成：恢复完成标记、metadata 快照与 streak，调用方可重试

        流水写入是最后一步且自身原子，失败时账户未变，无需补偿。
        """
        restore = {key: task.metadata.get(key) for key in _COMPLETION_METADATA_KEYS}
        try:
            released = await self._tasks.release_completion(task.id, now, restore)
            if task.type == TaskType.DAILY:
                await self._streaks.restore_streak(task.id, streak_entity, streak_before)
        except Exception:
            log.exception("task_completion_release_failed", task_id=task.id)
            return
        await log.awarning("task_completion_released", task_id=task.id, released=released)

    async def _advance_streak(self, task: Task, entity_id: str, now: datetime) -> int:
        """按日历日判定中断后自增 streak，返回新值"""
        streak = await self._streaks.get_streak(task.id, entity_id)
        if (
            streak is not None
            and streak.current_streak > 0
            and is_streak_broken(streak.last_completed_at, now)
        ):
            await self._streaks.apply_streak_outcome(task.id, entity_id, False, now)
            await log.ainfo(
                "streak_broken",
                task_id=task.id,
                entity_id=entity_id,
                previous_streak=streak.current_streak,
            )
        streak = await self._streaks.apply_streak_outcome(task.id, entity_id, True, now)
        return streak.current_streak

    async def _complete_daily(
        self,
        task: Task,
        context: CompletionContext,
        now: datetime,
    ) -> CompletionResult:
        new_streak = await self._advance_streak(task, context.entity_id, now)

        points = calculate_points(task, CompletionOutcome.DAILY)
        if new_streak > 1:
            points += calculate_points(task, CompletionOutcome.STREAK_BONUS)

        updated = await self._tasks.patch_metadata(
            task.id,
            {
                "streak": new_streak,
                "lastCompletedAt": to_db_ts(now),
                "lastCompletedDate": now.date().isoformat(),
                "completedToday": True,
                "pointsAwarded": points,
            },
            now,
        )
        await self._points.apply_transaction(
            context.entity_id,
            context.world_id,
            context.room_id,
            self._agent_id,
            points,
            f'Completed daily task "{task.name}" (Streak: {new_streak})',
            task.id,
            now,
        )

        return self._finish(
            CompletionState.RESOLVED,
            task_id=task.id,
            task=updated,
            points_awarded=points,
            new_streak=new_streak,
            message=(
                f'Great job completing your daily task: "{task.name}"! '
                f"You've earned {points} points. "
                f"Current streak: {_plural_days(new_streak)}."
            ),
        )

    async def _complete_one_off(
        self,
        task: Task,
        context: CompletionContext,
        now: datetime,
    ) -> CompletionResult:
        outcome = completion_outcome(task, now)
        on_time = outcome == CompletionOutcome.ON_TIME
        points = calculate_points(task, outcome)

        updated = await self._tasks.patch_metadata(
            task.id,
            {
                "completedAt": to_db_ts(now),
                "completedOnTime": on_time,
                "pointsAwarded": points,
            },
            now,
        )
        await self._points.apply_transaction(
            context.entity_id,
            context.world_id,
            context.room_id,
            self._agent_id,
            points,
            f'Completed task "{task.name}" ({"On time" if on_time else "Late"})',
            task.id,
            now,
        )

        priority = task.priority or DEFAULT_PRIORITY
        return self._finish(
            CompletionState.RESOLVED,
            task_id=task.id,
            task=updated,
            points_awarded=points,
            completed_on_time=on_time,
            message=(
                f'Task completed: "{task.name}" '
                f"(Priority {priority}, {'on time' if on_time else 'late'}). "
                f"You've earned {points} points."
            ),
        )

    async def _complete_aspirational(
        self,
        task: Task,
        context: CompletionContext,
        now: datetime,
    ) -> CompletionResult:
        points = ASPIRATIONAL_POINTS

        updated = await self._tasks.patch_metadata(
            task.id,
            {"completedAt": to_db_ts(now), "pointsAwarded": points},
            now,
        )
        await self._points.apply_transaction(
            context.entity_id,
            context.world_id,
            context.room_id,
            self._agent_id,
            points,
            f'Achieved aspirational goal "{task.name}"',
            task.id,
            now,
        )

        return self._finish(
            CompletionState.RESOLVED,
            task_id=task.id,
            task=updated,
            points_awarded=points,
            message=(
                f'Congratulations on achieving your aspirational goal: "{task.name}"! '
                f"This is a significant accomplishment. You've earned {points} points."
            ),
        )

    async def _complete_generic(self, task: Task, now: datetime) -> CompletionResult:
        updated = await self._tasks.patch_metadata(
            task.id,
            {"completedAt": to_db_ts(now)},
            now,
        )
        return self._finish(
            CompletionState.RESOLVED,
            task_id=task.id,
            task=updated,
            message=f'Marked "{task.name}" as completed.',
        )

    async def _complete_without_context(self, task: Task, now: datetime) -> CompletionResult:
        """无积分上下文：只标记完成；daily 仍按任务拥有者累计 streak"""
        await log.awarning(
            "completion_points_skipped",
            task_id=task.id,
            reason="missing entity/room/world context",
        )
        if task.type != TaskType.DAILY:
            return await self._complete_generic(task, now)

        new_streak = await self._advance_streak(task, task.entity_id, now)
        updated = await self._tasks.patch_metadata(
            task.id,
            {
                "streak": new_streak,
                "lastCompletedAt": to_db_ts(now),
                "lastCompletedDate": now.date().isoformat(),
                "completedToday": True,
            },
            now,
        )
        return self._finish(
            CompletionState.RESOLVED,
            task_id=task.id,
            task=updated,
            new_streak=new_streak,
            message=(
                f'Marked "{task.name}" as completed. '
                f"Current streak: {_plural_days(new_streak)}."
            ),
        )

    @staticmethod
    def _finish(state: CompletionState, **fields) -> CompletionResult:
        if not validate_transition(CompletionState.PENDING, state):
            raise ValueError(f"Invalid completion transition: PENDING -> {state}")
        return CompletionResult(state=state, **fields)
