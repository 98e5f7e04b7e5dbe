"""Store Protocol 接口定义

定义 TaskStore、StreakStore、PointsStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
编排层与调度器只依赖这些接口，不依赖具体的 SQLite 实现。
"""

from datetime import datetime
from typing import Protocol

from ..models.points import PointsAccount, PointsTransaction
from ..models.streak import Streak
from ..models.task import Task, TaskCreate, TaskFilter, TaskUpdate


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, spec: TaskCreate, now: datetime | None = None) -> str:
        """创建任务，返回 task_id"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(self, task_filter: TaskFilter | None = None) -> list[Task]:
        """按条件查询任务（AND 语义，created_at 倒序）"""
        ...

    async def update_task(
        self,
        task_id: str,
        update: TaskUpdate,
        now: datetime | None = None,
    ) -> Task:
        """部分更新；未知 task_id 抛 TaskNotFoundError"""
        ...

    async def patch_metadata(
        self,
        task_id: str,
        patch: dict,
        now: datetime | None = None,
    ) -> Task:
        """合并 metadata，None 值删除键"""
        ...

    async def delete_task(self, task_id: str) -> None:
        """删除任务并级联"""
        ...

    async def mark_completed_if_incomplete(
        self,
        task_id: str,
        completed_at: datetime,
    ) -> bool:
        """条件完成：仅当当前未完成时成功"""
        ...

    async def release_completion(
        self,
        task_id: str,
        completed_at: datetime,
        metadata_patch: dict,
        now: datetime | None = None,
    ) -> bool:
        """撤回 completed_at 这次条件完成"""
        ...

    async def get_overdue_tasks(self, now: datetime | None = None) -> list[Task]:
        """逾期的 one-off 任务"""
        ...

    async def reset_daily_tasks(self, agent_id: str, now: datetime | None = None) -> int:
        """重置已完成的 daily 任务，返回数量"""
        ...

    async def list_tags(self) -> list[str]:
        """在用标签"""
        ...


class StreakStore(Protocol):
    """Streak 存储接口"""

    async def get_streak(self, task_id: str, entity_id: str) -> Streak | None:
        """查询 streak"""
        ...

    async def get_or_create_streak(self, task_id: str, entity_id: str) -> Streak:
        """查询或创建零值 streak"""
        ...

    async def apply_streak_outcome(
        self,
        task_id: str,
        entity_id: str,
        succeeded: bool,
        now: datetime | None = None,
    ) -> Streak:
        """成功自增 / 失败清零"""
        ...

    async def restore_streak(
        self,
        task_id: str,
        entity_id: str,
        snapshot: Streak | None,
        now: datetime | None = None,
    ) -> None:
        """恢复到快照，None 表示删除"""
        ...


class PointsStore(Protocol):
    """积分账本接口

    apply_transaction 必须对同一账户的并发调用原子。
    """

    async def get_account(
        self,
        entity_id: str,
        world_id: str,
        room_id: str,
    ) -> PointsAccount | None:
        """查询账户"""
        ...

    async def list_accounts_for_entity(self, entity_id: str) -> list[PointsAccount]:
        """entity 的全部账户"""
        ...

    async def list_transactions(
        self,
        entity_id: str | None = None,
        account_id: str | None = None,
    ) -> list[PointsTransaction]:
        """流水（倒序）"""
        ...

    async def apply_transaction(
        self,
        entity_id: str,
        world_id: str,
        room_id: str,
        agent_id: str,
        delta: int,
        reason: str,
        linked_task_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """记账并返回新余额"""
        ...
