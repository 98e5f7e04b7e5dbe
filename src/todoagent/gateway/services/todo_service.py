"""TodoService -- 待办创建/更新/撤销完成/删除/查询业务逻辑

创建时按类型派生标签：
- 所有任务: TODO
- daily: daily, recurring-daily；metadata 初始化 streak=0, completedToday=false
- one-off: one-off, priority-<p>（缺省 4），紧急时 urgent
- aspirational: aspirational
更新时由本层重算标签，再以整体替换的方式交给 TaskStore。
"""

import uuid
from datetime import datetime
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field, ValidationError
from todoagent.core.config import TodoConfig
from todoagent.core.exceptions import (
    AlreadyIncompleteError,
    DuplicateTaskError,
    TaskNotFoundError,
    TodoValidationError,
)
from todoagent.core.models import (
    DEFAULT_PRIORITY,
    PointsAccount,
    PointsTransaction,
    Task,
    TaskCreate,
    TaskFilter,
    TaskType,
    TaskUpdate,
)
from todoagent.core.store import StoreGroup

log = structlog.get_logger()

# world 缺失时归入的占位分组
UNKNOWN_WORLD_ID = "unknown-world"


def derive_world_id(*parts: str) -> str:
    """由 agent/entity 等标识确定性派生 world ID"""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, "todoagent:" + ":".join(parts)))


def build_tags(task_type: TaskType, priority: int | None, is_urgent: bool) -> list[str]:
    """按任务类型派生标签"""
    tags = ["TODO"]
    if task_type == TaskType.DAILY:
        tags += ["daily", "recurring-daily"]
    elif task_type == TaskType.ONE_OFF:
        tags += ["one-off", f"priority-{priority or DEFAULT_PRIORITY}"]
        if is_urgent:
            tags.append("urgent")
    elif task_type == TaskType.ASPIRATIONAL:
        tags.append("aspirational")
    return tags


_SUMMARY_SECTIONS = (
    (TaskType.DAILY, "Daily"),
    (TaskType.ONE_OFF, "One-off"),
    (TaskType.ASPIRATIONAL, "Aspirational"),
)


def _summary_line(task: Task) -> str:
    """概览中的单行：名称 + 类型相关的附加信息"""
    if task.type == TaskType.DAILY:
        streak = task.metadata.get("streak", 0)
        return f"{task.name} (daily, streak: {streak} days)"
    if task.type == TaskType.ONE_OFF:
        details = [f"P{task.priority or DEFAULT_PRIORITY}"]
        if task.is_urgent:
            details[0] += " 🔴 URGENT"
        if task.due_date is not None:
            due = task.due_date
            details.append(f"due {due.month}/{due.day}/{due.year}")
        return f"{task.name} ({', '.join(details)})"
    return task.name


class TodoPatch(BaseModel):
    """部分更新请求（路由层字段语义）"""

    name: str | None = None
    description: str | None = None
    priority: int | None = Field(default=None, ge=1, le=4)
    urgent: bool | None = None
    due_date: datetime | None = None
    recurring: Literal["daily", "weekly", "monthly"] | None = None


class TodoService:
    """待办业务服务"""

    def __init__(self, store_group: StoreGroup, config: TodoConfig) -> None:
        self._stores = store_group
        self._config = config

    async def create_todo(
        self,
        name: str,
        task_type: str,
        room_id: str,
        priority: int | None = None,
        due_date: datetime | None = None,
        is_urgent: bool = False,
        description: str | None = None,
        world_id: str | None = None,
        entity_id: str | None = None,
    ) -> Task:
        """创建待办

        Raises:
            TodoValidationError: 必填字段缺失或取值非法（不访问存储）
            DuplicateTaskError: 同一 room 已有同名的未完成任务
        """
        if not name or not name.strip():
            raise TodoValidationError("Missing required field: name")
        if not task_type:
            raise TodoValidationError("Missing required field: type")
        if not room_id:
            raise TodoValidationError("Missing required field: roomId")
        try:
            parsed_type = TaskType(task_type)
        except ValueError:
            raise TodoValidationError(
                f"Invalid type {task_type!r}: must be one of daily, one-off, aspirational"
            ) from None

        metadata: dict[str, Any] = {}
        if parsed_type == TaskType.DAILY:
            metadata = {"streak": 0, "completedToday": False}
        if parsed_type == TaskType.ONE_OFF:
            # 缺省或越界的优先级按最低优先级处理
            if priority is None or not 1 <= priority <= 4:
                priority = DEFAULT_PRIORITY
        else:
            priority = None

        agent_id = self._config.agent_id
        try:
            spec = TaskCreate(
                agent_id=agent_id,
                world_id=world_id or derive_world_id(agent_id),
                room_id=room_id,
                entity_id=entity_id or agent_id,
                name=name,
                description=description or f"User added TODO: {name.strip()}",
                type=parsed_type,
                priority=priority,
                is_urgent=is_urgent,
                due_date=due_date,
                metadata=metadata,
                tags=build_tags(parsed_type, priority, is_urgent),
            )
        except ValidationError as e:
            raise TodoValidationError(str(e)) from e

        duplicate = await self._find_active_by_name(room_id, spec.name)
        if duplicate is not None:
            raise DuplicateTaskError(duplicate.id, duplicate.name)

        task_id = await self._stores.task_store.create_task(spec)
        await log.ainfo("todo_created", task_id=task_id, task_type=parsed_type.value)
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _find_active_by_name(self, room_id: str, name: str) -> Task | None:
        """同一 room 内未完成、名称相同（忽略大小写与首尾空白）的任务"""
        wanted = name.strip().casefold()
        active = await self._stores.task_store.list_tasks(
            TaskFilter(room_id=room_id, agent_id=self._config.agent_id, is_completed=False)
        )
        return next((t for t in active if t.name.strip().casefold() == wanted), None)

    async def get_todo(self, task_id: str) -> Task:
        """查询待办

        Raises:
            TaskNotFoundError: 任务不存在
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def update_todo(self, task_id: str, patch: TodoPatch) -> Task:
        """部分更新并重算标签

        priority / urgent 只对 one-off 生效，recurring 只对 daily 生效，
        due_date 显式传 null 表示清空。

        Raises:
            TodoValidationError: 更新内容为空
            TaskNotFoundError: 任务不存在
        """
        fields = patch.model_fields_set
        if not fields:
            raise TodoValidationError("Missing update data")

        task = await self.get_todo(task_id)
        tags = list(task.tags)
        changes: dict[str, Any] = {}

        if patch.name:
            changes["name"] = patch.name
        if "description" in fields:
            changes["description"] = patch.description

        if patch.priority is not None and task.type == TaskType.ONE_OFF:
            changes["priority"] = patch.priority
            tags = [t for t in tags if not t.startswith("priority-")]
            tags.append(f"priority-{patch.priority}")

        if patch.urgent is not None and task.type == TaskType.ONE_OFF:
            changes["is_urgent"] = patch.urgent
            tags = [t for t in tags if t != "urgent"]
            if patch.urgent:
                tags.append("urgent")

        if patch.recurring is not None and task.type == TaskType.DAILY:
            tags = [t for t in tags if not t.startswith("recurring-")]
            tags.append(f"recurring-{patch.recurring}")

        if "due_date" in fields:
            changes["due_date"] = patch.due_date

        # metadata 只走存储层合并，不整体回写读到的副本
        updated = await self._stores.task_store.update_task(
            task_id,
            TaskUpdate(**changes, tags=tags),
        )
        if patch.recurring is not None and task.type == TaskType.DAILY:
            updated = await self._stores.task_store.patch_metadata(
                task_id, {"recurring": patch.recurring}
            )
        await log.ainfo("todo_updated", task_id=task_id, fields=sorted(fields))
        return updated

    async def uncomplete_todo(self, task_id: str) -> Task:
        """撤销完成：清除完成标记与 completedAt/pointsAwarded（daily 还有 completedToday）

        只修改 metadata，不回滚积分流水；已发放的积分保留。

        Raises:
            TaskNotFoundError: 任务不存在
            AlreadyIncompleteError: 任务本就未完成
        """
        task = await self.get_todo(task_id)
        if not task.is_completed:
            raise AlreadyIncompleteError(task_id)

        await self._stores.task_store.update_task(
            task_id,
            TaskUpdate(is_completed=False, completed_at=None),
        )
        removed: dict[str, Any] = {"completedAt": None, "pointsAwarded": None}
        if task.type == TaskType.DAILY:
            removed["completedToday"] = None
        updated = await self._stores.task_store.patch_metadata(task_id, removed)

        await log.ainfo("todo_uncompleted", task_id=task_id)
        return updated

    async def delete_todo(self, task_id: str) -> None:
        """删除待办（级联标签与 streak，积分流水保留但解除关联）"""
        await self._stores.task_store.delete_task(task_id)
        await log.ainfo("todo_deleted", task_id=task_id)

    async def list_grouped(self) -> list[dict[str, Any]]:
        """当前 agent 的待办，按 world -> room -> tasks 分组"""
        tasks = await self._stores.task_store.list_tasks(
            TaskFilter(agent_id=self._config.agent_id)
        )

        worlds: dict[str, dict[str, list[Task]]] = {}
        for task in tasks:
            world_id = task.world_id or UNKNOWN_WORLD_ID
            room_id = task.room_id or ""
            worlds.setdefault(world_id, {}).setdefault(room_id, []).append(task)

        grouped = []
        for world_id, rooms in worlds.items():
            grouped.append(
                {
                    "world_id": world_id,
                    "world_name": (
                        "Rooms without World"
                        if world_id == UNKNOWN_WORLD_ID
                        else f"World {world_id[:6]}"
                    ),
                    "rooms": [
                        {
                            "room_id": room_id or None,
                            "room_name": f"Room {room_id[:6]}" if room_id else "No room",
                            "tasks": room_tasks,
                        }
                        for room_id, room_tasks in rooms.items()
                    ],
                }
            )
        return grouped

    async def summarize_room(
        self,
        room_id: str,
        entity_id: str,
        world_id: str | None = None,
    ) -> tuple[str, int]:
        """room 内待办概览（按类型分组）与该 entity 的积分，返回 (文本, 积分)"""
        world_id = world_id or derive_world_id(self._config.agent_id, entity_id)
        account = await self._stores.points_store.get_account(entity_id, world_id, room_id)
        points = account.current_points if account else 0

        tasks = await self._stores.task_store.list_tasks(
            TaskFilter(room_id=room_id, agent_id=self._config.agent_id, is_completed=False)
        )
        lines = [f"## User's Todos (Points: {points})"]
        for task_type, title in _SUMMARY_SECTIONS:
            lines += ["", f"### {title} Todos"]
            section = [t for t in tasks if t.type == task_type]
            if not section:
                lines.append(f"No {task_type.value} todos.")
            lines += [f"- {_summary_line(t)}" for t in section]
        return "\n".join(lines), points

    async def list_tags(self) -> list[str]:
        """在用标签"""
        return await self._stores.task_store.list_tags()

    async def get_account(
        self,
        entity_id: str,
        world_id: str,
        room_id: str,
    ) -> PointsAccount | None:
        """单个积分账户"""
        return await self._stores.points_store.get_account(entity_id, world_id, room_id)

    async def get_points_overview(
        self,
        entity_id: str,
    ) -> tuple[list[PointsAccount], list[PointsTransaction]]:
        """entity 的全部账户 + 流水（倒序）"""
        accounts = await self._stores.points_store.list_accounts_for_entity(entity_id)
        history = await self._stores.points_store.list_transactions(entity_id=entity_id)
        return accounts, history
