"""Task Domain Model

一个 Task 即一条待办：daily（每日循环）、one-off（一次性）、aspirational（长期目标）。
priority / is_urgent 仅对 one-off 有意义；aspirational 没有截止时间。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..clock import ensure_utc
from .enums import TaskType

DEFAULT_PRIORITY = 4


def normalize_tags(tags: list[str] | None) -> list[str]:
    """去空白、去空串、去重（保持首次出现顺序）"""
    if not tags:
        return []
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = str(tag).strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class Task(BaseModel):
    """Task 数据模型

    type 保留为字符串：历史数据中可能存在未知类型，完成时走通用流程。
    """

    id: str = Field(description="唯一标识，ULID 格式")
    agent_id: str = Field(description="所属 agent")
    world_id: str = Field(description="所属 world")
    room_id: str | None = Field(default=None, description="所属 room，缺失时无法投递提醒")
    entity_id: str = Field(description="创建者/拥有者 entity")
    name: str = Field(description="任务名称")
    description: str | None = Field(default=None, description="任务描述")
    type: str = Field(description="任务类型：daily / one-off / aspirational")
    priority: int | None = Field(default=None, description="优先级 1-4，1 最高，仅 one-off")
    is_urgent: bool = Field(default=False, description="是否紧急，仅 one-off")
    is_completed: bool = Field(default=False, description="是否已完成")
    due_date: datetime | None = Field(default=None, description="截止时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="自由元数据：streak 快照、lastReminderSent、pointsAwarded 等",
    )
    tags: list[str] = Field(default_factory=list, description="标签集合（无序、去重）")


class TaskCreate(BaseModel):
    """创建任务的输入"""

    agent_id: str = Field(min_length=1)
    world_id: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    entity_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    type: TaskType
    priority: int | None = Field(default=None, ge=1, le=4)
    is_urgent: bool = False
    due_date: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)

    @model_validator(mode="after")
    def _drop_type_irrelevant_fields(self) -> "TaskCreate":
        # priority / urgent 只对 one-off 生效，aspirational 无截止时间
        if self.type != TaskType.ONE_OFF:
            self.priority = None
            self.is_urgent = False
        if self.type == TaskType.ASPIRATIONAL:
            self.due_date = None
        return self


class TaskUpdate(BaseModel):
    """部分更新：只有显式设置的字段才会写入

    tags 若出现则整体替换；metadata 若出现则整体替换（调用方负责合并）。
    due_date / completed_at / description 显式传 None 表示清空。
    """

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    priority: int | None = Field(default=None, ge=1, le=4)
    is_urgent: bool | None = None
    is_completed: bool | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    metadata: dict[str, Any] | None = None
    tags: list[str] | None = None

    @field_validator("due_date", "completed_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str] | None) -> list[str] | None:
        return normalize_tags(value) if value is not None else None

    def changes(self) -> dict[str, Any]:
        """显式设置的字段"""
        return self.model_dump(exclude_unset=True)


class TaskFilter(BaseModel):
    """任务查询条件，各字段之间为 AND 关系

    tags 为超集匹配：任务必须包含全部请求的标签。
    """

    entity_id: str | None = None
    room_id: str | None = None
    world_id: str | None = None
    agent_id: str | None = None
    type: TaskType | None = None
    is_completed: bool | None = None
    tags: list[str] | None = None
    limit: int | None = Field(default=None, ge=1)
