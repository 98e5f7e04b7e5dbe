"""Streak Domain Model -- 每个 (daily 任务, entity) 一条连续完成记录"""

from datetime import datetime

from pydantic import BaseModel, Field


class Streak(BaseModel):
    """连续完成记录

    不变式：longest_streak >= current_streak >= 0。
    """

    task_id: str = Field(description="关联的 daily 任务")
    entity_id: str = Field(description="完成者 entity")
    current_streak: int = Field(default=0, ge=0, description="当前连续天数")
    longest_streak: int = Field(default=0, ge=0, description="历史最长连续天数")
    last_completed_at: datetime | None = Field(default=None, description="最近一次完成时间")
