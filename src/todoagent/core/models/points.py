"""Points Ledger Domain Model

每个 (entity, world, room) 一个 PointsAccount，配合 append-only 的 PointsTransaction 流水。
current_points 恒等于流水 delta 之和；total_points_earned 只累计正 delta。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class PointsAccount(BaseModel):
    """积分账户"""

    id: str = Field(description="账户 ID，ULID 格式")
    entity_id: str = Field(description="账户所属 entity")
    world_id: str = Field(description="所属 world")
    room_id: str = Field(description="所属 room")
    agent_id: str = Field(description="记账 agent")
    current_points: int = Field(default=0, description="当前余额")
    total_points_earned: int = Field(default=0, ge=0, description="累计获得（只增不减）")
    last_point_update_reason: str | None = Field(default=None, description="最近一次变更原因")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


class PointsTransaction(BaseModel):
    """积分流水（append-only）"""

    id: str = Field(description="流水 ID，ULID 格式")
    account_id: str = Field(description="所属账户")
    task_id: str | None = Field(default=None, description="关联任务，任务删除后置空")
    points: int = Field(description="变更量 delta")
    reason: str = Field(description="人类可读原因")
    created_at: datetime = Field(description="记账时间")
