"""数据模型 -- TaskCandidate + Resolution

解析器只看到候选任务的最小视图，不依赖 core 的持久化模型。
"""

from pydantic import BaseModel, Field


class TaskCandidate(BaseModel):
    """供解析器匹配的候选任务"""

    id: str = Field(description="任务 ID")
    name: str = Field(description="任务名称")
    description: str | None = Field(default=None, description="任务描述")
    tags: list[str] = Field(default_factory=list, description="标签")


class Resolution(BaseModel):
    """解析结果：用户指的是哪一个任务

    未找到或有歧义时解析器返回 None，而不是低置信度的 Resolution。
    """

    task_id: str = Field(description="命中的任务 ID")
    task_name: str = Field(default="", description="命中的任务名称")
    confidence: float = Field(ge=0.0, le=1.0, description="置信度")
    resolver: str = Field(default="", description="产出结果的解析器（match / litellm）")

    # 降级信息
    is_fallback: bool = Field(default=False, description="是否为降级解析")
    fallback_reason: str = Field(default="", description="降级原因说明")
