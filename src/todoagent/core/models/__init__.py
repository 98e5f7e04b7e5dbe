"""TodoAgent Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    CompletionOutcome,
    CompletionState,
    TaskType,
    validate_transition,
)
from .points import PointsAccount, PointsTransaction
from .streak import Streak
from .task import DEFAULT_PRIORITY, Task, TaskCreate, TaskFilter, TaskUpdate, normalize_tags

__all__ = [
    # 枚举
    "TaskType",
    "CompletionOutcome",
    "CompletionState",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task
    "DEFAULT_PRIORITY",
    "Task",
    "TaskCreate",
    "TaskUpdate",
    "TaskFilter",
    "normalize_tags",
    # Streak
    "Streak",
    # Points
    "PointsAccount",
    "PointsTransaction",
]
