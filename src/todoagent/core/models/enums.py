"""枚举定义

包含 TaskType、CompletionOutcome 与完成请求状态机 CompletionState，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskType(StrEnum):
    """任务类型"""

    DAILY = "daily"
    ONE_OFF = "one-off"
    ASPIRATIONAL = "aspirational"


class CompletionOutcome(StrEnum):
    """积分计算结果类型"""

    ON_TIME = "onTime"
    LATE = "late"
    DAILY = "daily"
    STREAK_BONUS = "streakBonus"


class CompletionState(StrEnum):
    """单次完成请求的状态机

    每次调用只尝试一次，只会落到一个终态，不在终态之间重试。
    """

    PENDING = "PENDING"

    # 终态
    RESOLVED = "RESOLVED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_COMPLETE = "ALREADY_COMPLETE"
    REJECTED = "REJECTED"


VALID_TRANSITIONS: dict[CompletionState, set[CompletionState]] = {
    CompletionState.PENDING: {
        CompletionState.RESOLVED,
        CompletionState.NOT_FOUND,
        CompletionState.ALREADY_COMPLETE,
        CompletionState.REJECTED,
    },
    # 终态不可再流转
    CompletionState.RESOLVED: set(),
    CompletionState.NOT_FOUND: set(),
    CompletionState.ALREADY_COMPLETE: set(),
    CompletionState.REJECTED: set(),
}

TERMINAL_STATES: set[CompletionState] = {
    CompletionState.RESOLVED,
    CompletionState.NOT_FOUND,
    CompletionState.ALREADY_COMPLETE,
    CompletionState.REJECTED,
}


def validate_transition(from_state: CompletionState, to_state: CompletionState) -> bool:
    """验证状态流转是否合法

    Args:
        from_state: 当前状态
        to_state: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_state, set())
    return to_state in allowed
