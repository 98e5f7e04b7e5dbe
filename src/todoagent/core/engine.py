"""Points & Streak Engine -- 纯计算，不触碰存储

积分规则：
- onTime: (5 - priority) * 10，priority 缺省为 4；紧急任务额外 +10
- late: 固定 5 分
- daily: 固定 10 分
- streakBonus: min(streak * 5, 50)，streak 取任务上一次完成时记录的快照

未知 outcome 直接抛 InvalidOutcomeError，不按 0 分处理。
"""

from datetime import datetime, timedelta
from typing import Any

from .clock import ensure_utc
from .exceptions import InvalidOutcomeError
from .models.enums import CompletionOutcome
from .models.task import DEFAULT_PRIORITY, Task

LATE_POINTS = 5
DAILY_POINTS = 10
URGENT_BONUS = 10
STREAK_BONUS_PER_DAY = 5
STREAK_BONUS_CAP = 50

# aspirational 完成固定奖励，由编排层直接使用
ASPIRATIONAL_POINTS = 50


def _effective_priority(task: Task) -> int:
    priority = task.priority
    if priority is None or not 1 <= priority <= 4:
        return DEFAULT_PRIORITY
    return priority


def _streak_snapshot(metadata: dict[str, Any]) -> int:
    value = metadata.get("streak", 0)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return max(int(value), 0)


def calculate_points(task: Task, outcome: CompletionOutcome | str) -> int:
    """计算一次完成应得积分

    Args:
        task: 被完成的任务
        outcome: onTime / late / daily / streakBonus

    Returns:
        积分（非负整数）

    Raises:
        InvalidOutcomeError: outcome 不是已知取值
    """
    try:
        outcome = CompletionOutcome(outcome)
    except ValueError:
        raise InvalidOutcomeError(outcome) from None

    match outcome:
        case CompletionOutcome.ON_TIME:
            points = (5 - _effective_priority(task)) * 10
            if task.is_urgent:
                points += URGENT_BONUS
            return points
        case CompletionOutcome.LATE:
            return LATE_POINTS
        case CompletionOutcome.DAILY:
            return DAILY_POINTS
        case CompletionOutcome.STREAK_BONUS:
            return min(_streak_snapshot(task.metadata) * STREAK_BONUS_PER_DAY, STREAK_BONUS_CAP)

    raise InvalidOutcomeError(outcome)


def is_streak_broken(last_completed_at: datetime | None, now: datetime) -> bool:
    """连续打卡是否已中断

    以 UTC 日历日计：上次完成早于“昨天”即视为中断；从未完成不算中断。
    """
    if last_completed_at is None:
        return False
    last_day = ensure_utc(last_completed_at).date()
    yesterday = ensure_utc(now).date() - timedelta(days=1)
    return last_day < yesterday


def completion_outcome(task: Task, now: datetime) -> CompletionOutcome:
    """one-off 任务的完成结果：无截止时间或 now <= due_date 为 onTime，否则 late"""
    if task.due_date is None:
        return CompletionOutcome.ON_TIME
    if ensure_utc(now) <= ensure_utc(task.due_date):
        return CompletionOutcome.ON_TIME
    return CompletionOutcome.LATE
