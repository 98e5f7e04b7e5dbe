"""响应序列化 -- 领域模型 -> camelCase JSON"""

from datetime import datetime
from typing import Any

from todoagent.core.models import PointsAccount, PointsTransaction, Task

from .services.completion_service import CompletionResult


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def task_to_dict(task: Task) -> dict[str, Any]:
    """Task -> API JSON"""
    return {
        "id": task.id,
        "agentId": task.agent_id,
        "worldId": task.world_id,
        "roomId": task.room_id,
        "entityId": task.entity_id,
        "name": task.name,
        "description": task.description,
        "type": task.type,
        "priority": task.priority,
        "isUrgent": task.is_urgent,
        "isCompleted": task.is_completed,
        "dueDate": _ts(task.due_date),
        "completedAt": _ts(task.completed_at),
        "createdAt": _ts(task.created_at),
        "updatedAt": _ts(task.updated_at),
        "metadata": task.metadata,
        "tags": task.tags,
    }


def account_to_dict(account: PointsAccount) -> dict[str, Any]:
    """PointsAccount -> API JSON"""
    return {
        "id": account.id,
        "entityId": account.entity_id,
        "worldId": account.world_id,
        "roomId": account.room_id,
        "agentId": account.agent_id,
        "currentPoints": account.current_points,
        "totalPointsEarned": account.total_points_earned,
        "lastPointUpdateReason": account.last_point_update_reason,
        "createdAt": _ts(account.created_at),
        "updatedAt": _ts(account.updated_at),
    }


def transaction_to_dict(tx: PointsTransaction) -> dict[str, Any]:
    """PointsTransaction -> API JSON"""
    return {
        "id": tx.id,
        "accountId": tx.account_id,
        "todoId": tx.task_id,
        "points": tx.points,
        "reason": tx.reason,
        "createdAt": _ts(tx.created_at),
    }


def completion_to_dict(result: CompletionResult) -> dict[str, Any]:
    """CompletionResult -> API JSON"""
    return {
        "state": result.state.value,
        "taskId": result.task_id,
        "pointsAwarded": result.points_awarded,
        "newStreak": result.new_streak,
        "completedOnTime": result.completed_on_time,
        "message": result.message,
        "task": task_to_dict(result.task) if result.task else None,
    }
