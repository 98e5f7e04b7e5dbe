"""积分查询路由

GET /api/points/{entity_id}
    - 同时提供 roomId + worldId: 返回单个账户；不存在时返回零值占位
    - 否则: 返回该 entity 的全部账户 + 完整流水（倒序）
"""

from fastapi import APIRouter, Depends, Query

from ..deps import get_todo_service
from ..serializers import account_to_dict, transaction_to_dict
from ..services.todo_service import TodoService

router = APIRouter()


@router.get("/api/points/{entity_id}")
async def get_points(
    entity_id: str,
    room_id: str | None = Query(default=None, alias="roomId"),
    world_id: str | None = Query(default=None, alias="worldId"),
    service: TodoService = Depends(get_todo_service),
):
    """查询 entity 的积分"""
    if room_id and world_id:
        account = await service.get_account(entity_id, world_id, room_id)
        if account is None:
            return {"currentPoints": 0, "totalPointsEarned": 0}
        return account_to_dict(account)

    accounts, history = await service.get_points_overview(entity_id)
    return {
        "points": [account_to_dict(a) for a in accounts],
        "history": [transaction_to_dict(tx) for tx in history],
    }
