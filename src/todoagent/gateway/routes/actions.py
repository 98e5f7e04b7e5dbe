"""自然语言动作路由

POST /api/actions/complete: 根据用户文本解析并完成 room 内的一个待办。
动作层面的失败（缺上下文、未找到、有歧义）以 200 + action 标识返回，
存储错误按统一错误格式返回。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..deps import get_action_service
from ..serializers import completion_to_dict
from ..services.todo_actions import TodoActionService

router = APIRouter()


class CompleteActionRequest(BaseModel):
    """自然语言完成请求体"""

    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    room_id: str | None = Field(default=None, alias="roomId")
    entity_id: str | None = Field(default=None, alias="entityId")
    world_id: str | None = Field(default=None, alias="worldId")
    task_id: str | None = Field(default=None, alias="taskId")


@router.post("/api/actions/complete")
async def complete_from_text(
    body: CompleteActionRequest,
    service: TodoActionService = Depends(get_action_service),
):
    """自然语言完成待办"""
    result = await service.complete_from_text(
        text=body.text,
        room_id=body.room_id,
        entity_id=body.entity_id,
        world_id=body.world_id,
        task_id=body.task_id,
    )
    return {
        "action": result.action.value,
        "state": result.state.value,
        "text": result.text,
        "completion": (
            completion_to_dict(result.completion) if result.completion else None
        ),
    }
