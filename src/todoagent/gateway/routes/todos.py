"""待办路由

GET    /api/todos                   当前 agent 的待办，按 world -> room 分组
POST   /api/todos                   创建待办（201）
PUT    /api/todos/{todo_id}         部分更新，标签由服务层重算
PUT    /api/todos/{todo_id}/complete    完成（可选积分上下文）
PUT    /api/todos/{todo_id}/uncomplete  撤销完成（不回滚积分）
DELETE /api/todos/{todo_id}         删除并级联
GET    /api/rooms/{room_id}/summary  room 内待办概览与积分

错误码：缺字段/非法值 400；未知 id 404；重复完成或同 room 重名 400；存储异常 500。
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import JSONResponse
from todoagent.core.exceptions import AlreadyCompletedError, TaskNotFoundError
from todoagent.core.models import CompletionState

from ..deps import get_completion_service, get_todo_service
from ..serializers import completion_to_dict, task_to_dict
from ..services.completion_service import CompletionContext, CompletionService
from ..services.todo_service import TodoPatch, TodoService

router = APIRouter()


class CreateTodoRequest(BaseModel):
    """创建待办请求体"""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    room_id: str = Field(alias="roomId", min_length=1)
    priority: int | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")
    is_urgent: bool = Field(default=False, alias="isUrgent")
    description: str | None = None
    world_id: str | None = Field(default=None, alias="worldId")
    entity_id: str | None = Field(default=None, alias="entityId")


class UpdateTodoRequest(BaseModel):
    """部分更新请求体"""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    description: str | None = None
    priority: int | None = Field(default=None, ge=1, le=4)
    urgent: bool | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")
    recurring: Literal["daily", "weekly", "monthly"] | None = None


class CompleteTodoRequest(BaseModel):
    """完成请求体：三项上下文齐全时才记分"""

    model_config = ConfigDict(populate_by_name=True)

    entity_id: str | None = Field(default=None, alias="entityId")
    room_id: str | None = Field(default=None, alias="roomId")
    world_id: str | None = Field(default=None, alias="worldId")

    def context(self) -> CompletionContext | None:
        if self.entity_id and self.room_id and self.world_id:
            return CompletionContext(
                entity_id=self.entity_id,
                room_id=self.room_id,
                world_id=self.world_id,
            )
        return None


@router.get("/api/todos")
async def list_todos(service: TodoService = Depends(get_todo_service)):
    """当前 agent 的待办，按 world -> room -> tasks 分组"""
    grouped = await service.list_grouped()
    return [
        {
            "worldId": world["world_id"],
            "worldName": world["world_name"],
            "rooms": [
                {
                    "roomId": room["room_id"],
                    "roomName": room["room_name"],
                    "tasks": [task_to_dict(t) for t in room["tasks"]],
                }
                for room in world["rooms"]
            ],
        }
        for world in grouped
    ]


@router.post("/api/todos", status_code=201)
async def create_todo(
    body: CreateTodoRequest,
    service: TodoService = Depends(get_todo_service),
):
    """创建待办"""
    task = await service.create_todo(
        name=body.name,
        task_type=body.type,
        room_id=body.room_id,
        priority=body.priority,
        due_date=body.due_date,
        is_urgent=body.is_urgent,
        description=body.description,
        world_id=body.world_id,
        entity_id=body.entity_id,
    )
    return task_to_dict(task)


@router.put("/api/todos/{todo_id}")
async def update_todo(
    todo_id: str,
    body: UpdateTodoRequest,
    service: TodoService = Depends(get_todo_service),
):
    """部分更新待办"""
    fields = body.model_fields_set
    patch = TodoPatch(
        **{name: getattr(body, name) for name in fields},
    )
    task = await service.update_todo(todo_id, patch)
    return {
        "message": f"Task {todo_id} updated successfully.",
        "task": task_to_dict(task),
    }


@router.put("/api/todos/{todo_id}/complete")
async def complete_todo(
    todo_id: str,
    body: CompleteTodoRequest | None = Body(default=None),
    completion: CompletionService = Depends(get_completion_service),
):
    """完成待办"""
    context = body.context() if body is not None else None
    result = await completion.complete_task(todo_id, context)

    if result.state == CompletionState.NOT_FOUND:
        raise TaskNotFoundError(todo_id)
    if result.state == CompletionState.ALREADY_COMPLETE:
        raise AlreadyCompletedError(todo_id)

    message = f"Task {todo_id} completed."
    if result.points_awarded:
        message += f" Awarded {result.points_awarded} points."
    return {
        "message": message,
        "task": task_to_dict(result.task) if result.task else None,
        "result": completion_to_dict(result),
    }


@router.put("/api/todos/{todo_id}/uncomplete")
async def uncomplete_todo(
    todo_id: str,
    service: TodoService = Depends(get_todo_service),
):
    """撤销完成（只修改 metadata，不回滚积分）"""
    task = await service.uncomplete_todo(todo_id)
    return {
        "message": f"Task {todo_id} marked as not completed.",
        "task": task_to_dict(task),
    }


@router.delete("/api/todos/{todo_id}")
async def delete_todo(
    todo_id: str,
    service: TodoService = Depends(get_todo_service),
):
    """删除待办"""
    await service.delete_todo(todo_id)
    return JSONResponse(
        status_code=200,
        content={"message": f"Task {todo_id} deleted successfully."},
    )


@router.get("/api/rooms/{room_id}/summary")
async def room_summary(
    room_id: str,
    entity_id: str = Query(alias="entityId", min_length=1),
    world_id: str | None = Query(default=None, alias="worldId"),
    service: TodoService = Depends(get_todo_service),
):
    """room 内未完成待办概览 + 该 entity 的积分"""
    text, points = await service.summarize_room(room_id, entity_id, world_id)
    return {"roomId": room_id, "entityId": entity_id, "points": points, "text": text}
