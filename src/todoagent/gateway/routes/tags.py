"""标签路由 -- GET /api/tags: 当前在用的全部标签（去重、排序）"""

from fastapi import APIRouter, Depends

from ..deps import get_todo_service
from ..services.todo_service import TodoService

router = APIRouter()


@router.get("/api/tags")
async def list_tags(service: TodoService = Depends(get_todo_service)):
    return await service.list_tags()
