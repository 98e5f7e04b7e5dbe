"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from todoagent.core.config import TodoConfig
from todoagent.core.store import StoreGroup

from .services.completion_service import CompletionService
from .services.todo_actions import TodoActionService
from .services.todo_service import TodoService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_todo_config(request: Request) -> TodoConfig:
    """从 app.state 获取 TodoConfig"""
    return request.app.state.todo_config


def get_sse_hub(request: Request):
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_todo_service(request: Request) -> TodoService:
    """构造 TodoService"""
    return TodoService(get_store_group(request), get_todo_config(request))


def get_completion_service(request: Request) -> CompletionService:
    """构造 CompletionService"""
    return CompletionService(
        get_store_group(request),
        agent_id=get_todo_config(request).agent_id,
    )


def get_action_service(request: Request) -> TodoActionService:
    """构造 TodoActionService"""
    return TodoActionService(
        get_store_group(request),
        completion_service=get_completion_service(request),
        resolver=request.app.state.resolver,
        agent_id=get_todo_config(request).agent_id,
    )
