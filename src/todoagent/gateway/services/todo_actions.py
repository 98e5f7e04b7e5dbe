"""TodoActionService -- 自然语言“完成待办”动作

1. 缺少 room 或 entity 上下文 -> REJECTED
2. 列出该 room 内未完成的任务，为空时提示新建
3. 调用 TaskResolver 判断用户所指任务（显式 task_id 时跳过）
4. 未找到/有歧义 -> NOT_FOUND，附带当前任务列表请用户澄清
5. 交给 CompletionService 完成
解析器故障按“未找到”处理，不当作存储错误上抛。
"""

from enum import StrEnum

import structlog
from pydantic import BaseModel, Field
from todoagent.core.models import CompletionState, Task, TaskFilter
from todoagent.core.store import StoreGroup
from todoagent.provider import ProviderError, TaskCandidate, TaskResolver

from .completion_service import CompletionContext, CompletionResult, CompletionService
from .todo_service import derive_world_id

log = structlog.get_logger()


class ActionName(StrEnum):
    """动作结果标识"""

    COMPLETE_TODO = "COMPLETE_TODO"
    COMPLETE_TODO_ERROR = "COMPLETE_TODO_ERROR"
    COMPLETE_TODO_NO_TASKS = "COMPLETE_TODO_NO_TASKS"
    COMPLETE_TODO_NOT_FOUND = "COMPLETE_TODO_NOT_FOUND"


class ActionResult(BaseModel):
    """动作结果"""

    action: ActionName = Field(description="结果标识")
    state: CompletionState = Field(description="完成状态机终态")
    text: str = Field(description="回复给用户的文本")
    completion: CompletionResult | None = Field(default=None, description="完成明细")


def _to_candidate(task: Task) -> TaskCandidate:
    return TaskCandidate(
        id=task.id,
        name=task.name,
        description=task.description,
        tags=task.tags,
    )


class TodoActionService:
    """自然语言完成待办"""

    def __init__(
        self,
        store_group: StoreGroup,
        completion_service: CompletionService,
        resolver: TaskResolver,
        agent_id: str,
    ) -> None:
        self._tasks = store_group.task_store
        self._completion = completion_service
        self._resolver = resolver
        self._agent_id = agent_id

    async def complete_from_text(
        self,
        text: str,
        room_id: str | None,
        entity_id: str | None,
        world_id: str | None = None,
        task_id: str | None = None,
    ) -> ActionResult:
        """根据用户的自然语言完成一个待办"""
        if not room_id or not entity_id:
            return ActionResult(
                action=ActionName.COMPLETE_TODO_ERROR,
                state=CompletionState.REJECTED,
                text="I cannot complete a todo without a room and entity context.",
            )

        available = await self._tasks.list_tasks(
            TaskFilter(room_id=room_id, is_completed=False)
        )
        if not available:
            return ActionResult(
                action=ActionName.COMPLETE_TODO_NO_TASKS,
                state=CompletionState.NOT_FOUND,
                text=(
                    "You don't have any incomplete tasks to mark as done. "
                    "Would you like to create a new task?"
                ),
            )

        if task_id:
            target_id, target_name = task_id, task_id
        else:
            resolution = None
            try:
                resolution = await self._resolver.resolve(
                    text, [_to_candidate(t) for t in available]
                )
            except ProviderError as e:
                log.warning("task_resolution_failed", error=str(e), room_id=room_id)

            if resolution is None:
                task_list = "\n".join(f"- {t.name}" for t in available)
                return ActionResult(
                    action=ActionName.COMPLETE_TODO_NOT_FOUND,
                    state=CompletionState.NOT_FOUND,
                    text=(
                        "I couldn't determine which task you're marking as completed. "
                        "Could you be more specific? Here are your current tasks:\n\n"
                        + task_list
                    ),
                )
            target_id, target_name = resolution.task_id, resolution.task_name

        task = next((t for t in available if t.id == target_id), None)
        if task is None:
            return ActionResult(
                action=ActionName.COMPLETE_TODO_NOT_FOUND,
                state=CompletionState.NOT_FOUND,
                text=(
                    f'I couldn\'t find a task matching "{target_name}". '
                    "Please try again with the exact task name."
                ),
            )

        context = CompletionContext(
            entity_id=entity_id,
            room_id=room_id,
            world_id=world_id or derive_world_id(self._agent_id, entity_id),
        )
        result = await self._completion.complete_task(task.id, context)

        if result.state == CompletionState.NOT_FOUND:
            action = ActionName.COMPLETE_TODO_NOT_FOUND
        else:
            action = ActionName.COMPLETE_TODO
        return ActionResult(
            action=action,
            state=result.state,
            text=result.message,
            completion=result,
        )
