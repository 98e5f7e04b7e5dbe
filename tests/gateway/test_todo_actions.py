"""TodoActionService 单元测试 -- 自然语言完成待办"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from todoagent.core.models import CompletionState
from todoagent.gateway.services.completion_service import CompletionService
from todoagent.gateway.services.todo_actions import ActionName, TodoActionService
from todoagent.gateway.services.todo_service import derive_world_id
from todoagent.provider import FallbackResolver, NameMatchResolver, ProviderError


@pytest.fixture
def resolver():
    return FallbackResolver(primary=NameMatchResolver(), fallback=None)


@pytest.fixture
def actions(store_group, resolver) -> TodoActionService:
    completion = CompletionService(store_group, agent_id="todo-agent")
    return TodoActionService(store_group, completion, resolver, agent_id="todo-agent")


@pytest_asyncio.fixture
async def seeded(store_group, make_spec) -> dict[str, str]:
    store = store_group.task_store
    return {
        "taxes": await store.create_task(make_spec(name="Finish taxes", priority=2)),
        "mom": await store.create_task(make_spec(name="Call mom")),
        "dad": await store.create_task(make_spec(name="Call dad")),
        "elsewhere": await store.create_task(make_spec(name="Water plants", room_id="room-2")),
    }


class TestCompleteFromText:
    async def test_missing_context_rejected(self, actions):
        result = await actions.complete_from_text("done with taxes", room_id=None, entity_id="e")
        assert result.action == ActionName.COMPLETE_TODO_ERROR
        assert result.state == CompletionState.REJECTED

    async def test_no_tasks(self, actions):
        result = await actions.complete_from_text("done", room_id="room-9", entity_id="entity-1")
        assert result.action == ActionName.COMPLETE_TODO_NO_TASKS
        assert "create a new task" in result.text

    async def test_resolves_and_completes(self, actions, seeded, store_group):
        result = await actions.complete_from_text(
            "I completed my taxes", room_id="room-1", entity_id="entity-1"
        )

        assert result.action == ActionName.COMPLETE_TODO
        assert result.state == CompletionState.RESOLVED
        assert result.completion.task_id == seeded["taxes"]
        assert result.completion.points_awarded == 30

        world_id = derive_world_id("todo-agent", "entity-1")
        account = await store_group.points_store.get_account("entity-1", world_id, "room-1")
        assert account.current_points == 30

    async def test_explicit_world(self, actions, seeded, store_group):
        await actions.complete_from_text(
            "finish taxes", room_id="room-1", entity_id="entity-1", world_id="world-1"
        )
        account = await store_group.points_store.get_account("entity-1", "world-1", "room-1")
        assert account.current_points == 30

    async def test_ambiguous_asks_for_clarification(self, actions, seeded):
        result = await actions.complete_from_text("call", room_id="room-1", entity_id="entity-1")

        assert result.action == ActionName.COMPLETE_TODO_NOT_FOUND
        assert result.state == CompletionState.NOT_FOUND
        assert "- Call mom" in result.text
        assert "- Call dad" in result.text
        assert "Water plants" not in result.text

    async def test_resolver_failure_is_not_found(self, store_group, seeded):
        broken = AsyncMock()
        broken.resolve = AsyncMock(side_effect=ProviderError("proxy down", recoverable=False))
        completion = CompletionService(store_group, agent_id="todo-agent")
        actions = TodoActionService(store_group, completion, broken, agent_id="todo-agent")

        result = await actions.complete_from_text(
            "finish taxes", room_id="room-1", entity_id="entity-1"
        )

        assert result.action == ActionName.COMPLETE_TODO_NOT_FOUND
        task = await store_group.task_store.get_task(seeded["taxes"])
        assert task.is_completed is False

    async def test_explicit_task_id_bypasses_resolver(self, store_group, seeded):
        resolver = AsyncMock()
        completion = CompletionService(store_group, agent_id="todo-agent")
        actions = TodoActionService(store_group, completion, resolver, agent_id="todo-agent")

        result = await actions.complete_from_text(
            "whatever", room_id="room-1", entity_id="entity-1", task_id=seeded["mom"]
        )

        assert result.action == ActionName.COMPLETE_TODO
        assert result.completion.task_id == seeded["mom"]
        resolver.resolve.assert_not_called()

    async def test_task_from_other_room_not_found(self, actions, seeded):
        result = await actions.complete_from_text(
            "water", room_id="room-1", entity_id="entity-1", task_id=seeded["elsewhere"]
        )
        assert result.action == ActionName.COMPLETE_TODO_NOT_FOUND
        assert "couldn't find a task matching" in result.text

    async def test_completed_tasks_not_candidates(self, actions, seeded):
        await actions.complete_from_text("finish taxes", room_id="room-1", entity_id="entity-1")
        result = await actions.complete_from_text(
            "finish taxes", room_id="room-1", entity_id="entity-1"
        )
        assert result.action == ActionName.COMPLETE_TODO_NOT_FOUND
        assert "- Finish taxes" not in result.text
