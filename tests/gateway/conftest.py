"""gateway 测试配置 -- FastAPI app（绕过 lifespan 手动初始化 app.state）+ httpx AsyncClient"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from todoagent.core.config import TodoConfig
from todoagent.provider import FallbackResolver, NameMatchResolver


@pytest.fixture
def todo_config() -> TodoConfig:
    return TodoConfig(agent_id="todo-agent")


@pytest_asyncio.fixture
async def app(store_group, todo_config):
    """测试用 FastAPI app"""
    from todoagent.gateway.main import create_app
    from todoagent.gateway.services.sse_hub import SSEHub

    application = create_app()
    application.state.store_group = store_group
    application.state.todo_config = todo_config
    application.state.sse_hub = SSEHub()
    application.state.resolver = FallbackResolver(primary=NameMatchResolver(), fallback=None)
    yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
