"""集成测试共享 fixture"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from todoagent.core.config import TodoConfig
from todoagent.provider import FallbackResolver, NameMatchResolver


@pytest_asyncio.fixture
async def integration_app(store_group):
    """集成测试用 FastAPI app"""
    from todoagent.gateway.main import create_app
    from todoagent.gateway.services.sse_hub import SSEHub

    app = create_app()
    app.state.store_group = store_group
    app.state.todo_config = TodoConfig(agent_id="todo-agent")
    app.state.sse_hub = SSEHub()
    app.state.resolver = FallbackResolver(primary=NameMatchResolver(), fallback=None)
    yield app


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
