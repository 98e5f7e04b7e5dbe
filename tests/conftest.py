"""共享测试配置 -- 临时数据库 + StoreGroup fixture"""

import os
from collections.abc import AsyncGenerator
from datetime import datetime
from pathlib import Path

import pytest
import pytest_asyncio
from todoagent.core.models import TaskCreate, TaskType
from todoagent.core.store import StoreGroup, create_store_group

os.environ.setdefault("LOGFIRE_SEND_TO_LOGFIRE", "false")


@pytest_asyncio.fixture
async def db_path(tmp_path: Path) -> Path:
    """临时数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def store_group(db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """已初始化的 StoreGroup，测试结束关闭连接"""
    group = await create_store_group(str(db_path))
    yield group
    await group.conn.close()


def _make_spec(
    name: str = "Write report",
    task_type: TaskType = TaskType.ONE_OFF,
    room_id: str = "room-1",
    entity_id: str = "entity-1",
    world_id: str = "world-1",
    agent_id: str = "todo-agent",
    priority: int | None = None,
    is_urgent: bool = False,
    due_date: datetime | None = None,
    tags: list[str] | None = None,
    metadata: dict | None = None,
) -> TaskCreate:
    """构造 TaskCreate 的测试工具"""
    return TaskCreate(
        agent_id=agent_id,
        world_id=world_id,
        room_id=room_id,
        entity_id=entity_id,
        name=name,
        type=task_type,
        priority=priority,
        is_urgent=is_urgent,
        due_date=due_date,
        tags=tags or [],
        metadata=metadata or {},
    )


@pytest.fixture
def make_spec():
    """返回 TaskCreate 构造函数"""
    return _make_spec
