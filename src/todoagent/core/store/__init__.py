"""TodoAgent Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
import sqlite3
from pathlib import Path

import aiosqlite

from ..exceptions import StoreUnavailableError
from .points_store import SqlitePointsStore
from .sqlite_init import init_db, verify_wal_mode
from .streak_store import SqliteStreakStore
from .task_store import SqliteTaskStore
from .transaction import write_transaction


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与写锁"""

    def __init__(self, conn: aiosqlite.Connection | None) -> None:
        if conn is None:
            raise StoreUnavailableError()
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.task_store = SqliteTaskStore(conn, self.write_lock)
        self.streak_store = SqliteStreakStore(conn, self.write_lock)
        self.points_store = SqlitePointsStore(conn, self.write_lock)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例

    Raises:
        StoreUnavailableError: 无法打开或初始化数据库
    """
    try:
        # 确保数据库目录存在
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(db_path)
        await init_db(conn)
    except (sqlite3.Error, OSError) as e:
        raise StoreUnavailableError(f"Cannot open SQLite database {db_path}: {e}") from e

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteStreakStore",
    "SqlitePointsStore",
    "init_db",
    "verify_wal_mode",
    "write_transaction",
]
