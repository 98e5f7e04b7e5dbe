"""短事务封装

所有 Store 共享同一个 aiosqlite 连接。为了避免不同协程的语句交错进同一个
SQLite 事务，每个逻辑写操作都在 write_transaction 内执行：
获取共享写锁 -> 执行语句 -> commit；任何异常 rollback 后原样抛出。
写锁只覆盖单个短事务，不跨越编排层的多个步骤。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """在共享写锁内执行一个短事务

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        lock: 同一连接上所有 Store 共享的写锁

    Raises:
        Exception: 事务内任何异常，回滚后原样抛出
    """
    async with lock:
        try:
            yield conn
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
