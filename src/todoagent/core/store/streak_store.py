"""StreakStore SQLite 实现

daily_streaks 表，每个 (todo_id, entity_id) 一行。
自增与清零均由单条 UPSERT 在存储层原子完成，不做先读后写。
"""

import asyncio
from datetime import datetime

import aiosqlite
from ulid import ULID

from ..clock import from_db_ts, to_db_ts, utc_now
from ..models.streak import Streak
from .transaction import write_transaction

_STREAK_COLUMNS = "todo_id, entity_id, current_streak, longest_streak, last_completed_date"


class SqliteStreakStore:
    """StreakStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self._conn = conn
        self._write_lock = write_lock or asyncio.Lock()

    async def get_streak(self, task_id: str, entity_id: str) -> Streak | None:
        """查询 streak 记录"""
        cursor = await self._conn.execute(
            f"SELECT {_STREAK_COLUMNS} FROM daily_streaks WHERE todo_id = ? AND entity_id = ?",
            (task_id, entity_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_streak(row)

    async def get_or_create_streak(self, task_id: str, entity_id: str) -> Streak:
        """查询 streak 记录，不存在时创建零值记录"""
        ts = to_db_ts(utc_now())
        async with write_transaction(self._conn, self._write_lock) as conn:
            await conn.execute(
                """
                INSERT OR IGNORE INTO daily_streaks (id, todo_id, entity_id, current_streak,
                                                     longest_streak, last_completed_date,
                                                     created_at, updated_at)
                VALUES (?, ?, ?, 0, 0, NULL, ?, ?)
                """,
                (str(ULID()), task_id, entity_id, ts, ts),
            )
            return await self._select(conn, task_id, entity_id)

    async def apply_streak_outcome(
        self,
        task_id: str,
        entity_id: str,
        succeeded: bool,
        now: datetime | None = None,
    ) -> Streak:
        """应用一次完成结果

        成功：current + 1，longest 取 max，last_completed = now。
        失败/中断：current 清零，longest 与 last_completed 不变。
        记录不存在时按零值记录处理。
        """
        ts = to_db_ts(now or utc_now())
        async with write_transaction(self._conn, self._write_lock) as conn:
            if succeeded:
                await conn.execute(
                    """
                    INSERT INTO daily_streaks (id, todo_id, entity_id, current_streak,
                                               longest_streak, last_completed_date,
                                               created_at, updated_at)
                    VALUES (?, ?, ?, 1, 1, ?, ?, ?)
                    ON CONFLICT (todo_id, entity_id) DO UPDATE SET
                        current_streak = current_streak + 1,
                        longest_streak = MAX(longest_streak, current_streak + 1),
                        last_completed_date = excluded.last_completed_date,
                        updated_at = excluded.updated_at
                    """,
                    (str(ULID()), task_id, entity_id, ts, ts, ts),
                )
            else:
                await conn.execute(
                    """
                    INSERT INTO daily_streaks (id, todo_id, entity_id, current_streak,
                                               longest_streak, last_completed_date,
                                               created_at, updated_at)
                    VALUES (?, ?, ?, 0, 0, NULL, ?, ?)
                    ON CONFLICT (todo_id, entity_id) DO UPDATE SET
                        current_streak = 0,
                        updated_at = excluded.updated_at
                    """,
                    (str(ULID()), task_id, entity_id, ts, ts),
                )
            return await self._select(conn, task_id, entity_id)

    async def restore_streak(
        self,
        task_id: str,
        entity_id: str,
        snapshot: Streak | None,
        now: datetime | None = None,
    ) -> None:
        """把 streak 恢复到 snapshot；snapshot 为 None 时删除记录"""
        ts = to_db_ts(now or utc_now())
        async with write_transaction(self._conn, self._write_lock) as conn:
            if snapshot is None:
                await conn.execute(
                    "DELETE FROM daily_streaks WHERE todo_id = ? AND entity_id = ?",
                    (task_id, entity_id),
                )
                return
            await conn.execute(
                """
                UPDATE daily_streaks
                SET current_streak = ?, longest_streak = ?,
                    last_completed_date = ?, updated_at = ?
                WHERE todo_id = ? AND entity_id = ?
                """,
                (
                    snapshot.current_streak,
                    snapshot.longest_streak,
                    to_db_ts(snapshot.last_completed_at),
                    ts,
                    task_id,
                    entity_id,
                ),
            )

    async def _select(
        self,
        conn: aiosqlite.Connection,
        task_id: str,
        entity_id: str,
    ) -> Streak:
        cursor = await conn.execute(
            f"SELECT {_STREAK_COLUMNS} FROM daily_streaks WHERE todo_id = ? AND entity_id = ?",
            (task_id, entity_id),
        )
        row = await cursor.fetchone()
        return self._row_to_streak(row)

    @staticmethod
    def _row_to_streak(row: aiosqlite.Row) -> Streak:
        """将数据库行转换为 Streak 模型"""
        return Streak(
            task_id=row[0],
            entity_id=row[1],
            current_streak=row[2],
            longest_streak=row[3],
            last_completed_at=from_db_ts(row[4]),
        )
