"""PointsStore SQLite 实现

user_points（账户）+ point_history（append-only 流水）。
余额变更由 UPSERT 在存储层原子地计算 balance = balance + delta，
并在同一事务内追加流水，保证余额恒等于流水之和。
"""

import asyncio
from datetime import datetime

import aiosqlite
from ulid import ULID

from ..clock import from_db_ts, to_db_ts, utc_now
from ..exceptions import TodoValidationError
from ..models.points import PointsAccount, PointsTransaction
from .transaction import write_transaction

_ACCOUNT_COLUMNS = (
    "id, entity_id, world_id, room_id, agent_id, current_points, "
    "total_points_earned, last_point_update_reason, created_at, updated_at"
)


class SqlitePointsStore:
    """PointsStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self._conn = conn
        self._write_lock = write_lock or asyncio.Lock()

    async def get_account(
        self,
        entity_id: str,
        world_id: str,
        room_id: str,
    ) -> PointsAccount | None:
        """查询 (entity, world, room) 对应的积分账户"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_ACCOUNT_COLUMNS} FROM user_points
            WHERE entity_id = ? AND world_id = ? AND room_id = ?
            """,
            (entity_id, world_id, room_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    async def list_accounts_for_entity(self, entity_id: str) -> list[PointsAccount]:
        """查询 entity 的全部积分账户"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_ACCOUNT_COLUMNS} FROM user_points
            WHERE entity_id = ?
            ORDER BY created_at, id
            """,
            (entity_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_account(row) for row in rows]

    async def list_transactions(
        self,
        entity_id: str | None = None,
        account_id: str | None = None,
    ) -> list[PointsTransaction]:
        """查询积分流水，按时间倒序"""
        clauses: list[str] = []
        params: list[str] = []
        if entity_id is not None:
            clauses.append("up.entity_id = ?")
            params.append(entity_id)
        if account_id is not None:
            clauses.append("ph.user_points_id = ?")
            params.append(account_id)

        sql = """
            SELECT ph.id, ph.user_points_id, ph.todo_id, ph.points, ph.reason, ph.created_at
            FROM point_history ph
            JOIN user_points up ON up.id = ph.user_points_id
        """
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY ph.created_at DESC, ph.id DESC"

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_transaction(row) for row in rows]

    async def apply_transaction(
        self,
        entity_id: str,
        world_id: str,
        room_id: str,
        agent_id: str,
        delta: int,
        reason: str,
        linked_task_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """记一笔积分变更，返回新余额

        账户不存在时以 balance = delta 创建；total_points_earned 只累计正 delta。
        同一事务内总是追加一条流水。

        Raises:
            TodoValidationError: delta 不是整数或 reason 为空
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise TodoValidationError(f"Points delta must be an integer, got {delta!r}")
        if not reason:
            raise TodoValidationError("Points transaction reason must not be empty")

        ts = to_db_ts(now or utc_now())
        earned = max(delta, 0)

        async with write_transaction(self._conn, self._write_lock) as conn:
            await conn.execute(
                f"""
                INSERT INTO user_points ({_ACCOUNT_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (entity_id, world_id, room_id) DO UPDATE SET
                    current_points = current_points + excluded.current_points,
                    total_points_earned = total_points_earned + excluded.total_points_earned,
                    last_point_update_reason = excluded.last_point_update_reason,
                    updated_at = excluded.updated_at
                """,
                (
                    str(ULID()),
                    entity_id,
                    world_id,
                    room_id,
                    agent_id,
                    delta,
                    earned,
                    reason,
                    ts,
                    ts,
                ),
            )
            cursor = await conn.execute(
                """
                SELECT id, current_points FROM user_points
                WHERE entity_id = ? AND world_id = ? AND room_id = ?
                """,
                (entity_id, world_id, room_id),
            )
            account_id, new_balance = await cursor.fetchone()

            await conn.execute(
                """
                INSERT INTO point_history (id, user_points_id, todo_id, points, reason, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (str(ULID()), account_id, linked_task_id, delta, reason, ts),
            )

        return new_balance

    @staticmethod
    def _row_to_account(row: aiosqlite.Row) -> PointsAccount:
        """将数据库行转换为 PointsAccount 模型"""
        return PointsAccount(
            id=row[0],
            entity_id=row[1],
            world_id=row[2],
            room_id=row[3],
            agent_id=row[4],
            current_points=row[5],
            total_points_earned=row[6],
            last_point_update_reason=row[7],
            created_at=from_db_ts(row[8]),
            updated_at=from_db_ts(row[9]),
        )

    @staticmethod
    def _row_to_transaction(row: aiosqlite.Row) -> PointsTransaction:
        """将数据库行转换为 PointsTransaction 模型"""
        return PointsTransaction(
            id=row[0],
            account_id=row[1],
            task_id=row[2],
            points=row[3],
            reason=row[4],
            created_at=from_db_ts(row[5]),
        )
