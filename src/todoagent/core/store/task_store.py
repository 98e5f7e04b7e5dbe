"""TaskStore SQLite 实现

todos + todo_tags 两张表；daily 任务创建时同事务写入零值 streak 记录。
所有写操作各自是一个短事务（见 transaction.write_transaction）。
"""

import asyncio
import json
from datetime import datetime
from typing import Any

import aiosqlite
from ulid import ULID

from ..clock import from_db_ts, to_db_ts, utc_now
from ..exceptions import TaskNotFoundError
from ..models.enums import TaskType
from ..models.task import Task, TaskCreate, TaskFilter, TaskUpdate
from .transaction import write_transaction

_TASK_COLUMNS = (
    "id, agent_id, world_id, room_id, entity_id, name, description, type, "
    "priority, is_urgent, is_completed, due_date, completed_at, "
    "created_at, updated_at, metadata"
)

# TaskUpdate 字段 -> 列名；值为 None 时忽略的字段（非空列）
_UPDATE_COLUMNS = {
    "name": "name",
    "description": "description",
    "priority": "priority",
    "is_urgent": "is_urgent",
    "is_completed": "is_completed",
    "due_date": "due_date",
    "completed_at": "completed_at",
    "metadata": "metadata",
}
_NON_NULLABLE_FIELDS = {"name", "is_urgent", "is_completed", "metadata", "tags"}


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self._conn = conn
        self._write_lock = write_lock or asyncio.Lock()

    async def create_task(self, spec: TaskCreate, now: datetime | None = None) -> str:
        """创建任务记录，返回 task_id

        daily 任务同事务创建 (task, owner) 的零值 streak 记录。
        """
        now = now or utc_now()
        task_id = str(ULID())
        ts = to_db_ts(now)

        async with write_transaction(self._conn, self._write_lock) as conn:
            await conn.execute(
                f"""
                INSERT INTO todos ({_TASK_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id,
                    spec.agent_id,
                    spec.world_id,
                    spec.room_id,
                    spec.entity_id,
                    spec.name,
                    spec.description,
                    spec.type.value,
                    spec.priority,
                    int(spec.is_urgent),
                    0,
                    to_db_ts(spec.due_date),
                    None,
                    ts,
                    ts,
                    json.dumps(spec.metadata, ensure_ascii=False),
                ),
            )
            await self._insert_tags(conn, task_id, spec.tags, ts)

            if spec.type == TaskType.DAILY:
                await conn.execute(
                    """
                    INSERT INTO daily_streaks (id, todo_id, entity_id, current_streak,
                                               longest_streak, last_completed_date,
                                               created_at, updated_at)
                    VALUES (?, ?, ?, 0, 0, NULL, ?, ?)
                    """,
                    (str(ULID()), task_id, spec.entity_id, ts, ts),
                )

        return task_id

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM todos WHERE id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        tags = await self._load_tags([task_id])
        return self._row_to_task(row, tags.get(task_id, []))

    async def list_tasks(self, task_filter: TaskFilter | None = None) -> list[Task]:
        """按条件查询任务，条件之间为 AND，按 created_at 倒序"""
        task_filter = task_filter or TaskFilter()
        clauses: list[str] = []
        params: list[Any] = []

        for field_name in ("entity_id", "room_id", "world_id", "agent_id"):
            value = getattr(task_filter, field_name)
            if value is not None:
                clauses.append(f"{field_name} = ?")
                params.append(value)
        if task_filter.type is not None:
            clauses.append("type = ?")
            params.append(task_filter.type.value)
        if task_filter.is_completed is not None:
            clauses.append("is_completed = ?")
            params.append(int(task_filter.is_completed))
        if task_filter.tags:
            # 超集匹配：任务必须拥有全部请求的标签
            wanted = sorted(set(task_filter.tags))
            placeholders = ", ".join("?" for _ in wanted)
            clauses.append(
                f"""id IN (
                    SELECT todo_id FROM todo_tags
                    WHERE tag IN ({placeholders})
                    GROUP BY todo_id
                    HAVING COUNT(DISTINCT tag) = ?
                )"""
            )
            params.extend(wanted)
            params.append(len(wanted))

        sql = f"SELECT {_TASK_COLUMNS} FROM todos"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, id DESC"
        if task_filter.limit is not None:
            sql += " LIMIT ?"
            params.append(task_filter.limit)

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return await self._rows_to_tasks(rows)

    async def update_task(
        self,
        task_id: str,
        update: TaskUpdate,
        now: datetime | None = None,
    ) -> Task:
        """合并更新显式设置的字段，返回更新后的任务

        tags 出现时整体替换（先删后插）。

        Raises:
            TaskNotFoundError: task_id 不存在
        """
        changes = {
            key: value
            for key, value in update.changes().items()
            if not (value is None and key in _NON_NULLABLE_FIELDS)
        }
        ts = to_db_ts(now or utc_now())

        assignments = ["updated_at = ?"]
        params: list[Any] = [ts]
        for field_name, column in _UPDATE_COLUMNS.items():
            if field_name not in changes:
                continue
            assignments.append(f"{column} = ?")
            params.append(self._to_column_value(field_name, changes[field_name]))
        params.append(task_id)

        async with write_transaction(self._conn, self._write_lock) as conn:
            cursor = await conn.execute(
                f"UPDATE todos SET {', '.join(assignments)} WHERE id = ?",
                params,
            )
            if cursor.rowcount == 0:
                raise TaskNotFoundError(task_id)

            if "tags" in changes:
                await conn.execute("DELETE FROM todo_tags WHERE todo_id = ?", (task_id,))
                await self._insert_tags(conn, task_id, changes["tags"], ts)

        task = await self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def patch_metadata(
        self,
        task_id: str,
        patch: dict[str, Any],
        now: datetime | None = None,
    ) -> Task:
        """在存储层合并 metadata（JSON merge patch），值为 None 的键被删除

        与整体替换不同，并发写入不同键时互不覆盖。

        Raises:
            TaskNotFoundError: task_id 不存在
        """
        ts = to_db_ts(now or utc_now())
        async with write_transaction(self._conn, self._write_lock) as conn:
            cursor = await conn.execute(
                """
                UPDATE todos
                SET metadata = json_patch(metadata, ?), updated_at = ?
                WHERE id = ?
                """,
                (json.dumps(patch, ensure_ascii=False), ts, task_id),
            )
            if cursor.rowcount == 0:
                raise TaskNotFoundError(task_id)

        task = await self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def delete_task(self, task_id: str) -> None:
        """删除任务：级联删除标签与 streak，积分流水的任务引用置空

        Raises:
            TaskNotFoundError: task_id 不存在
        """
        async with write_transaction(self._conn, self._write_lock) as conn:
            cursor = await conn.execute("DELETE FROM todos WHERE id = ?", (task_id,))
            if cursor.rowcount == 0:
                raise TaskNotFoundError(task_id)

    async def mark_completed_if_incomplete(
        self,
        task_id: str,
        completed_at: datetime,
    ) -> bool:
        """条件更新：仅当任务当前未完成时标记完成

        Returns:
            True 表示本次调用赢得完成权；False 表示任务已被完成（或不存在）
        """
        ts = to_db_ts(completed_at)
        async with write_transaction(self._conn, self._write_lock) as conn:
            cursor = await conn.execute(
                """
                UPDATE todos
                SET is_completed = 1, completed_at = ?, updated_at = ?
                WHERE id = ? AND is_completed = 0
                """,
                (ts, ts, task_id),
            )
            return cursor.rowcount == 1

    async def release_completion(
        self,
        task_id: str,
        completed_at: datetime,
        metadata_patch: dict[str, Any],
        now: datetime | None = None,
    ) -> bool:
        """撤回一次条件完成：清除完成标记并合并回滚用的 metadata patch

        仅当任务仍处于 completed_at 这次完成时生效，不会撤回其他请求的完成。

        Returns:
            True 表示已撤回
        """
        ts = to_db_ts(now or utc_now())
        async with write_transaction(self._conn, self._write_lock) as conn:
            cursor = await conn.execute(
                """
                UPDATE todos
                SET is_completed = 0, completed_at = NULL,
                    metadata = json_patch(metadata, ?), updated_at = ?
                WHERE id = ? AND is_completed = 1 AND completed_at = ?
                """,
                (
                    json.dumps(metadata_patch, ensure_ascii=False),
                    ts,
                    task_id,
                    to_db_ts(completed_at),
                ),
            )
            return cursor.rowcount == 1

    async def get_overdue_tasks(self, now: datetime | None = None) -> list[Task]:
        """one-off、未完成、due_date 严格早于 now 的任务"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_TASK_COLUMNS} FROM todos
            WHERE type = ? AND is_completed = 0
              AND due_date IS NOT NULL AND due_date < ?
            ORDER BY due_date ASC, id ASC
            """,
            (TaskType.ONE_OFF.value, to_db_ts(now or utc_now())),
        )
        rows = await cursor.fetchall()
        return await self._rows_to_tasks(rows)

    async def reset_daily_tasks(self, agent_id: str, now: datetime | None = None) -> int:
        """清除该 agent 下所有已完成 daily 任务的完成状态，返回影响行数

        只做完成状态翻转，不触碰 streak。
        """
        ts = to_db_ts(now or utc_now())
        async with write_transaction(self._conn, self._write_lock) as conn:
            cursor = await conn.execute(
                """
                UPDATE todos
                SET is_completed = 0, completed_at = NULL, updated_at = ?
                WHERE agent_id = ? AND type = ? AND is_completed = 1
                """,
                (ts, agent_id, TaskType.DAILY.value),
            )
            return cursor.rowcount

    async def list_tags(self) -> list[str]:
        """当前在用的全部标签（去重、排序）"""
        cursor = await self._conn.execute(
            "SELECT DISTINCT tag FROM todo_tags ORDER BY tag"
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    @staticmethod
    async def _insert_tags(
        conn: aiosqlite.Connection,
        task_id: str,
        tags: list[str],
        ts: str | None,
    ) -> None:
        if not tags:
            return
        await conn.executemany(
            "INSERT OR IGNORE INTO todo_tags (id, todo_id, tag, created_at) VALUES (?, ?, ?, ?)",
            [(str(ULID()), task_id, tag, ts) for tag in tags],
        )

    async def _load_tags(self, task_ids: list[str]) -> dict[str, list[str]]:
        """批量加载标签"""
        if not task_ids:
            return {}
        placeholders = ", ".join("?" for _ in task_ids)
        cursor = await self._conn.execute(
            f"""
            SELECT todo_id, tag FROM todo_tags
            WHERE todo_id IN ({placeholders})
            ORDER BY created_at, id
            """,
            task_ids,
        )
        rows = await cursor.fetchall()
        tags: dict[str, list[str]] = {}
        for row in rows:
            tags.setdefault(row[0], []).append(row[1])
        return tags

    async def _rows_to_tasks(self, rows) -> list[Task]:
        tags = await self._load_tags([row[0] for row in rows])
        return [self._row_to_task(row, tags.get(row[0], [])) for row in rows]

    @staticmethod
    def _to_column_value(field_name: str, value: Any) -> Any:
        if field_name in ("due_date", "completed_at"):
            return to_db_ts(value)
        if field_name in ("is_urgent", "is_completed"):
            return int(value)
        if field_name == "metadata":
            return json.dumps(value, ensure_ascii=False)
        return value

    @staticmethod
    def _row_to_task(row: aiosqlite.Row, tags: list[str]) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            id=row[0],
            agent_id=row[1],
            world_id=row[2],
            room_id=row[3],
            entity_id=row[4],
            name=row[5],
            description=row[6],
            type=row[7],
            priority=row[8],
            is_urgent=bool(row[9]),
            is_completed=bool(row[10]),
            due_date=from_db_ts(row[11]),
            completed_at=from_db_ts(row[12]),
            created_at=from_db_ts(row[13]),
            updated_at=from_db_ts(row[14]),
            metadata=json.loads(row[15]) if row[15] else {},
            tags=tags,
        )
