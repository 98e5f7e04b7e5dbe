"""SQLite 数据库初始化

PRAGMA 配置 + 五张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# todos 表 DDL
_TODOS_DDL = """
CREATE TABLE IF NOT EXISTS todos (
    id            TEXT PRIMARY KEY,
    agent_id      TEXT NOT NULL,
    world_id      TEXT NOT NULL,
    room_id       TEXT,
    entity_id     TEXT NOT NULL,
    name          TEXT NOT NULL,
    description   TEXT,
    type          TEXT NOT NULL,
    priority      INTEGER DEFAULT 4,
    is_urgent     INTEGER NOT NULL DEFAULT 0,
    is_completed  INTEGER NOT NULL DEFAULT 0,
    due_date      TEXT,
    completed_at  TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    metadata      TEXT NOT NULL DEFAULT '{}'
);
"""

_TODOS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_todos_room ON todos(room_id);",
    "CREATE INDEX IF NOT EXISTS idx_todos_agent_type ON todos(agent_id, type, is_completed);",
    "CREATE INDEX IF NOT EXISTS idx_todos_entity ON todos(entity_id);",
    "CREATE INDEX IF NOT EXISTS idx_todos_due_date ON todos(due_date);",
    "CREATE INDEX IF NOT EXISTS idx_todos_created_at ON todos(created_at DESC);",
]

# todo_tags 表 DDL
_TODO_TAGS_DDL = """
CREATE TABLE IF NOT EXISTS todo_tags (
    id          TEXT PRIMARY KEY,
    todo_id     TEXT NOT NULL,
    tag         TEXT NOT NULL,
    created_at  TEXT NOT NULL,

    UNIQUE (todo_id, tag),
    FOREIGN KEY (todo_id) REFERENCES todos(id) ON DELETE CASCADE
);
"""

_TODO_TAGS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_todo_tags_tag ON todo_tags(tag);",
]

# user_points 表 DDL（每个 entity/world/room 一个账户）
_USER_POINTS_DDL = """
CREATE TABLE IF NOT EXISTS user_points (
    id                        TEXT PRIMARY KEY,
    entity_id                 TEXT NOT NULL,
    world_id                  TEXT NOT NULL,
    room_id                   TEXT NOT NULL,
    agent_id                  TEXT NOT NULL,
    current_points            INTEGER NOT NULL DEFAULT 0,
    total_points_earned       INTEGER NOT NULL DEFAULT 0,
    last_point_update_reason  TEXT,
    created_at                TEXT NOT NULL,
    updated_at                TEXT NOT NULL,

    UNIQUE (entity_id, world_id, room_id)
);
"""

# point_history 表 DDL（append-only 流水）
_POINT_HISTORY_DDL = """
CREATE TABLE IF NOT EXISTS point_history (
    id              TEXT PRIMARY KEY,
    user_points_id  TEXT NOT NULL,
    todo_id         TEXT,
    points          INTEGER NOT NULL,
    reason          TEXT NOT NULL,
    created_at      TEXT NOT NULL,

    FOREIGN KEY (user_points_id) REFERENCES user_points(id) ON DELETE CASCADE,
    FOREIGN KEY (todo_id) REFERENCES todos(id) ON DELETE SET NULL
);
"""

_POINT_HISTORY_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_point_history_account ON point_history(user_points_id, created_at DESC);",
]

# daily_streaks 表 DDL
_DAILY_STREAKS_DDL = """
CREATE TABLE IF NOT EXISTS daily_streaks (
    id                   TEXT PRIMARY KEY,
    todo_id              TEXT NOT NULL,
    entity_id            TEXT NOT NULL,
    current_streak       INTEGER NOT NULL DEFAULT 0,
    longest_streak       INTEGER NOT NULL DEFAULT 0,
    last_completed_date  TEXT,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL,

    UNIQUE (todo_id, entity_id),
    FOREIGN KEY (todo_id) REFERENCES todos(id) ON DELETE CASCADE
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TODOS_DDL)
    await conn.execute(_TODO_TAGS_DDL)
    await conn.execute(_USER_POINTS_DDL)
    await conn.execute(_POINT_HISTORY_DDL)
    await conn.execute(_DAILY_STREAKS_DDL)

    # 创建索引
    for idx_sql in _TODOS_INDEXES + _TODO_TAGS_INDEXES + _POINT_HISTORY_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
