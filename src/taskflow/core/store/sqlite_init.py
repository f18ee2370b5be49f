"""SQLite 数据库初始化

PRAGMA 配置 + 五张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# profiles 表 DDL（身份提供方的本地镜像）
_PROFILES_DDL = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id       TEXT PRIMARY KEY,
    display_name  TEXT NOT NULL DEFAULT '',
    email         TEXT NOT NULL DEFAULT '',
    is_admin      INTEGER NOT NULL DEFAULT 0,
    avatar_url    TEXT
);
"""

_PROFILES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_profiles_is_admin ON profiles(is_admin);",
]

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id       TEXT PRIMARY KEY,
    title         TEXT NOT NULL,
    description   TEXT NOT NULL DEFAULT '',
    due_date      TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    project_id    TEXT NOT NULL DEFAULT '',
    priority      TEXT NOT NULL DEFAULT 'Medium',
    status        TEXT NOT NULL DEFAULT 'Pending',
    assignee_ids  TEXT NOT NULL DEFAULT '[]',
    creator_id    TEXT NOT NULL,
    version       INTEGER NOT NULL DEFAULT 1
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
]

# task_comments 表 DDL -- append-only，seq 为任务内追加槽位，comment_id 在任务内唯一
_COMMENTS_DDL = """
CREATE TABLE IF NOT EXISTS task_comments (
    comment_id     TEXT NOT NULL,
    task_id        TEXT NOT NULL,
    seq            INTEGER NOT NULL,
    author_id      TEXT NOT NULL,
    author_name    TEXT NOT NULL DEFAULT '',
    author_avatar  TEXT,
    body           TEXT NOT NULL,
    created_at     TEXT NOT NULL,

    PRIMARY KEY (task_id, comment_id),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

# task_logs 表 DDL -- append-only，seq 为任务内追加槽位，log_id 在任务内唯一
_LOGS_DDL = """
CREATE TABLE IF NOT EXISTS task_logs (
    log_id       TEXT NOT NULL,
    task_id      TEXT NOT NULL,
    seq          INTEGER NOT NULL,
    author_id    TEXT NOT NULL,
    author_name  TEXT NOT NULL DEFAULT '',
    hours_spent  REAL NOT NULL,
    description  TEXT NOT NULL,
    logged_at    TEXT NOT NULL,

    PRIMARY KEY (task_id, log_id),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

_APPEND_INDEXES = [
    # 同一任务内槽位唯一：并发追加者只有一个能占到同一个 seq
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_comments_task_seq ON task_comments(task_id, seq);",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_logs_task_seq ON task_logs(task_id, seq);",
]

# notifications 表 DDL
_NOTIFICATIONS_DDL = """
CREATE TABLE IF NOT EXISTS notifications (
    notification_id       TEXT PRIMARY KEY,
    recipient_id          TEXT NOT NULL,
    message               TEXT NOT NULL,
    link                  TEXT NOT NULL DEFAULT '',
    kind                  TEXT NOT NULL,
    related_task_id       TEXT NOT NULL,
    triggered_by_user_id  TEXT NOT NULL,
    created_at            TEXT NOT NULL,
    read_at               TEXT,

    FOREIGN KEY (related_task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

_NOTIFICATIONS_INDEXES = [
    (
        "CREATE INDEX IF NOT EXISTS idx_notifications_recipient "
        "ON notifications(recipient_id, created_at DESC);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_notifications_task ON notifications(related_task_id);",
]


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
    await conn.execute(_PROFILES_DDL)
    await conn.execute(_TASKS_DDL)
    await conn.execute(_COMMENTS_DDL)
    await conn.execute(_LOGS_DDL)
    await conn.execute(_NOTIFICATIONS_DDL)

    # 创建索引
    for idx_sql in (
        _PROFILES_INDEXES + _TASKS_INDEXES + _APPEND_INDEXES + _NOTIFICATIONS_INDEXES
    ):
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
