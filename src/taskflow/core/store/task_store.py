"""TaskStore SQLite 实现

状态与指派变更使用条件更新（status / version 比较），
评论与工时追加使用 "期望长度" 条件插入，两者都在单条 SQL 内完成判断与写入。
"""

import json
from datetime import UTC, datetime

import aiosqlite
import structlog

from ..exceptions import ConcurrentModificationError, TaskNotFoundError
from ..models.enums import TaskStatus
from ..models.task import Comment, Task, WorkLog

log = structlog.get_logger()

_TASK_COLUMNS = (
    "task_id, title, description, due_date, created_at, updated_at, "
    "project_id, priority, status, assignee_ids, creator_id, version"
)
_COMMENT_COLUMNS = "comment_id, author_id, author_name, author_avatar, body, created_at"
_LOG_COLUMNS = "log_id, author_id, author_name, hours_spent, description, logged_at"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现

    注意：共享连接上每个写操作都是 "单语句 + commit"，
    失败时依赖 SQLite 语句级原子性，不对共享连接执行 rollback。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录（不含评论 / 工时）"""
        await self._conn.execute(
            f"""
            INSERT INTO tasks ({_TASK_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.title,
                task.description,
                task.due_date.isoformat() if task.due_date else None,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
                task.project_id,
                task.priority.value,
                task.status.value,
                json.dumps(sorted(task.assignee_ids)),
                task.creator_id,
                task.version,
            ),
        )
        await self._conn.commit()

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务（含评论与工时，按追加顺序）"""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        cursor = await self._conn.execute(
            f"SELECT {_COMMENT_COLUMNS} FROM task_comments WHERE task_id = ? ORDER BY seq ASC",
            (task_id,),
        )
        comments = [self._row_to_comment(r) for r in await cursor.fetchall()]

        cursor = await self._conn.execute(
            f"SELECT {_LOG_COLUMNS} FROM task_logs WHERE task_id = ? ORDER BY seq ASC",
            (task_id,),
        )
        logs = [self._row_to_log(r) for r in await cursor.fetchall()]

        return self._row_to_task(row, comments, logs)

    async def list_tasks(self, status: str | None = None) -> list[Task]:
        """查询任务列表，支持按状态筛选，按 created_at 倒序"""
        if status:
            cursor = await self._conn.execute(
                "SELECT task_id FROM tasks WHERE status = ? ORDER BY created_at DESC",
                (status,),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT task_id FROM tasks ORDER BY created_at DESC"
            )
        task_ids = [row[0] for row in await cursor.fetchall()]
        tasks = []
        for task_id in task_ids:
            task = await self.get_task(task_id)
            if task is not None:
                tasks.append(task)
        return tasks

    async def update_task_status(
        self,
        task_id: str,
        expected_status: TaskStatus,
        new_status: TaskStatus,
    ) -> Task:
        """条件更新任务状态（compare-and-swap on status）

        Raises:
            TaskNotFoundError: 任务不存在
            ConcurrentModificationError: 存储中的状态已不是 expected_status
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET status = ?, updated_at = ?, version = version + 1
            WHERE task_id = ? AND status = ?
            """,
            (new_status.value, _now_iso(), task_id, expected_status.value),
        )
        await self._conn.commit()
        if cursor.rowcount == 0:
            await self._raise_conflict(task_id, f"status is no longer {expected_status.value}")
        return await self._require_task(task_id)

    async def update_assignees(
        self,
        task_id: str,
        expected_version: int,
        assignee_ids: set[str],
    ) -> Task:
        """条件更新指派人集合（compare-and-swap on version）"""
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET assignee_ids = ?, updated_at = ?, version = version + 1
            WHERE task_id = ? AND version = ?
            """,
            (json.dumps(sorted(assignee_ids)), _now_iso(), task_id, expected_version),
        )
        await self._conn.commit()
        if cursor.rowcount == 0:
            await self._raise_conflict(task_id, f"version is no longer {expected_version}")
        return await self._require_task(task_id)

    async def append_comment(
        self,
        task_id: str,
        expected_length: int,
        comment: Comment,
    ) -> Task:
        """条件追加评论：仅当当前评论数等于 expected_length 时写入

        Raises:
            TaskNotFoundError: 任务不存在
            ConcurrentModificationError: 评论数已变化，或 comment_id 已在该任务下存在
        """
        try:
            cursor = await self._conn.execute(
                f"""
                INSERT INTO task_comments (task_id, seq, {_COMMENT_COLUMNS})
                SELECT ?, ?, ?, ?, ?, ?, ?, ?
                WHERE EXISTS (SELECT 1 FROM tasks WHERE task_id = ?)
                  AND (SELECT COUNT(*) FROM task_comments WHERE task_id = ?) = ?
                  AND NOT EXISTS (SELECT 1 FROM task_comments WHERE task_id = ? AND comment_id = ?)
                """,
                (
                    task_id,
                    expected_length,
                    comment.comment_id,
                    comment.author_id,
                    comment.author_name,
                    comment.author_avatar,
                    comment.body,
                    comment.created_at.isoformat(),
                    task_id,
                    task_id,
                    expected_length,
                    task_id,
                    comment.comment_id,
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise ConcurrentModificationError(task_id, "comment slot taken") from e
        await self._conn.commit()
        if cursor.rowcount == 0:
            await self._raise_conflict(task_id, f"comment count is no longer {expected_length}")
        return await self._require_task(task_id)

    async def append_work_log(
        self,
        task_id: str,
        expected_length: int,
        work_log: WorkLog,
    ) -> Task:
        """条件追加工时记录：仅当当前记录数等于 expected_length 时写入"""
        try:
            cursor = await self._conn.execute(
                f"""
                INSERT INTO task_logs (task_id, seq, {_LOG_COLUMNS})
                SELECT ?, ?, ?, ?, ?, ?, ?, ?
                WHERE EXISTS (SELECT 1 FROM tasks WHERE task_id = ?)
                  AND (SELECT COUNT(*) FROM task_logs WHERE task_id = ?) = ?
                  AND NOT EXISTS (SELECT 1 FROM task_logs WHERE task_id = ? AND log_id = ?)
                """,
                (
                    task_id,
                    expected_length,
                    work_log.log_id,
                    work_log.author_id,
                    work_log.author_name,
                    work_log.hours_spent,
                    work_log.description,
                    work_log.logged_at.isoformat(),
                    task_id,
                    task_id,
                    expected_length,
                    task_id,
                    work_log.log_id,
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise ConcurrentModificationError(task_id, "work log slot taken") from e
        await self._conn.commit()
        if cursor.rowcount == 0:
            await self._raise_conflict(task_id, f"work log count is no longer {expected_length}")
        return await self._require_task(task_id)

    async def _require_task(self, task_id: str) -> Task:
        task = await self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _raise_conflict(self, task_id: str, detail: str) -> None:
        """条件未命中：区分任务不存在与并发修改"""
        cursor = await self._conn.execute(
            "SELECT 1 FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        if await cursor.fetchone() is None:
            raise TaskNotFoundError(task_id)
        log.debug("task_store_cas_miss", task_id=task_id, detail=detail)
        raise ConcurrentModificationError(task_id, detail)

    @staticmethod
    def _row_to_task(
        row: aiosqlite.Row,
        comments: list[Comment],
        logs: list[WorkLog],
    ) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            title=row[1],
            description=row[2],
            due_date=datetime.fromisoformat(row[3]) if row[3] else None,
            created_at=datetime.fromisoformat(row[4]),
            updated_at=datetime.fromisoformat(row[5]),
            project_id=row[6],
            priority=row[7],
            status=row[8],
            assignee_ids=set(json.loads(row[9] or "[]")),
            creator_id=row[10],
            version=row[11],
            comments=comments,
            logs=logs,
        )

    @staticmethod
    def _row_to_comment(row: aiosqlite.Row) -> Comment:
        return Comment(
            comment_id=row[0],
            author_id=row[1],
            author_name=row[2],
            author_avatar=row[3],
            body=row[4],
            created_at=datetime.fromisoformat(row[5]),
        )

    @staticmethod
    def _row_to_log(row: aiosqlite.Row) -> WorkLog:
        return WorkLog(
            log_id=row[0],
            author_id=row[1],
            author_name=row[2],
            hours_spent=row[3],
            description=row[4],
            logged_at=datetime.fromisoformat(row[5]),
        )
