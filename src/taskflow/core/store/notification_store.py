"""NotificationStore SQLite 实现

insert_many 逐条写入并返回逐条结果，从不整体成败。
"""

from datetime import UTC, datetime

import aiosqlite
import structlog

from ..models.notification import InsertOutcome, NotificationRecord

log = structlog.get_logger()

_COLUMNS = (
    "notification_id, recipient_id, message, link, kind, related_task_id, "
    "triggered_by_user_id, created_at, read_at"
)


class SqliteNotificationStore:
    """NotificationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_many(self, records: list[NotificationRecord]) -> list[InsertOutcome]:
        """批量写入通知，每条独立提交

        Returns:
            与 records 顺序一致的逐条结果
        """
        outcomes: list[InsertOutcome] = []
        for record in records:
            try:
                await self._conn.execute(
                    f"INSERT INTO notifications ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.notification_id,
                        record.recipient_id,
                        record.message,
                        record.link,
                        record.kind.value,
                        record.related_task_id,
                        record.triggered_by_user_id,
                        record.created_at.isoformat(),
                        record.read_at.isoformat() if record.read_at else None,
                    ),
                )
                await self._conn.commit()
            except (aiosqlite.Error, ValueError) as e:
                log.warning(
                    "notification_insert_failed",
                    notification_id=record.notification_id,
                    recipient_id=record.recipient_id,
                    error_type=type(e).__name__,
                )
                outcomes.append(
                    InsertOutcome(
                        notification_id=record.notification_id,
                        ok=False,
                        error=str(e),
                    )
                )
                continue
            outcomes.append(InsertOutcome(notification_id=record.notification_id, ok=True))
        return outcomes

    async def list_for_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        """查询收件人的通知，按 created_at 倒序"""
        sql = f"SELECT {_COLUMNS} FROM notifications WHERE recipient_id = ?"
        if unread_only:
            sql += " AND read_at IS NULL"
        sql += " ORDER BY created_at DESC LIMIT ?"
        cursor = await self._conn.execute(sql, (recipient_id, limit))
        rows = await cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    async def list_for_task(self, task_id: str) -> list[NotificationRecord]:
        """查询某任务产生的全部通知"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM notifications WHERE related_task_id = ? "
            "ORDER BY created_at ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    async def mark_read(self, notification_id: str, recipient_id: str) -> bool:
        """标记已读，仅收件人本人可标记

        Returns:
            True 如果通知存在且属于该收件人
        """
        cursor = await self._conn.execute(
            """
            UPDATE notifications
            SET read_at = COALESCE(read_at, ?)
            WHERE notification_id = ? AND recipient_id = ?
            """,
            (datetime.now(UTC).isoformat(), notification_id, recipient_id),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> NotificationRecord:
        return NotificationRecord(
            notification_id=row[0],
            recipient_id=row[1],
            message=row[2],
            link=row[3],
            kind=row[4],
            related_task_id=row[5],
            triggered_by_user_id=row[6],
            created_at=datetime.fromisoformat(row[7]),
            read_at=datetime.fromisoformat(row[8]) if row[8] else None,
        )
