"""Store Protocol 接口定义

定义 TaskStore、NotificationStore、IdentityProvider 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
引擎只依赖这些接口，SQLite 实现只是其中一种。
"""

from typing import Protocol

from ..models.actor import Actor, UserProfile
from ..models.enums import TaskStatus
from ..models.notification import InsertOutcome, NotificationRecord
from ..models.task import Comment, Task, WorkLog


class TaskStore(Protocol):
    """Task 存储接口

    所有写操作都是条件更新，条件未命中时抛出 ConcurrentModificationError。
    """

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务，不存在返回 None"""
        ...

    async def update_task_status(
        self,
        task_id: str,
        expected_status: TaskStatus,
        new_status: TaskStatus,
    ) -> Task:
        """compare-and-swap 更新状态"""
        ...

    async def update_assignees(
        self,
        task_id: str,
        expected_version: int,
        assignee_ids: set[str],
    ) -> Task:
        """compare-and-swap（version）更新指派人"""
        ...

    async def append_comment(
        self,
        task_id: str,
        expected_length: int,
        comment: Comment,
    ) -> Task:
        """仅当评论数等于 expected_length 时追加"""
        ...

    async def append_work_log(
        self,
        task_id: str,
        expected_length: int,
        work_log: WorkLog,
    ) -> Task:
        """仅当工时记录数等于 expected_length 时追加"""
        ...


class NotificationStore(Protocol):
    """Notification 存储接口"""

    async def insert_many(self, records: list[NotificationRecord]) -> list[InsertOutcome]:
        """逐条写入，返回逐条结果（从不整体成败）"""
        ...

    async def list_for_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        """查询收件人的通知"""
        ...

    async def mark_read(self, notification_id: str, recipient_id: str) -> bool:
        """标记已读"""
        ...


class IdentityProvider(Protocol):
    """身份提供方接口 -- 只读"""

    async def get_actor(self, user_id: str) -> Actor | None:
        """将已认证的 user_id 解析为 Actor"""
        ...

    async def get_users_by_ids(self, user_ids: set[str]) -> list[UserProfile]:
        """批量查询档案，缺失的 id 不出现在结果中"""
        ...

    async def list_admin_ids(self) -> set[str]:
        """全部管理员 user_id"""
        ...
