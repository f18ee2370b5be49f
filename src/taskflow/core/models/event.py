"""DomainEvent 数据模型

状态机 / 协作日志 / 指派变更成功落盘后产生，交给 NotificationDispatcher 扇出。
recipients 中的 mentioned 标记影响通知措辞。
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from .actor import Actor
from .enums import DomainEventType
from .task import Comment, Task, WorkLog


class Recipient(BaseModel):
    """事件收件人"""

    model_config = ConfigDict(frozen=True)

    user_id: str
    mentioned: bool = Field(default=False, description="是否在评论中被显式 @")


class DomainEvent(BaseModel):
    """领域事件"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    type: DomainEventType
    ts: datetime
    task: Task = Field(description="事件发生后的任务快照")
    recipients: list[Recipient] = Field(default_factory=list)
    triggered_by: Actor
    comment: Comment | None = Field(default=None, description="COMMENT_ADDED 事件携带")
    work_log: WorkLog | None = Field(default=None, description="WORK_LOGGED 事件携带")

    @classmethod
    def create(
        cls,
        event_type: DomainEventType,
        task: Task,
        triggered_by: Actor,
        recipients: list[Recipient],
        **extra,
    ) -> "DomainEvent":
        """生成新事件（ULID + 当前 UTC 时间）"""
        return cls(
            event_id=str(ULID()),
            type=event_type,
            ts=datetime.now(UTC),
            task=task,
            recipients=recipients,
            triggered_by=triggered_by,
            **extra,
        )

    @property
    def recipient_ids(self) -> set[str]:
        return {r.user_id for r in self.recipients}
