"""NotificationRecord 数据模型

每个 (事件, 收件人) 对创建一条；由 Dispatcher 创建，之后由收件人标记已读。
站内通知是通知的权威记录，邮件只是尽力而为的副本。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import NotificationKind


class NotificationRecord(BaseModel):
    """站内通知记录"""

    notification_id: str = Field(description="唯一标识，ULID 格式")
    recipient_id: str = Field(description="收件人 user_id")
    message: str = Field(description="模板渲染后的通知文本")
    link: str = Field(description="站内相对链接，如 /tasks/{task_id}")
    kind: NotificationKind
    related_task_id: str
    triggered_by_user_id: str
    created_at: datetime
    read_at: datetime | None = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


class InsertOutcome(BaseModel):
    """insert_many 的单条结果 -- 批量写入从不整体成败"""

    notification_id: str
    ok: bool
    error: str = ""
