"""TaskFlow Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .actor import Actor, UserProfile
from .enums import (
    EVENT_NOTIFICATION_KINDS,
    TERMINAL_STATES,
    TRANSITION_EVENTS,
    VALID_TRANSITIONS,
    ActorRole,
    DomainEventType,
    NotificationKind,
    TaskPriority,
    TaskStatus,
    allowed_roles,
    validate_transition,
)
from .event import DomainEvent, Recipient
from .notification import InsertOutcome, NotificationRecord
from .task import Comment, Task, WorkLog

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "ActorRole",
    "DomainEventType",
    "NotificationKind",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "TRANSITION_EVENTS",
    "EVENT_NOTIFICATION_KINDS",
    "validate_transition",
    "allowed_roles",
    # Actor
    "Actor",
    "UserProfile",
    # Task
    "Task",
    "Comment",
    "WorkLog",
    # Event
    "DomainEvent",
    "Recipient",
    # Notification
    "NotificationRecord",
    "InsertOutcome",
]
