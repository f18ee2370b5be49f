"""枚举定义 -- 任务状态机、优先级、通知类型

包含 TaskStatus 状态机、ActorRole、DomainEventType、NotificationKind 枚举，
以及 VALID_TRANSITIONS 流转表（含角色约束）和 TRANSITION_EVENTS 事件映射。
所有角色判断集中在 VALID_TRANSITIONS 一处。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机

    值与历史数据保持一致（"In Progress" 含空格）。
    """

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    APPROVED = "Approved"


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ActorRole(StrEnum):
    """操作者相对某个任务的角色"""

    ASSIGNEE = "assignee"
    ADMIN = "admin"


class DomainEventType(StrEnum):
    """领域事件类型 -- 由状态机 / 协作日志 / 指派变更产生，交给 Dispatcher 消费"""

    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_UNASSIGNED = "TASK_UNASSIGNED"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_APPROVED = "TASK_APPROVED"
    TASK_REJECTED = "TASK_REJECTED"
    COMMENT_ADDED = "COMMENT_ADDED"
    WORK_LOGGED = "WORK_LOGGED"


class NotificationKind(StrEnum):
    """站内通知类型（notifications.kind 列）"""

    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED_FOR_APPROVAL = "task_completed_for_approval"
    TASK_APPROVED = "task_approved"
    TASK_REJECTED = "task_rejected"
    NEW_COMMENT_ON_TASK = "new_comment_on_task"

    # 仅在 NotifyConfig 显式开启时产生
    NEW_LOG = "new_log"
    TASK_UNASSIGNED = "task_unassigned"


# 合法流转 -> 允许执行该流转的角色集合
VALID_TRANSITIONS: dict[TaskStatus, dict[TaskStatus, frozenset[ActorRole]]] = {
    TaskStatus.PENDING: {
        TaskStatus.IN_PROGRESS: frozenset({ActorRole.ASSIGNEE, ActorRole.ADMIN}),
        TaskStatus.COMPLETED: frozenset({ActorRole.ASSIGNEE}),
    },
    TaskStatus.IN_PROGRESS: {
        TaskStatus.COMPLETED: frozenset({ActorRole.ASSIGNEE}),
    },
    TaskStatus.COMPLETED: {
        TaskStatus.APPROVED: frozenset({ActorRole.ADMIN}),
        # 驳回：退回进行中
        TaskStatus.IN_PROGRESS: frozenset({ActorRole.ADMIN}),
    },
    # 终态不可再流转
    TaskStatus.APPROVED: {},
}

TERMINAL_STATES: set[TaskStatus] = {TaskStatus.APPROVED}

# 成功流转后产生的领域事件；未列出的流转（Pending -> In Progress）不产生事件
TRANSITION_EVENTS: dict[tuple[TaskStatus, TaskStatus], DomainEventType] = {
    (TaskStatus.PENDING, TaskStatus.COMPLETED): DomainEventType.TASK_COMPLETED,
    (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED): DomainEventType.TASK_COMPLETED,
    (TaskStatus.COMPLETED, TaskStatus.APPROVED): DomainEventType.TASK_APPROVED,
    (TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS): DomainEventType.TASK_REJECTED,
}

EVENT_NOTIFICATION_KINDS: dict[DomainEventType, NotificationKind] = {
    DomainEventType.TASK_ASSIGNED: NotificationKind.TASK_ASSIGNED,
    DomainEventType.TASK_UNASSIGNED: NotificationKind.TASK_UNASSIGNED,
    DomainEventType.TASK_COMPLETED: NotificationKind.TASK_COMPLETED_FOR_APPROVAL,
    DomainEventType.TASK_APPROVED: NotificationKind.TASK_APPROVED,
    DomainEventType.TASK_REJECTED: NotificationKind.TASK_REJECTED,
    DomainEventType.COMMENT_ADDED: NotificationKind.NEW_COMMENT_ON_TASK,
    DomainEventType.WORK_LOGGED: NotificationKind.NEW_LOG,
}


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转边是否存在（不考虑角色）

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转边存在，否则 False
    """
    return to_status in VALID_TRANSITIONS.get(from_status, {})


def allowed_roles(from_status: TaskStatus, to_status: TaskStatus) -> frozenset[ActorRole]:
    """返回允许执行该流转的角色集合，流转不存在时返回空集"""
    return VALID_TRANSITIONS.get(from_status, {}).get(to_status, frozenset())
