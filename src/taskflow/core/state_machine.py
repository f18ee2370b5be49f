"""任务状态机 -- 校验并应用状态流转

流程：
1. 读取任务，校验流转边是否存在（InvalidTransitionError）
2. 按 VALID_TRANSITIONS 校验角色（PermissionDeniedError）
3. 以读到的状态为期望值做条件更新；冲突时重读、重新校验、重试一次
4. 根据 TRANSITION_EVENTS 生成至多一个领域事件
"""

import structlog
from pydantic import BaseModel

from .config import CAS_MAX_ATTEMPTS
from .exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    PermissionDeniedError,
    TaskNotFoundError,
)
from .models.actor import Actor
from .models.enums import (
    TRANSITION_EVENTS,
    DomainEventType,
    TaskStatus,
    allowed_roles,
    validate_transition,
)
from .models.event import DomainEvent, Recipient
from .models.task import Task
from .store.protocols import IdentityProvider, TaskStore

log = structlog.get_logger()


class TransitionOutcome(BaseModel):
    """流转结果：更新后的任务 + 可选领域事件"""

    task: Task
    from_status: TaskStatus
    event: DomainEvent | None = None


def check_transition(task: Task, actor: Actor, to_status: TaskStatus) -> None:
    """纯校验：流转边存在且 actor 具备所需角色

    先判断边是否存在，因此不存在的边无论角色如何都报 InvalidTransitionError。
    """
    if not validate_transition(task.status, to_status):
        raise InvalidTransitionError(task.task_id, task.status.value, to_status.value)

    required = allowed_roles(task.status, to_status)
    if not required & task.roles_of(actor):
        raise PermissionDeniedError(
            actor.user_id,
            f"move task {task.task_id} from {task.status.value} to {to_status.value}",
        )


class TaskStateMachine:
    """任务状态机"""

    def __init__(self, task_store: TaskStore, identity: IdentityProvider) -> None:
        self._task_store = task_store
        self._identity = identity

    async def transition(
        self,
        task_id: str,
        actor: Actor,
        to_status: TaskStatus,
    ) -> TransitionOutcome:
        """校验并应用状态流转

        Raises:
            TaskNotFoundError: 任务不存在
            InvalidTransitionError: 流转边不存在
            PermissionDeniedError: 角色不足
            ConcurrentModificationError: 重试后条件更新仍冲突
        """
        for attempt in range(1, CAS_MAX_ATTEMPTS + 1):
            task = await self._task_store.get_task(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)

            check_transition(task, actor, to_status)
            from_status = task.status

            try:
                updated = await self._task_store.update_task_status(
                    task_id, from_status, to_status
                )
            except ConcurrentModificationError:
                if attempt < CAS_MAX_ATTEMPTS:
                    log.warning(
                        "task_transition_cas_retry",
                        task_id=task_id,
                        attempt=attempt,
                        to_status=to_status.value,
                    )
                    continue
                raise

            log.info(
                "task_transition_applied",
                task_id=task_id,
                actor_id=actor.user_id,
                from_status=from_status.value,
                to_status=to_status.value,
            )
            event = await self._build_event(updated, from_status, actor)
            return TransitionOutcome(task=updated, from_status=from_status, event=event)

        raise ConcurrentModificationError(task_id, "transition retries exhausted")

    async def _build_event(
        self,
        task: Task,
        from_status: TaskStatus,
        actor: Actor,
    ) -> DomainEvent | None:
        """根据流转边生成领域事件，Pending -> In Progress 不产生事件"""
        event_type = TRANSITION_EVENTS.get((from_status, task.status))
        if event_type is None:
            return None

        if event_type == DomainEventType.TASK_COMPLETED:
            # 状态已落盘，管理员列表查询失败只影响通知
            try:
                recipient_ids = await self._identity.list_admin_ids()
            except Exception as e:
                log.error(
                    "admin_lookup_failed",
                    task_id=task.task_id,
                    error_type=type(e).__name__,
                )
                recipient_ids = set()
        else:
            recipient_ids = set(task.assignee_ids)

        return DomainEvent.create(
            event_type,
            task,
            actor,
            [Recipient(user_id=uid) for uid in sorted(recipient_ids)],
        )
