"""指派变更 -- 计算新旧指派人差集并生成 task_assigned 事件

只通知新增的指派人，保持不变的指派人不会被重复通知；
被移除的指派人默认不通知（可通过 notify_on_unassign 开启）。
"""

import structlog
from pydantic import BaseModel, ConfigDict

from .config import CAS_MAX_ATTEMPTS
from .exceptions import ConcurrentModificationError, PermissionDeniedError, TaskNotFoundError
from .models.actor import Actor
from .models.enums import DomainEventType
from .models.event import DomainEvent, Recipient
from .models.task import Task
from .store.protocols import TaskStore

log = structlog.get_logger()


class AssignmentChange(BaseModel):
    """指派人差集"""

    model_config = ConfigDict(frozen=True)

    added: frozenset[str]
    removed: frozenset[str]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def diff_assignees(
    old_ids: set[str] | frozenset[str],
    new_ids: set[str] | frozenset[str],
) -> AssignmentChange:
    """added = new - old, removed = old - new"""
    old, new = frozenset(old_ids), frozenset(new_ids)
    return AssignmentChange(added=new - old, removed=old - new)


def assignment_events(
    task: Task,
    actor: Actor,
    change: AssignmentChange,
    notify_on_unassign: bool = False,
) -> list[DomainEvent]:
    """根据差集生成领域事件"""
    events = []
    if change.added:
        events.append(
            DomainEvent.create(
                DomainEventType.TASK_ASSIGNED,
                task,
                actor,
                [Recipient(user_id=uid) for uid in sorted(change.added)],
            )
        )
    if change.removed and notify_on_unassign:
        events.append(
            DomainEvent.create(
                DomainEventType.TASK_UNASSIGNED,
                task,
                actor,
                [Recipient(user_id=uid) for uid in sorted(change.removed)],
            )
        )
    return events


class AssignmentOutcome(BaseModel):
    """指派变更结果"""

    task: Task
    change: AssignmentChange
    events: list[DomainEvent]


class AssignmentManager:
    """指派人更新（管理员操作，version 条件更新）"""

    def __init__(self, task_store: TaskStore, notify_on_unassign: bool = False) -> None:
        self._task_store = task_store
        self._notify_on_unassign = notify_on_unassign

    async def update_assignees(
        self,
        task_id: str,
        actor: Actor,
        assignee_ids: set[str],
    ) -> AssignmentOutcome:
        """替换任务的指派人集合

        Raises:
            PermissionDeniedError: 非管理员
            TaskNotFoundError: 任务不存在
            ConcurrentModificationError: 重试后仍冲突
        """
        if not actor.is_admin:
            raise PermissionDeniedError(actor.user_id, f"change assignees of task {task_id}")

        new_ids = {uid for uid in assignee_ids if uid}
        for attempt in range(1, CAS_MAX_ATTEMPTS + 1):
            task = await self._task_store.get_task(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)

            change = diff_assignees(task.assignee_ids, new_ids)
            if not change.changed:
                return AssignmentOutcome(task=task, change=change, events=[])

            try:
                updated = await self._task_store.update_assignees(task_id, task.version, new_ids)
            except ConcurrentModificationError:
                if attempt < CAS_MAX_ATTEMPTS:
                    log.warning("assignee_update_cas_retry", task_id=task_id, attempt=attempt)
                    continue
                raise

            log.info(
                "task_assignees_updated",
                task_id=task_id,
                actor_id=actor.user_id,
                added=sorted(change.added),
                removed=sorted(change.removed),
            )
            return AssignmentOutcome(
                task=updated,
                change=change,
                events=assignment_events(updated, actor, change, self._notify_on_unassign),
            )

        raise ConcurrentModificationError(task_id, "assignee update retries exhausted")
