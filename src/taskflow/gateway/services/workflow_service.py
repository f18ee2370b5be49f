"""WorkflowService -- 工作流操作编排

每个操作的顺序固定：
1. 引擎校验并提交（状态机 / 协作日志 / 指派变更）
2. 提交成功后生成领域事件
3. 交给 DispatchRunner 扇出；扇出失败不会回滚已提交的操作
"""

from datetime import UTC, datetime

import structlog
from pydantic import BaseModel
from taskflow.core.assignment import AssignmentManager, assignment_events, diff_assignees
from taskflow.core.collab import CollaborationLog, collaborator_recipients
from taskflow.core.exceptions import PermissionDeniedError, TaskNotFoundError, ValidationError
from taskflow.core.models import (
    Actor,
    Comment,
    DomainEvent,
    DomainEventType,
    NotificationRecord,
    Task,
    TaskPriority,
    TaskStatus,
    WorkLog,
)
from taskflow.core.state_machine import TaskStateMachine
from taskflow.core.store import StoreGroup
from taskflow.notify import NotifyConfig
from ulid import ULID

from .dispatch_runner import DispatchRunner

log = structlog.get_logger()


class ActionResult(BaseModel):
    """工作流操作结果

    notification_warning 仅在等待扇出完成且存在部分失败时给出。
    """

    task: Task
    comment: Comment | None = None
    work_log: WorkLog | None = None
    created: bool = True
    event_count: int = 0
    notification_warning: str | None = None


class WorkflowService:
    """工作流业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        runner: DispatchRunner,
        config: NotifyConfig | None = None,
    ) -> None:
        self._stores = store_group
        self._runner = runner
        self._config = config or NotifyConfig()
        self._state_machine = TaskStateMachine(store_group.task_store, store_group.user_store)
        self._collab = CollaborationLog(
            store_group.task_store,
            store_group.user_store,
            mention_by_display_name=self._config.mention_by_display_name,
        )
        self._assignments = AssignmentManager(
            store_group.task_store,
            notify_on_unassign=self._config.notify_on_unassign,
        )

    async def create_task(
        self,
        actor: Actor,
        title: str,
        description: str = "",
        assignee_ids: set[str] | None = None,
        due_date: datetime | None = None,
        project_id: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
    ) -> ActionResult:
        """创建任务（仅管理员），初始指派人收到 task_assigned 通知"""
        if not actor.is_admin:
            raise PermissionDeniedError(actor.user_id, "create tasks")
        if not title or not title.strip():
            raise ValidationError("title", "Task title cannot be empty")

        now = datetime.now(UTC)
        task = Task(
            task_id=str(ULID()),
            title=title.strip(),
            description=description,
            due_date=due_date,
            created_at=now,
            updated_at=now,
            project_id=project_id,
            priority=priority,
            status=TaskStatus.PENDING,
            assignee_ids={uid for uid in (assignee_ids or set()) if uid},
            creator_id=actor.user_id,
        )
        await self._stores.task_store.create_task(task)
        log.info(
            "task_created",
            task_id=task.task_id,
            actor_id=actor.user_id,
            assignee_count=len(task.assignee_ids),
        )

        events = assignment_events(task, actor, diff_assignees(set(), task.assignee_ids))
        return await self._publish(ActionResult(task=task), events)

    async def get_task(self, task_id: str) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def list_tasks(self, status: str | None = None) -> list[Task]:
        return await self._stores.task_store.list_tasks(status)

    async def transition(self, task_id: str, actor: Actor, to_status: TaskStatus) -> ActionResult:
        """状态流转"""
        outcome = await self._state_machine.transition(task_id, actor, to_status)
        events = [outcome.event] if outcome.event is not None else []
        return await self._publish(ActionResult(task=outcome.task), events)

    async def add_comment(
        self,
        task_id: str,
        actor: Actor,
        body: str,
        comment_id: str | None = None,
    ) -> ActionResult:
        """追加评论；comment_id 去重命中时不再通知"""
        outcome = await self._collab.append_comment(task_id, actor, body, comment_id)
        result = ActionResult(task=outcome.task, comment=outcome.comment, created=outcome.created)
        if not outcome.created:
            return result

        event = DomainEvent.create(
            DomainEventType.COMMENT_ADDED,
            outcome.task,
            actor,
            outcome.recipients,
            comment=outcome.comment,
        )
        return await self._publish(result, [event])

    async def log_work(
        self,
        task_id: str,
        actor: Actor,
        hours_spent: float,
        description: str,
        log_id: str | None = None,
    ) -> ActionResult:
        """追加工时；仅在开启 notify_on_work_log 时通知参与者"""
        outcome = await self._collab.append_work_log(
            task_id, actor, hours_spent, description, log_id
        )
        result = ActionResult(task=outcome.task, work_log=outcome.work_log, created=outcome.created)
        if not outcome.created or not self._config.notify_on_work_log:
            return result

        event = DomainEvent.create(
            DomainEventType.WORK_LOGGED,
            outcome.task,
            actor,
            collaborator_recipients(outcome.task, actor, set()),
            work_log=outcome.work_log,
        )
        return await self._publish(result, [event])

    async def update_assignees(
        self,
        task_id: str,
        actor: Actor,
        assignee_ids: set[str],
    ) -> ActionResult:
        """替换指派人集合，只通知新增的指派人"""
        outcome = await self._assignments.update_assignees(task_id, actor, assignee_ids)
        return await self._publish(ActionResult(task=outcome.task), outcome.events)

    async def list_notifications(
        self,
        actor: Actor,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        return await self._stores.notification_store.list_for_recipient(
            actor.user_id, unread_only=unread_only, limit=limit
        )

    async def mark_notification_read(self, actor: Actor, notification_id: str) -> bool:
        return await self._stores.notification_store.mark_read(notification_id, actor.user_id)

    async def _publish(self, result: ActionResult, events: list[DomainEvent]) -> ActionResult:
        """扇出事件；await_dispatch 开启时收集部分失败提示"""
        result.event_count = len(events)
        if not self._config.await_dispatch:
            for event in events:
                self._runner.submit(event)
            return result

        warnings = []
        for event in events:
            dispatch_result = await self._runner.dispatch_now(event)
            if dispatch_result is None:
                warnings.append("Your action succeeded, but notifications could not be sent.")
            elif dispatch_result.is_partial:
                warnings.append(dispatch_result.warning_message())
        if warnings:
            result.notification_warning = " ".join(warnings)
        return result
